"""WhatsApp delivery utility (Twilio Messages REST API over httpx).

Twilio settings come from the TWILIO_* environment variables in config.py.
"""

import re

import httpx

from bluegrid.config import settings
from bluegrid.utils.exceptions import NotificationError

_NON_DIGITS = re.compile(r"\D")


def whatsapp_configured() -> bool:
    """True when Twilio credentials are present."""
    return bool(settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN)


def format_phone_number(phone: str, country_code: str | None = None) -> str:
    """Normalise a phone number to Twilio's ``whatsapp:+<digits>`` address.

    Non-digits are stripped. A bare 10-digit local number gets the country
    code prefixed, and a leading trunk ``0`` is replaced by it.

    Args:
        phone: Number as entered by the user
        country_code: Country calling code, defaults to DEFAULT_COUNTRY_CODE

    Returns:
        str: Address such as ``whatsapp:+919876543210``

    Raises:
        NotificationError: Fewer than 10 digits remain
    """
    code = country_code or settings.DEFAULT_COUNTRY_CODE
    digits = _NON_DIGITS.sub("", phone or "")
    if digits.startswith("0"):
        digits = code + digits[1:]
    elif len(digits) == 10:
        digits = code + digits
    if len(digits) < 10:
        raise NotificationError(f"Invalid phone number: {phone!r}")
    return f"whatsapp:+{digits}"


async def send_whatsapp(
    to: str,
    body: str,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Send one WhatsApp message through Twilio.

    Args:
        to: Raw phone number, formatted with format_phone_number
        body: Message text
        client: Optional shared client (tests pass one with a mock transport)

    Returns:
        str: Twilio message SID

    Raises:
        NotificationError: Bad number, or Twilio rejected the request
        httpx.HTTPError: Network failure
    """
    url = f"{settings.TWILIO_API_BASE}/Accounts/{settings.TWILIO_ACCOUNT_SID}/Messages.json"
    data = {
        "From": settings.TWILIO_WHATSAPP_FROM,
        "To": format_phone_number(to),
        "Body": body,
    }
    auth = (settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)

    if client is None:
        async with httpx.AsyncClient(timeout=15.0) as own_client:
            response = await own_client.post(url, data=data, auth=auth)
    else:
        response = await client.post(url, data=data, auth=auth)

    if response.status_code >= 400:
        raise NotificationError(
            f"Twilio returned {response.status_code}: {response.text[:300]}"
        )
    return response.json().get("sid", "")
