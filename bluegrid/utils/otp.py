"""Email verification code store.

Process-local, expiring, single-use codes keyed by email address. Used by
the OTP signup flow: ``issue`` when the code is mailed, ``verify`` when the
user submits it.
"""

import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from bluegrid.config import settings

logger = logging.getLogger(__name__)


class OtpError(Exception):
    """Base class for verification failures."""


class OtpNotFoundError(OtpError):
    """No code was issued for this email, or it was already used."""


class OtpExpiredError(OtpError):
    """The code exists but its lifetime has passed. The entry is removed."""


class OtpMismatchError(OtpError):
    """The code does not match. The entry is kept for another attempt."""


class OtpAttemptsExceededError(OtpMismatchError):
    """Too many wrong codes. The entry is removed; a new code must be requested."""


@dataclass
class _Entry:
    code: str
    expires_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)
    attempts: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationCodeStore:
    """Expiring map of email -> one-time numeric code.

    Expiry is checked on access; ``sweep`` removes stale entries in bulk.

    Args:
        ttl: Code lifetime
        length: Number of digits
        max_attempts: Wrong codes allowed before the entry is dropped
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        ttl: timedelta,
        length: int = 6,
        max_attempts: int = 5,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._ttl = ttl
        self._length = length
        self._max_attempts = max_attempts
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    @staticmethod
    def _key(email: str) -> str:
        return email.strip().lower()

    def _generate(self) -> str:
        # First digit non-zero so the code always has the full length
        first = str(secrets.randbelow(9) + 1)
        rest = "".join(str(secrets.randbelow(10)) for _ in range(self._length - 1))
        return first + rest

    def issue(self, email: str, payload: dict[str, Any] | None = None) -> str:
        """Create a fresh code for ``email``, replacing any previous one."""
        code = self._generate()
        with self._lock:
            self._entries[self._key(email)] = _Entry(
                code=code,
                expires_at=self._clock() + self._ttl,
                payload=dict(payload or {}),
            )
        return code

    def verify(self, email: str, code: str) -> dict[str, Any]:
        """Consume the code for ``email``.

        Returns:
            dict: Payload stored at issue time

        Raises:
            OtpNotFoundError: Nothing issued (or already consumed)
            OtpExpiredError: Lifetime passed; entry removed
            OtpMismatchError: Wrong code; entry kept
            OtpAttemptsExceededError: Wrong code on the last allowed attempt; entry removed
        """
        key = self._key(email)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                raise OtpNotFoundError("OTP expired or not found")
            if self._clock() > entry.expires_at:
                del self._entries[key]
                raise OtpExpiredError("OTP expired")
            if not secrets.compare_digest(entry.code, str(code).strip()):
                entry.attempts += 1
                if entry.attempts >= self._max_attempts:
                    del self._entries[key]
                    raise OtpAttemptsExceededError("Too many invalid attempts. Request a new OTP.")
                raise OtpMismatchError("Invalid OTP")
            del self._entries[key]
            return entry.payload

    def sweep(self, now: datetime | None = None) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = now or self._clock()
        with self._lock:
            stale = [k for k, e in self._entries.items() if now > e.expires_at]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug("Swept %d expired verification codes", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, email: str) -> bool:
        return self._key(email) in self._entries


verification_codes: VerificationCodeStore = VerificationCodeStore(
    ttl=timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
    length=settings.OTP_LENGTH,
    max_attempts=settings.OTP_MAX_ATTEMPTS,
)
