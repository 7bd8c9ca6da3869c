"""Auth API tests: OTP signup, signup, signin, refresh rotation, signout, profile."""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from bluegrid.services.auth_service import auth_service
from bluegrid.services.notification_service import Channel
from bluegrid.services.notification_templates import NotificationKind
from bluegrid.utils.otp import VerificationCodeStore
from tests.conftest import auth_header

API = "/api/v1/auth"

SIGNUP = {
    "email": "meena@example.com",
    "password": "secret123",
    "full_name": "Meena Resident",
    "phone": "9800000001",
    "address": "Ward 7",
}


@pytest.fixture(autouse=True)
def fresh_codes(monkeypatch) -> VerificationCodeStore:
    store = VerificationCodeStore(ttl=timedelta(minutes=10))
    monkeypatch.setattr(auth_service, "codes", store)
    return store


class TestOtpSignup:

    async def test_send_otp_emails_code(self, client: AsyncClient, sent_events):
        """Code goes out by email only."""
        res = await client.post(f"{API}/send-otp", json={"email": "Meena@Example.com", "full_name": "Meena"})
        assert res.status_code == 200
        assert res.json()["expires_in"] == 600

        event = sent_events[-1]
        assert event.kind is NotificationKind.OTP_CODE
        assert event.channels == frozenset({Channel.EMAIL})
        assert event.recipients[0].email == "meena@example.com"
        assert len(event.context["code"]) == 6

    async def test_send_otp_registered_email(self, client: AsyncClient, resident):
        """Registered email gets 409."""
        res = await client.post(f"{API}/send-otp", json={"email": resident.email})
        assert res.status_code == 409
        assert res.json()["detail"]["code"] == "email_taken"

    async def test_verify_creates_verified_resident(self, client: AsyncClient, sent_events):
        """Valid code creates a verified resident and is consumed."""
        await client.post(f"{API}/send-otp", json={"email": SIGNUP["email"]})
        code = sent_events[-1].context["code"]

        res = await client.post(f"{API}/verify-otp-signup", json={**SIGNUP, "otp": code})
        assert res.status_code == 201, res.json()
        user = res.json()["user"]
        assert user["role"] == "resident"
        assert user["email_verified"] is True
        assert user["address"] == "Ward 7"

        # code is single use
        res = await client.post(f"{API}/verify-otp-signup", json={**SIGNUP, "otp": code})
        assert res.status_code == 400
        assert res.json()["detail"]["code"] == "otp_not_found"

    async def test_wrong_code(self, client: AsyncClient, sent_events):
        """Wrong code is refused but the right one still works."""
        await client.post(f"{API}/send-otp", json={"email": SIGNUP["email"]})
        code = sent_events[-1].context["code"]
        wrong = "123456" if code != "123456" else "654321"

        res = await client.post(f"{API}/verify-otp-signup", json={**SIGNUP, "otp": wrong})
        assert res.status_code == 400
        assert res.json()["detail"]["code"] == "otp_invalid"

        res = await client.post(f"{API}/verify-otp-signup", json={**SIGNUP, "otp": code})
        assert res.status_code == 201

    async def test_too_many_wrong_codes(self, client: AsyncClient, monkeypatch, sent_events):
        """Repeated wrong codes burn the code; a fresh one must be requested."""
        monkeypatch.setattr(auth_service, "codes", VerificationCodeStore(ttl=timedelta(minutes=10), max_attempts=2))
        await client.post(f"{API}/send-otp", json={"email": SIGNUP["email"]})
        code = sent_events[-1].context["code"]
        wrong = "123456" if code != "123456" else "654321"

        res = await client.post(f"{API}/verify-otp-signup", json={**SIGNUP, "otp": wrong})
        assert res.json()["detail"]["code"] == "otp_invalid"
        res = await client.post(f"{API}/verify-otp-signup", json={**SIGNUP, "otp": wrong})
        assert res.json()["detail"]["code"] == "otp_attempts_exceeded"
        res = await client.post(f"{API}/verify-otp-signup", json={**SIGNUP, "otp": code})
        assert res.json()["detail"]["code"] == "otp_not_found"

    async def test_no_code_issued(self, client: AsyncClient):
        """Verifying without a sent code fails."""
        res = await client.post(f"{API}/verify-otp-signup", json={**SIGNUP, "otp": "123456"})
        assert res.status_code == 400
        assert res.json()["detail"]["code"] == "otp_not_found"

    async def test_expired_code(self, client: AsyncClient, fresh_codes):
        """Expired code is reported as expired."""
        code = fresh_codes.issue(SIGNUP["email"])
        fresh_codes._entries[SIGNUP["email"]].expires_at -= timedelta(minutes=11)

        res = await client.post(f"{API}/verify-otp-signup", json={**SIGNUP, "otp": code})
        assert res.status_code == 400
        assert res.json()["detail"]["code"] == "otp_expired"

    async def test_email_registered_after_code_sent(self, client: AsyncClient, fresh_codes):
        """Email taken in the meantime gets 409."""
        code = fresh_codes.issue(SIGNUP["email"])
        await client.post(f"{API}/signup", json=SIGNUP)

        res = await client.post(f"{API}/verify-otp-signup", json={**SIGNUP, "otp": code})
        assert res.status_code == 409


class TestSignupSignin:

    async def test_signup_unverified_resident(self, client: AsyncClient):
        """Direct signup creates an unverified resident."""
        res = await client.post(f"{API}/signup", json=SIGNUP)
        assert res.status_code == 201
        body = res.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email_verified"] is False
        assert body["user"]["role"] == "resident"

    async def test_signup_duplicate(self, client: AsyncClient, resident):
        """Duplicate signup email gets 409."""
        res = await client.post(f"{API}/signup", json={**SIGNUP, "email": resident.email})
        assert res.status_code == 409

    async def test_signup_short_password(self, client: AsyncClient):
        """Short password fails schema validation."""
        res = await client.post(f"{API}/signup", json={**SIGNUP, "password": "abc"})
        assert res.status_code == 422

    async def test_signin(self, client: AsyncClient, technician):
        """Signin returns tokens usable on /me."""
        res = await client.post(f"{API}/signin", json={"email": technician.email, "password": "secret123"})
        assert res.status_code == 200
        assert res.json()["user"]["role"] == "maintenance_technician"

        me = await client.get(f"{API}/me", headers=auth_header(res.json()["access_token"]))
        assert me.json()["id"] == str(technician.id)

    @pytest.mark.parametrize("email, password", [
        ("tech@example.com", "wrong-pass"),
        ("nobody@example.com", "secret123"),
    ])
    async def test_signin_bad_credentials(self, client: AsyncClient, technician, email, password):
        """Wrong password and unknown email give the same 401."""
        res = await client.post(f"{API}/signin", json={"email": email, "password": password})
        assert res.status_code == 401
        assert res.json()["detail"]["code"] == "invalid_credentials"


class TestTokens:

    async def _signin(self, client: AsyncClient, user) -> dict:
        res = await client.post(f"{API}/signin", json={"email": user.email, "password": "secret123"})
        return res.json()

    async def test_refresh_rotates(self, client: AsyncClient, resident):
        """Refresh issues a new token and revokes the old one."""
        tokens = await self._signin(client, resident)

        res = await client.post(f"{API}/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert res.status_code == 200
        assert res.json()["refresh_token"] != tokens["refresh_token"]

        again = await client.post(f"{API}/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert again.status_code == 401

    async def test_signout_revokes(self, client: AsyncClient, resident):
        """Signed-out refresh token cannot be used."""
        tokens = await self._signin(client, resident)
        res = await client.post(f"{API}/signout", json={"refresh_token": tokens["refresh_token"]})
        assert res.status_code == 204

        res = await client.post(f"{API}/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert res.status_code == 401

    async def test_refresh_token_is_not_an_access_token(self, client: AsyncClient, resident):
        """Refresh token is refused as a bearer token."""
        tokens = await self._signin(client, resident)
        res = await client.get(f"{API}/me", headers=auth_header(tokens["refresh_token"]))
        assert res.status_code == 401

    async def test_garbage_token(self, client: AsyncClient):
        """Malformed bearer token gives 401."""
        res = await client.get(f"{API}/me", headers=auth_header("not-a-jwt"))
        assert res.status_code == 401

    async def test_missing_token(self, client: AsyncClient):
        """No Authorization header is refused."""
        res = await client.get(f"{API}/me")
        assert res.status_code in (401, 403)


class TestProfile:

    async def test_update_profile(self, client: AsyncClient, resident):
        """Profile update changes only the given fields."""
        res = await client.put("/api/v1/profile", json={"address": "Ward 9", "phone": "9899999999"},
                               headers=auth_header(resident))
        assert res.status_code == 200
        assert res.json()["address"] == "Ward 9"
        assert res.json()["full_name"] == resident.full_name
        assert res.json()["role"] == "resident"

        res = await client.get("/api/v1/profile", headers=auth_header(resident))
        assert res.json()["phone"] == "9899999999"

    async def test_blank_name_rejected(self, client: AsyncClient, resident):
        """Blank full name is refused."""
        res = await client.put("/api/v1/profile", json={"full_name": "   "}, headers=auth_header(resident))
        assert res.status_code == 400
