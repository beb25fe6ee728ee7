"""
HTTP tests for the password recovery endpoints.
"""
import pytest
from unittest.mock import patch
from httpx import AsyncClient

from conftest import sent_code, TEST_PASSWORD
from core.exceptions import PersistenceError
from services.user_directory import authenticate_user

pytestmark = [pytest.mark.api, pytest.mark.integration]

BASE = "/api/v1/password-recovery"
GENERIC = {"success": True, "message": "An OTP will be sent if the account exists."}


class TestRequestOtpEndpoint:

    @pytest.mark.asyncio
    async def test_known_and_unknown_identifiers_get_the_same_reply(self, async_client: AsyncClient, user, delivery_mock):
        unknown = await async_client.post(f"{BASE}/otp/request", json={"identifier": "nobody@example.com"})
        known = await async_client.post(f"{BASE}/otp/request", json={"identifier": user.username})

        assert unknown.status_code == known.status_code == 200
        assert unknown.json() == known.json() == GENERIC
        assert known.headers["cache-control"].startswith("no-store")
        assert delivery_mock.call_count == 1

    @pytest.mark.asyncio
    async def test_blank_identifier_is_a_validation_error(self, async_client: AsyncClient):
        response = await async_client.post(f"{BASE}/otp/request", json={"identifier": "   "})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation Error"
        assert body["errors"][0]["field"] == "identifier"
        assert body["errors"][0]["message"] == "Identifier (username or email) is required"

    @pytest.mark.asyncio
    async def test_persistence_failure_is_a_generic_500(self, async_client: AsyncClient, user, delivery_mock):
        with patch("services.password_recovery_service.safe_commit", side_effect=PersistenceError()):
            response = await async_client.post(f"{BASE}/otp/request", json={"identifier": user.username})

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Internal server error"}
        assert delivery_mock.call_count == 0


class TestVerifyAndResetEndpoints:

    @pytest.mark.asyncio
    async def test_full_recovery_flow(self, async_client: AsyncClient, session_factory, user, delivery_mock):
        await async_client.post(f"{BASE}/otp/request", json={"identifier": user.delivery_address})
        code = sent_code(delivery_mock)

        verify = await async_client.post(f"{BASE}/otp/verify", json={"identifier": user.username, "code": code})
        assert verify.status_code == 200
        body = verify.json()
        assert body["success"] is True
        token = body["data"]["reset_token"]

        reset = await async_client.post(f"{BASE}/reset", json={"token": token, "password": "freshpass99"})
        assert reset.status_code == 200
        assert reset.json() == {"success": True, "message": "Password updated successfully."}

        async with session_factory() as session:
            assert await authenticate_user(user.username, "freshpass99", session) is not None
            assert await authenticate_user(user.username, TEST_PASSWORD, session) is None

        reuse = await async_client.post(f"{BASE}/reset", json={"token": token, "password": "otherpass99"})
        assert reuse.status_code == 400
        assert reuse.json() == {"success": False, "message": "Invalid or already used token."}

    @pytest.mark.asyncio
    async def test_wrong_code(self, async_client: AsyncClient, user, delivery_mock):
        await async_client.post(f"{BASE}/otp/request", json={"identifier": user.username})
        code = sent_code(delivery_mock)
        wrong = f"{(int(code) + 1) % 1_000_000:06d}"

        response = await async_client.post(f"{BASE}/otp/verify", json={"identifier": user.username, "code": wrong})
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid code. Please try again."}

    @pytest.mark.asyncio
    async def test_unknown_identifier_verify_matches_account_without_code(self, async_client: AsyncClient, user):
        unknown = await async_client.post(f"{BASE}/otp/verify", json={"identifier": "ghost", "code": "123456"})
        known = await async_client.post(f"{BASE}/otp/verify", json={"identifier": user.username, "code": "123456"})

        assert unknown.status_code == known.status_code == 400
        assert unknown.json() == known.json() == {
            "success": False,
            "message": "No active OTP found. Please request a new code.",
        }

    @pytest.mark.asyncio
    async def test_verify_without_request(self, async_client: AsyncClient, user):
        response = await async_client.post(f"{BASE}/otp/verify", json={"identifier": user.username, "code": "123456"})
        assert response.status_code == 400
        assert response.json()["message"] == "No active OTP found. Please request a new code."

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["12", "12345678901", ""])
    async def test_code_length_is_validated(self, async_client: AsyncClient, code):
        response = await async_client.post(f"{BASE}/otp/verify", json={"identifier": "someone", "code": code})
        assert response.status_code == 400
        assert response.json()["message"] == "Validation Error"

    @pytest.mark.asyncio
    async def test_short_password_is_a_validation_error(self, async_client: AsyncClient):
        response = await async_client.post(f"{BASE}/reset", json={"token": "abc.def", "password": "123"})
        assert response.status_code == 400
        body = response.json()
        assert body["errors"][0]["field"] == "password"
        assert body["errors"][0]["message"] == "Password must be at least 6 characters long"

    @pytest.mark.asyncio
    async def test_unknown_token(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{BASE}/reset", json={"token": "0123456789abcdef.nope", "password": "longenough"}
        )
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid or already used token."}


class TestServiceEndpoints:

    @pytest.mark.asyncio
    async def test_root(self, async_client: AsyncClient):
        response = await async_client.get("/")
        assert response.status_code == 200
        assert response.json()["message"] == "HRIS Credential Recovery API"

    @pytest.mark.asyncio
    async def test_health(self, async_client: AsyncClient):
        response = await async_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "sql_connected"}
