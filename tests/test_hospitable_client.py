"""
Tests for the Hospitable Connect client against a mocked transport.
"""

import json
import pytest
import httpx

from app.config import settings
from app.services.hospitable_client import HospitableClient
from app.utils.exceptions import (
    BadRequestError,
    ConfigurationError,
    ExternalServiceError,
    UnauthorizedError,
)
from tests.conftest import API, TOKEN_PATH, FakeHospitable


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestPlatformCalls:
    """Test platform-token authenticated calls."""

    @pytest.mark.asyncio
    async def test_platform_headers_sent(self, hospitable_client: HospitableClient, fake_hospitable: FakeHospitable):
        fake_hospitable.add("GET", f"{API}/customers", {"data": [{"id": "c1"}]})

        customers = await hospitable_client.get_all_customers()

        assert customers == [{"id": "c1"}]
        request = fake_hospitable.requests[0]
        assert request.headers["Authorization"] == "Bearer platform-token"
        assert request.headers["Connect-Version"] == settings.hospitable_connect_version

    @pytest.mark.asyncio
    async def test_listings_unwrap_data_envelope(self, hospitable_client: HospitableClient, fake_hospitable: FakeHospitable):
        fake_hospitable.listings("c1", [{"id": "l1"}, {"id": "l2"}])

        listings = await hospitable_client.get_customer_listings("c1")

        assert [listing["id"] for listing in listings] == ["l1", "l2"]

    @pytest.mark.asyncio
    async def test_listing_images(self, hospitable_client: HospitableClient, fake_hospitable: FakeHospitable):
        fake_hospitable.images("c1", "l1", ["https://img/1.jpg"])

        images = await hospitable_client.get_listing_images("c1", "l1")

        assert images == [{"url": "https://img/1.jpg"}]

    @pytest.mark.asyncio
    async def test_create_auth_code_body(self, hospitable_client: HospitableClient, fake_hospitable: FakeHospitable):
        fake_hospitable.auth_code()

        await hospitable_client.create_auth_code("c1", "http://localhost/auth/callback")

        sent = json.loads(fake_hospitable.calls("POST", f"{API}/auth-codes")[0].content)
        assert sent == {"customer_id": "c1", "redirect_url": "http://localhost/auth/callback"}

    @pytest.mark.asyncio
    async def test_missing_platform_token(self, fake_hospitable: FakeHospitable):
        config = settings.model_copy(update={"hospitable_platform_token": None})
        client = HospitableClient(config, transport=httpx.MockTransport(fake_hospitable))

        with pytest.raises(ConfigurationError, match="HOSPITABLE_PLATFORM_TOKEN"):
            await client.create_customer({"name": "Jane"})
        assert fake_hospitable.requests == []
        await client.close()

    @pytest.mark.asyncio
    async def test_upstream_error_carries_status_and_body(
        self, hospitable_client: HospitableClient, fake_hospitable: FakeHospitable
    ):
        fake_hospitable.add("POST", f"{API}/customers", {"message": "email taken"}, 422)

        with pytest.raises(ExternalServiceError) as exc_info:
            await hospitable_client.create_customer({"email": "a@b.c"})

        assert exc_info.value.status_code == 502
        assert exc_info.value.upstream_status == 422
        assert exc_info.value.upstream_body == {"message": "email taken"}

    @pytest.mark.asyncio
    async def test_transport_failure(self, fake_hospitable: FakeHospitable):
        def broken(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = HospitableClient(settings, transport=httpx.MockTransport(broken))

        with pytest.raises(ExternalServiceError, match="Hospitable request failed"):
            await client.get_all_customers()
        await client.close()


class TestOAuth:
    """Test OAuth token handling."""

    @pytest.mark.asyncio
    async def test_exchange_code_stores_tokens(self, fake_hospitable: FakeHospitable):
        clock = FakeClock()
        fake_hospitable.add("POST", TOKEN_PATH, {"access_token": "at", "refresh_token": "rt", "expires_in": 3600})
        client = HospitableClient(settings, transport=httpx.MockTransport(fake_hospitable), clock=clock)

        response = await client.exchange_code_for_token("the-code")

        assert response["access_token"] == "at"
        assert client.access_token == "at"
        assert client.refresh_token == "rt"
        assert client.token_expiry == pytest.approx(4600.0)

        sent = json.loads(fake_hospitable.calls("POST", TOKEN_PATH)[0].content)
        assert sent["grant_type"] == "authorization_code"
        assert sent["code"] == "the-code"
        assert sent["client_id"] == "client-id"
        assert sent["redirect_uri"] == settings.hospitable_redirect_uri
        await client.close()

    @pytest.mark.asyncio
    async def test_exchange_requires_code(self, hospitable_client: HospitableClient):
        with pytest.raises(BadRequestError):
            await hospitable_client.exchange_code_for_token("")

    @pytest.mark.asyncio
    async def test_exchange_relays_upstream_status(
        self, hospitable_client: HospitableClient, fake_hospitable: FakeHospitable
    ):
        fake_hospitable.add("POST", TOKEN_PATH, {"error": "invalid_grant"}, 400)

        with pytest.raises(ExternalServiceError) as exc_info:
            await hospitable_client.exchange_code_for_token("bad")

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_oauth_credentials(self, fake_hospitable: FakeHospitable):
        config = settings.model_copy(update={"hospitable_client_secret": None})
        client = HospitableClient(config, transport=httpx.MockTransport(fake_hospitable))

        with pytest.raises(ConfigurationError):
            await client.exchange_code_for_token("code")
        await client.close()

    @pytest.mark.asyncio
    async def test_explicit_refresh_keeps_stored_tokens(
        self, hospitable_client: HospitableClient, fake_hospitable: FakeHospitable
    ):
        hospitable_client.set_tokens({"access_token": "stored", "refresh_token": "stored-rt"})
        fake_hospitable.add("POST", TOKEN_PATH, {"access_token": "other", "refresh_token": "other-rt"})

        response = await hospitable_client.refresh_access_token("someone-else")

        assert response["access_token"] == "other"
        assert hospitable_client.access_token == "stored"

    @pytest.mark.asyncio
    async def test_refresh_requires_token(self, hospitable_client: HospitableClient):
        with pytest.raises(BadRequestError, match="Refresh token is required"):
            await hospitable_client.refresh_access_token()

    @pytest.mark.asyncio
    async def test_get_user_refreshes_expiring_token(self, fake_hospitable: FakeHospitable):
        clock = FakeClock()
        client = HospitableClient(settings, transport=httpx.MockTransport(fake_hospitable), clock=clock)
        client.set_tokens({"access_token": "old", "refresh_token": "rt", "expires_in": 3600})
        fake_hospitable.add("POST", TOKEN_PATH, {"access_token": "new", "refresh_token": "rt2", "expires_in": 3600})
        fake_hospitable.add("GET", f"{API}/user", {"data": {"id": "u1"}})

        # Within five minutes of expiry
        clock.now += 3600 - 60
        user = await client.get_user()

        assert user == {"data": {"id": "u1"}}
        assert client.access_token == "new"
        user_request = fake_hospitable.calls("GET", f"{API}/user")[0]
        assert user_request.headers["Authorization"] == "Bearer new"
        assert user_request.headers["Connect-Version"] == settings.hospitable_user_connect_version
        await client.close()

    @pytest.mark.asyncio
    async def test_get_user_without_token(self, hospitable_client: HospitableClient):
        with pytest.raises(UnauthorizedError):
            await hospitable_client.get_user()
