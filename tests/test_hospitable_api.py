"""
API tests for the Hospitable, OAuth and onboarding endpoints.
Hospitable itself is replaced by a mocked transport.
"""

import json
import pytest
from httpx import AsyncClient

from tests.conftest import API, TOKEN_PATH, FakeHospitable, make_listing


class TestConnectEndpoint:
    """Test POST /api/hospitable/connect."""

    @pytest.mark.asyncio
    async def test_auth_link_action(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.auth_code("https://my.hospitable.com/connect/xyz")

        response = await async_client.post(
            "/api/hospitable/connect", params={"action": "auth-link"}, json={"customerId": "cust-1"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "auth_url": "https://my.hospitable.com/connect/xyz",
            "expires_at": "2030-01-01T00:00:00Z",
        }

    @pytest.mark.asyncio
    async def test_auth_link_requires_customer(self, async_client: AsyncClient):
        response = await async_client.post("/api/hospitable/connect?action=auth-link", json={})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Customer ID is required"

    @pytest.mark.asyncio
    async def test_customer_action_forwards_customer_data(
        self, async_client: AsyncClient, fake_hospitable: FakeHospitable
    ):
        fake_hospitable.customer("cust-9")
        fake_hospitable.auth_code()

        response = await async_client.post(
            "/api/hospitable/connect?action=customer",
            json={"name": "Jane Host", "email": "jane@example.com"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["customer_id"] == "cust-9"
        assert data["auth_url"] == "https://my.hospitable.com/connect/abc"
        sent = json.loads(fake_hospitable.calls("POST", f"{API}/customers")[0].content)
        assert sent == {"name": "Jane Host", "email": "jane@example.com"}

    @pytest.mark.asyncio
    async def test_action_from_body(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.add("POST", TOKEN_PATH, {"access_token": "at"})

        response = await async_client.post("/api/hospitable/connect", json={"action": "token", "code": "c"})

        assert response.status_code == 200
        assert response.json()["access_token"] == "at"

    @pytest.mark.asyncio
    async def test_unknown_action(self, async_client: AsyncClient):
        response = await async_client.post("/api/hospitable/connect?action=nope", json={})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BAD_REQUEST"


class TestImportEndpoints:
    """Test listing import, images and publishing endpoints."""

    @pytest.mark.asyncio
    async def test_import_listings(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.listings("cust-1", [make_listing("lst-1"), make_listing("lst-2")])

        response = await async_client.post("/api/hospitable/import-listings", json={"customerId": "cust-1"})

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 2
        assert {p["platform_id"] for p in data} == {"cust-1:lst-1", "cust-1:lst-2"}
        assert data[0]["country"] == "United States of America"

    @pytest.mark.asyncio
    async def test_import_requires_customer(self, async_client: AsyncClient):
        response = await async_client.post("/api/hospitable/import-listings", json={})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_import_without_listings(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.listings("cust-1", [])

        response = await async_client.post("/api/hospitable/import-listings", json={"customer_id": "cust-1"})

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "No properties found in Hospitable account"

    @pytest.mark.asyncio
    async def test_upstream_error_relayed(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.add("GET", f"{API}/customers/cust-1/listings", {"message": "forbidden"}, 403)

        response = await async_client.post("/api/hospitable/import-listings", json={"customerId": "cust-1"})

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "EXTERNAL_SERVICE_ERROR"
        assert error["details"] == [{"upstream_status": 403, "upstream_body": {"message": "forbidden"}}]

    @pytest.mark.asyncio
    async def test_fetch_and_publish(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.listings("cust-1", [make_listing("lst-1")])
        fake_hospitable.images("cust-1", "lst-1", ["https://img/1.jpg", "https://img/2.jpg"])
        await async_client.post("/api/hospitable/import-listings", json={"customerId": "cust-1"})

        images = await async_client.post(
            "/api/hospitable/fetch-property-images",
            json={"customerId": "cust-1", "listingId": "lst-1", "shouldUpdateCachedImages": True},
        )
        published = await async_client.post(
            "/api/hospitable/publish-properties",
            json={"customerId": "cust-1", "listingIds": ["lst-1"]},
        )

        assert images.status_code == 200
        assert images.json()["main_image"] == "https://img/1.jpg"
        assert images.json()["from_cache"] is False
        assert published.status_code == 200
        assert published.json()[0]["status"] == "active"
        assert published.json()[0]["published_at"] is not None
        assert published.json()[0]["is_published"] is True

    @pytest.mark.asyncio
    async def test_publish_requires_listing_ids(self, async_client: AsyncClient):
        response = await async_client.post("/api/hospitable/publish-properties", json={"customerId": "cust-1"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_list_customers(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.add("GET", f"{API}/customers", {"data": [{"id": "c1"}, {"id": "c2"}]})

        response = await async_client.get("/api/hospitable/customers")

        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_customer_listings(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.listings("cust-1", [make_listing("lst-1")])

        response = await async_client.get("/api/hospitable/customers/cust-1/listings")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["customer_id"] == "cust-1"
        assert data["count"] == 1
        assert data["data"][0]["id"] == "lst-1"


class TestAuthEndpoints:
    """Test OAuth helper endpoints and the callback page."""

    @pytest.mark.asyncio
    async def test_token_exchange(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.add("POST", TOKEN_PATH, {"access_token": "at", "refresh_token": "rt", "expires_in": 3600})

        response = await async_client.post("/api/auth/hospitable/token", json={"code": "abc"})

        assert response.status_code == 200
        assert response.json()["refresh_token"] == "rt"

    @pytest.mark.asyncio
    async def test_token_exchange_requires_code(self, async_client: AsyncClient):
        response = await async_client.post("/api/auth/hospitable/token", json={})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_refresh(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.add("POST", TOKEN_PATH, {"access_token": "new"})

        response = await async_client.post("/api/auth/hospitable/refresh", json={"refreshToken": "rt"})

        assert response.status_code == 200
        sent = json.loads(fake_hospitable.calls("POST", TOKEN_PATH)[0].content)
        assert sent["grant_type"] == "refresh_token"
        assert sent["refresh_token"] == "rt"

    @pytest.mark.asyncio
    async def test_refresh_requires_token(self, async_client: AsyncClient):
        response = await async_client.post("/api/auth/hospitable/refresh", json={})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Refresh token is required"

    @pytest.mark.asyncio
    async def test_user_with_access_token(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.add("GET", f"{API}/user", {"data": {"id": "u1"}})

        response = await async_client.get("/api/auth/hospitable/user", params={"access_token": "tok"})

        assert response.status_code == 200
        assert fake_hospitable.calls("GET", f"{API}/user")[0].headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_user_without_token(self, async_client: AsyncClient):
        response = await async_client.get("/api/auth/hospitable/user")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_callback_posts_code(self, async_client: AsyncClient):
        response = await async_client.get("/auth/callback", params={"code": "abc"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert 'postMessage({"code": "abc"}' in response.text

    @pytest.mark.asyncio
    async def test_callback_error(self, async_client: AsyncClient):
        response = await async_client.get("/auth/callback", params={"error": "access_denied"})

        assert response.status_code == 400
        assert "access_denied" in response.text

    @pytest.mark.asyncio
    async def test_callback_escapes_script(self, async_client: AsyncClient):
        response = await async_client.get("/auth/callback", params={"code": "</script><script>alert(1)"})

        assert "</script><script>" not in response.text

    @pytest.mark.asyncio
    async def test_callback_without_code(self, async_client: AsyncClient):
        response = await async_client.get("/auth/callback")

        assert response.status_code == 400
        assert "No authorization code received" in response.text


class TestOnboardingEndpoints:
    """Test the onboarding flow API."""

    @pytest.mark.asyncio
    async def test_unknown_flow_state(self, async_client: AsyncClient):
        response = await async_client.get("/api/onboarding/flow-1")

        assert response.status_code == 200
        data = response.json()
        assert data["flow_id"] == "flow-1"
        assert data["status"] == "not_started"
        assert data["completed_steps"] == []

    @pytest.mark.asyncio
    async def test_invalid_flow_id(self, async_client: AsyncClient):
        response = await async_client.get("/api/onboarding/bad.id")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_step_by_step(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.customer("cust-1")
        fake_hospitable.auth_code()
        fake_hospitable.listings("cust-1", [make_listing("lst-1")])
        fake_hospitable.images("cust-1", "lst-1", ["https://img/1.jpg", "https://img/2.jpg"])

        created = await async_client.post("/api/onboarding/flow-1/customer", json={"name": "Jane Host"})
        assert created.status_code == 201
        assert created.json()["result"] == {"customer_id": "cust-1"}

        link = await async_client.post("/api/onboarding/flow-1/auth-link")
        assert link.json()["result"]["auth_link"] == "https://my.hospitable.com/connect/abc"

        authorized = await async_client.post("/api/onboarding/flow-1/authorize", json={})
        assert authorized.json()["state"]["status"] == "authorized"

        listings = await async_client.post("/api/onboarding/flow-1/listings")
        assert listings.json()["result"] == {"count": 1}

        stored = await async_client.post("/api/onboarding/flow-1/store")
        assert stored.json()["result"][0]["platform_id"] == "cust-1:lst-1"

        images = await async_client.post("/api/onboarding/flow-1/images")
        assert images.json()["result"] is True

        published = await async_client.post("/api/onboarding/flow-1/publish")
        assert published.json()["result"] is True
        assert published.json()["state"]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_run_and_reset(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.customer("cust-1")
        fake_hospitable.auth_code()
        fake_hospitable.listings("cust-1", [make_listing("lst-1")])
        fake_hospitable.images("cust-1", "lst-1", ["https://img/1.jpg", "https://img/2.jpg"])

        run = await async_client.post("/api/onboarding/flow-2/run", json={"name": "Jane Host"})
        assert run.status_code == 200
        assert run.json()["result"] is True
        assert run.json()["state"]["status"] == "completed"

        reset = await async_client.delete("/api/onboarding/flow-2")
        assert reset.json()["status"] == "not_started"

    @pytest.mark.asyncio
    async def test_failed_step_persists_error(self, async_client: AsyncClient, fake_hospitable: FakeHospitable):
        fake_hospitable.add("POST", f"{API}/customers", {"message": "down"}, 500)

        response = await async_client.post("/api/onboarding/flow-3/customer", json={"name": "Jane Host"})
        assert response.status_code == 502

        state = (await async_client.get("/api/onboarding/flow-3")).json()
        assert state["status"] == "error"
        assert state["error"] == "Failed to create customer: Hospitable API returned 500"
