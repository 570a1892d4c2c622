"""
HTTP client for the Hospitable Connect API.
Wraps platform-token calls (customers, listings, images, auth codes) and the
OAuth token endpoints, translating upstream failures into API exceptions.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from app.config import Settings, settings as default_settings
from app.utils.exceptions import (
    BadRequestError,
    ConfigurationError,
    ExternalServiceError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

# Stored user tokens are refreshed when they expire within this many seconds
TOKEN_REFRESH_MARGIN_SECONDS = 5 * 60


class HospitableClient:
    """
    Async client for Hospitable Connect.

    One instance is shared by the application; it owns a pooled
    ``httpx.AsyncClient`` and must be closed on shutdown. Tokens obtained
    through :meth:`exchange_code_for_token` are kept in memory only.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or default_settings
        self._clock = clock
        self._http = httpx.AsyncClient(
            base_url=self.config.hospitable_api_base_url,
            timeout=httpx.Timeout(self.config.hospitable_timeout_seconds),
            transport=transport,
        )

        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.token_expiry: Optional[float] = None

    async def close(self) -> None:
        await self._http.aclose()

    # Header helpers

    def _platform_headers(self) -> Dict[str, str]:
        token = self.config.hospitable_platform_token
        if not token:
            raise ConfigurationError("Missing HOSPITABLE_PLATFORM_TOKEN environment variable")

        return {
            "Content-Type": "application/json",
            "Connect-Version": self.config.hospitable_connect_version,
            "Authorization": f"Bearer {token}",
        }

    def _oauth_credentials(self) -> Dict[str, str]:
        client_id = self.config.hospitable_client_id
        client_secret = self.config.hospitable_client_secret
        if not client_id or not client_secret:
            raise ConfigurationError(
                "Missing required environment variables for OAuth flow: "
                "HOSPITABLE_CLIENT_ID and HOSPITABLE_CLIENT_SECRET"
            )
        return {"client_id": client_id, "client_secret": client_secret}

    async def _request(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        json: Optional[Dict[str, Any]] = None,
        relay_status: bool = False,
    ) -> Any:
        """
        Perform a request and decode the JSON body.

        Args:
            method: HTTP method
            url: Path relative to the API base URL, or an absolute URL
            headers: Request headers
            json: Optional JSON body
            relay_status: Respond with the upstream status instead of 502

        Returns:
            Decoded JSON body ({} for an empty body)

        Raises:
            ExternalServiceError: On transport failure or a non-2xx response
        """
        try:
            response = await self._http.request(method, url, headers=headers, json=json)
        except httpx.HTTPError as e:
            logger.error(f"Hospitable {method} {url} failed: {e}")
            raise ExternalServiceError(f"Hospitable request failed: {e}") from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = response.text

            logger.error(
                f"Hospitable {method} {url} returned {response.status_code}",
                extra={"upstream_status": response.status_code, "upstream_body": body},
            )
            raise ExternalServiceError(
                f"Hospitable API returned {response.status_code}",
                upstream_status=response.status_code,
                upstream_body=body,
                status_code=response.status_code if relay_status else 502,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(
                "Hospitable API returned an invalid JSON body",
                upstream_status=response.status_code,
                upstream_body=response.text,
            ) from e

    @staticmethod
    def _unwrap_list(payload: Any) -> List[Any]:
        if isinstance(payload, dict):
            data = payload.get("data")
            return data if isinstance(data, list) else []
        if isinstance(payload, list):
            return payload
        return []

    # Platform API

    async def create_customer(self, customer_data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a Hospitable customer with the platform token."""
        logger.info("Creating Hospitable customer")
        return await self._request("POST", "/customers", self._platform_headers(), json=customer_data)

    async def create_auth_code(self, customer_id: str, redirect_url: str) -> Dict[str, Any]:
        """
        Create an auth code for a customer.

        The response carries the Hospitable consent URL the customer must
        visit, usually as ``{"data": {"return_url": ..., "expires_at": ...}}``.
        """
        logger.info(f"Creating auth code for customer {customer_id}")
        return await self._request(
            "POST",
            "/auth-codes",
            self._platform_headers(),
            json={"customer_id": customer_id, "redirect_url": redirect_url},
        )

    async def get_all_customers(self) -> List[Dict[str, Any]]:
        payload = await self._request("GET", "/customers", self._platform_headers())
        return self._unwrap_list(payload)

    async def get_customer_listings(self, customer_id: str) -> List[Dict[str, Any]]:
        """
        Get all listings connected by a customer.

        Args:
            customer_id: Hospitable customer id

        Returns:
            List of raw listing payloads
        """
        payload = await self._request(
            "GET", f"/customers/{customer_id}/listings", self._platform_headers()
        )
        listings = self._unwrap_list(payload)
        logger.info(f"Got {len(listings)} listings for customer {customer_id}")
        return listings

    async def get_listing_images(self, customer_id: str, listing_id: str) -> List[Dict[str, Any]]:
        payload = await self._request(
            "GET",
            f"/customers/{customer_id}/listings/{listing_id}/images",
            self._platform_headers(),
        )
        images = self._unwrap_list(payload)
        logger.info(f"Got {len(images)} images for listing {listing_id}")
        return images

    # OAuth

    def set_tokens(self, token_response: Dict[str, Any]) -> None:
        """Remember tokens from an exchange or refresh response."""
        self.access_token = token_response.get("access_token")
        self.refresh_token = token_response.get("refresh_token") or self.refresh_token
        expires_in = token_response.get("expires_in")
        self.token_expiry = self._clock() + float(expires_in) if expires_in else None

    async def exchange_code_for_token(self, code: str) -> Dict[str, Any]:
        """
        Exchange an authorization code for access and refresh tokens.

        Args:
            code: Authorization code from the OAuth callback

        Returns:
            Token response from Hospitable

        Raises:
            BadRequestError: If no code is given
            ConfigurationError: If OAuth credentials are missing
            ExternalServiceError: If Hospitable rejects the exchange
        """
        if not code:
            raise BadRequestError("Authorization code is required")

        body = {
            **self._oauth_credentials(),
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.hospitable_redirect_uri,
        }
        token_response = await self._request(
            "POST",
            self.config.hospitable_token_url,
            {"Content-Type": "application/json", "Accept": "application/json"},
            json=body,
            relay_status=True,
        )
        self.set_tokens(token_response)
        logger.info("Exchanged authorization code for Hospitable tokens")
        return token_response

    async def refresh_access_token(self, refresh_token: Optional[str] = None) -> Dict[str, Any]:
        """
        Refresh an access token.

        Uses the given refresh token, or the stored one. Only a refresh of the
        stored token replaces the stored tokens.
        """
        use_stored = refresh_token is None
        token = refresh_token if refresh_token is not None else self.refresh_token
        if not token:
            raise BadRequestError("Refresh token is required")

        body = {
            **self._oauth_credentials(),
            "grant_type": "refresh_token",
            "refresh_token": token,
        }
        token_response = await self._request(
            "POST",
            self.config.hospitable_token_url,
            {"Content-Type": "application/json", "Accept": "application/json"},
            json=body,
            relay_status=True,
        )
        if use_stored:
            self.set_tokens(token_response)
        return token_response

    def token_needs_refresh(self) -> bool:
        if self.token_expiry is None:
            return False
        return self._clock() > self.token_expiry - TOKEN_REFRESH_MARGIN_SECONDS

    async def _ensure_fresh_token(self) -> None:
        if not self.token_needs_refresh() or not self.refresh_token:
            return
        try:
            await self.refresh_access_token()
        except (ConfigurationError, ExternalServiceError) as e:
            # The stale token is still tried; Hospitable rejects it if expired
            logger.warning(f"Failed to refresh Hospitable access token: {e.detail}")

    async def get_user(self, authorization: Optional[str] = None) -> Dict[str, Any]:
        """
        Get the Hospitable user behind an access token.

        Args:
            authorization: Authorization header value to forward; the stored
                access token is used when omitted

        Returns:
            User payload from Hospitable
        """
        if authorization is None:
            await self._ensure_fresh_token()
            if self.access_token:
                authorization = f"Bearer {self.access_token}"

        if not authorization:
            raise UnauthorizedError("Access token or Authorization header is required")

        return await self._request(
            "GET",
            "/user",
            {
                "Authorization": authorization,
                "Accept": "application/json",
                "Connect-Version": self.config.hospitable_user_connect_version,
            },
            relay_status=True,
        )
