"""
Hospitable OAuth endpoints.
Exchanges and refreshes tokens, looks up the authorized user and serves the
consent callback page.
"""

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import HTMLResponse
from typing import Any, Dict, Optional
import json
import logging

from app.schemas.hospitable import TokenExchangeRequest, TokenRefreshRequest
from app.services.error_handler import ERROR_RESPONSES
from app.services.hospitable_client import HospitableClient
from app.utils.dependencies import get_hospitable_client
from app.utils.exceptions import BadRequestError, UnauthorizedError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/hospitable", tags=["Authentication"])

# Served at the site root, outside the /api prefix
callback_router = APIRouter(tags=["Authentication"])


@router.post(
    "/token",
    response_model=Dict[str, Any],
    summary="Exchange OAuth code",
    description="Exchange an authorization code for Hospitable access and refresh tokens.",
    responses={code: ERROR_RESPONSES[code] for code in (400, 500, 502)},
)
async def exchange_token(
    body: TokenExchangeRequest,
    client: HospitableClient = Depends(get_hospitable_client),
) -> Dict[str, Any]:
    """
    Exchange an authorization code for tokens.

    Args:
        body: Request carrying the authorization code
        client: Hospitable client

    Returns:
        Token response from Hospitable

    Raises:
        BadRequestError: If the code is missing
        ExternalServiceError: If Hospitable rejects the exchange
    """
    if not body.code:
        raise BadRequestError("Authorization code is required")
    return await client.exchange_code_for_token(body.code)


@router.post(
    "/refresh",
    response_model=Dict[str, Any],
    summary="Refresh access token",
    responses={code: ERROR_RESPONSES[code] for code in (400, 500, 502)},
)
async def refresh_token(
    body: TokenRefreshRequest,
    client: HospitableClient = Depends(get_hospitable_client),
) -> Dict[str, Any]:
    if not body.refresh_token:
        raise BadRequestError("Refresh token is required")
    return await client.refresh_access_token(body.refresh_token)


@router.get(
    "/user",
    response_model=Dict[str, Any],
    summary="Get authorized Hospitable user",
    description="Pass the access token as `access_token` or as a bearer Authorization header.",
    responses={401: {"description": "Missing access token"}, 502: ERROR_RESPONSES[502]},
)
async def get_user(
    access_token: Optional[str] = Query(None, description="Hospitable access token"),
    authorization: Optional[str] = Header(None),
    client: HospitableClient = Depends(get_hospitable_client),
) -> Dict[str, Any]:
    if access_token:
        authorization = f"Bearer {access_token}"
    if not authorization:
        raise UnauthorizedError("Access token or Authorization header is required")
    return await client.get_user(authorization)


def _callback_page(title: str, message: dict) -> str:
    payload = json.dumps(message).replace("<", "\\u003c")
    return f"""<!DOCTYPE html>
<html>
  <head><title>{title}</title></head>
  <body>
    <p>{title}. You can close this window.</p>
    <script>
      if (window.opener) {{
        window.opener.postMessage({payload}, "*");
        window.close();
      }}
    </script>
  </body>
</html>"""


@callback_router.get(
    "/auth/callback",
    response_class=HTMLResponse,
    summary="OAuth callback page",
    description="Posts the authorization code, or the error, to the window that opened the consent flow.",
)
async def auth_callback(
    code: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
) -> HTMLResponse:
    if error:
        logger.warning(f"Hospitable authorization failed: {error}")
        message = {"error": error_description or error}
        return HTMLResponse(_callback_page("Authorization failed", message), status_code=400)

    if not code:
        message = {"error": "No authorization code received"}
        return HTMLResponse(_callback_page("Authorization failed", message), status_code=400)

    return HTMLResponse(_callback_page("Authorization complete", {"code": code}))
