"""
Pydantic schemas for Hospitable proxy, import and OAuth endpoints.
Request bodies accept both snake_case and camelCase field names.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class CamelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ConnectRequest(CamelRequest):
    """Body for ``/connect``; extra fields are forwarded as customer data."""

    customer_id: Optional[str] = Field(None, alias="customerId")
    code: Optional[str] = None
    action: Optional[str] = None


class ImportListingsRequest(CamelRequest):
    customer_id: Optional[str] = Field(None, alias="customerId")
    avoid_update: bool = Field(False, alias="shouldAvoidUpdateForCustomer")


class FetchImagesRequest(CamelRequest):
    customer_id: Optional[str] = Field(None, alias="customerId")
    listing_id: Optional[str] = Field(None, alias="listingId")
    position: int = Field(0, ge=0, description="Index of the image used as main image")
    force_refresh: bool = Field(False, alias="shouldUpdateCachedImages")


class PublishPropertiesRequest(CamelRequest):
    customer_id: Optional[str] = Field(None, alias="customerId")
    listing_ids: Optional[List[str]] = Field(None, alias="listingIds")


class TokenExchangeRequest(CamelRequest):
    code: Optional[str] = None


class TokenRefreshRequest(CamelRequest):
    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class AuthLinkResponse(BaseModel):
    auth_url: Optional[str] = None
    expires_at: Optional[str] = None


class CustomerWithAuthLinkResponse(BaseModel):
    """Response for creating a customer together with its consent link."""

    success: bool = True
    message: str
    customer: Dict[str, Any]
    customer_id: Optional[str] = None
    auth_url: Optional[str] = None
    expires_at: Optional[str] = None
    redirect_url: str
    auth_error: Optional[str] = None


class PropertyImagesResponse(BaseModel):
    customer_id: str
    listing_id: str
    main_image: Optional[str] = None
    additional_images: List[str] = Field(default_factory=list)
    from_cache: bool
    fetch_error: Optional[str] = None


class CustomerListingsResponse(BaseModel):
    success: bool = True
    customer_id: str
    count: int
    data: List[Dict[str, Any]]
