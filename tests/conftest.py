"""
Test configuration and fixtures for the StayDirectly API.
Provides an in-memory database, a fake Hospitable API, service fixtures and
test data factories.
"""

import os

# Configure the application before it is imported
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("HOSPITABLE_PLATFORM_TOKEN", "platform-token")
os.environ.setdefault("HOSPITABLE_CLIENT_ID", "client-id")
os.environ.setdefault("HOSPITABLE_CLIENT_SECRET", "client-secret")
os.environ.setdefault("IMAGE_BACKOFF_BASE_SECONDS", "0")
os.environ.setdefault("OUTBOUND_REQUEST_SPACING", "0")
os.environ.setdefault("ENABLE_RATE_LIMITING", "false")

import pytest
import httpx
from decimal import Decimal
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Tuple, Union
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.config import settings
from app.database import Base, get_db
from app.models.property import Property
from app.models.review import Review
from app.repositories.property import PropertyRepository
from app.repositories.review import ReviewRepository
from app.services.hospitable_client import HospitableClient
from app.services.hospitable_flow import HospitableFlowService
from app.services.onboarding import InMemoryStateStore
from app.services.property import PropertyService
from app.services.review import ReviewService
from app.utils.dependencies import get_hospitable_client, get_onboarding_store, get_request_queue
from app.utils.rate_limiter import RateLimitedRequestQueue


API = "/api/v1"
TOKEN_PATH = "/oauth/token"

Route = Union[Tuple[int, Any], Callable[[httpx.Request], httpx.Response]]


class FakeHospitable:
    """
    Stand-in for the Hospitable Connect API, mounted via ``httpx.MockTransport``.

    Routes are keyed by method and URL path; unknown routes answer 404.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, body: Any = None, status_code: int = 200) -> None:
        self.routes[(method, path)] = (status_code, body)

    def add_handler(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not found"})
        if callable(route):
            return route(request)
        status_code, body = route
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=body)

    # Common routes

    def listings(self, customer_id: str, listings: List[Dict[str, Any]], status_code: int = 200) -> None:
        self.add("GET", f"{API}/customers/{customer_id}/listings", {"data": listings}, status_code)

    def images(self, customer_id: str, listing_id: str, urls: List[str], status_code: int = 200) -> None:
        body = {"data": [{"url": url} for url in urls]}
        self.add("GET", f"{API}/customers/{customer_id}/listings/{listing_id}/images", body, status_code)

    def customer(self, customer_id: str = "cust-1") -> None:
        self.add("POST", f"{API}/customers", {"data": {"id": customer_id, "name": "Jane Host"}}, 201)

    def auth_code(self, url: str = "https://my.hospitable.com/connect/abc") -> None:
        body = {"data": {"return_url": url, "expires_at": "2030-01-01T00:00:00Z"}}
        self.add("POST", f"{API}/auth-codes", body, 201)


def make_listing(listing_id: str = "lst-1", **overrides: Any) -> Dict[str, Any]:
    """Hospitable listing payload."""
    listing = {
        "id": listing_id,
        "private_name": f"Loft {listing_id} (owner)",
        "public_name": f"Ocean View Loft {listing_id}",
        "description": "Sea views from every room",
        "base_price": 150,
        "picture": "https://a0.muscache.com/im/pictures/main.jpg",
        "photos": [
            {"url": "https://a0.muscache.com/im/pictures/main.jpg"},
            {"url": "https://a0.muscache.com/im/pictures/second.jpg"},
            {"url": "https://a0.muscache.com/im/pictures/third.jpg"},
        ],
        "address": {
            "city": "Miami",
            "state": "FL",
            "zipcode": "33101",
            "country_code": "US",
            "latitude": 25.7617,
            "longitude": -80.1918,
        },
        "bedrooms": 2,
        "bathrooms": 1,
        "max_guests": 4,
        "property_type": "Condo",
        "amenities": ["wifi", "pool", "parking", "kitchen", "washer", "dryer", "gym"],
        "capacity": {"max": 4, "beds": 2, "bedrooms": 2, "bathrooms": 1},
    }
    listing.update(overrides)
    return listing


class PropertyFactory:
    """Factory for creating test properties."""

    @staticmethod
    def create_property_data(
        title: str = "Test Property",
        city: str = "Miami",
        country: str = "United States of America",
        price: Decimal = Decimal("120.00"),
        bedrooms: int = 2,
        bathrooms: int = 1,
        max_guests: int = 4,
        platform_id: Optional[str] = None,
        slug: Optional[str] = None,
        **overrides: Any
    ) -> dict:
        """Create property data dictionary."""
        key = slug or title.lower().replace(" ", "-")
        data = {
            "name": title,
            "title": title,
            "description": "A beautiful test property",
            "price": price,
            "city": city,
            "state": "FL",
            "zip_code": "33101",
            "country": country,
            "location": f"{city}, FL, US",
            "bedrooms": bedrooms,
            "bathrooms": bathrooms,
            "max_guests": max_guests,
            "type": "Apartment",
            "slug": key,
            "platform_id": platform_id,
            "external_id": platform_id.split(":")[1] if platform_id else None,
        }
        data.update(overrides)
        return data

    @staticmethod
    async def create_property(property_repo: PropertyRepository, **kwargs: Any) -> Property:
        """Create a test property in the database."""
        return await property_repo.create(PropertyFactory.create_property_data(**kwargs))


class ReviewFactory:
    """Factory for creating test reviews."""

    @staticmethod
    async def create_review(
        review_repo: ReviewRepository,
        property_id: int,
        rating: int = 5,
        author_name: str = "Guest"
    ) -> Review:
        return await review_repo.create({
            "property_id": property_id,
            "author_name": author_name,
            "rating": rating,
            "comment": "Lovely stay",
        })


@pytest.fixture
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    session_factory = async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_hospitable() -> FakeHospitable:
    return FakeHospitable()


@pytest.fixture
async def hospitable_client(fake_hospitable: FakeHospitable) -> AsyncGenerator[HospitableClient, None]:
    client = HospitableClient(settings, transport=httpx.MockTransport(fake_hospitable))
    yield client
    await client.close()


@pytest.fixture
async def request_queue() -> AsyncGenerator[RateLimitedRequestQueue, None]:
    queue = RateLimitedRequestQueue(max_requests=30, window_seconds=60, request_spacing=0, reset_buffer=0)
    yield queue
    await queue.close()


@pytest.fixture
def state_store() -> InMemoryStateStore:
    return InMemoryStateStore()


# Repository fixtures
@pytest.fixture
def property_repository(db_session: AsyncSession) -> PropertyRepository:
    return PropertyRepository(db_session)


@pytest.fixture
def review_repository(db_session: AsyncSession) -> ReviewRepository:
    return ReviewRepository(db_session)


# Service fixtures
@pytest.fixture
def property_service(db_session: AsyncSession) -> PropertyService:
    return PropertyService(db_session)


@pytest.fixture
def review_service(db_session: AsyncSession) -> ReviewService:
    return ReviewService(db_session)


@pytest.fixture
def flow_service(
    db_session: AsyncSession,
    hospitable_client: HospitableClient,
    request_queue: RateLimitedRequestQueue
) -> HospitableFlowService:
    return HospitableFlowService(db_session, hospitable_client, request_queue, settings)


@pytest.fixture
async def async_client(
    db_session: AsyncSession,
    hospitable_client: HospitableClient,
    request_queue: RateLimitedRequestQueue,
    state_store: InMemoryStateStore
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async API client with the database and Hospitable dependencies overridden."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_hospitable_client] = lambda: hospitable_client
    app.dependency_overrides[get_request_queue] = lambda: request_queue
    app.dependency_overrides[get_onboarding_store] = lambda: state_store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def sample_property(property_repository: PropertyRepository) -> Property:
    return await PropertyFactory.create_property(
        property_repository,
        title="Sample Beach House",
        platform_id="cust-1:lst-1",
        slug="lst-1-sample-beach-house",
    )
