"""Test configuration and fixtures."""

from datetime import date
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from package_pricing.core.database import Base, enable_sqlite_savepoints, get_db
from package_pricing.core.dependencies import get_catalog_client_factory, get_provider_factory
from package_pricing.models import *  # noqa: F403 - Import all models
from package_pricing.models.package import FlightSource, PricingModule
from package_pricing.schemas.package import CreatePackageRequest
from package_pricing.services.flight_quotes import FlightQuote, FlightQuoteProvider, OpenJawFare
from package_pricing.services.package_service import PackageService
from package_pricing.services.tour_platform import TourPlatformClient

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


class FakeFlightProvider(FlightQuoteProvider):
    """
    Quotes from canned fares instead of a live feed.

    ``fares`` maps (origin, outbound date) to a price; ``leg_fares`` maps an
    internal-leg date to a price. Every quoted request is kept in ``requests``.
    """

    source = "fake"

    def __init__(self, fares: dict, leg_fares: dict | None = None, error: Exception | None = None):
        super().__init__()
        self.fares = fares
        self.leg_fares = leg_fares or {}
        self.error = error
        self.requests = []

    async def round_trip(self, client, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return [
            FlightQuote(origin, day, Decimal(str(self.fares[(origin, day)])))
            for origin in request.origins
            for day in request.dates
            if (origin, day) in self.fares
        ]

    async def open_jaw(self, client, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return [
            OpenJawFare(origin, day, Decimal(str(self.fares[(origin, day)])), day)
            for origin in request.origins
            for day in request.dates
            if (origin, day) in self.fares
        ]

    async def one_way_cheapest(self, client, from_airport, to_airport, dates):
        return {day: Decimal(str(self.leg_fares[day])) for day in dates if day in self.leg_fares}


@pytest.fixture
def fares():
    """Canned fares keyed by (origin airport, outbound date); tests add to it."""
    return {}


@pytest.fixture
def fake_provider(fares):
    return FakeFlightProvider(fares)


@pytest.fixture
def provider_factory(fake_provider):
    return lambda source: fake_provider


@pytest.fixture
def catalog_payload():
    """Upstream tour platform responses served by the mocked catalog client."""
    return {
        "product": {"id": 4242, "durationText": "10 Days / 9 Nights"},
        "availabilities": [
            {
                "id": 9001,
                "date": 1783900800000,  # 2026-07-13 UTC
                "availabilityCount": 12,
                "rates": [
                    {"id": 1, "title": "Twin Share 4 Star", "minPerBooking": 2},
                    {"id": 2, "title": "Solo Traveller 4 Star", "minPerBooking": 1},
                ],
                "pricesByRate": [
                    {
                        "activityRateId": 1,
                        "pricePerCategoryUnit": [{"id": 11, "amount": {"amount": 1250, "currency": "USD"}}],
                    },
                    {
                        "activityRateId": 2,
                        "pricePerCategoryUnit": [{"id": 11, "amount": {"amount": 1500, "currency": "USD"}}],
                    },
                ],
            },
            {
                "id": 9002,
                "date": "2026-08-10",
                "soldOut": True,
                "rates": [{"id": 1, "title": "Twin Share 4 Star", "minPerBooking": 2}],
                "pricesByRate": [
                    {
                        "activityRateId": 1,
                        "pricePerCategoryUnit": [{"id": 11, "amount": {"amount": 1000, "currency": "USD"}}],
                    },
                ],
            },
        ],
        "status_code": 200,
    }


@pytest_asyncio.fixture
async def catalog_client_factory(catalog_payload):
    """Tour platform client whose HTTP calls are answered from ``catalog_payload``."""

    def handler(request: httpx.Request) -> httpx.Response:
        if catalog_payload["status_code"] != 200:
            return httpx.Response(catalog_payload["status_code"], text="upstream failure")
        if request.url.path.endswith("/availabilities"):
            return httpx.Response(200, json=catalog_payload["availabilities"])
        return httpx.Response(200, json=catalog_payload["product"])

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    yield lambda: TourPlatformClient(client=client, access_key="test-access", secret_key="test-secret")
    await client.aclose()


@pytest.fixture
def create_package(test_session):
    """Create a package; keyword arguments override the defaults."""

    async def _create(**overrides):
        data = {
            "title": "Rajasthan Highlights",
            "slug": "rajasthan-highlights",
            "duration_nights": 9,
            "pricing_module": PricingModule.MANUAL,
            "flight_source": FlightSource.SUNSHINE,
        }
        data.update(overrides)
        return await PackageService(test_session).create_package(CreatePackageRequest(**data))

    return _create


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, provider_factory, catalog_client_factory):
    """Create a test FastAPI application."""
    from fastapi import FastAPI
    from fastapi.exceptions import RequestValidationError

    from package_pricing.core.exceptions import (
        ProblemDetailsException,
        generic_exception_handler,
        problem_details_handler,
        request_validation_handler,
    )
    from package_pricing.routers import departure, health, ledger, metrics, package, pricing, run, season

    # Create a simplified test app without lifespan
    app = FastAPI(
        title="Package Pricing API (Test)",
        description="Test version of the API",
        version="1.0.0-test",
    )

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Register API routers
    app.include_router(health.router)
    app.include_router(package.router)
    app.include_router(season.router)
    app.include_router(ledger.router)
    app.include_router(pricing.router)
    app.include_router(departure.router)
    app.include_router(run.router)
    app.include_router(metrics.router)

    # Override database and upstream dependencies
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_provider_factory] = lambda: provider_factory
    app.dependency_overrides[get_catalog_client_factory] = lambda: catalog_client_factory

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    from httpx import ASGITransport
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_package_data():
    """Sample package data for testing."""
    return {
        "title": "Golden Triangle Explorer",
        "slug": "golden-triangle-explorer",
        "duration_nights": 9,
        "pricing_module": "open_jaw_seasonal",
        "flight_source": "serp",
    }


@pytest.fixture
def summer_season():
    """Season of the worked pricing example."""
    return {
        "label": "Summer 2025",
        "start_date": date(2025, 6, 1),
        "end_date": date(2025, 8, 31),
        "land_cost_per_person": Decimal("500"),
    }
