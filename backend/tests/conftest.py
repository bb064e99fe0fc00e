"""
Pytest configuration and shared fixtures for the grocery marketplace tests.

Provides an in-memory SQLite database (seeded with the catalog), an app
context whose HTTP collaborators (OSRM, Nominatim) are served by an
httpx.MockTransport, and an ASGI test client bound to both.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from datetime import timedelta
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import db_models  # noqa: F401  (registers tables on Base.metadata)
from app_context import AppContext
from config import Settings, settings
from database import Base, get_db
from domain.cart import CartLine
from domain.enums import Role
from domain.records import GeoPoint
from domain.inventory import apply_listing_update
from services import catalog_service, inventory_service, profile_service, store_service
from utils.timeutil import utcnow

# ── Test Configuration ───────────────────────────────────────────────

TEST_JWT_SECRET = "test-jwt-secret-for-pytest-only"

OWNER_ID = "owner-1"
CUSTOMER_ID = "customer-1"
STORE_ID = "store-1"
STORE_LAT, STORE_LNG = 12.9716, 77.5946
HOME = GeoPoint(lat=12.9750, lng=77.6000)


def make_settings(**overrides) -> Settings:
    values = {
        "demo_mode": True,
        "demo_tick_seconds": 0.01,
        "jwt_secret": TEST_JWT_SECRET,
        "osrm_base_url": "http://osrm.test",
        "nominatim_base_url": "http://nominatim.test",
    }
    values.update(overrides)
    return Settings(**values)


# ── Database Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """
    In-memory SQLite database with the catalog seeded.

    Uses StaticPool so every session shares the one in-memory connection.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as db:
        await catalog_service.seed_catalog(db)
        await db.commit()

    yield factory

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── HTTP Collaborators ───────────────────────────────────────────────


def geo_handler(request: httpx.Request) -> httpx.Response:
    """Canned OSRM / Nominatim answers, keyed by path."""
    path = request.url.path
    if path.startswith("/route/v1/driving/"):
        return httpx.Response(200, json={
            "code": "Ok",
            "routes": [{
                "distance": 1234.5,
                "duration": 300.0,
                "geometry": {"coordinates": [[77.5946, 12.9716], [77.6, 12.975]]},
            }],
        })
    if path == "/reverse":
        return httpx.Response(200, json={
            "display_name": "100 Feet Road, Indiranagar, Bengaluru, Karnataka, India",
            "address": {"road": "100 Feet Road", "suburb": "Indiranagar", "city": "Bengaluru"},
        })
    if path == "/search":
        hits = [
            {"display_name": f"Result {i}", "lat": str(12.9 + i / 100), "lon": "77.6"}
            for i in range(8)
        ]
        return httpx.Response(200, json=hits)
    return httpx.Response(404)


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture(scope="function")
async def context(session_factory, test_settings) -> AsyncGenerator[AppContext, None]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(geo_handler))
    ctx = AppContext.build(test_settings, session_factory, http_client=http_client)
    yield ctx
    await ctx.aclose()
    await http_client.aclose()


@pytest_asyncio.fixture(scope="function")
async def test_client(context, session_factory, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """
    ASGI client for the FastAPI app.

    The lifespan does not run under ASGITransport, so the test context is
    installed on app.state directly and get_db is pointed at the test DB.
    """
    from main import app

    monkeypatch.setattr(settings, "jwt_secret", TEST_JWT_SECRET)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.context = context

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.state.context = None
    app.dependency_overrides.clear()


# ── Test Data Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture
async def sample_owner(session_factory):
    async with session_factory() as db:
        profile, _ = await profile_service.ensure_profile(
            db, profile_id=OWNER_ID, full_name="Asha Stores", phone="9000000001", role=Role.STORE_OWNER,
        )
        await db.commit()
    return profile


@pytest_asyncio.fixture
async def sample_store(session_factory, sample_owner):
    """Open store with rice, milk and chips on offer; onion listed but switched off."""
    async with session_factory() as db:
        store = await store_service.create_store(
            db,
            store_id=STORE_ID,
            owner_id=sample_owner.id,
            name="Asha Fresh Mart",
            lat=STORE_LAT,
            lng=STORE_LNG,
            address="MG Road, Bengaluru",
            upi_id="asha@upi",
        )
        for pid, price, offered in (("1", 60.0, True), ("41", 27.0, True), ("81", 20.0, True), ("21", 40.0, False)):
            item = await inventory_service.get_item(db, STORE_ID, pid)
            await inventory_service.save_listing(
                db, apply_listing_update(item, in_stock=offered, price=price, stock=10)
            )
        await db.commit()
    return store


@pytest_asyncio.fixture
async def sample_customer(session_factory):
    async with session_factory() as db:
        profile, _ = await profile_service.ensure_profile(
            db, profile_id=CUSTOMER_ID, full_name="Meera", phone="9000000002", role=Role.CUSTOMER,
        )
        await profile_service.update_profile(db, CUSTOMER_ID, address="12th Main, Indiranagar")
        await db.commit()
    return profile


@pytest.fixture
def rice_and_chips():
    """₹60 rice + 3 × ₹20 chips = ₹120."""
    return [
        CartLine(product_id="1", store_id=STORE_ID, quantity=1),
        CartLine(product_id="81", store_id=STORE_ID, quantity=3),
    ]


@pytest.fixture
def later():
    return lambda minutes: utcnow() + timedelta(minutes=minutes)


def auth_headers(user_id: str) -> dict:
    return {"X-User-Id": user_id}



def make_order(**overrides):
    """A paid instant delivery order at STORE_ID, ready to be overridden field by field."""
    from domain.enums import DeliveryType, OrderMode, OrderStatus, PaymentStatus
    from domain.records import LineItem, Order

    values = {
        "id": "ord-test",
        "created_at": utcnow(),
        "items": [LineItem(product_id="1-Generic", original_product_id="1", name="Rice", quantity=2, price=60)],
        "total": 120.0,
        "status": OrderStatus.PLACED,
        "payment_status": PaymentStatus.PAID,
        "mode": OrderMode.DELIVERY,
        "delivery_type": DeliveryType.INSTANT,
        "store_id": STORE_ID,
        "customer_id": CUSTOMER_ID,
    }
    values.update(overrides)
    return Order(**values)
