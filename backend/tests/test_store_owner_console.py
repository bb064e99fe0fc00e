"""
Tests for the store-owner console.

Tests: optimistic inventory edits with rollback, non-optimistic status writes,
dashboard, store profile, current-location pinning and the live pin.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import asyncio

import pytest
import pytest_asyncio

from domain.enums import OrderMode, OrderStatus
from domain.errors import BackendUnavailableError, ConflictError, InvalidTransitionError, NotFoundError
from domain.records import BrandVariant
from services.geolocation import GeolocationError, GeolocationFailure, ReportedPositionSource
from tests.conftest import CUSTOMER_ID, HOME, OWNER_ID, STORE_ID
from views.session import StoreOwnerSession, open_session


@pytest_asyncio.fixture
async def console(context, sample_store):
    session = await open_session(context, OWNER_ID)
    assert isinstance(session, StoreOwnerSession)
    await session.console.load()
    return session.console


@pytest_asyncio.fixture
async def placed_order(context, sample_store, sample_customer, rice_and_chips):
    return await context.sql.place_order(
        CUSTOMER_ID,
        store_id=STORE_ID,
        cart=rice_and_chips,
        mode=OrderMode.DELIVERY,
        delivery_address="12th Main, Indiranagar",
        customer_location=HOME,
        payment_confirmed=True,
    )


class TestInventoryEdits:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_update_listing(self, console):
        item = await console.update_listing("43", in_stock=True, price=85, mrp=100, stock=6)
        assert item.is_active is True
        assert console.inventory["43"].store_price == 85
        shelf = await console.backend.list_store_products(STORE_ID)
        assert "43" in {i.product_id for i in shelf}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_toggle_twice_is_idempotent(self, console):
        before = console.inventory["41"]
        await console.toggle_in_stock("41")
        assert console.inventory["41"].in_stock is False
        await console.toggle_in_stock("41")
        after = console.inventory["41"]
        assert after.in_stock is True
        assert (after.store_price, after.mrp, after.stock) == (before.store_price, before.mrp, before.stock)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_failed_write_rolls_back(self, console, monkeypatch):
        before = console.inventory["41"]

        async def unavailable(item):
            raise BackendUnavailableError()

        monkeypatch.setattr(console.backend, "save_listing", unavailable)
        with pytest.raises(BackendUnavailableError):
            await console.update_listing("41", in_stock=False, price=99)
        assert console.inventory["41"] == before

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_variant_stock(self, console):
        item = await console.update_listing("41", in_stock=True, brand_details={
            "Amul": BrandVariant(price=29, stock=3),
            "Nandini": BrandVariant(price=27, stock=4),
        })
        assert item.stock == 7

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_delist(self, console):
        item = await console.delist("81")
        assert item.is_active is False
        await console.load_inventory()
        assert console.inventory["81"].is_active is False

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_product(self, console):
        with pytest.raises(NotFoundError):
            await console.toggle_in_stock("999")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_custom_product(self, console):
        item = await console.add_custom_product(name="Filter Coffee", category="Beverages", price=180, stock=12)
        assert item.is_custom is True
        assert console.inventory[item.product_id].stock == 12


class TestOrderHandling:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_next_step_walks_the_flow(self, console, placed_order):
        seen = []
        for _ in range(4):
            seen.append((await console.set_status(placed_order.id)).status)
        assert seen == [OrderStatus.ACCEPTED, OrderStatus.PREPARING, OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED]
        with pytest.raises(InvalidTransitionError):
            await console.set_status(placed_order.id)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_failed_status_write_keeps_displayed_status(self, console, placed_order):
        await console.tracker.refresh()
        with pytest.raises(InvalidTransitionError):
            await console.set_status(placed_order.id, OrderStatus.DELIVERED)
        assert console.tracker.get(placed_order.id).status == OrderStatus.PLACED

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stale_version(self, console, placed_order):
        await console.set_status(placed_order.id, OrderStatus.ACCEPTED, expected_version=1)
        with pytest.raises(ConflictError):
            await console.set_status(placed_order.id, OrderStatus.PREPARING, expected_version=1)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_reject(self, console, placed_order):
        order = await console.reject(placed_order.id)
        assert order.status == OrderStatus.REJECTED
        assert console.actions_for(order) == []

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_other_stores_orders_are_hidden(self, console, placed_order):
        console.store = console.store.model_copy(update={"id": "store-2"})
        with pytest.raises(NotFoundError):
            await console.set_status(placed_order.id)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_dashboard(self, console, placed_order, context, sample_customer, rice_and_chips):
        second = await context.sql.place_order(
            CUSTOMER_ID, store_id=STORE_ID, cart=rice_and_chips[:1], mode=OrderMode.PICKUP, payment_confirmed=True,
        )
        await console.reject(second.id)
        stats = console.dashboard()
        assert stats["totalOrders"] == 2
        assert stats["pendingOrders"] == 1
        assert stats["revenue"] == 120
        assert stats["listedProducts"] == 4


class TestStoreProfile:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_update_store_profile(self, console):
        store = await console.update_store_profile(name="Asha Super Mart", upi_id="asha.super@upi")
        assert store.name == "Asha Super Mart"
        assert console.store.upi_id == "asha.super@upi"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_use_current_location(self, console, context):
        source = ReportedPositionSource()
        source.report(12.9784, 77.6408, accuracy=12.0)
        store = await console.use_current_location(source, context.location, timeout=1.0)
        assert (store.lat, store.lng) == (12.9784, 77.6408)
        assert store.address == "100 Feet Road, Indiranagar, Bengaluru"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_location_permission_denied(self, console, context):
        source = ReportedPositionSource()
        source.report_failure(GeolocationFailure.PERMISSION_DENIED)
        with pytest.raises(GeolocationError) as exc_info:
            await console.use_current_location(source, context.location, timeout=1.0)
        assert exc_info.value.status_code == 403
        assert console.store.lat == 12.9716

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_live_pin_follows_device(self, console):
        address = console.store.address
        source = ReportedPositionSource()
        await console.follow_location(source)
        assert console.following_location is True

        source.report(12.9784, 77.6408, accuracy=12.0)
        await asyncio.sleep(0.05)
        source.report(12.9790, 77.6412, accuracy=8.0)
        await asyncio.sleep(0.05)
        assert (console.store.lat, console.store.lng) == (12.9790, 77.6412)
        assert console.store.address == address

        await console.stop_following()
        assert console.following_location is False
        source.report(13.0, 77.7, accuracy=5.0)
        await asyncio.sleep(0.05)
        stored = await console.backend.get_owner_store(OWNER_ID)
        assert (stored.lat, stored.lng) == (12.9790, 77.6412)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_live_pin_ends_on_permission_denied(self, console):
        source = ReportedPositionSource()
        errors = []
        await console.follow_location(source, errors.append)
        source.report_failure(GeolocationFailure.PERMISSION_DENIED)
        await asyncio.sleep(0.05)
        assert console.following_location is False
        assert [e.failure for e in errors] == [GeolocationFailure.PERMISSION_DENIED]
        assert console.store.lat == 12.9716
