"""
Tests for store lookup, store profile edits and nearby discovery.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest
from fastapi import HTTPException

from domain.errors import StoreNotLinkedError, ValidationError
from domain.records import Store
from services import store_service
from tests.conftest import OWNER_ID, STORE_ID, STORE_LAT, STORE_LNG


class TestDistance:

    @pytest.mark.unit
    def test_haversine_known_distance(self):
        # One degree of latitude is about 111 km
        assert store_service.haversine_km(12.0, 77.0, 13.0, 77.0) == pytest.approx(111.2, abs=0.2)

    @pytest.mark.unit
    def test_format_distance(self):
        assert store_service.format_distance(0.84) == "0.8 km"

    @pytest.mark.unit
    def test_filter_nearby_orders_by_distance(self):
        stores = [
            Store(id="far", name="Far", lat=13.1, lng=77.6),
            Store(id="near", name="Near", lat=STORE_LAT, lng=STORE_LNG),
            Store(id="mid", name="Mid", lat=13.0, lng=77.5946),
        ]
        nearby = store_service.filter_nearby(stores, STORE_LAT, STORE_LNG, radius_km=5)
        assert [s.id for s in nearby] == ["near", "mid"]
        assert nearby[0].distance == "0.0 km"


class TestStoreLookup:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_owner_store(self, db_session, sample_store):
        store = await store_service.get_store_for_owner(db_session, OWNER_ID)
        assert store.id == STORE_ID
        assert store.upi_id == "asha@upi"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_owner_without_store(self, db_session):
        with pytest.raises(StoreNotLinkedError) as exc_info:
            await store_service.get_store_for_owner(db_session, "lonely-owner")
        assert exc_info.value.status_code == 409
        assert "contact support" in exc_info.value.message


class TestStoreUpdates:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_partial_update(self, db_session, sample_store):
        store, row = await store_service.update_store(db_session, STORE_ID, name="Asha Super Mart", is_open=False)
        assert store.name == "Asha Super Mart"
        assert store.is_open is False
        assert store.address == "MG Road, Bengaluru"
        assert row["id"] == STORE_ID

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_location_needs_both_coordinates(self, db_session, sample_store):
        with pytest.raises(ValidationError):
            await store_service.update_store(db_session, STORE_ID, lat=12.98)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_out_of_range_coordinates(self, db_session, sample_store):
        with pytest.raises(HTTPException) as exc_info:
            await store_service.update_store(db_session, STORE_ID, lat=95.0, lng=77.0)
        assert exc_info.value.status_code == 400


class TestNearbyStores:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_radius_and_available_products(self, db_session, sample_store):
        await store_service.create_store(
            db_session, store_id="store-mysuru", owner_id=None, name="Mysuru Mart", lat=12.2958, lng=76.6394,
        )
        await db_session.commit()
        stores = await store_service.list_nearby_stores(db_session, 12.975, 77.600, radius_km=10)
        assert [s.id for s in stores] == [STORE_ID]
        assert stores[0].available_product_ids == ["1", "41", "81"]
        assert stores[0].distance.endswith(" km")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_closed_stores_hidden(self, db_session, sample_store):
        await store_service.update_store(db_session, STORE_ID, is_open=False)
        await db_session.commit()
        assert await store_service.list_nearby_stores(db_session, STORE_LAT, STORE_LNG, radius_km=10) == []
