"""
Tests for the change feed.

Tests: filtered delivery, unsubscribe (including mid-publish), failing callbacks.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

from domain.enums import ChangeEventType
from services.change_feed import ChangeFeed

INSERT = ChangeEventType.INSERT


class TestChangeFeed:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delivers_only_matching_rows(self):
        feed = ChangeFeed()
        seen = []
        feed.subscribe("orders", "store_id", "store-1", seen.append)

        await feed.publish("orders", INSERT, {"id": "o1", "store_id": "store-1"})
        await feed.publish("orders", INSERT, {"id": "o2", "store_id": "store-2"})
        await feed.publish("inventory", INSERT, {"store_id": "store-1"})

        assert [e.row["id"] for e in seen] == ["o1"]
        assert seen[0].table == "orders"
        assert seen[0].event == "INSERT"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_same_row_reaches_both_roles(self):
        feed = ChangeFeed()
        owner, customer = [], []
        feed.subscribe("orders", "store_id", "store-1", owner.append)
        feed.subscribe("orders", "customer_id", "customer-1", customer.append)

        delivered = await feed.publish(
            "orders", ChangeEventType.UPDATE, {"id": "o1", "store_id": "store-1", "customer_id": "customer-1"}
        )
        assert delivered == 2
        assert len(owner) == len(customer) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_async_callbacks_are_awaited(self):
        feed = ChangeFeed()
        seen = []

        async def on_change(event):
            seen.append(event.row["id"])

        feed.subscribe("orders", "store_id", 7, on_change)
        await feed.publish("orders", INSERT, {"id": "o1", "store_id": 7})
        assert seen == ["o1"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unsubscribed_gets_nothing(self):
        feed = ChangeFeed()
        seen = []
        sub = feed.subscribe("orders", "store_id", "store-1", seen.append)
        sub.unsubscribe()

        delivered = await feed.publish("orders", INSERT, {"id": "o1", "store_id": "store-1"})
        assert delivered == 0
        assert seen == []
        assert sub.active is False
        assert feed.subscriber_count() == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unsubscribe_during_publish(self):
        feed = ChangeFeed()
        seen = []
        second = None

        def first(event):
            seen.append("first")
            second.unsubscribe()

        feed.subscribe("orders", "store_id", "store-1", first)
        second = feed.subscribe("orders", "store_id", "store-1", lambda e: seen.append("second"))

        await feed.publish("orders", INSERT, {"id": "o1", "store_id": "store-1"})
        assert seen == ["first"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failing_callback_does_not_block_others(self):
        feed = ChangeFeed()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        feed.subscribe("orders", "store_id", "store-1", broken)
        feed.subscribe("orders", "store_id", "store-1", seen.append)

        delivered = await feed.publish("orders", INSERT, {"id": "o1", "store_id": "store-1"})
        assert delivered == 1
        assert len(seen) == 1
        assert feed.get_status()["callback_errors"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_close_drops_everything(self):
        feed = ChangeFeed()
        sub = feed.subscribe("orders", "store_id", "store-1", lambda e: None)
        feed.subscribe("inventory", "store_id", "store-1", lambda e: None)
        assert feed.subscriber_count() == 2
        assert feed.subscriber_count("orders") == 1

        feed.close()
        assert feed.subscriber_count() == 0
        assert sub.active is False
