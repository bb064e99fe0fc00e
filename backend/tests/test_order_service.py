"""
Tests for order persistence and status writes.

Tests: insert_order, get_order, list_customer_orders, list_store_orders,
update_order_status, confirm_payment
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from datetime import timedelta

import pytest
from sqlalchemy import select

from db_models import Order as OrderRow
from domain.cart import assemble_order
from domain.enums import DeliveryType, OrderMode, OrderStatus, PaymentStatus
from domain.errors import ConflictError, InvalidTransitionError, NotFoundError
from services import inventory_service, order_service, store_service
from tests.conftest import CUSTOMER_ID, HOME, STORE_ID
from utils.timeutil import utcnow


async def _place(db, cart, *, order_id="ord-1", created_at=None, **kwargs):
    store = await store_service.get_store(db, STORE_ID)
    listings = await inventory_service.get_listings(db, STORE_ID)
    values = dict(
        order_id=order_id,
        created_at=created_at or utcnow(),
        customer_id=CUSTOMER_ID,
        store=store,
        cart=cart,
        listings=listings,
        mode=OrderMode.DELIVERY,
        delivery_address="12th Main, Indiranagar",
        customer_location=HOME,
        payment_confirmed=True,
    )
    values.update(kwargs)
    order = assemble_order(**values)
    await order_service.insert_order(db, order)
    await db.commit()
    return order


class TestOrderReads:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_insert_and_read_back(self, db_session, sample_store, sample_customer, rice_and_chips):
        await _place(db_session, rice_and_chips)
        order = await order_service.get_order(db_session, "ord-1")
        assert order.total == 120
        assert order.status == OrderStatus.PLACED
        assert order.customer_name == "Meera"
        assert order.customer_phone == "9000000002"
        assert order.customer_location == HOME

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_status_stored_as_code(self, db_session, sample_store, sample_customer, rice_and_chips):
        await _place(db_session, rice_and_chips)
        res = await db_session.execute(select(OrderRow.status).where(OrderRow.id == "ord-1"))
        assert res.scalar_one() == "placed"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            await order_service.get_order(db_session, "nope")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_lists_are_newest_first(self, db_session, sample_store, sample_customer, rice_and_chips):
        now = utcnow()
        await _place(db_session, rice_and_chips, order_id="ord-old", created_at=now - timedelta(hours=2))
        await _place(db_session, rice_and_chips, order_id="ord-new", created_at=now)
        store_orders = await order_service.list_store_orders(db_session, STORE_ID)
        customer_orders = await order_service.list_customer_orders(db_session, CUSTOMER_ID)
        assert [o.id for o in store_orders] == ["ord-new", "ord-old"]
        assert [o.id for o in customer_orders] == ["ord-new", "ord-old"]
        assert await order_service.list_customer_orders(db_session, "someone-else") == []


class TestStatusWrites:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_accept(self, db_session, sample_store, sample_customer, rice_and_chips):
        await _place(db_session, rice_and_chips)
        order, row = await order_service.update_order_status(db_session, "ord-1", OrderStatus.ACCEPTED)
        await db_session.commit()
        assert order.status == OrderStatus.ACCEPTED
        assert order.version == 2
        assert row["status"] == "accepted"
        assert row["store_id"] == STORE_ID

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stale_version_conflicts(self, db_session, sample_store, sample_customer, rice_and_chips):
        await _place(db_session, rice_and_chips)
        await order_service.update_order_status(db_session, "ord-1", OrderStatus.ACCEPTED, expected_version=1)
        await db_session.commit()
        with pytest.raises(ConflictError):
            await order_service.update_order_status(
                db_session, "ord-1", OrderStatus.PREPARING, expected_version=1
            )
        await db_session.rollback()
        order = await order_service.get_order(db_session, "ord-1")
        assert order.status == OrderStatus.ACCEPTED

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_invalid_transition_leaves_row(self, db_session, sample_store, sample_customer, rice_and_chips):
        await _place(db_session, rice_and_chips)
        with pytest.raises(InvalidTransitionError):
            await order_service.update_order_status(db_session, "ord-1", OrderStatus.DELIVERED)
        await db_session.rollback()
        order = await order_service.get_order(db_session, "ord-1")
        assert order.status == OrderStatus.PLACED
        assert order.version == 1


class TestConfirmPayment:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_scheduled_order_paid_later(self, db_session, sample_store, sample_customer, rice_and_chips):
        slot = utcnow() + timedelta(hours=4)
        await _place(
            db_session, rice_and_chips,
            delivery_type=DeliveryType.SCHEDULED, scheduled_time=slot, payment_confirmed=False,
        )
        with pytest.raises(InvalidTransitionError):
            await order_service.update_order_status(db_session, "ord-1", OrderStatus.ACCEPTED)
        await db_session.rollback()

        order, _ = await order_service.confirm_payment(db_session, "ord-1")
        await db_session.commit()
        assert order.payment_status == PaymentStatus.PAID

        accepted, _ = await order_service.update_order_status(db_session, "ord-1", OrderStatus.ACCEPTED)
        assert accepted.status == OrderStatus.ACCEPTED
