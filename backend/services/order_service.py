"""
Order service — persistence of orders and their status writes.

Checkout validation, pricing and the transition table live in domain/; this
module reads and writes rows. Every status change is a single UPDATE of
(status, version) keyed by order id and the version it was read at.
Callers commit, then publish the returned row on the change feed.
"""
import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Order as OrderRow, row_to_dict
from domain.cart import confirm_order_payment
from domain.constants import STATUS_TO_DB
from domain.enums import OrderStatus
from domain.errors import ConflictError, NotFoundError
from domain.lifecycle import apply_transition
from domain.records import Order, order_to_row, parse_order_row
from services import profile_service
from utils.timeutil import utcnow

logger = logging.getLogger(__name__)

# Columns that exist only on the record, joined in from profiles
_DENORMALIZED = ("customer_name", "customer_phone")


async def _with_contacts(db: AsyncSession, rows: list[OrderRow]) -> list[Order]:
    contacts = await profile_service.get_contacts(db, sorted({r.customer_id for r in rows}))
    orders = []
    for r in rows:
        data = row_to_dict(r)
        contact = contacts.get(r.customer_id, {})
        data["customer_name"] = contact.get("full_name")
        data["customer_phone"] = contact.get("phone_number")
        orders.append(parse_order_row(data))
    return orders


async def _get_row(db: AsyncSession, order_id: str) -> OrderRow:
    res = await db.execute(select(OrderRow).where(OrderRow.id == order_id))
    row = res.scalar_one_or_none()
    if not row:
        raise NotFoundError("Order", order_id)
    return row


async def insert_order(db: AsyncSession, order: Order) -> dict:
    """Persist a freshly assembled order. Returns the stored row."""
    values = order_to_row(order)
    for key in _DENORMALIZED:
        values.pop(key, None)
    row = OrderRow(**values)
    db.add(row)
    await db.flush()
    logger.info(
        f"Order {order.id} placed at store {order.store_id}: "
        f"total={order.total} payment={order.payment_status.value} mode={order.mode.value}"
    )
    return row_to_dict(row)


async def get_order(db: AsyncSession, order_id: str) -> Order:
    row = await _get_row(db, order_id)
    return (await _with_contacts(db, [row]))[0]


async def list_customer_orders(db: AsyncSession, customer_id: str) -> list[Order]:
    res = await db.execute(
        select(OrderRow)
        .where(OrderRow.customer_id == customer_id)
        .order_by(OrderRow.created_at.desc())
    )
    return await _with_contacts(db, list(res.scalars().all()))


async def list_store_orders(db: AsyncSession, store_id: str) -> list[Order]:
    """Incoming orders for a store, newest first, with customer contact details."""
    res = await db.execute(
        select(OrderRow)
        .where(OrderRow.store_id == store_id)
        .order_by(OrderRow.created_at.desc())
    )
    return await _with_contacts(db, list(res.scalars().all()))


async def _swap(db: AsyncSession, row: OrderRow, read_version: int, **values) -> dict:
    """
    Write `values` only if the row still carries the version it was read at.

    The UPDATE is conditional on (id, version), so of two writers that read
    the same version exactly one lands; the other gets ConflictError and
    nothing of it is written.
    """
    res = await db.execute(
        update(OrderRow)
        .where(OrderRow.id == row.id, OrderRow.version == read_version)
        .values(**values, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        raise ConflictError(
            f"Order {row.id} was changed by someone else; reload and try again",
            details={"read_version": read_version},
        )
    await db.refresh(row)
    return row_to_dict(row)


async def update_order_status(
    db: AsyncSession,
    order_id: str,
    target: OrderStatus,
    *,
    expected_version: Optional[int] = None,
) -> tuple[Order, dict]:
    """
    Move an order one step along its lifecycle.

    Raises:
        NotFoundError: unknown order
        InvalidTransitionError: target is not reachable in one step
        ConflictError: expected_version no longer matches, or a concurrent
            write got in between the read and this write
    """
    row = await _get_row(db, order_id)
    current = parse_order_row(row_to_dict(row))
    updated = apply_transition(current, target, expected_version)

    stored = await _swap(
        db, row, current.version, status=STATUS_TO_DB[updated.status], version=updated.version
    )
    logger.info(f"Order {order_id}: {current.status.value} → {updated.status.value} (v{updated.version})")
    return updated, stored


async def confirm_payment(db: AsyncSession, order_id: str) -> tuple[Order, dict]:
    """Record payment for a PENDING (scheduled) order before its deadline."""
    row = await _get_row(db, order_id)
    current = parse_order_row(row_to_dict(row))
    updated = confirm_order_payment(current, utcnow())
    if updated is current:
        return updated, row_to_dict(row)
    stored = await _swap(
        db, row, current.version, payment_status=updated.payment_status.value, version=updated.version
    )
    logger.info(f"Order {order_id}: payment confirmed")
    return updated, stored
