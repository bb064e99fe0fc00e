"""
Order tracker — a role's local copy of its orders, kept in sync by the change feed.

The tracker subscribes to order changes for one identity (a customer id or
a store id). On any event it re-fetches the whole order set and replaces
its local list; there is no field-level merge. Demo identities are served
by LocalBackend, whose simulator writes go through the same feed, so the
tracker is the same in both modes.
"""
import inspect
import logging
from typing import Awaitable, Callable, Literal, Optional, Union

from domain.constants import TABLE_ORDERS
from domain.errors import NotFoundError
from domain.lifecycle import Progress, progress
from domain.records import ChangeEvent, Order
from services.backends import DataBackend
from services.change_feed import Subscription

logger = logging.getLogger(__name__)

Scope = Literal["customer", "store"]
UpdateCallback = Callable[[list[Order]], Union[None, Awaitable[None]]]

_FILTER_COLUMN = {"customer": "customer_id", "store": "store_id"}


class OrderTracker:
    def __init__(
        self,
        backend: DataBackend,
        scope: Scope,
        identity: str,
        on_update: Optional[UpdateCallback] = None,
    ):
        if scope not in _FILTER_COLUMN:
            raise ValueError(f"Unknown tracker scope: {scope}")
        self.backend = backend
        self.scope = scope
        self.identity = identity
        self.orders: list[Order] = []
        self.refresh_count = 0
        self._on_update = on_update
        self._subscription: Optional[Subscription] = None

    @property
    def mode(self) -> str:
        return "demo" if self.backend.is_demo else "live"

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    async def _fetch(self) -> list[Order]:
        if self.scope == "customer":
            return await self.backend.list_customer_orders(self.identity)
        return await self.backend.list_store_orders(self.identity)

    async def refresh(self) -> list[Order]:
        """Replace the local order list with a fresh copy."""
        self.orders = await self._fetch()
        self.refresh_count += 1
        if self._on_update is not None:
            result = self._on_update(self.orders)
            if inspect.isawaitable(result):
                await result
        return self.orders

    async def _on_change(self, event: ChangeEvent) -> None:
        logger.debug(f"{self.scope} tracker {self.identity}: {event.event} on {event.table}")
        await self.refresh()

    async def start(self) -> list[Order]:
        """Initial fetch, then follow changes."""
        if self._subscription is None:
            self._subscription = self.backend.subscribe(
                TABLE_ORDERS, _FILTER_COLUMN[self.scope], self.identity, self._on_change
            )
        return await self.refresh()

    def stop(self) -> None:
        """Unsubscribe. The local copy is kept but no longer updated."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def rebind(self, identity: str) -> list[Order]:
        """Follow a different identity; the old subscription is torn down first."""
        self.stop()
        self.identity = identity
        self.orders = []
        return await self.start()

    def get(self, order_id: str) -> Order:
        for order in self.orders:
            if order.id == order_id:
                return order
        raise NotFoundError("Order", order_id)

    def progress_for(self, order_id: str) -> Progress:
        order = self.get(order_id)
        return progress(order.status, order.mode)
