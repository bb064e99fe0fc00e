"""
Change feed — row-change notifications keyed by (table, filter column, value).

Writers publish after their transaction commits; subscribers are told that a
row matching their filter changed and re-fetch whatever they display. There
is no incremental merge and no replay: a subscriber only sees events that
happen while it is subscribed.

    feed = ChangeFeed()
    sub = feed.subscribe("orders", "store_id", "store-1", on_change)
    await feed.publish("orders", ChangeEventType.INSERT, row)
    sub.unsubscribe()   # no further callbacks, even mid-publish
"""
import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Optional, Union

from domain.enums import ChangeEventType
from domain.records import ChangeEvent

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


class Subscription:
    """Handle returned by ChangeFeed.subscribe()."""

    def __init__(self, feed: "ChangeFeed", table: str, column: str, value: str, callback: ChangeCallback):
        self._feed = feed
        self.table = table
        self.column = column
        self.value = value
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        self._feed.unsubscribe(self)

    def __repr__(self) -> str:
        state = "active" if self.active else "closed"
        return f"<Subscription {self.table}.{self.column}={self.value} {state}>"


class ChangeFeed:
    """In-process fan-out of row changes to filtered subscribers."""

    def __init__(self):
        # table -> (column, value) -> subscriptions
        self._subs: dict[str, dict[tuple[str, str], list[Subscription]]] = defaultdict(lambda: defaultdict(list))
        self._published = 0
        self._callback_errors = 0

    def subscribe(self, table: str, column: str, value: Any, callback: ChangeCallback) -> Subscription:
        sub = Subscription(self, table, column, str(value), callback)
        self._subs[table][(column, sub.value)].append(sub)
        logger.debug(f"Subscribed to {table}.{column}={sub.value}")
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if not sub.active:
            return
        sub.active = False
        by_filter = self._subs.get(sub.table)
        if not by_filter:
            return
        key = (sub.column, sub.value)
        subs = by_filter.get(key, [])
        if sub in subs:
            subs.remove(sub)
        if not subs:
            by_filter.pop(key, None)
        if not by_filter:
            self._subs.pop(sub.table, None)

    async def publish(self, table: str, event: ChangeEventType, row: dict[str, Any]) -> int:
        """
        Deliver one change to every matching subscriber.

        A failing callback is logged and does not stop delivery to the rest.

        Returns:
            Number of callbacks invoked
        """
        self._published += 1
        by_filter = self._subs.get(table)
        if not by_filter:
            return 0

        change = ChangeEvent(table=table, event=event.value, row=row)
        targets = [
            sub
            for (column, value), subs in list(by_filter.items())
            if column in row and row[column] is not None and str(row[column]) == value
            for sub in list(subs)
        ]

        delivered = 0
        for sub in targets:
            # May have been unsubscribed by an earlier callback in this loop
            if not sub.active:
                continue
            try:
                result = sub.callback(change)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                self._callback_errors += 1
                logger.exception(f"Change callback for {sub!r} failed: {e}")
        return delivered

    def subscriber_count(self, table: Optional[str] = None) -> int:
        tables = [table] if table else list(self._subs)
        return sum(
            len(subs)
            for t in tables
            for subs in self._subs.get(t, {}).values()
        )

    def close(self) -> None:
        """Drop every subscription (app shutdown)."""
        for by_filter in list(self._subs.values()):
            for subs in list(by_filter.values()):
                for sub in list(subs):
                    sub.active = False
        self._subs.clear()

    def get_status(self) -> dict:
        return {
            "subscribers": self.subscriber_count(),
            "events_published": self._published,
            "callback_errors": self._callback_errors,
        }
