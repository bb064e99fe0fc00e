"""
Demo order simulator — timer-driven status progression for the demo account.

The demo account has no store owner on the other end, so a background task
advances every eligible demo order by one tracking step per tick:

    DELIVERY: Placed → Preparing → On the way → Delivered
    PICKUP:   Placed → Preparing → Ready      → Picked Up

Terminal orders and orders still awaiting payment are skipped. Each step is
written through LocalBackend, which publishes it on the change feed, so the
trackers see simulated and real updates the same way.

This runs as an asyncio background task during the FastAPI app lifespan.
"""
import asyncio
import logging
from typing import Optional

from domain.lifecycle import apply_simulated_step
from services.backends import LocalBackend

logger = logging.getLogger(__name__)


class DemoSimulator:
    def __init__(self, backend: LocalBackend, interval: float = 15.0):
        self.backend = backend
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._is_running = False
        self._ticks = 0
        self._advanced = 0
        self._errors_count = 0

    async def tick(self) -> int:
        """
        Advance every eligible order by one step.

        Returns:
            Number of orders that moved
        """
        moved = 0
        for order in await self.backend.list_all_orders():
            step = apply_simulated_step(order)
            if step is None or await self.backend.write_simulated(step) is None:
                continue
            logger.info(f"  Demo order {order.id}: {order.status.value} → {step.status.value}")
            moved += 1
        self._ticks += 1
        self._advanced += moved
        return moved

    async def _loop(self) -> None:
        logger.info(f"Demo simulator started (tick every {self.interval}s)")
        while self._is_running:
            try:
                await asyncio.sleep(self.interval)
                await self.tick()
            except asyncio.CancelledError:
                logger.info("Demo simulator cancelled")
                break
            except Exception as e:
                self._errors_count += 1
                logger.error(f"Demo simulator tick error: {e}")
        self._is_running = False
        logger.info("Demo simulator stopped")

    # ── Start / Stop / Status ──

    def start(self) -> None:
        """Start the tick loop as a background asyncio task."""
        if self._task and not self._task.done():
            logger.warning("Demo simulator already running")
            return
        self._is_running = True
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        self._is_running = False
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_status(self) -> dict:
        return {
            "running": self.running,
            "tickSeconds": self.interval,
            "ticks": self._ticks,
            "ordersAdvanced": self._advanced,
            "errorsCount": self._errors_count,
        }
