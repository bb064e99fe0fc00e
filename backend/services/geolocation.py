"""
Device geolocation — one-shot fixes and continuous watches.

A position source yields fixes (lat, lng, accuracy) or fails with one of
three causes. The browser reports its device fixes through
ReportedPositionSource; the demo account gets DemoPositionSource, which
wanders a few metres around a base point.

    fix = await get_position(source, timeout=15.0)

    watch = PositionWatch(source, on_fix, on_error, timeout=10.0)
    watch.start()
    ...
    await watch.clear()   # no further callbacks
"""
import asyncio
import inspect
import logging
import random
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Awaitable, Callable, Optional, Protocol, Union

from fastapi import status

from domain.errors import DomainError
from utils.timeutil import utcnow

logger = logging.getLogger(__name__)


class GeolocationFailure(IntEnum):
    # Numbering follows the W3C GeolocationPositionError codes
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


FAILURE_MESSAGES = {
    GeolocationFailure.PERMISSION_DENIED: "Permission denied. Please enable location services.",
    GeolocationFailure.POSITION_UNAVAILABLE: "Position unavailable. GPS signal weak.",
    GeolocationFailure.TIMEOUT: "Location request timed out.",
}

_FAILURE_STATUS = {
    GeolocationFailure.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    GeolocationFailure.POSITION_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    GeolocationFailure.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}


class GeolocationError(DomainError):
    """A position could not be obtained. `failure` says why."""
    def __init__(self, failure: GeolocationFailure):
        super().__init__(
            FAILURE_MESSAGES[failure],
            status_code=_FAILURE_STATUS[failure],
            details={"cause": failure.name.lower()},
        )
        self.failure = failure


@dataclass(frozen=True)
class PositionFix:
    lat: float
    lng: float
    accuracy: float
    timestamp: object = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng, "accuracy": self.accuracy}


class PositionSource(Protocol):
    async def next_fix(self) -> PositionFix:
        """Wait for the next fix. Raises GeolocationError."""
        ...


async def get_position(source: PositionSource, timeout: float) -> PositionFix:
    """One fix from `source`, or GeolocationError(TIMEOUT) after `timeout` seconds."""
    try:
        return await asyncio.wait_for(source.next_fix(), timeout)
    except asyncio.TimeoutError:
        raise GeolocationError(GeolocationFailure.TIMEOUT)


async def current_fix(source: PositionSource, timeout: float) -> PositionFix:
    """
    The device's current position.

    A reported source with nothing queued answers with its last fix instead
    of waiting for the device to report again.
    """
    if isinstance(source, ReportedPositionSource) and source.empty and source.last_fix is not None:
        return source.last_fix
    return await get_position(source, timeout)


FixCallback = Callable[[PositionFix], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[GeolocationError], Union[None, Awaitable[None]]]


async def _call(callback, arg) -> None:
    result = callback(arg)
    if inspect.isawaitable(result):
        await result


class PositionWatch:
    """
    Continuous position updates until clear() is called.

    A timeout is reported and the watch keeps going; a permission failure is
    reported and ends the watch.
    """

    def __init__(
        self,
        source: PositionSource,
        on_fix: FixCallback,
        on_error: Optional[ErrorCallback] = None,
        timeout: float = 10.0,
    ):
        self._source = source
        self._on_fix = on_fix
        self._on_error = on_error
        self._timeout = timeout
        self._task: Optional[asyncio.Task] = None
        self._cleared = False

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "PositionWatch":
        if self._cleared:
            raise RuntimeError("A cleared watch cannot be restarted")
        if not self.active:
            self._task = asyncio.create_task(self._run())
        return self

    async def _run(self) -> None:
        while not self._cleared:
            try:
                fix = await get_position(self._source, self._timeout)
            except GeolocationError as e:
                if self._cleared:
                    break
                if self._on_error is not None:
                    await _call(self._on_error, e)
                if e.failure == GeolocationFailure.PERMISSION_DENIED:
                    logger.info("Position watch stopped: permission denied")
                    break
                continue
            if self._cleared:
                break
            await _call(self._on_fix, fix)

    async def clear(self) -> None:
        """Stop the watch. No callback runs after this returns."""
        self._cleared = True
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


class DemoPositionSource:
    """Simulated device: a fix every `interval` seconds, jittered around the base point."""

    def __init__(
        self,
        lat: float,
        lng: float,
        *,
        interval: float = 3.0,
        jitter: float = 0.0001,
        accuracy: float = 10.0,
        rng: Optional[random.Random] = None,
    ):
        self.lat = lat
        self.lng = lng
        self._interval = interval
        self._jitter = jitter
        self._accuracy = accuracy
        self._rng = rng or random.Random()
        self._first = True

    async def next_fix(self) -> PositionFix:
        if self._first:
            self._first = False
        else:
            await asyncio.sleep(self._interval)
            self.lat += self._rng.uniform(-self._jitter, self._jitter)
            self.lng += self._rng.uniform(-self._jitter, self._jitter)
        return PositionFix(lat=self.lat, lng=self.lng, accuracy=self._accuracy)


class ReportedPositionSource:
    """Fixes (or failures) pushed in by the client device, consumed in order."""

    def __init__(self, maxsize: int = 16):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.last_fix: Optional[PositionFix] = None

    def _put(self, item) -> None:
        if self._queue.full():
            # Keep the freshest reports
            self._queue.get_nowait()
        self._queue.put_nowait(item)

    def report(self, lat: float, lng: float, accuracy: float) -> PositionFix:
        fix = PositionFix(lat=lat, lng=lng, accuracy=accuracy)
        self.last_fix = fix
        self._put(fix)
        return fix

    def report_failure(self, failure: GeolocationFailure) -> None:
        self._put(failure)

    @property
    def empty(self) -> bool:
        return self._queue.empty()

    async def next_fix(self) -> PositionFix:
        item = await self._queue.get()
        if isinstance(item, GeolocationFailure):
            raise GeolocationError(item)
        return item


class PositionRegistry:
    """One ReportedPositionSource per user id."""

    def __init__(self):
        self._sources: dict[str, ReportedPositionSource] = {}

    def source_for(self, user_id: str) -> ReportedPositionSource:
        if user_id not in self._sources:
            self._sources[user_id] = ReportedPositionSource()
        return self._sources[user_id]

    def clear(self) -> None:
        self._sources.clear()
