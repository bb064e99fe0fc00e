"""
Application context — everything with a process lifetime, built once in the lifespan.

    context = AppContext.build(settings, async_session)
    ...
    await context.aclose()

Routes reach it through deps.get_context(); tests build their own around an
in-memory database and a mocked HTTP transport.
"""
import logging
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import async_sessionmaker

from config import Settings
from domain.constants import DEMO_STORE_LAT, DEMO_STORE_LNG
from services.backends import DataBackend, LocalBackend, SqlBackend
from services.change_feed import ChangeFeed
from services.geolocation import DemoPositionSource, PositionRegistry, PositionSource
from services.location_service import LocationClient
from services.simulator import DemoSimulator

logger = logging.getLogger(__name__)


class AppContext:
    def __init__(
        self,
        *,
        settings: Settings,
        session_factory: async_sessionmaker,
        feed: ChangeFeed,
        http_client: httpx.AsyncClient,
        owns_http_client: bool = True,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.feed = feed
        self.http_client = http_client
        self._owns_http_client = owns_http_client

        self.sql = SqlBackend(session_factory, feed, settings)
        self.local: Optional[LocalBackend] = LocalBackend(settings, feed) if settings.demo_mode else None
        self.simulator: Optional[DemoSimulator] = (
            DemoSimulator(self.local, settings.demo_tick_seconds) if self.local else None
        )
        self.location = LocationClient(http_client, settings)
        self.positions = PositionRegistry()

    @classmethod
    def build(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "AppContext":
        owns = http_client is None
        if http_client is None:
            http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        context = cls(
            settings=settings,
            session_factory=session_factory,
            feed=ChangeFeed(),
            http_client=http_client,
            owns_http_client=owns,
        )
        logger.info(f"App context ready (demo_mode={settings.demo_mode})")
        return context

    def backend_for(self, user_id: Optional[str]) -> DataBackend:
        """The in-memory store for demo identities, the database for everyone else."""
        if self.local is not None and self.settings.is_demo_user(user_id):
            return self.local
        return self.sql

    def position_source_for(self, user_id: str) -> PositionSource:
        if self.settings.is_demo_user(user_id):
            return DemoPositionSource(DEMO_STORE_LAT, DEMO_STORE_LNG)
        return self.positions.source_for(user_id)

    async def aclose(self) -> None:
        if self.simulator is not None:
            await self.simulator.stop()
        self.feed.close()
        self.positions.clear()
        if self._owns_http_client:
            await self.http_client.aclose()
        logger.info("App context closed")
