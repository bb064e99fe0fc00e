"""
Configuration management for the hyperlocal grocery marketplace backend.

Loads settings from .env via pydantic-settings.

Notes:
    - DEMO_MODE enables the in-memory demo store and the timer-driven
      order simulator for the demo account (DEMO_USER_ID).
    - validate_production_settings() refuses demo mode, wildcard CORS and a
      missing JWT secret when ENVIRONMENT=production.
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/grocery.db"

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"

    # ── Demo Mode ───────────────────────────────────────────────────
    # The demo account bypasses the database entirely. Its orders advance
    # one step every demo_tick_seconds instead of waiting for a store owner.
    demo_mode: bool = True
    demo_user_id: str = "demo-user"            # store owner of the demo store
    demo_customer_id: str = "demo-customer"    # customer on the demo order
    demo_tick_seconds: float = 15.0

    # ── Orders ──────────────────────────────────────────────────────
    payment_deadline_minutes: int = 30   # scheduled orders: pay this long before the slot
    nearby_radius_km: float = 10.0

    # ── Location services ───────────────────────────────────────────
    osrm_base_url: str = "https://router.project-osrm.org"
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    geocoder_user_agent: str = "Grocesphere-App/1.0"
    http_timeout_seconds: float = 10.0
    geolocation_timeout_seconds: float = 15.0

    # ── Auth (JWT) ──────────────────────────────────────────────────
    jwt_secret: str = ""
    jwt_issuer: str = "grocesphere-api"
    jwt_access_ttl_minutes: int = 60

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    def is_demo_user(self, user_id: str | None) -> bool:
        """True when demo mode is on and the identity is one of the demo accounts."""
        return self.demo_mode and bool(user_id) and user_id in (self.demo_user_id, self.demo_customer_id)

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if self.demo_mode:
                raise ValueError(
                    "DEMO_MODE must be false in production. "
                    "The demo account skips the database and simulates order progress."
                )
            if not self.jwt_secret:
                raise ValueError(
                    "JWT_SECRET must be set in production. "
                    "It is used to sign access tokens."
                )
            logger.info("Production settings validated")
        else:
            warnings = []
            if self.demo_mode:
                warnings.append(f"DEMO_MODE=true (account '{self.demo_user_id}' uses the in-memory store)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            if not self.jwt_secret:
                warnings.append("JWT_SECRET is empty (token issuing disabled)")
            for w in warnings:
                logger.warning(w)


# Global settings instance
settings = Settings()
