# config.py

"""Application configuration utilities.

Values come from environment variables (or a ``.env`` file). The
:func:`get_settings` helper builds the :class:`Settings` object once and
caches it for the process lifetime.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class TransitionPolicyMode(str, Enum):
    """Select how strictly order status changes are checked.

    ``PERMISSIVE`` lets any enumerated status follow any other, which is
    how the kitchen apps have always behaved. ``STRICT`` only allows the
    forward edges of the kitchen workflow plus cancellation.
    """

    PERMISSIVE = "permissive"
    STRICT = "strict"


class Settings(BaseSettings):
    """Runtime settings merged from the environment."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./tableside.db"
    redis_url: str = "redis://localhost:6379/0"
    env: str = "dev"
    log_level: str = "INFO"
    error_dsn: str | None = None

    delivery_fee: Decimal = Decimal("2.00")
    order_transition_policy: TransitionPolicyMode = TransitionPolicyMode.PERMISSIVE
    attach_retries: int = 3

    # cache lifetimes, seconds
    order_details_ttl: int = 3600
    user_orders_ttl: int = 1800
    session_orders_ttl: int = 1800
    kitchen_active_ttl: int = 30
    kitchen_completed_ttl: int = 60
    ratings_ttl: int = 3600
    user_reservations_ttl: int = 3600
    kitchen_completed_limit: int = 50

    cache_retry_after_secs: float = 5.0
    side_effect_timeout_secs: float = 2.0
    availability_guest_buckets: int = 10


@lru_cache
def get_settings() -> Settings:
    """Return process-wide settings with environment variable precedence."""

    return Settings()
