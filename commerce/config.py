"""Environment-driven configuration for the commerce engine."""
import os
from dataclasses import dataclass
from functools import cache
from typing import Optional

from commerce.logging import get_logger

logger = get_logger(__name__)


DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_API_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_CONFIRMATION_DELAY = 1.5
DEFAULT_CART_TTL = 86400  # 24 hours for abandoned carts
DEFAULT_CURRENCY = "USD"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}={raw!r}, using default {default}")
        return default
    if value < 0:
        logger.warning(f"Negative value for {name}={raw!r}, using default {default}")
        return default
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}={raw!r}, using default {default}")
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime settings. Build with `Settings.from_env()` or directly in tests."""
    api_url: str = DEFAULT_API_URL
    api_token: Optional[str] = None
    api_timeout: float = DEFAULT_API_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    confirmation_delay: float = DEFAULT_CONFIRMATION_DELAY
    cart_ttl: int = DEFAULT_CART_TTL
    currency: str = DEFAULT_CURRENCY
    redis_url: str = ""
    redis_token: str = ""

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from environment variables."""
        return cls(
            api_url=os.environ.get("COMMERCE_API_URL", DEFAULT_API_URL).rstrip("/"),
            api_token=os.environ.get("COMMERCE_API_TOKEN") or None,
            api_timeout=_env_float("COMMERCE_API_TIMEOUT", DEFAULT_API_TIMEOUT),
            poll_interval=_env_float("PAYMENT_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            confirmation_delay=_env_float("ORDER_CONFIRMATION_DELAY", DEFAULT_CONFIRMATION_DELAY),
            cart_ttl=_env_int("CART_TTL_SECONDS", DEFAULT_CART_TTL),
            currency=os.environ.get("COMMERCE_CURRENCY", DEFAULT_CURRENCY).upper(),
            redis_url=os.environ.get("UPSTASH_REDIS_REST_URL", ""),
            redis_token=os.environ.get("UPSTASH_REDIS_REST_TOKEN", ""),
        )

    def is_redis_configured(self) -> bool:
        """Check if the keyed cart store can be reached without raising."""
        return bool(self.redis_url and self.redis_token)


@cache
def get_settings() -> Settings:
    """Get settings read from the environment (cached for the process)."""
    return Settings.from_env()
