"""Runtime configuration for the storefront API.

Values are read from the environment once at startup. A shared
``~/.env.shared`` is loaded first, then a local ``.env`` can override it.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "storefront.db"
DEV_JWT_SECRET = "dev-only-insecure-secret"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


class ConfigError(Exception):
    """Invalid or missing configuration."""


def parse_duration(value: str) -> int:
    """Parse ``"7d"``, ``"24h"``, ``"15m"`` or ``"3600"`` into seconds."""
    match = _DURATION_RE.match(value)
    if not match:
        raise ConfigError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.environ.get(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    """Process-wide settings."""

    environment: str = "development"
    jwt_secret: str = DEV_JWT_SECRET
    token_lifetime_seconds: int = 7 * 86400
    auth_mode: str = "jwt"  # "jwt" or "demo"
    bcrypt_rounds: int = 10
    database_path: Path = DEFAULT_DB_PATH
    kv_backend: str = "redis"  # "redis" or "memory"
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    store_timeout_seconds: float = 2.0
    rate_limit_max: int = 100
    rate_limit_window: int = 60
    rate_limit_fail_open: bool = False
    trust_proxy_headers: bool = False
    events_enabled: bool = True
    events_channel_prefix: str = "storefront"
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:3001"]
    )
    port: int = 8000
    log_level: str = "INFO"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ConfigError: If a value cannot be parsed, or JWT_SECRET is
                missing outside development.
        """
        environment = os.environ.get("ENVIRONMENT", "development")
        jwt_secret = os.environ.get("JWT_SECRET", "")
        if not jwt_secret:
            if environment != "development":
                raise ConfigError("JWT_SECRET environment variable is not set")
            logger.warning("JWT_SECRET not set, using insecure development secret")
            jwt_secret = DEV_JWT_SECRET

        auth_mode = os.environ.get("AUTH_MODE", "jwt").lower()
        if auth_mode not in ("jwt", "demo"):
            raise ConfigError(f"AUTH_MODE must be 'jwt' or 'demo', got {auth_mode!r}")

        kv_backend = os.environ.get("KV_BACKEND", "redis").lower()
        if kv_backend not in ("redis", "memory"):
            raise ConfigError(f"KV_BACKEND must be 'redis' or 'memory', got {kv_backend!r}")

        try:
            return cls(
                environment=environment,
                jwt_secret=jwt_secret,
                token_lifetime_seconds=parse_duration(os.environ.get("JWT_EXPIRES_IN", "7d")),
                auth_mode=auth_mode,
                bcrypt_rounds=int(os.environ.get("BCRYPT_ROUNDS", "10")),
                database_path=Path(os.environ.get("DATABASE_PATH", str(DEFAULT_DB_PATH))),
                kv_backend=kv_backend,
                redis_host=os.environ.get("REDIS_HOST", "localhost"),
                redis_port=int(os.environ.get("REDIS_PORT", "6379")),
                redis_password=os.environ.get("REDIS_PASSWORD") or None,
                store_timeout_seconds=float(os.environ.get("STORE_TIMEOUT_SECONDS", "2")),
                rate_limit_max=int(os.environ.get("RATE_LIMIT_MAX", "100")),
                rate_limit_window=int(os.environ.get("RATE_LIMIT_WINDOW", "60")),
                rate_limit_fail_open=_env_bool("RATE_LIMIT_FAIL_OPEN", False),
                trust_proxy_headers=_env_bool("TRUST_PROXY_HEADERS", False),
                events_enabled=_env_bool("EVENTS_ENABLED", True),
                events_channel_prefix=os.environ.get("EVENTS_CHANNEL_PREFIX", "storefront"),
                cors_origins=_env_list(
                    "CORS_ORIGINS", ["http://localhost:3000", "http://localhost:3001"]
                ),
                port=int(os.environ.get("PORT", "8000")),
                log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process."""
    shared_env = Path.home() / ".env.shared"
    if shared_env.exists():
        load_dotenv(shared_env)
    load_dotenv()
    return Settings.from_env()
