"""Server configuration — reads settings from environment variables.

All settings have sensible defaults for local development.  In production
the values are typically overridden via env vars or a ``.env`` file.
"""

import os
from dataclasses import dataclass, field

from survey_engine.constants import ATTENTION_CHECK_INTERVAL, DEFAULT_REGION_QUOTAS


def parse_region_quotas(raw: str | None) -> dict[str, int]:
    """Parse ``"north=12,south=10"`` into a mapping.

    Regions missing from ``raw`` keep their default limit.  Raises
    ``ValueError`` on a malformed entry so a typo fails startup loudly.
    """
    limits = dict(DEFAULT_REGION_QUOTAS)
    if not raw:
        return limits
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        region, sep, value = item.partition("=")
        region = region.strip().lower()
        if not sep or region not in limits:
            raise ValueError(f"Invalid REGION_QUOTAS entry: {item!r}")
        limit = int(value)
        if limit < 0:
            raise ValueError(f"Quota for {region} must be >= 0, got {limit}")
        limits[region] = limit
    return limits


@dataclass(frozen=True)
class ServerSettings:
    """Immutable server configuration read from environment at startup."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS — comma-separated origins, or "*" for wide-open dev mode
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Question catalogue file (None → the catalogue packaged with survey_engine)
    catalogue_path: str | None = None

    # Logging
    log_level: str = "INFO"

    # Per-region participant ceilings, upserted at startup
    region_quotas: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_REGION_QUOTAS)
    )

    # Attention-check cadence K
    attention_interval: int = ATTENTION_CHECK_INTERVAL

    # Admin API key: shared secret for admin endpoints (None = disabled)
    admin_api_key: str | None = None


def load_settings() -> ServerSettings:
    """Build settings from ``SERVER_*`` environment variables."""
    raw_origins = os.getenv("SERVER_CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=origins,
        catalogue_path=os.getenv("SERVER_CATALOGUE_PATH") or None,
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        region_quotas=parse_region_quotas(os.getenv("REGION_QUOTAS")),
        attention_interval=int(
            os.getenv("ATTENTION_CHECK_INTERVAL", str(ATTENTION_CHECK_INTERVAL))
        ),
        admin_api_key=os.getenv("ADMIN_API_KEY") or None,
    )
