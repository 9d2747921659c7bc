"""ics_availability.core.config_loader

Typed configuration for the availability server.

- Exposes a dataclass ``Config`` built with ``Config.from_dict()`` which coerces
  and bounds every value, logging a warning whenever it has to correct one.
- ``load_config()`` reads an optional YAML file into a ``Config``.
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .timezone_utils import DEFAULT_BUSINESS_TIMEZONE, resolve_zone

logger = logging.getLogger(__name__)

MIN_CACHE_TTL_SECONDS = 60
DEFAULT_CACHE_TTL_SECONDS = 300
DEFAULT_RATE_LIMIT_PER_MINUTE = 30
DEFAULT_MIN_FREE_MINUTES = 120
DEFAULT_MAX_WINDOW_DAYS = 90
DEFAULT_FETCH_TIMEOUT_SECONDS = 15
DEFAULT_OPENING_HOURS_START = "09:00"
DEFAULT_OPENING_HOURS_END = "17:00"
MONTH_VIEW = "dayGridMonth"

_HHMM_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
_TRUTHY = ("1", "true", "yes", "on")


@dataclass
class Config:
    """Typed configuration for ics_availability.

    Fields:
        ics_url: remote iCal feed URL (empty means "not configured")
        cache_ttl_seconds: lifetime of a cached window (>= 60)
        opening_hours_start: HH:MM start of the business day
        opening_hours_end: HH:MM end of the business day
        rate_limit_per_minute: admitted requests per caller per 60s window
        min_free_minutes: free gap inside opening hours that makes a day available
        max_window_days: largest accepted end - start span
        fetch_timeout_seconds: upstream GET timeout
        business_timezone: zone used for opening hours and day bucketing
        month_view: view identifier that selects day-availability output
        trust_proxy_headers: derive caller identity from X-Forwarded-For
        admin_token: bearer token for cache administration (None disables it)
        server_bind: host to bind the HTTP server to
        server_port: port for the HTTP server
        log_level: logging level name
        debug_logging: enable DEBUG output for package loggers
    """

    ics_url: str = ""
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    opening_hours_start: str = DEFAULT_OPENING_HOURS_START
    opening_hours_end: str = DEFAULT_OPENING_HOURS_END
    rate_limit_per_minute: int = DEFAULT_RATE_LIMIT_PER_MINUTE
    min_free_minutes: int = DEFAULT_MIN_FREE_MINUTES
    max_window_days: int = DEFAULT_MAX_WINDOW_DAYS
    fetch_timeout_seconds: int = DEFAULT_FETCH_TIMEOUT_SECONDS
    business_timezone: str = DEFAULT_BUSINESS_TIMEZONE
    month_view: str = MONTH_VIEW
    trust_proxy_headers: bool = False
    admin_token: str | None = field(default=None, repr=False)
    server_bind: str = "0.0.0.0"  # nosec: B104 - intentional default, overridable via config/env
    server_port: int = 8080
    log_level: str = "INFO"
    debug_logging: bool = False

    @property
    def opening_start_time(self) -> datetime.time:
        """Opening hours start as a time of day."""
        return _to_time(self.opening_hours_start)

    @property
    def opening_end_time(self) -> datetime.time:
        """Opening hours end as a time of day."""
        return _to_time(self.opening_hours_end)

    @property
    def tzinfo(self) -> datetime.tzinfo:
        """Business timezone as a tzinfo (UTC if the name no longer resolves)."""
        return resolve_zone(self.business_timezone) or datetime.timezone.utc

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int; values that cannot be coerced or
        fall outside their bounds are replaced and a warning is logged. Unknown
        keys are ignored.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int, minimum: int = 1) -> int:
            raw = data.get(key, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            if value < minimum:
                logger.warning("Config %s=%d below minimum; coercing to %d", key, value, minimum)
                return minimum
            return value

        def _coerce_bool(key: str, default: bool) -> bool:
            raw = data.get(key, default)
            if isinstance(raw, bool):
                return raw
            if raw is None:
                return default
            return str(raw).strip().lower() in _TRUTHY

        def _coerce_hhmm(key: str, default: str) -> str:
            raw = data.get(key, default)
            text = str(raw).strip() if raw is not None else default
            if _HHMM_RE.match(text):
                return text
            logger.warning("Config %s=%r is not HH:MM; using default %s", key, raw, default)
            return default

        ics_url = data.get("ics_url") or ""
        ics_url = str(ics_url).strip()

        cache_ttl = _coerce_int(
            "cache_ttl_seconds", DEFAULT_CACHE_TTL_SECONDS, minimum=MIN_CACHE_TTL_SECONDS
        )

        tz_name = str(data.get("business_timezone") or DEFAULT_BUSINESS_TIMEZONE).strip()
        if resolve_zone(tz_name) is None:
            logger.warning(
                "Config business_timezone=%r is not a known zone; using %s",
                tz_name,
                DEFAULT_BUSINESS_TIMEZONE,
            )
            tz_name = DEFAULT_BUSINESS_TIMEZONE

        admin_token = data.get("admin_token")
        admin_token = str(admin_token) if admin_token else None

        server_bind = data.get("server_bind") or "0.0.0.0"  # nosec: B104 - fallback literal

        log_level = data.get("log_level") or "INFO"

        return cls(
            ics_url=ics_url,
            cache_ttl_seconds=cache_ttl,
            opening_hours_start=_coerce_hhmm("opening_hours_start", DEFAULT_OPENING_HOURS_START),
            opening_hours_end=_coerce_hhmm("opening_hours_end", DEFAULT_OPENING_HOURS_END),
            rate_limit_per_minute=_coerce_int(
                "rate_limit_per_minute", DEFAULT_RATE_LIMIT_PER_MINUTE
            ),
            min_free_minutes=_coerce_int("min_free_minutes", DEFAULT_MIN_FREE_MINUTES),
            max_window_days=_coerce_int("max_window_days", DEFAULT_MAX_WINDOW_DAYS),
            fetch_timeout_seconds=_coerce_int(
                "fetch_timeout_seconds", DEFAULT_FETCH_TIMEOUT_SECONDS
            ),
            business_timezone=tz_name,
            month_view=str(data.get("month_view") or MONTH_VIEW),
            trust_proxy_headers=_coerce_bool("trust_proxy_headers", False),
            admin_token=admin_token,
            server_bind=str(server_bind),
            server_port=_coerce_int("server_port", 8080),
            log_level=str(log_level).upper(),
            debug_logging=_coerce_bool("debug_logging", False),
        )


def _to_time(hhmm: str) -> datetime.time:
    hours, minutes = hhmm.split(":", 1)
    return datetime.time(int(hours), int(minutes))


def load_config_mapping(path: str | Path) -> dict[str, Any]:
    """Read a YAML config file into a mapping.

    Returns:
        The parsed mapping ({} for an empty file)

    Raises:
        ValueError: If the document's top level is not a mapping
    """
    p = Path(path)
    loaded = yaml.safe_load(p.read_text(encoding="utf-8"))
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, loaded)
        raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
    return loaded


def load_config(path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file and return a Config instance.

    Behavior:
    - If no path is given or the file is missing: returns Config() with defaults.
    - If the file exists but top-level is not a mapping: raises ValueError.
    """
    if path is None:
        logger.debug("No config file given; using defaults")
        return Config()

    p = Path(path)
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return Config()

    cfg = Config.from_dict(load_config_mapping(p))
    logger.info("Loaded configuration from %s", p)
    logger.debug("Configuration values: %s", cfg)
    return cfg
