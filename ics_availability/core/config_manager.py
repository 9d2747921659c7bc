"""Configuration management for the ics_availability server."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

from .config_loader import Config, load_config_mapping

logger = logging.getLogger(__name__)

ENV_PREFIX = "ICS_AVAILABILITY_"

# Environment variable suffix -> Config field
ENV_FIELDS: dict[str, str] = {
    "ICS_URL": "ics_url",
    "CACHE_TTL": "cache_ttl_seconds",
    "OPENING_HOURS_START": "opening_hours_start",
    "OPENING_HOURS_END": "opening_hours_end",
    "RATE_LIMIT_PER_MINUTE": "rate_limit_per_minute",
    "MIN_FREE_MINUTES": "min_free_minutes",
    "MAX_WINDOW_DAYS": "max_window_days",
    "FETCH_TIMEOUT": "fetch_timeout_seconds",
    "TIMEZONE": "business_timezone",
    "MONTH_VIEW": "month_view",
    "TRUST_PROXY_HEADERS": "trust_proxy_headers",
    "ADMIN_TOKEN": "admin_token",
    "WEB_HOST": "server_bind",
    "WEB_PORT": "server_port",
    "LOG_LEVEL": "log_level",
    "DEBUG": "debug_logging",
}


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", path, exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


class ConfigManager:
    """Builds a Config from YAML, .env files and ICS_AVAILABILITY_* variables."""

    def __init__(self, env_file_path: Path | None = None, environ: Optional[dict[str, str]] = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
            environ: Environment mapping to read and update (defaults to os.environ)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"
        self.environ = os.environ if environ is None else environ

    def load_env_file(self) -> list[str]:
        """Load .env file into the environment mapping.

        Only sets variables that are not already present to avoid surprising
        overrides of the user's environment.

        Returns:
            List of keys that were loaded from the .env file
        """
        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in self.environ:
                self.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build a raw configuration mapping from ICS_AVAILABILITY_* variables.

        Returns:
            Mapping of Config field names to raw string values
        """
        cfg: dict[str, Any] = {}
        for suffix, field_name in ENV_FIELDS.items():
            value = self.environ.get(ENV_PREFIX + suffix)
            if value is not None and value != "":
                cfg[field_name] = value
        return cfg

    def load_full_config(
        self,
        config_path: str | Path | None = None,
        overrides: Optional[dict[str, Any]] = None,
    ) -> Config:
        """Resolve the effective configuration.

        Precedence (lowest first): defaults, YAML file, .env file, environment,
        ``overrides`` (command line flags).

        Args:
            config_path: YAML file path; falls back to ICS_AVAILABILITY_CONFIG
            overrides: Explicit values that win over every other source

        Returns:
            Validated Config instance
        """
        self.load_env_file()

        raw: dict[str, Any] = {}
        path = config_path or self.environ.get(ENV_PREFIX + "CONFIG")
        if path:
            if Path(path).exists():
                raw.update(load_config_mapping(path))
                logger.info("Loaded configuration from %s", path)
            else:
                logger.info("Config file %s not found; using environment and defaults", path)

        raw.update(self.build_config_from_env())
        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return Config.from_dict(raw)
