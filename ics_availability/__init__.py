"""ics_availability - free/busy availability derived from a remote iCal feed.

The package fetches an ICS calendar, keeps a short-lived cache of the parsed
events per requested window and answers two kinds of questions for a front-end
calendar widget: which time blocks are busy, and which days still have enough
free time inside opening hours.
"""

__version__ = "0.1.0"

from typing import Optional


def _make_console_handler():
    """Colourised stderr handler stamping records with the request correlation id."""
    import logging
    import sys

    from colorlog import ColoredFormatter

    from .core.logging_config import CorrelationIdFilter

    handler = logging.StreamHandler(stream=sys.stderr)
    # HH:MM:SS  LEVEL   [request-id] logger.name: message  (only the level is colourised)
    fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s [%(request_id)s] %(name)s: %(message)s"
    log_colors = {
        "DEBUG": "cyan",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold_red",
    }
    handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
    handler.addFilter(CorrelationIdFilter())
    return handler


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Sets a colourised formatter and level so that start-up messages are visible
    before the configuration has been read. Honors ICS_AVAILABILITY_DEBUG
    (truthy values: "1", "true", "yes", "on") which forces DEBUG verbosity.
    """
    import logging
    import os

    debug_env = os.environ.get("ICS_AVAILABILITY_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none are present to avoid duplicate output.
    if not root.handlers:
        root.addHandler(_make_console_handler())

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run_server(args: Optional[object] = None) -> None:
    """Load configuration and start the availability HTTP server.

    Args:
        args: Optional argparse namespace with ``config``, ``host``, ``port`` and
            ``debug`` attributes (all optional).

    Configuration is resolved from the YAML file, the ``.env`` file and the
    environment (see ``core.config_manager``); command line flags win over all
    of them. Blocks until SIGINT/SIGTERM.
    """
    import logging
    import os

    _init_logging(os.environ.get("ICS_AVAILABILITY_LOG_LEVEL"))
    logger = logging.getLogger(__name__)

    from .api.server import start_server
    from .core.config_manager import ConfigManager

    overrides: dict = {}
    config_path = None
    if args is not None:
        config_path = getattr(args, "config", None)
        host = getattr(args, "host", None)
        if host:
            overrides["server_bind"] = host
        port = getattr(args, "port", None)
        if port is not None:
            overrides["server_port"] = port
        if getattr(args, "debug", False):
            overrides["debug_logging"] = True

    config = ConfigManager().load_full_config(config_path, overrides=overrides)
    logger.debug(
        "Resolved configuration (diagnostic): feed_configured=%s bind=%s port=%d tz=%s",
        bool(config.ics_url),
        config.server_bind,
        config.server_port,
        config.business_timezone,
    )

    start_server(config)
