import logging
import os
import sys
from typing import Mapping, Optional

import structlog


def log_level_from_env(environ: Mapping[str, str]) -> str:
    """LOG_LEVEL (default INFO); runner debug logging forces DEBUG."""
    if environ.get("RUNNER_DEBUG") == "1":
        return "DEBUG"
    return environ.get("LOG_LEVEL", "INFO").upper()


def configure_logging(environ: Optional[Mapping[str, str]] = None) -> None:
    """Configure structlog for CLI use.

    Logs go to stderr so stdout stays reserved for command output. Human
    friendly console output by default, JSON when LOG_FORMAT=json.
    """
    environ = os.environ if environ is None else environ
    log_level = log_level_from_env(environ)
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO), stream=sys.stderr, format="%(message)s")

    use_json_logs = environ.get("LOG_FORMAT", "").lower() == "json"

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if use_json_logs else structlog.dev.ConsoleRenderer(colors=False),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
