"""
Structured Logger

Thin wrapper around Python logging: one JSON object per line on stdout.
Used by the validation pipeline, the auto-fix engine, the database layer
and the API.

Level comes from FLOWGUARD_LOG_LEVEL (default: info); configure() re-reads
it, so the API can apply a level loaded from .env at startup.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

_LEVEL_MAP = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_logger = logging.getLogger("flowguard")


def configure(level=None):
    """Attach the stdout handler once and set the level.

    Args:
        level: Level name; defaults to FLOWGUARD_LOG_LEVEL, then "info".
    """
    if not _logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        _logger.addHandler(handler)
        _logger.propagate = False
    name = (level or os.environ.get("FLOWGUARD_LOG_LEVEL", "info")).lower()
    _logger.setLevel(_LEVEL_MAP.get(name, logging.INFO))


def log(event: str, level: str = "info", **kwargs):
    """
    Emit a structured log line as JSON.

    Args:
        event:  Dot-separated event name (e.g. "autofix.applied")
        level:  Log level string (debug, info, warning, error, critical)
        **kwargs: Additional key-value data to include
    """
    entry = {"ts": datetime.now(timezone.utc).isoformat(), "event": event, "level": level}
    entry.update(kwargs)
    _logger.log(_LEVEL_MAP.get(level, logging.INFO), json.dumps(entry, default=str))


configure()


if __name__ == "__main__":
    print("=== Logger Self-Check ===\n")

    log("selfcheck.info", flow_id="demo", fixes=2)
    print("  [OK] Info line")

    configure("error")
    log("selfcheck.hidden", level="warning")
    print("  [OK] Warning suppressed at error level")

    print("\n=== All logger checks passed ===")
