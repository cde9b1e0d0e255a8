"""
# Logging Manager

Central place to obtain loggers. Every component asks for a logger with an optional
**prefix** so that log lines from one concern can be grepped together:

```
2026-10-19 10:00:00 | INFO     | luxgen_tenancy | [TENANT_REGISTRY] tenant_connected {"database_name": "tenant_luxgen", ...}
```

Prefixes in use:

- `[TENANT_FACTORY]`: connection establishment
- `[TENANT_REGISTRY]`: entry lifecycle (create, reconnect, close, drop)
- `[TENANT_HEALTH]`: probes and the background monitor
- `[TENANT_PERFORMANCE]`: timings
- `[Tenant Collection]`: tenant-scoped collection operations
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

from luxgen_tenancy.config import settings

DEFAULT_LOGGER_NAME = "luxgen_tenancy"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_configured_loggers = set()


class PrefixLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that prepends a fixed prefix to every message."""

    def process(self, msg, kwargs):
        prefix = self.extra.get("prefix") if self.extra else None
        if prefix:
            msg = f"{prefix} {msg}"
        return msg, kwargs


def _configure(logger: logging.Logger) -> None:
    if logger.name in _configured_loggers:
        return
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    level = logging.getLevelName(settings.DEFAULT_LOG_LEVEL.upper())
    logger.setLevel(level if isinstance(level, int) else logging.INFO)
    _configured_loggers.add(logger.name)


def get_logger(name: str = DEFAULT_LOGGER_NAME, prefix: str = "") -> PrefixLoggerAdapter:
    """
    Return a configured logger, optionally prefixing every message.

    Args:
        name (str): Logger name. Defaults to the package logger.
        prefix (str): Text prepended to each message, e.g. `"[TENANT_REGISTRY]"`.

    Returns:
        PrefixLoggerAdapter: Adapter usable exactly like a `logging.Logger`.
    """
    logger = logging.getLogger(name)
    _configure(logger)
    return PrefixLoggerAdapter(logger, {"prefix": prefix})


def log_lifecycle_event(
    event: str, details: Optional[Dict[str, Any]] = None, logger: Optional[logging.LoggerAdapter] = None
) -> None:
    """
    Log a structured lifecycle event as `<event> <json details>`.

    Args:
        event (str): Event name such as `tenant_connected`.
        details (Optional[Dict[str, Any]]): Key/values serialized as sorted JSON.
        logger (Optional[logging.LoggerAdapter]): Logger to use; defaults to `[LIFECYCLE]`.
    """
    target = logger or get_logger(prefix="[LIFECYCLE]")
    target.info("%s %s", event, json.dumps(details or {}, default=str, sort_keys=True))
