"""Logging utilities for ElasticPool runtime components."""

from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping, Optional, Tuple


_HANDLER_NAME = "_elasticpool_stream_handler"


def configure_runtime_logging(level: int = logging.INFO, formatter: Optional[logging.Formatter] = None) -> None:
    """Ensure that runtime processes emit logs to stdout with a consistent format."""
    root_logger = logging.getLogger()
    if formatter is None:
        formatter = logging.Formatter("[%(levelname)s] %(name)s: %(message)s")

    existing = None
    for handler in root_logger.handlers:
        if getattr(handler, _HANDLER_NAME, False):
            existing = handler
            break

    if existing is None:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        setattr(stream_handler, _HANDLER_NAME, True)
        root_logger.addHandler(stream_handler)
    else:
        existing.setFormatter(formatter)
        existing.setLevel(level)

    if root_logger.level > level or root_logger.level == logging.NOTSET:
        root_logger.setLevel(level)


class KeyValueLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that appends ``key=value`` context to every message.

    ``with_values`` returns a new adapter carrying the merged context, so a
    reconcile pass can narrow its logger as it resolves more objects.
    """

    def __init__(self, logger: logging.Logger, values: Optional[dict] = None):
        super().__init__(logger, dict(values or {}))

    def with_values(self, **values: Any) -> "KeyValueLoggerAdapter":
        merged = dict(self.extra)
        merged.update(values)
        return KeyValueLoggerAdapter(self.logger, merged)

    def bind(self, logger: logging.Logger) -> "KeyValueLoggerAdapter":
        """Same context, emitted through ``logger``."""
        return KeyValueLoggerAdapter(logger, self.extra)

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        if not self.extra:
            return msg, kwargs
        context = " ".join(f"{key}={value}" for key, value in self.extra.items())
        return f"{msg} [{context}]", kwargs
