"""Utility helpers for ElasticPool."""

from .diff import diff_objects  # noqa: F401
from .logging import KeyValueLoggerAdapter, configure_runtime_logging  # noqa: F401

__all__ = [
    "KeyValueLoggerAdapter",
    "configure_runtime_logging",
    "diff_objects",
]
