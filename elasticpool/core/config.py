"""Configuration helpers for ElasticPool.

This module loads optional YAML configuration files to customize controller
behaviour such as requeue intervals and the finalizer name.  Configuration
precedence:

1. Environment variable ``ELASTICPOOL_CONFIG`` pointing to a YAML file.
2. ``elasticpool.yaml`` in the current working directory.
3. Built-in defaults bundled with the package (``config/default.yaml``).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import yaml

__all__ = [
    "ControllerConfig",
    "get_controller_config",
    "load_controller_config",
    "reset_controller_config",
]


_ENV_VAR = "ELASTICPOOL_CONFIG"
_CWD_FILE = "elasticpool.yaml"

DEFAULT_FINALIZER = "awsmachinepool.infrastructure.cluster.x-k8s.io"


@dataclass
class ControllerConfig:
    name: str = "elasticpool-controller"
    finalizer: str = DEFAULT_FINALIZER
    tag_unmanaged_network_resources: bool = True
    watch_filter_value: str = ""
    reconcile_timeout_seconds: float = 0.0
    requeue_after_create_seconds: float = 15.0
    requeue_steady_state_seconds: float = 180.0
    log_level: int = logging.INFO


_controller_config: Optional[ControllerConfig] = None


def _resolve_config_path() -> Optional[Path]:
    env_path = os.environ.get(_ENV_VAR)
    if env_path:
        candidate = Path(env_path).expanduser()
        if candidate.is_file():
            return candidate

    cwd_file = Path.cwd() / _CWD_FILE
    if cwd_file.is_file():
        return cwd_file
    return None


def _load_yaml_dict(path: Optional[Path] = None) -> Dict[str, object]:
    path = path or _resolve_config_path()
    if path is not None:
        with path.open("r", encoding="utf-8") as fh:
            return yaml.safe_load(fh) or {}

    # Fallback to bundled default configuration
    from importlib import resources

    with resources.open_text("elasticpool.config", "default.yaml", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _section(data: Dict[str, object], name: str) -> Dict[str, object]:
    node = data.get(name, {})
    if node is None:
        return {}
    if not isinstance(node, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return node


def _non_negative(value: object, key: str) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{key}' must be a number, got {value!r}") from exc
    if number < 0:
        raise ValueError(f"'{key}' must be non-negative, got {number}")
    return number


def _coerce_log_level(value: object) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level {value!r}")
    return level


def _build_controller_config(data: Dict[str, object]) -> ControllerConfig:
    controller = _section(data, "controller")
    requeue = _section(data, "requeue")
    logging_node = _section(data, "logging")
    defaults = ControllerConfig()

    name = str(controller.get("name", defaults.name)).strip() or defaults.name
    finalizer = str(controller.get("finalizer", defaults.finalizer)).strip()
    if not finalizer:
        raise ValueError("'controller.finalizer' must not be empty")

    return ControllerConfig(
        name=name,
        finalizer=finalizer,
        tag_unmanaged_network_resources=bool(
            controller.get("tag_unmanaged_network_resources", defaults.tag_unmanaged_network_resources)
        ),
        watch_filter_value=str(controller.get("watch_filter_value") or ""),
        reconcile_timeout_seconds=_non_negative(
            controller.get("reconcile_timeout_seconds", defaults.reconcile_timeout_seconds),
            "controller.reconcile_timeout_seconds",
        ),
        requeue_after_create_seconds=_non_negative(
            requeue.get("after_create_seconds", defaults.requeue_after_create_seconds),
            "requeue.after_create_seconds",
        ),
        requeue_steady_state_seconds=_non_negative(
            requeue.get("steady_state_seconds", defaults.requeue_steady_state_seconds),
            "requeue.steady_state_seconds",
        ),
        log_level=_coerce_log_level(logging_node.get("level", "INFO")),
    )


def load_controller_config(path: Optional[Path] = None) -> ControllerConfig:
    """Parse a configuration file without touching the cached global."""
    return _build_controller_config(_load_yaml_dict(path))


def get_controller_config() -> ControllerConfig:
    global _controller_config
    if _controller_config is None:
        _controller_config = load_controller_config()
    return _controller_config


def reset_controller_config() -> None:
    global _controller_config
    _controller_config = None
