"""
Shared pytest fixtures.
"""

from __future__ import annotations

import logging

import pytest
import ray

from elasticpool.core.config import ControllerConfig, reset_controller_config

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s", force=True)
logging.getLogger("elasticpool").setLevel(logging.DEBUG)


@pytest.fixture(autouse=True)
def clear_config(monkeypatch):
    monkeypatch.delenv("ELASTICPOOL_CONFIG", raising=False)
    reset_controller_config()
    yield
    reset_controller_config()


@pytest.fixture
def controller_config() -> ControllerConfig:
    return ControllerConfig(finalizer="awsmachinepool.infrastructure.cluster.x-k8s.io")


@pytest.fixture
def ray_runtime():
    """Spin up a local Ray runtime for tests and mirror worker logs to the driver."""
    try:
        ray.init(
            ignore_reinit_error=True,
            local_mode=True,
            logging_level=logging.INFO,
        )
    except PermissionError as exc:
        pytest.skip(f"Ray init requires system permissions not available in this environment: {exc}")
    except Exception as exc:  # pragma: no cover - restricted sandboxes
        if "Operation not permitted" in str(exc):
            pytest.skip(f"Ray init skipped due to restricted environment: {exc}")
        raise
    try:
        yield
    finally:
        ray.shutdown()
