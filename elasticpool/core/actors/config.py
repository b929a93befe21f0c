"""
Shared configuration dataclasses for reconciler actors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from elasticpool.core.config import ControllerConfig


@dataclass
class ActorConfig:
    """
    Configuration for an actor hosting a NodePool reconciler.

    ``controller`` overrides the YAML-derived controller configuration when
    set; otherwise the actor loads it in its own process.
    """

    name: str
    controller: Optional[ControllerConfig] = None
