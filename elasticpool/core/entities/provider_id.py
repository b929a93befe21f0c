"""
ProviderID helpers.

A ProviderID is the literal string ``aws:///<availability-zone>/<instance-id>``;
it correlates per-instance child resources with autoscaling group members.
"""

from __future__ import annotations

from typing import Tuple

from elasticpool.core.errors import MalformedInputError

PROVIDER_ID_PREFIX = "aws:///"


def format_provider_id(availability_zone: str, instance_id: str) -> str:
    return f"{PROVIDER_ID_PREFIX}{availability_zone}/{instance_id}"


def parse_provider_id(provider_id: str) -> Tuple[str, str]:
    """Return ``(availability_zone, instance_id)`` or raise :class:`MalformedInputError`."""
    if not provider_id.startswith(PROVIDER_ID_PREFIX):
        raise MalformedInputError(f"provider id {provider_id!r} must start with {PROVIDER_ID_PREFIX!r}")
    parts = provider_id[len(PROVIDER_ID_PREFIX):].split("/")
    if len(parts) != 2 or not all(parts):
        raise MalformedInputError(f"provider id {provider_id!r} must look like aws:///<zone>/<instance-id>")
    return parts[0], parts[1]
