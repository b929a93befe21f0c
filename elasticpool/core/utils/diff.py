"""Structural comparison of (nested) dataclasses."""

from __future__ import annotations

import dataclasses
from typing import Any, List


def diff_objects(want: Any, got: Any, path: str = "") -> List[str]:
    """
    Return one human readable line per leaf that differs between two values.

    Dataclasses and mappings are walked field by field, lists element by
    element; everything else is compared with ``==``. An empty list means the
    two values are structurally equal.
    """
    label = path or "<root>"
    if dataclasses.is_dataclass(want) and dataclasses.is_dataclass(got) and type(want) is type(got):
        lines: List[str] = []
        for item in dataclasses.fields(want):
            child = f"{path}.{item.name}" if path else item.name
            lines.extend(diff_objects(getattr(want, item.name), getattr(got, item.name), child))
        return lines

    if isinstance(want, dict) and isinstance(got, dict):
        lines = []
        for key in sorted(set(want) | set(got), key=str):
            child = f"{path}[{key!r}]"
            if key not in got:
                lines.append(f"{child}: {want[key]!r} != <missing>")
            elif key not in want:
                lines.append(f"{child}: <missing> != {got[key]!r}")
            else:
                lines.extend(diff_objects(want[key], got[key], child))
        return lines

    if isinstance(want, (list, tuple)) and isinstance(got, (list, tuple)):
        if len(want) != len(got):
            return [f"{label}: {want!r} != {got!r}"]
        lines = []
        for index, (left, right) in enumerate(zip(want, got)):
            lines.extend(diff_objects(left, right, f"{path}[{index}]"))
        return lines

    if want != got:
        return [f"{label}: {want!r} != {got!r}"]
    return []
