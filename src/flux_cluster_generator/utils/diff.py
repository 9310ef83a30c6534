"""Drift detection between stored and desired ResourceSetInputProviders."""

from __future__ import annotations

from typing import Any, Mapping


def labels_equal(current: Mapping[str, str] | None, desired: Mapping[str, str] | None) -> bool:
    """Same keys and values, order independent; a missing label map equals an empty one."""
    return dict(current or {}) == dict(desired or {})


def specs_equal(current: Any, desired: Any) -> bool:
    """Recursive structural equality over mappings, lists and scalars.

    Scalars compare by type and value, so ``1`` and ``"1"`` are different and
    a value rewritten with another type counts as drift. ``bool`` is kept apart
    from ``int`` for the same reason.
    """
    if isinstance(current, Mapping) and isinstance(desired, Mapping):
        if current.keys() != desired.keys():
            return False
        return all(specs_equal(current[key], desired[key]) for key in current)
    if isinstance(current, Mapping) or isinstance(desired, Mapping):
        return False
    if isinstance(current, list) and isinstance(desired, list):
        return len(current) == len(desired) and all(
            specs_equal(a, b) for a, b in zip(current, desired)
        )
    if isinstance(current, list) or isinstance(desired, list):
        return False
    if isinstance(current, bool) != isinstance(desired, bool):
        return False
    if isinstance(current, (int, float)) and isinstance(desired, (int, float)):
        return current == desired
    return type(current) is type(desired) and current == desired
