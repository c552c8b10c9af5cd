"""Pure functions that layer workspace overrides over the global settings.

``merge_overrides`` produces an effective configuration, ``diff_overrides``
computes the minimal override set that reproduces an effective configuration
on top of a base, and ``normalize_overrides`` prunes stored overrides that
have become identical to the base.  Values are compared structurally via
their canonical JSON form, never by identity.
"""

from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Dict, List, Mapping, cast

from .types import (
    INHERITABLE_FIELDS,
    PROFILE_LOCAL_FIELDS,
    SCOPED_FIELDS,
    ScopedField,
    WorkspaceOverrides,
)
from .utils import _canonical

logger = logging.getLogger(__name__)


def values_equal(left: Any, right: Any) -> bool:
    """Return ``True`` when both values serialise to the same canonical form."""

    return _canonical(left) == _canonical(right)


def restrict_to_scoped(mapping: Mapping[str, Any]) -> WorkspaceOverrides:
    dropped = [key for key in mapping if key not in SCOPED_FIELDS]
    if dropped:
        logger.debug("Ignoring non-scoped override keys: %s", ", ".join(sorted(dropped)))
    scoped = {key: deepcopy(value) for key, value in mapping.items() if key in SCOPED_FIELDS}
    return cast(WorkspaceOverrides, scoped)


def merge_overrides(
    base: Mapping[str, Any], overrides: Mapping[str, Any]
) -> Dict[str, Any]:
    """Return ``base`` with every scoped field present in ``overrides`` replaced.

    Fields missing from ``overrides`` pass through from ``base``.  The result
    shares no mutable structure with either argument.
    """

    merged = deepcopy(dict(base))
    for field in ScopedField:
        key = field.value
        if key in overrides:
            merged[key] = deepcopy(overrides[key])
    return merged


def diff_overrides(
    effective: Mapping[str, Any], base: Mapping[str, Any]
) -> WorkspaceOverrides:
    """Compute the override set that reproduces ``effective`` over ``base``.

    Inheritable fields are kept only when they differ from ``base``.
    Profile-local fields are always kept when defined, since the base never
    carries them.
    """

    overrides: Dict[str, Any] = {}
    for field in ScopedField:
        key = field.value
        value = effective.get(key)
        if value is None:
            continue
        if key in PROFILE_LOCAL_FIELDS:
            overrides[key] = deepcopy(value)
            continue
        if not values_equal(value, base.get(key)):
            overrides[key] = deepcopy(value)
    return cast(WorkspaceOverrides, overrides)


def normalize_overrides(
    overrides: WorkspaceOverrides, base: Mapping[str, Any]
) -> List[str]:
    """Drop, in place, inheritable overrides equal to ``base``.

    Returns the names of the removed fields.
    """

    entries = cast(Dict[str, Any], overrides)
    removed: List[str] = []
    for key in sorted(INHERITABLE_FIELDS):
        if key in entries and values_equal(entries[key], base.get(key)):
            del entries[key]
            removed.append(key)
    return removed


def split_profile_local(overrides: Mapping[str, Any]) -> WorkspaceOverrides:
    """Return a copy of the profile-local entries of ``overrides``."""

    local = {
        key: deepcopy(value)
        for key, value in overrides.items()
        if key in PROFILE_LOCAL_FIELDS
    }
    return cast(WorkspaceOverrides, local)


__all__ = [
    "values_equal",
    "restrict_to_scoped",
    "merge_overrides",
    "diff_overrides",
    "normalize_overrides",
    "split_profile_local",
]
