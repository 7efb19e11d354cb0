"""
SageRun - VolumeCaches categories and their StateFlags markers.

Each sub-key of HKLM\\...\\Explorer\\VolumeCaches is a cleanup category
known to cleanmgr. A value named StateFlags#### under a category tells
`cleanmgr /SAGERUN:####` whether that category is part of profile ####
(2 = enabled, 0 = disabled).
"""

from __future__ import annotations

import re
from typing import Callable, Dict, Iterable, List, Optional

from sagerun.config import (
    DENY_LIST,
    FLAG_DISABLED,
    FLAG_ENABLED,
    MARKER_MAX,
    MARKER_MIN,
    STATE_FLAGS_PREFIX,
    VOLUME_CACHES_PATH,
)
from sagerun.errors import AccessError, InvalidInputError, NotFoundError, OperationCancelled
from sagerun.models import ActivationRecord, ActivationState, Category, FlagChange, normalize_token
from sagerun.registry import WinRegistry

_STATE_FLAGS_RE = re.compile(r"StateFlags([0-9]{4})", re.IGNORECASE | re.ASCII)

ConfirmCallback = Optional[Callable[[List[FlagChange]], bool]]


def marker_value_name(marker_id: int) -> str:
    """Return the value name for a marker, e.g. 7 -> 'StateFlags0007'."""
    validate_marker_id(marker_id)
    return f"{STATE_FLAGS_PREFIX}{marker_id:04d}"


def validate_marker_id(marker_id) -> None:
    if isinstance(marker_id, bool) or not isinstance(marker_id, int):
        raise InvalidInputError(f"Marker id must be an integer, got {marker_id!r}")
    if not MARKER_MIN <= marker_id <= MARKER_MAX:
        raise InvalidInputError(
            f"Marker id must be between {MARKER_MIN} and {MARKER_MAX}, got {marker_id}"
        )


def _category_path(name: str) -> str:
    return f"{VOLUME_CACHES_PATH}\\{name}"


# ── Enumerator ───────────────────────────────────────────────────────────────

def list_categories(registry: Optional[WinRegistry] = None) -> List[Category]:
    """
    List every cleanup category registered under VolumeCaches.

    Raises:
        AccessError: the VolumeCaches key cannot be read.
        NotFoundError: the VolumeCaches key does not exist.
    """
    registry = registry or WinRegistry()
    return [Category(name) for name in registry.subkeys(VOLUME_CACHES_PATH)]


def available_categories(registry: Optional[WinRegistry] = None) -> List[Category]:
    """Categories that may be automated (everything except the deny-list)."""
    return [c for c in list_categories(registry) if c.name not in DENY_LIST]


# ── Reader ───────────────────────────────────────────────────────────────────

def read_state_flags(registry: Optional[WinRegistry] = None) -> List[ActivationRecord]:
    """
    Read every StateFlags#### value of every category.

    Returns one ActivationRecord per marker id, in order of first
    observation. A category only appears in a record if it defines that
    marker. Categories that cannot be read are skipped.
    """
    registry = registry or WinRegistry()
    records: Dict[int, ActivationRecord] = {}

    for category in list_categories(registry):
        try:
            values = registry.values(_category_path(category.name))
        except (AccessError, NotFoundError):
            continue

        for value_name, data, _value_type in values:
            match = _STATE_FLAGS_RE.fullmatch(value_name or "")
            if not match:
                continue
            marker_id = int(match.group(1))
            record = records.setdefault(marker_id, ActivationRecord(marker_id=marker_id))
            record.states[category.name] = ActivationState.from_raw(data)

    return list(records.values())


def read_marker(marker_id: int, registry: Optional[WinRegistry] = None) -> ActivationRecord:
    """Return the record of a single marker (empty if no category defines it)."""
    validate_marker_id(marker_id)
    for record in read_state_flags(registry):
        if record.marker_id == marker_id:
            return record
    return ActivationRecord(marker_id=marker_id)


# ── Writer ───────────────────────────────────────────────────────────────────

def plan_state_flags(
    marker_id: int,
    selected: Iterable[str],
    registry: Optional[WinRegistry] = None,
) -> List[FlagChange]:
    """
    Compute the writes needed to make `selected` the exact set of enabled
    categories for a marker. Nothing is written.

    Raises:
        InvalidInputError: bad marker id, or a token that does not name an
            available category.
    """
    value_name = marker_value_name(marker_id)
    wanted = {normalize_token(token) for token in selected}

    categories = available_categories(registry)
    known = {c.token for c in categories}
    unknown = sorted(wanted - known)
    if unknown:
        raise InvalidInputError(
            f"Unknown or excluded categories: {', '.join(unknown)}. "
            f"Available: {', '.join(sorted(known))}"
        )

    return [
        FlagChange(
            category=c.name,
            value_name=value_name,
            value=FLAG_ENABLED if c.token in wanted else FLAG_DISABLED,
        )
        for c in categories
    ]


def set_state_flags(
    marker_id: int,
    selected: Iterable[str],
    *,
    dry_run: bool = False,
    force: bool = False,
    confirm: ConfirmCallback = None,
    registry: Optional[WinRegistry] = None,
) -> List[FlagChange]:
    """
    Enable the selected categories for a marker and disable all others.

    Args:
        marker_id: Profile number, 0..9999.
        selected: Category tokens (names with whitespace removed).
        dry_run: Only return the planned writes.
        force: Skip the confirmation callback.
        confirm: Called with the plan before writing; a falsy answer cancels.
        registry: Registry facade (defaults to the real registry).

    Returns:
        The list of planned (dry run) or applied changes.

    Raises:
        InvalidInputError: before any write, on bad input.
        OperationCancelled: the user declined.
        AccessError: a write was rejected. Remaining writes are skipped and
            the changes already applied are attached as `applied`.
    """
    registry = registry or WinRegistry()
    plan = plan_state_flags(marker_id, selected, registry)

    if dry_run:
        return plan

    if not force and confirm is not None and not confirm(plan):
        raise OperationCancelled("StateFlags update cancelled by user")

    applied: List[FlagChange] = []
    for change in plan:
        try:
            registry.set_dword(_category_path(change.category), change.value_name, change.value)
        except AccessError as exc:
            raise AccessError(str(exc), applied=applied) from exc
        applied.append(change)

    return applied
