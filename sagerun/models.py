"""
SageRun - Data models for cleanup categories, StateFlags markers and runs.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Dict, Optional

GIGABYTE = 1024 ** 3


class ActivationState(enum.Enum):
    """Value of one StateFlags marker under one category."""
    ENABLED = "enabled"
    DISABLED = "disabled"
    UNSET = "unset"         # Any raw value other than 0 or 2

    @classmethod
    def from_raw(cls, raw) -> "ActivationState":
        """Interpret a raw registry value. Only the integers 0 and 2 are meaningful."""
        if isinstance(raw, bool) or not isinstance(raw, int):
            return cls.UNSET
        if raw == 2:
            return cls.ENABLED
        if raw == 0:
            return cls.DISABLED
        return cls.UNSET

    @property
    def as_bool(self) -> Optional[bool]:
        if self is ActivationState.ENABLED:
            return True
        if self is ActivationState.DISABLED:
            return False
        return None


class RunState(enum.Enum):
    """Progress of one orchestrated cleanup run."""
    NOT_STARTED = "not_started"
    PROFILE_WRITTEN = "profile_written"
    PROCESS_LAUNCHED = "process_launched"
    POLLING = "polling"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Category:
    """A cleanup category, i.e. one sub-key of the VolumeCaches key."""
    name: str

    @property
    def token(self) -> str:
        """Selection token: the name with all whitespace removed."""
        return normalize_token(self.name)


@dataclass
class ActivationRecord:
    """Activation of one marker across every category that defines it."""
    marker_id: int
    states: Dict[str, ActivationState] = field(default_factory=dict)

    @property
    def value_name(self) -> str:
        return f"StateFlags{self.marker_id:04d}"

    @property
    def enabled(self) -> list:
        return [name for name, st in self.states.items() if st is ActivationState.ENABLED]

    def as_bools(self) -> Dict[str, Optional[bool]]:
        return {name: st.as_bool for name, st in self.states.items()}


@dataclass(frozen=True)
class FlagChange:
    """A single StateFlags write, planned or performed."""
    category: str
    value_name: str
    value: int              # 2 = enabled, 0 = disabled

    @property
    def state(self) -> ActivationState:
        return ActivationState.from_raw(self.value)


@dataclass(frozen=True)
class VolumeInfo:
    """Size metrics of the system volume."""
    device_id: str
    total_size: int
    free_space: int


@dataclass
class CleanupResult:
    """Outcome of one orchestrated cleanmgr run."""
    before: VolumeInfo
    after_free_space: int
    dry_run: bool = False
    description: str = ""
    duration_s: float = 0.0

    @property
    def reclaimed(self) -> int:
        """Bytes reclaimed. Negative when free space shrank during the run."""
        return self.after_free_space - self.before.free_space

    @property
    def reclaimed_gb(self) -> str:
        return f"{self.reclaimed / GIGABYTE:.2f}"

    @property
    def reclaimed_human(self) -> str:
        if self.reclaimed < 0:
            return "-" + _format_size(-self.reclaimed)
        return _format_size(self.reclaimed)


def normalize_token(name: str) -> str:
    """Strip every whitespace character from a category name."""
    return re.sub(r"\s+", "", name)


def _format_size(size_bytes: int) -> str:
    """Format bytes into a human-readable string."""
    if size_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(size_bytes)
    idx = 0
    while size >= 1024.0 and idx < len(units) - 1:
        size /= 1024.0
        idx += 1
    return f"{size:.1f} {units[idx]}"


def _format_duration(seconds: float) -> str:
    """Format seconds into a human-readable duration string."""
    if seconds < 0.001:
        return "<1ms"
    if seconds < 1.0:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60.0:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = seconds % 60
    if minutes < 60:
        return f"{minutes}m {secs:.0f}s"
    hours = minutes // 60
    mins = minutes % 60
    return f"{hours}h {mins}m {secs:.0f}s"
