"""
SageRun - Fixed cleanup policy and persistent settings.

Provides:
  - The VolumeCaches registry location and StateFlags naming
  - The deny-list of categories never touched by automation
  - The cleanmgr profile used by the orchestrated run
  - Persistent config loading/saving from JSON
"""

from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass
from typing import FrozenSet, Optional

from sagerun.errors import InvalidInputError

CONFIG_DIR = os.path.join(os.environ.get("APPDATA", "."), "SageRun")
CONFIG_FILE = os.path.join(CONFIG_DIR, "config.json")


# ── Registry layout ──────────────────────────────────────────────────────────

VOLUME_CACHES_PATH = r"SOFTWARE\Microsoft\Windows\CurrentVersion\Explorer\VolumeCaches"
STATE_FLAGS_PREFIX = "StateFlags"
MARKER_MIN = 0
MARKER_MAX = 9999

FLAG_ENABLED = 2
FLAG_DISABLED = 0


# ── Deny-list ────────────────────────────────────────────────────────────────

# Exact sub-key names (compared case-sensitively). Not configurable.
DENY_LIST: FrozenSet[str] = frozenset({
    "Content Indexer Cleaner",
    "Delivery Optimization Files",
    "Device Driver Packages",
    "GameNewsFiles",
    "GameStatisticsFiles",
    "GameUpdateFiles",
    "Temporary Sync Files",
})


# ── Cleanup profile ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CleanupProfile:
    """A StateFlags marker plus the category tokens it enables."""
    name: str
    description: str
    marker_id: int
    tokens: FrozenSet[str]


CLEANMGR_PROFILE = CleanupProfile(
    name="upgrade-leftovers",
    description="Temporary setup files and previous Windows installations",
    marker_id=1337,
    tokens=frozenset({"TemporarySetupFiles", "PreviousInstallations"}),
)

CLEANMGR_PROCESS = "cleanmgr.exe"


def cleanmgr_path() -> str:
    """Full path of cleanmgr.exe under the system root."""
    system_root = os.environ.get("SYSTEMROOT", r"C:\Windows")
    return system_root + r"\system32\cleanmgr.exe"


def system_drive() -> str:
    return os.environ.get("SYSTEMDRIVE", "C:")


# ── General Config ───────────────────────────────────────────────────────────

@dataclass
class AppConfig:
    """Application-wide configuration."""
    poll_interval_s: float = 0.5        # Delay between cleanmgr liveness checks
    timeout_s: Optional[float] = None   # None = wait for cleanmgr indefinitely
    log_dir: str = "."
    dry_run: bool = False


def validate_config(config: AppConfig) -> None:
    """
    Reject settings the poll loop cannot use.

    Raises:
        InvalidInputError: negative or non-finite poll interval or timeout,
            or a log directory that is not a string.
    """
    interval = config.poll_interval_s
    if isinstance(interval, bool) or not isinstance(interval, (int, float)) \
            or not math.isfinite(interval) or interval < 0:
        raise InvalidInputError(
            f"Poll interval must be a finite number of seconds >= 0, got {interval!r}"
        )
    timeout = config.timeout_s
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) \
                or not math.isfinite(timeout) or timeout < 0:
            raise InvalidInputError(
                f"Timeout must be a finite number of seconds >= 0, got {timeout!r}"
            )
    if not isinstance(config.log_dir, str):
        raise InvalidInputError(f"Log directory must be a path, got {config.log_dir!r}")


def load_config() -> AppConfig:
    """Load app config from disk, or return defaults if it is missing or invalid."""
    config = AppConfig()
    try:
        if os.path.isfile(CONFIG_FILE):
            with open(CONFIG_FILE, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                return AppConfig()
            config.poll_interval_s = float(data.get("poll_interval_s", 0.5))
            timeout = data.get("timeout_s")
            config.timeout_s = float(timeout) if timeout is not None else None
            config.log_dir = data.get("log_dir", ".")
            config.dry_run = bool(data.get("dry_run", False))
            validate_config(config)
    except (json.JSONDecodeError, OSError, PermissionError, TypeError, ValueError):
        return AppConfig()
    return config


def save_config(config: AppConfig) -> bool:
    """Save app config to disk. Returns False if the file could not be written."""
    validate_config(config)
    try:
        os.makedirs(CONFIG_DIR, exist_ok=True)
        data = {
            "poll_interval_s": config.poll_interval_s,
            "timeout_s": config.timeout_s,
            "log_dir": config.log_dir,
            "dry_run": config.dry_run,
        }
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
    except (OSError, PermissionError):
        return False
    return True
