"""
SageRun - cleanmgr orchestration, volume metrics, and the CSV action log.
"""

from __future__ import annotations

import csv
import os
import subprocess
import time
from datetime import datetime
from typing import List, Optional

import psutil

from sagerun.config import (
    CLEANMGR_PROCESS,
    CLEANMGR_PROFILE,
    AppConfig,
    CleanupProfile,
    cleanmgr_path,
    system_drive,
    validate_config,
)
from sagerun.errors import CleanupTimeoutError, LaunchError
from sagerun.models import CleanupResult, FlagChange, RunState, VolumeInfo
from sagerun.registry import WinRegistry
from sagerun.stateflags import ConfirmCallback, set_state_flags

LOG_FIELDS = ["timestamp", "action", "category", "value_name", "value", "status", "detail"]


def get_volume_info(drive: Optional[str] = None) -> VolumeInfo:
    """Size and free space of the system volume (or `drive`)."""
    device_id = drive or system_drive()
    usage = psutil.disk_usage(device_id + os.sep)
    return VolumeInfo(device_id=device_id, total_size=usage.total, free_space=usage.free)


def is_process_running(process_name: str) -> bool:
    """True if any running process has the given image name (case-insensitive)."""
    target = process_name.lower()
    for proc in psutil.process_iter(["name"]):
        try:
            name = proc.info.get("name") or ""
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        if name.lower() == target:
            return True
    return False


def sagerun_command(marker_id: int) -> List[str]:
    return [cleanmgr_path(), f"/SAGERUN:{marker_id}"]


class CleanupRun:
    """
    One orchestrated run: write the profile, start cleanmgr, wait for it
    to exit, and measure the free space it reclaimed.

    `state` moves NOT_STARTED -> PROFILE_WRITTEN -> PROCESS_LAUNCHED ->
    POLLING -> COMPLETED. A dry run stays at NOT_STARTED.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        profile: CleanupProfile = CLEANMGR_PROFILE,
        registry: Optional[WinRegistry] = None,
    ):
        self.config = config or AppConfig()
        self.profile = profile
        self.registry = registry
        self.state = RunState.NOT_STARTED
        self.changes: List[FlagChange] = []
        self.process: Optional[subprocess.Popen] = None

    def describe(self) -> str:
        command = " ".join(sagerun_command(self.profile.marker_id))
        selected = ", ".join(sorted(self.profile.tokens))
        return (f"Set StateFlags{self.profile.marker_id:04d} to enable only "
                f"{selected}, then run: {command}")

    def execute(
        self,
        force: bool = False,
        dry_run: bool = False,
        confirm: ConfirmCallback = None,
    ) -> CleanupResult:
        validate_config(self.config)
        start = time.perf_counter()
        before = get_volume_info()

        if dry_run:
            self.changes = set_state_flags(
                self.profile.marker_id, self.profile.tokens,
                dry_run=True, registry=self.registry,
            )
            return CleanupResult(
                before=before,
                after_free_space=before.free_space,
                dry_run=True,
                description=self.describe(),
                duration_s=time.perf_counter() - start,
            )

        self.changes = set_state_flags(
            self.profile.marker_id, self.profile.tokens,
            force=force, confirm=confirm, registry=self.registry,
        )
        self.state = RunState.PROFILE_WRITTEN

        self._launch()
        self.state = RunState.PROCESS_LAUNCHED

        self.state = RunState.POLLING
        self._wait_for_exit()
        self.process.poll()

        after = get_volume_info(before.device_id)
        self.state = RunState.COMPLETED
        return CleanupResult(
            before=before,
            after_free_space=after.free_space,
            description=self.describe(),
            duration_s=time.perf_counter() - start,
        )

    def _launch(self) -> None:
        command = sagerun_command(self.profile.marker_id)
        startupinfo = None
        if hasattr(subprocess, "STARTUPINFO"):
            startupinfo = subprocess.STARTUPINFO()
            startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW
            startupinfo.wShowWindow = 1  # SW_SHOWNORMAL
        try:
            self.process = subprocess.Popen(command, startupinfo=startupinfo)
        except OSError as exc:
            raise LaunchError(f"Could not start {command[0]}: {exc}") from exc

    def _wait_for_exit(self) -> None:
        """Poll until cleanmgr is gone. Without a timeout this may block forever."""
        timeout = self.config.timeout_s
        deadline = time.monotonic() + timeout if timeout is not None else None
        while is_process_running(CLEANMGR_PROCESS):
            if deadline is not None and time.monotonic() >= deadline:
                raise CleanupTimeoutError(
                    f"{CLEANMGR_PROCESS} still running after {timeout:g}s"
                )
            time.sleep(self.config.poll_interval_s)


def run_cleanup(
    force: bool = False,
    *,
    dry_run: bool = False,
    confirm: ConfirmCallback = None,
    config: Optional[AppConfig] = None,
    registry: Optional[WinRegistry] = None,
) -> CleanupResult:
    """Run cleanmgr with the upgrade-leftovers profile and report space reclaimed."""
    return CleanupRun(config=config, registry=registry).execute(
        force=force, dry_run=dry_run, confirm=confirm,
    )


# ── Action log ───────────────────────────────────────────────────────────────

def change_rows(action: str, changes: List[FlagChange], status: str = "written") -> List[dict]:
    now = datetime.now().isoformat()
    return [{
        "timestamp": now,
        "action": action,
        "category": c.category,
        "value_name": c.value_name,
        "value": c.value,
        "status": status,
        "detail": c.state.value,
    } for c in changes]


def result_row(result: CleanupResult) -> dict:
    return {
        "timestamp": datetime.now().isoformat(),
        "action": "cleanmgr",
        "category": "",
        "value_name": "",
        "value": result.reclaimed,
        "status": "completed",
        "detail": f"{result.before.device_id} reclaimed {result.reclaimed_gb} GB",
    }


def write_log(log_dir: str, rows: List[dict]) -> str:
    """Write the action log as CSV. Returns the path, or '' if nothing was written."""
    if not rows:
        return ""

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = os.path.join(log_dir, f"sagerun_log_{timestamp}.csv")
    try:
        with open(log_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=LOG_FIELDS)
            writer.writeheader()
            writer.writerows(rows)
    except (OSError, PermissionError):
        return ""
    return log_path
