"""
SageRun - Error taxonomy.

Each error also derives from the closest built-in exception so callers
can catch either form.
"""

from __future__ import annotations

from typing import List, Optional


class SageRunError(Exception):
    """Base class for all SageRun errors."""


class AccessError(SageRunError, PermissionError):
    """Permission denied while reading or writing the registry."""

    def __init__(self, message: str, applied: Optional[List] = None):
        super().__init__(message)
        # Writes that succeeded before the rejected one (fail-fast writer)
        self.applied = list(applied or [])


class NotFoundError(SageRunError, FileNotFoundError):
    """An expected registry key is missing (e.g. unsupported Windows version)."""


class LaunchError(SageRunError):
    """The external cleanup utility could not be started."""


class CleanupTimeoutError(SageRunError, TimeoutError):
    """The cleanup utility was still running when the poll timeout expired."""


class InvalidInputError(SageRunError, ValueError):
    """Bad marker id or unknown category token."""


class OperationCancelled(SageRunError):
    """The user declined the confirmation prompt."""
