"""Shared fixtures: an in-memory stand-in for the HKLM VolumeCaches key."""

import pytest

from sagerun.config import VOLUME_CACHES_PATH
from sagerun.errors import AccessError, NotFoundError

REG_DWORD = 4
REG_SZ = 1

DEFAULT_CATEGORIES = [
    "Active Setup Temp Folders",
    "Content Indexer Cleaner",
    "Delivery Optimization Files",
    "Device Driver Packages",
    "GameNewsFiles",
    "GameStatisticsFiles",
    "GameUpdateFiles",
    "Previous Installations",
    "Recycle Bin",
    "Temporary Files",
    "Temporary Setup Files",
    "Temporary Sync Files",
    "Update Cleanup",
]


class FakeRegistry:
    """Implements the WinRegistry interface over plain dicts."""

    def __init__(self, categories=None):
        self.keys = {name: {} for name in (categories or DEFAULT_CATEGORIES)}
        self.present = True
        self.root_denied = False
        self.read_denied = set()
        self.write_denied = set()
        self.writes = []

    def _category(self, key_path):
        prefix = VOLUME_CACHES_PATH + "\\"
        if not key_path.startswith(prefix):
            raise NotFoundError(f"Registry key not found: HKLM\\{key_path}")
        name = key_path[len(prefix):]
        if name not in self.keys:
            raise NotFoundError(f"Registry key not found: HKLM\\{key_path}")
        return name

    def subkeys(self, key_path):
        if key_path != VOLUME_CACHES_PATH or not self.present:
            raise NotFoundError(f"Registry key not found: HKLM\\{key_path}")
        if self.root_denied:
            raise AccessError(f"Access denied reading HKLM\\{key_path}")
        return list(self.keys)

    def values(self, key_path):
        name = self._category(key_path)
        if name in self.read_denied:
            raise AccessError(f"Access denied reading HKLM\\{key_path}")
        return [(value_name, data, kind) for value_name, (data, kind) in self.keys[name].items()]

    def set_dword(self, key_path, value_name, value):
        name = self._category(key_path)
        if name in self.write_denied:
            raise AccessError(f"Access denied writing HKLM\\{key_path}")
        self.keys[name][value_name] = (value, REG_DWORD)
        self.writes.append((name, value_name, value))

    def put(self, category, value_name, data, kind=REG_DWORD):
        self.keys[category][value_name] = (data, kind)


@pytest.fixture
def registry():
    return FakeRegistry()
