"""
SageRun - Thin winreg facade for the HKEY_LOCAL_MACHINE hive.

Only the three calls the StateFlags code needs are exposed: list sub-keys,
list values, write a DWORD. OS errors are translated into AccessError /
NotFoundError. winreg is imported lazily so the package can be imported
(and tested) on non-Windows hosts.
"""

from __future__ import annotations

import contextlib
from typing import Iterator, List, Tuple

from sagerun.errors import AccessError, NotFoundError


@contextlib.contextmanager
def _translate_errors(key_path: str, action: str) -> Iterator[None]:
    try:
        yield
    except PermissionError as exc:
        raise AccessError(f"Access denied {action} HKLM\\{key_path}: {exc}") from exc
    except FileNotFoundError as exc:
        raise NotFoundError(f"Registry key not found: HKLM\\{key_path}") from exc


class WinRegistry:
    """Read/write access to keys below HKLM, 64-bit view."""

    def subkeys(self, key_path: str) -> List[str]:
        """Return the names of all direct sub-keys of `key_path`."""
        import winreg

        names: List[str] = []
        with _translate_errors(key_path, "reading"):
            with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, key_path,
                                0, winreg.KEY_READ | winreg.KEY_WOW64_64KEY) as key:
                subkey_count = winreg.QueryInfoKey(key)[0]
                for i in range(subkey_count):
                    names.append(winreg.EnumKey(key, i))
        return names

    def values(self, key_path: str) -> List[Tuple[str, object, int]]:
        """Return (name, data, type) for every value of `key_path`."""
        import winreg

        values: List[Tuple[str, object, int]] = []
        with _translate_errors(key_path, "reading"):
            with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, key_path,
                                0, winreg.KEY_READ | winreg.KEY_WOW64_64KEY) as key:
                num_values = winreg.QueryInfoKey(key)[1]
                for i in range(num_values):
                    values.append(winreg.EnumValue(key, i))
        return values

    def set_dword(self, key_path: str, value_name: str, value: int) -> None:
        """Create or overwrite a REG_DWORD value."""
        import winreg

        with _translate_errors(key_path, "writing"):
            with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, key_path,
                                0, winreg.KEY_SET_VALUE | winreg.KEY_WOW64_64KEY) as key:
                winreg.SetValueEx(key, value_name, 0, winreg.REG_DWORD, value)
