"""Read a platform-stable machine identifier.

Sources, by platform:
- Linux: /etc/machine-id, then /var/lib/dbus/machine-id
- macOS: IOPlatformUUID reported by ``ioreg``
- Windows: HKLM\\SOFTWARE\\Microsoft\\Cryptography\\MachineGuid
- FreeBSD/OpenBSD/NetBSD: /etc/hostid, then ``sysctl kern.hostuuid``

Reinstalling the OS usually produces a new identifier, which orphans anything
encrypted with a key derived from the old one.
"""
from __future__ import annotations

import re
import subprocess
import sys
from pathlib import Path

from shadowkeep.core.exceptions import KeyAccessError


LINUX_ID_PATHS = (Path("/etc/machine-id"), Path("/var/lib/dbus/machine-id"))
BSD_ID_PATHS = (Path("/etc/hostid"),)

_IOREG_UUID = re.compile(r'"IOPlatformUUID"\s*=\s*"([^"]+)"')


def _read_first(paths) -> str | None:
    for path in paths:
        try:
            value = path.read_text(encoding="utf-8").strip()
        except OSError:
            continue
        if value:
            return value
    return None


def _run(cmd: list[str]) -> str:
    try:
        out = subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=10)
    except (OSError, subprocess.SubprocessError) as e:
        raise KeyAccessError(f"Failed to run {cmd[0]}: {e}") from e
    return out.stdout


def _linux_id() -> str | None:
    return _read_first(LINUX_ID_PATHS)


def _macos_id() -> str | None:
    out = _run(["ioreg", "-rd1", "-c", "IOPlatformExpertDevice"])
    match = _IOREG_UUID.search(out)
    return match.group(1) if match else None


def _windows_id() -> str | None:
    import winreg

    try:
        with winreg.OpenKey(
            winreg.HKEY_LOCAL_MACHINE,
            r"SOFTWARE\Microsoft\Cryptography",
            0,
            winreg.KEY_READ | winreg.KEY_WOW64_64KEY,
        ) as key:
            value, _ = winreg.QueryValueEx(key, "MachineGuid")
    except OSError as e:
        raise KeyAccessError(f"Failed to read MachineGuid: {e}") from e
    return str(value).strip() or None


def _bsd_id() -> str | None:
    value = _read_first(BSD_ID_PATHS)
    if value:
        return value
    return _run(["sysctl", "-n", "kern.hostuuid"]).strip() or None


def read_machine_id(platform: str | None = None) -> str:
    """Return the machine identifier for ``platform`` (defaults to sys.platform).

    Raises KeyAccessError when no identifier can be found.
    """
    platform = platform or sys.platform
    if platform.startswith("linux"):
        value = _linux_id()
    elif platform == "darwin":
        value = _macos_id()
    elif platform in ("win32", "cygwin"):
        value = _windows_id()
    elif "bsd" in platform:
        value = _bsd_id()
    else:
        raise KeyAccessError(f"No machine identifier source for platform {platform!r}")

    if not value:
        raise KeyAccessError(f"Failed to get machine ID on {platform}")
    return value
