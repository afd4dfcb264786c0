"""
System idle time: seconds since the last keyboard or mouse input.

Idle detection is advisory; a platform that cannot answer reports 0, which
reads as "user active".
"""
from __future__ import annotations

import ctypes
import logging
import re
import subprocess
import sys

logger = logging.getLogger(__name__)

QUERY_TIMEOUT = 2.0

if sys.platform == "win32":
    from ctypes import wintypes

    class _LastInputInfo(ctypes.Structure):
        _fields_ = [("cbSize", wintypes.UINT), ("dwTime", wintypes.DWORD)]

    _user32 = ctypes.WinDLL("user32", use_last_error=True)
    _kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)

    _user32.GetLastInputInfo.argtypes = [ctypes.POINTER(_LastInputInfo)]
    _user32.GetLastInputInfo.restype = wintypes.BOOL
    _kernel32.GetTickCount.argtypes = []
    _kernel32.GetTickCount.restype = wintypes.DWORD


def _windows_idle_seconds() -> int:
    info = _LastInputInfo()
    info.cbSize = ctypes.sizeof(info)
    if not _user32.GetLastInputInfo(ctypes.byref(info)):
        raise OSError(ctypes.get_last_error(), "GetLastInputInfo failed")
    # Both counters are 32-bit milliseconds and wrap after ~49.7 days
    elapsed_ms = (_kernel32.GetTickCount() - info.dwTime) & 0xFFFFFFFF
    return elapsed_ms // 1000


_HID_IDLE = re.compile(r'"HIDIdleTime"\s*=\s*(\d+)')


def _macos_idle_seconds() -> int:
    output = subprocess.run(
        ["ioreg", "-c", "IOHIDSystem", "-d", "4"],
        capture_output=True,
        text=True,
        timeout=QUERY_TIMEOUT,
        check=True,
    ).stdout
    match = _HID_IDLE.search(output)
    if match is None:
        raise ValueError("HIDIdleTime not reported by ioreg")
    return int(match.group(1)) // 1_000_000_000


def _linux_idle_seconds() -> int:
    output = subprocess.run(
        ["xprintidle"],
        capture_output=True,
        text=True,
        timeout=QUERY_TIMEOUT,
        check=True,
    ).stdout
    return int(output.strip()) // 1000


def get_idle_time() -> int:
    """Seconds the user has been idle, or 0 when it cannot be determined."""
    try:
        if sys.platform == "win32":
            seconds = _windows_idle_seconds()
        elif sys.platform == "darwin":
            seconds = _macos_idle_seconds()
        else:
            seconds = _linux_idle_seconds()
    except (OSError, ValueError, subprocess.SubprocessError) as exc:
        logger.debug("Idle time unavailable: %s", exc)
        return 0
    return max(0, int(seconds))
