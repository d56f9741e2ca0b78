"""Low-level libproc interface for macOS executable path lookup.

Uses ctypes to call libproc.dylib directly, no subprocess overhead.

This module provides:
- proc_pidpath: Full executable path for a pid

The library is loaded on first use so the module imports on any platform.
All functions handle process disappearance (and a missing libproc) by
returning None.
"""

import ctypes
import sys
from ctypes import c_int, c_uint32
from functools import cache

# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────

LIBPROC_PATH = "/usr/lib/libproc.dylib"

# Buffer sizes
PROC_PIDPATHINFO_MAXSIZE = 4096


# ─────────────────────────────────────────────────────────────────────────────
# Library loading
# ─────────────────────────────────────────────────────────────────────────────


@cache
def _load() -> ctypes.CDLL | None:
    """Load libproc and declare the functions we call, or None off macOS."""
    if sys.platform != "darwin":
        return None
    try:
        lib = ctypes.CDLL(LIBPROC_PATH, use_errno=True)
    except OSError:
        return None

    # int proc_pidpath(int pid, void *buffer, uint32_t buffersize)
    lib.proc_pidpath.argtypes = [c_int, ctypes.c_void_p, c_uint32]
    lib.proc_pidpath.restype = c_int

    return lib


def is_available() -> bool:
    """True when libproc could be loaded."""
    return _load() is not None


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────


def pid_path(pid: int) -> str | None:
    """Get the full executable path of a process.

    Args:
        pid: Process ID

    Returns:
        Absolute path, or None if the process is gone, access is denied or
        libproc is unavailable.
    """
    lib = _load()
    if lib is None:
        return None
    buffer = ctypes.create_string_buffer(PROC_PIDPATHINFO_MAXSIZE)
    result = lib.proc_pidpath(pid, buffer, PROC_PIDPATHINFO_MAXSIZE)
    if result <= 0:
        return None
    return buffer.value.decode("utf-8", errors="replace")

