"""Icon resolution for process records.

Icons are resolved to a handle (bundle path on disk or SF Symbol name) that
the rendering layer turns into pixels. Handles are cached per
"<pid>-<command>".
"""

import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import structlog

from reactor.classifier import app_bundle_path
from reactor.locks import ReadWriteLock
from reactor.models import ProcessRecord, ProcessType

log = structlog.get_logger()

APPLICATION_SEARCH_DIRS = ("/Applications", "/System/Applications", "/Applications/Utilities")

# Exact command names (basename, lowercase)
SYSTEM_DAEMON_SYMBOLS = {
    "launchd": ("gear.badge.checkmark", "System Launch Daemon"),
    "kernel_task": ("cpu.fill", "Kernel Task"),
    "mds": ("magnifyingglass", "Spotlight"),
    "mdworker": ("magnifyingglass", "Spotlight"),
    "bluetoothd": ("bluetooth", "Bluetooth"),
    "wifivelocityd": ("wifi", "Wi-Fi"),
    "airportd": ("wifi", "Wi-Fi"),
    "logd": ("doc.text.fill", "System Log"),
    "syslogd": ("doc.text.fill", "System Log"),
    "powerd": ("battery.100", "Power Management"),
    "networkd": ("network", "Network"),
    "configd": ("network", "Network"),
    "securityd": ("lock.shield.fill", "Security"),
    "trustd": ("lock.shield.fill", "Security"),
    "locationd": ("location.fill", "Location Services"),
}

# Substring matches, first hit wins
USER_DAEMON_SYMBOLS = (
    ("dock", "dock.rectangle", "Dock"),
    ("finder", "folder.fill", "Finder"),
    ("systemuiserver", "menubar.rectangle", "System UI Server"),
    ("windowserver", "macwindow", "Window Server"),
    ("loginwindow", "person.crop.circle.fill", "Login Window"),
    ("control center", "switch.2", "Control Center"),
)

BACKGROUND_TASK_SYMBOLS = (
    ("safari", "safari.fill", "Safari"),
    ("chrome", "globe", "Chrome"),
    ("firefox", "flame.fill", "Firefox"),
    ("backup", "externaldrive.fill", "Backup"),
    ("timemachine", "externaldrive.fill", "Backup"),
    ("cloud", "cloud.fill", "Cloud Service"),
)


@dataclass(frozen=True)
class IconHandle:
    """Where an icon comes from.

    kind is "bundle" (name is a .app path) or "symbol" (name is an SF
    Symbol name).
    """

    kind: str
    name: str
    description: str


def _symbol(name: str, description: str) -> IconHandle:
    return IconHandle(kind="symbol", name=name, description=description)


def _type_symbol(process_type: ProcessType) -> IconHandle:
    return _symbol(process_type.icon_name, process_type.value)


def _match_substring(command: str, table, fallback: IconHandle) -> IconHandle:
    for needle, name, description in table:
        if needle in command:
            return _symbol(name, description)
    return fallback


def find_application_bundle(path: str) -> str | None:
    """Locate the bundle for path on disk, trying the standard app folders by name."""
    bundle = app_bundle_path(path)
    if bundle is None:
        return None
    if os.path.isdir(bundle):
        return bundle
    name = Path(bundle).name
    for directory in APPLICATION_SEARCH_DIRS:
        candidate = os.path.join(directory, name)
        if os.path.isdir(candidate):
            return candidate
    return None


def resolve_icon(record: ProcessRecord) -> IconHandle:
    """Pick the icon for one record without caching."""
    command = record.command.lower()
    process_type = record.process_type

    if process_type in (ProcessType.USER_APPLICATION, ProcessType.SYSTEM_APPLICATION):
        bundle = find_application_bundle(record.executable_path)
        if bundle:
            return IconHandle(kind="bundle", name=bundle, description=record.display_name)
        return _type_symbol(process_type)

    if process_type is ProcessType.SYSTEM_DAEMON:
        known = SYSTEM_DAEMON_SYMBOLS.get(Path(command).name)
        if known:
            return _symbol(*known)
        return _type_symbol(process_type)

    if process_type is ProcessType.USER_DAEMON:
        return _match_substring(command, USER_DAEMON_SYMBOLS, _type_symbol(process_type))

    if process_type is ProcessType.BACKGROUND_TASK:
        return _match_substring(command, BACKGROUND_TASK_SYMBOLS, _type_symbol(process_type))

    return _type_symbol(process_type)


class IconResolver:
    """Cached icon lookup."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._cache: dict[str, IconHandle] = {}

    @staticmethod
    def cache_key(record: ProcessRecord) -> str:
        return f"{record.pid}-{record.command}"

    def icon_for(self, record: ProcessRecord) -> IconHandle:
        key = self.cache_key(record)
        with self._lock.read():
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        icon = resolve_icon(record)
        with self._lock.write():
            return self._cache.setdefault(key, icon)

    def preload(self, records: Iterable[ProcessRecord]) -> int:
        """Resolve icons for records in the calling thread; return how many."""
        count = 0
        for record in records:
            self.icon_for(record)
            count += 1
        log.debug("icons_preloaded", count=count)
        return count

    def clear(self) -> None:
        with self._lock.write():
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._cache)
