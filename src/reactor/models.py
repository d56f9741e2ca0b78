"""Process records and their classification vocabulary.

ProcessType and ProcessCategory are closed enumerations; their per-variant
behaviour (priority, icon, member types) lives in lookup tables next
to them rather than in subclasses.
"""

from __future__ import annotations

import plistlib
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from reactor.formatting import format_percent

if TYPE_CHECKING:
    from reactor.classifier import ProcessClassifier


class ProcessType(Enum):
    """Semantic kind of a process."""

    USER_APPLICATION = "User Application"
    SYSTEM_APPLICATION = "System Application"
    BACKGROUND_TASK = "Background Task"
    SYSTEM_DAEMON = "System Daemon"
    USER_DAEMON = "User Daemon"
    KERNEL = "Kernel Process"
    UNKNOWN = "Unknown"

    @property
    def priority(self) -> int:
        """Sort rank within a category (1 sorts first)."""
        return _TYPE_PRIORITY[self]

    @property
    def icon_name(self) -> str:
        """SF Symbol name used when no better icon is known."""
        return _TYPE_ICONS[self]


class ProcessCategory(Enum):
    """Grouping used for display."""

    APPLICATIONS = "Applications"
    SYSTEM_SERVICES = "System Services"
    BACKGROUND_PROCESSES = "Background Processes"
    DAEMONS = "Daemons"
    KERNEL_PROCESSES = "Kernel Processes"

    @property
    def priority(self) -> int:
        return _CATEGORY_PRIORITY[self]

    @property
    def types(self) -> tuple[ProcessType, ...]:
        """Member types for the by-type-group view.

        Not a partition: SYSTEM_DAEMON belongs to both SYSTEM_SERVICES and
        DAEMONS here, while categorize() maps it only to SYSTEM_SERVICES.
        """
        return _CATEGORY_TYPES[self]


_TYPE_PRIORITY = {
    ProcessType.USER_APPLICATION: 1,
    ProcessType.SYSTEM_APPLICATION: 2,
    ProcessType.BACKGROUND_TASK: 3,
    ProcessType.USER_DAEMON: 4,
    ProcessType.SYSTEM_DAEMON: 5,
    ProcessType.KERNEL: 6,
    ProcessType.UNKNOWN: 7,
}

_TYPE_ICONS = {
    ProcessType.USER_APPLICATION: "app.fill",
    ProcessType.SYSTEM_APPLICATION: "gear.badge.checkmark",
    ProcessType.BACKGROUND_TASK: "timer",
    ProcessType.SYSTEM_DAEMON: "wrench.and.screwdriver.fill",
    ProcessType.USER_DAEMON: "person.crop.circle.fill.badge.wrench",
    ProcessType.KERNEL: "cpu.fill",
    ProcessType.UNKNOWN: "questionmark.circle.fill",
}

_CATEGORY_PRIORITY = {
    ProcessCategory.APPLICATIONS: 1,
    ProcessCategory.SYSTEM_SERVICES: 2,
    ProcessCategory.BACKGROUND_PROCESSES: 3,
    ProcessCategory.DAEMONS: 4,
    ProcessCategory.KERNEL_PROCESSES: 5,
}

_CATEGORY_TYPES = {
    ProcessCategory.APPLICATIONS: (
        ProcessType.USER_APPLICATION,
        ProcessType.SYSTEM_APPLICATION,
    ),
    ProcessCategory.SYSTEM_SERVICES: (ProcessType.SYSTEM_DAEMON,),
    ProcessCategory.BACKGROUND_PROCESSES: (ProcessType.BACKGROUND_TASK,),
    ProcessCategory.DAEMONS: (ProcessType.USER_DAEMON, ProcessType.SYSTEM_DAEMON),
    ProcessCategory.KERNEL_PROCESSES: (ProcessType.KERNEL,),
}


def read_bundle_info(bundle_path: str) -> dict[str, Any] | None:
    """Read <bundle>/Contents/Info.plist, or None if it is missing or unreadable."""
    plist_path = Path(bundle_path) / "Contents" / "Info.plist"
    try:
        with open(plist_path, "rb") as f:
            data = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException, ValueError):
        return None
    return data if isinstance(data, dict) else None


@dataclass(frozen=True, eq=False)
class ProcessRecord:
    """One process with its classification.

    Derived fields (process_type, category, is_application,
    bundle_identifier) are computed once at construction and carried over
    verbatim by with_metrics(). Records compare and hash by pid.
    """

    pid: int
    cpu_percent: float
    memory_percent: float
    command: str
    executable_path: str
    process_type: ProcessType
    category: ProcessCategory
    is_application: bool = False
    bundle_identifier: str | None = None
    start_time: datetime | None = None
    parent_pid: int | None = None
    user: str | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProcessRecord):
            return NotImplemented
        return self.pid == other.pid

    def __hash__(self) -> int:
        return hash(self.pid)

    @classmethod
    def build(
        cls,
        pid: int,
        cpu_percent: float,
        memory_percent: float,
        command: str,
        classifier: ProcessClassifier,
        executable_path: str = "",
    ) -> ProcessRecord:
        """Classify a process and build its record."""
        path = executable_path or command
        process_type = classifier.classify(command, path, pid)
        return cls(
            pid=pid,
            cpu_percent=cpu_percent,
            memory_percent=memory_percent,
            command=command,
            executable_path=path,
            process_type=process_type,
            category=classifier.categorize(process_type),
            is_application=classifier.is_application(command, path),
            bundle_identifier=classifier.bundle_identifier(path),
        )

    @classmethod
    def build_enhanced(
        cls,
        pid: int,
        cpu_percent: float,
        memory_percent: float,
        command: str,
        classifier: ProcessClassifier,
        executable_path: str = "",
        start_time: datetime | None = None,
        parent_pid: int | None = None,
        user: str | None = None,
    ) -> ProcessRecord:
        """Like build(), with start time, parent pid and owning user attached."""
        record = cls.build(pid, cpu_percent, memory_percent, command, classifier, executable_path)
        return replace(record, start_time=start_time, parent_pid=parent_pid, user=user)

    def with_metrics(self, cpu_percent: float, memory_percent: float) -> ProcessRecord:
        """Return a copy with fresh metrics and unchanged metadata."""
        return replace(self, cpu_percent=cpu_percent, memory_percent=memory_percent)

    @property
    def sort_key(self) -> tuple[int, int, float]:
        """Category priority, then type priority, then CPU descending."""
        return (self.category.priority, self.process_type.priority, -self.cpu_percent)

    @property
    def display_name(self) -> str:
        """Bundle display name for applications, else the command's last path component."""
        if self.is_application:
            from reactor.classifier import app_bundle_path

            bundle = app_bundle_path(self.executable_path)
            if bundle:
                info = read_bundle_info(bundle)
                if info:
                    name = info.get("CFBundleDisplayName") or info.get("CFBundleName")
                    if name:
                        return str(name)
        return Path(self.command).name or self.command

    @property
    def formatted_cpu(self) -> str:
        return format_percent(self.cpu_percent)

    @property
    def formatted_memory(self) -> str:
        return format_percent(self.memory_percent)

    @property
    def detailed_description(self) -> str:
        """Multi-line summary used for tooltips and `reactor show`."""
        lines = [
            f"Process: {self.display_name}",
            f"PID: {self.pid}",
            f"Type: {self.process_type.value}",
            f"CPU: {self.formatted_cpu}",
            f"Memory: {self.formatted_memory}",
        ]
        if self.executable_path != self.command:
            lines.append(f"Path: {self.executable_path}")
        if self.bundle_identifier:
            lines.append(f"Bundle: {self.bundle_identifier}")
        if self.user:
            lines.append(f"User: {self.user}")
        if self.parent_pid is not None:
            lines.append(f"Parent PID: {self.parent_pid}")
        if self.start_time is not None:
            lines.append(f"Started: {self.start_time.strftime('%Y-%m-%d %H:%M:%S')}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "pid": self.pid,
            "command": self.command,
            "executable_path": self.executable_path,
            "cpu_percent": self.cpu_percent,
            "memory_percent": self.memory_percent,
            "type": self.process_type.value,
            "category": self.category.value,
            "is_application": self.is_application,
            "bundle_identifier": self.bundle_identifier,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "parent_pid": self.parent_pid,
            "user": self.user,
        }


def sort_records(records) -> tuple[ProcessRecord, ...]:
    """Return records as an immutable snapshot in display order."""
    return tuple(sorted(records, key=lambda r: r.sort_key))
