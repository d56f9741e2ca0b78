"""Running-application registry.

On macOS the registry is NSWorkspace via pyobjc. AppKit is imported on first
use so the rest of the package imports (and is testable) everywhere; off
macOS the registry simply reports no running applications.
"""

import sys
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class ActivationPolicy(Enum):
    """How an application participates in the UI."""

    REGULAR = "regular"  # Dock icon, menu bar
    ACCESSORY = "accessory"  # Windows or status item, no Dock icon
    PROHIBITED = "prohibited"  # No UI at all


@dataclass(frozen=True)
class RunningApplication:
    """One entry from the application registry."""

    pid: int
    name: str | None = None
    bundle_identifier: str | None = None
    executable_path: str | None = None
    bundle_path: str | None = None
    activation_policy: ActivationPolicy = ActivationPolicy.REGULAR


class WorkspaceRegistry(Protocol):
    """Source of running-application entries."""

    def running_applications(self) -> list[RunningApplication]: ...

    def application_for_pid(self, pid: int) -> RunningApplication | None: ...


class StaticRegistry:
    """Registry over a fixed list of applications."""

    def __init__(self, apps: list[RunningApplication] | None = None) -> None:
        self._apps = list(apps or [])

    def running_applications(self) -> list[RunningApplication]:
        return list(self._apps)

    def application_for_pid(self, pid: int) -> RunningApplication | None:
        for app in self._apps:
            if app.pid == pid:
                return app
        return None


# NSApplicationActivationPolicy raw values
_POLICIES = {
    0: ActivationPolicy.REGULAR,
    1: ActivationPolicy.ACCESSORY,
    2: ActivationPolicy.PROHIBITED,
}


def _url_path(url) -> str | None:
    if url is None:
        return None
    path = url.path()
    return str(path) if path else None


def _optional_str(value) -> str | None:
    return str(value) if value else None


class AppKitRegistry:
    """NSWorkspace-backed registry (macOS only)."""

    def __init__(self) -> None:
        self._appkit = None
        if sys.platform == "darwin":
            import AppKit

            self._appkit = AppKit

    def _convert(self, app) -> RunningApplication:
        return RunningApplication(
            pid=int(app.processIdentifier()),
            name=_optional_str(app.localizedName()),
            bundle_identifier=_optional_str(app.bundleIdentifier()),
            executable_path=_url_path(app.executableURL()),
            bundle_path=_url_path(app.bundleURL()),
            activation_policy=_POLICIES.get(
                int(app.activationPolicy()), ActivationPolicy.PROHIBITED
            ),
        )

    def running_applications(self) -> list[RunningApplication]:
        if self._appkit is None:
            return []
        workspace = self._appkit.NSWorkspace.sharedWorkspace()
        return [self._convert(app) for app in workspace.runningApplications()]

    def application_for_pid(self, pid: int) -> RunningApplication | None:
        if self._appkit is None:
            return None
        app = self._appkit.NSRunningApplication.runningApplicationWithProcessIdentifier_(pid)
        if app is None:
            return None
        return self._convert(app)
