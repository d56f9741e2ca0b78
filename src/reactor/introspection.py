"""Per-pid lookups: executable path, running application, launchd service.

Each lookup is memoized per pid for the life of the instance, including
"not found" results. A pid that failed once is not retried.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

import structlog

from reactor import libproc
from reactor.locks import Memo
from reactor.runner import CommandRunner
from reactor.workspace import AppKitRegistry, RunningApplication, WorkspaceRegistry

log = structlog.get_logger()

LSOF_PATH = "/usr/sbin/lsof"
LAUNCHCTL_PATH = "/bin/launchctl"


@dataclass(frozen=True)
class ServiceInfo:
    """Fields parsed from `launchctl print pid/<pid>`."""

    service_type: str | None = None
    plist_path: str | None = None
    uid: int | None = None


def parse_lsof_path(output: str) -> str | None:
    """Return the first `n/...` line of `lsof -Fn` output, without the `n`."""
    for line in output.splitlines():
        if line.startswith("n/"):
            return line[1:]
    return None


def parse_service_info(output: str) -> ServiceInfo | None:
    """Parse `type = `, `path = ` and `uid = ` lines from launchctl print.

    The first occurrence of each field wins. Returns None when none of
    them is present.
    """
    fields: dict[str, str] = {}
    for raw in output.splitlines():
        line = raw.strip()
        for key in ("type", "path", "uid"):
            prefix = f"{key} = "
            if key not in fields and line.startswith(prefix):
                fields[key] = line[len(prefix) :].strip()

    if not fields:
        return None

    uid: int | None = None
    if "uid" in fields:
        try:
            uid = int(fields["uid"])
        except ValueError:
            uid = None
    return ServiceInfo(
        service_type=fields.get("type"),
        plist_path=fields.get("path"),
        uid=uid,
    )


class ProcessIntrospection:
    """Memoized per-pid lookups backed by libproc, lsof, AppKit and launchctl."""

    _shared: ProcessIntrospection | None = None
    _shared_lock = threading.Lock()

    def __init__(
        self,
        runner: CommandRunner | None = None,
        registry: WorkspaceRegistry | None = None,
        service_timeout: float = 1.0,
        lsof_timeout: float = 2.0,
    ) -> None:
        self.runner = runner or CommandRunner()
        self.registry = registry if registry is not None else AppKitRegistry()
        self.service_timeout = service_timeout
        self.lsof_timeout = lsof_timeout
        self._paths = Memo()
        self._apps = Memo()
        self._services = Memo()

    @classmethod
    def shared(cls) -> ProcessIntrospection:
        """Process-wide instance with default collaborators."""
        with cls._shared_lock:
            if cls._shared is None:
                cls._shared = cls()
            return cls._shared

    def executable_path(self, pid: int) -> str | None:
        """Full executable path, via proc_pidpath then `lsof -p <pid> -Fn`."""
        hit, value = self._paths.lookup(pid)
        if hit:
            return value

        path = libproc.pid_path(pid)
        if path is None:
            result = self.runner.run([LSOF_PATH, "-p", str(pid), "-Fn"], self.lsof_timeout)
            if result is not None and result.ok:
                path = parse_lsof_path(result.stdout)

        return self._paths.store(pid, path)

    def running_application(self, pid: int) -> RunningApplication | None:
        """Registry entry for pid, or None if pid is not a running application."""
        hit, value = self._apps.lookup(pid)
        if hit:
            return value

        app = self.registry.application_for_pid(pid)
        return self._apps.store(pid, app)

    def service_info(self, pid: int, timeout: float | None = None) -> ServiceInfo | None:
        """launchd descriptor for pid.

        Spawn failure, non-zero exit, timeout and unparseable output all
        yield None, and the None is cached like any other answer.
        """
        hit, value = self._services.lookup(pid)
        if hit:
            return value

        bound = timeout if timeout is not None else self.service_timeout
        result = self.runner.run([LAUNCHCTL_PATH, "print", f"pid/{pid}"], bound)
        info = None
        if result is not None and result.ok:
            info = parse_service_info(result.stdout)
        elif result is None:
            log.debug("service_info_unavailable", pid=pid)

        return self._services.store(pid, info)

    def clear(self) -> None:
        """Forget every memoized answer."""
        self._paths.clear()
        self._apps.clear()
        self._services.clear()
