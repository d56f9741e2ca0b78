"""Snapshot sources: the ps process table and the running-application registry."""

from dataclasses import dataclass
from pathlib import Path

import structlog

from reactor.runner import CommandRunner
from reactor.workspace import WorkspaceRegistry

log = structlog.get_logger()

PS_PATH = "/bin/ps"
PS_ARGS = ["-axo", "pid,pcpu,pmem,comm"]


@dataclass(frozen=True)
class TableRow:
    """One parsed line of `ps -axo pid,pcpu,pmem,comm`."""

    pid: int
    cpu_percent: float
    memory_percent: float
    command: str


@dataclass(frozen=True)
class ForegroundApp:
    """A running application as reported by the registry."""

    pid: int
    name: str
    executable_path: str


def parse_table_output(text: str) -> list[TableRow]:
    """Parse ps output into rows.

    The first line is the header. Blank lines and lines that do not parse
    (fewer than four fields, bad numbers) are dropped. The command is every
    field after the third, re-joined with single spaces.
    """
    rows: list[TableRow] = []
    for line in text.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 4:
            continue
        try:
            row = TableRow(
                pid=int(parts[0]),
                cpu_percent=float(parts[1]),
                memory_percent=float(parts[2]),
                command=" ".join(parts[3:]),
            )
        except ValueError:
            log.debug("ps_row_skipped", line=line)
            continue
        rows.append(row)
    return rows


class TableScanner:
    """Snapshot source A: the kernel process table via ps."""

    def __init__(self, runner: CommandRunner | None = None, timeout: float = 5.0) -> None:
        self.runner = runner or CommandRunner()
        self.timeout = timeout

    def scan(self) -> list[TableRow] | None:
        """Run ps and parse its output.

        Returns:
            Parsed rows, or None when ps could not run, exited non-zero or
            timed out.
        """
        result = self.runner.run([PS_PATH, *PS_ARGS], self.timeout)
        if result is None:
            return None
        if not result.ok:
            log.warning("ps_failed", returncode=result.returncode, stderr=result.stderr.strip())
            return None
        return parse_table_output(result.stdout)


class ForegroundAppEnumerator:
    """Snapshot source B: running applications from the workspace registry."""

    def __init__(self, registry: WorkspaceRegistry) -> None:
        self.registry = registry

    def enumerate(self) -> list[ForegroundApp]:
        """List running applications with a usable name and path.

        Name falls back to the bundle identifier, then to the executable's
        file name. Path falls back to the bundle path, then to the name.
        """
        try:
            apps = self.registry.running_applications()
        except Exception as e:
            log.warning("registry_unavailable", error=str(e))
            return []

        result: list[ForegroundApp] = []
        for app in apps:
            path = app.executable_path or app.bundle_path
            name = app.name or app.bundle_identifier or (Path(path).name if path else None)
            if not name:
                name = f"pid {app.pid}"
            result.append(ForegroundApp(pid=app.pid, name=name, executable_path=path or name))
        return result
