"""Inventory builder: merge the two snapshot sources and classify each entry."""

import time
from datetime import datetime

import psutil
import structlog

from reactor.classifier import ProcessClassifier
from reactor.introspection import ProcessIntrospection
from reactor.models import ProcessCategory, ProcessRecord, ProcessType, sort_records
from reactor.sources import ForegroundApp, ForegroundAppEnumerator, TableRow, TableScanner

log = structlog.get_logger()

# Always present when ps is unavailable
FALLBACK_PROCESSES = (
    (0, "kernel_task", ""),
    (1, "launchd", "/sbin/launchd"),
)


def process_metadata(pid: int) -> tuple[datetime | None, int | None, str | None]:
    """Start time, parent pid and owning user, each None when unavailable."""
    try:
        proc = psutil.Process(pid)
        with proc.oneshot():
            start_time = datetime.fromtimestamp(proc.create_time())
            parent_pid = proc.ppid()
            user = proc.username()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return None, None, None
    return start_time, parent_pid, user


class ProcessScanningService:
    """Builds one deduplicated, classified, sorted snapshot per call."""

    def __init__(
        self,
        table_scanner: TableScanner,
        enumerator: ForegroundAppEnumerator,
        classifier: ProcessClassifier,
        introspection: ProcessIntrospection,
        enhanced: bool = False,
    ) -> None:
        self.table_scanner = table_scanner
        self.enumerator = enumerator
        self.classifier = classifier
        self.introspection = introspection
        self.enhanced = enhanced
        self.last_scan_degraded = False

    def _record(
        self, pid: int, cpu: float, mem: float, command: str, path: str
    ) -> ProcessRecord:
        if not self.enhanced:
            return ProcessRecord.build(pid, cpu, mem, command, self.classifier, path)
        start_time, parent_pid, user = process_metadata(pid)
        return ProcessRecord.build_enhanced(
            pid,
            cpu,
            mem,
            command,
            self.classifier,
            path,
            start_time=start_time,
            parent_pid=parent_pid,
            user=user,
        )

    def _app_record(self, app: ForegroundApp, row: TableRow | None) -> ProcessRecord:
        cpu = row.cpu_percent if row else 0.0
        mem = row.memory_percent if row else 0.0
        return self._record(app.pid, cpu, mem, app.name, app.executable_path)

    def _row_record(self, row: TableRow) -> ProcessRecord:
        path = self.introspection.executable_path(row.pid) or row.command
        return self._record(row.pid, row.cpu_percent, row.memory_percent, row.command, path)

    def merge(
        self, apps: list[ForegroundApp], rows: list[TableRow] | None
    ) -> list[ProcessRecord]:
        """Merge registry apps and table rows into one record per pid.

        Registry apps come first and own their pid; their metrics are taken
        from the matching table row when there is one. Table rows for other
        pids follow. When rows is None (ps failed) the kernel and launchd
        pseudo-processes are added unless the registry already covered them.
        """
        rows_by_pid = {row.pid: row for row in rows or []}
        records: list[ProcessRecord] = []
        seen: set[int] = set()

        for app in apps:
            if app.pid in seen:
                continue
            records.append(self._app_record(app, rows_by_pid.get(app.pid)))
            seen.add(app.pid)

        if rows is None:
            for pid, command, path in FALLBACK_PROCESSES:
                if pid not in seen:
                    records.append(self._record(pid, 0.0, 0.0, command, path))
                    seen.add(pid)
            return records

        for row in rows:
            if row.pid in seen:
                continue
            records.append(self._row_record(row))
            seen.add(row.pid)
        return records

    def get_all_processes(self) -> tuple[ProcessRecord, ...]:
        """Scan both sources and return a sorted snapshot."""
        start = time.monotonic()
        apps = self.enumerator.enumerate()
        rows = self.table_scanner.scan()
        self.last_scan_degraded = rows is None
        if rows is None:
            log.warning("ps_unavailable_using_fallback", app_count=len(apps))

        snapshot = sort_records(self.merge(apps, rows))
        log.info(
            "scan_complete",
            process_count=len(snapshot),
            app_count=len(apps),
            degraded=self.last_scan_degraded,
            duration=round(time.monotonic() - start, 4),
        )
        return snapshot

    def processes_for_category(self, category: ProcessCategory) -> list[ProcessRecord]:
        return [r for r in self.get_all_processes() if r.category is category]

    def processes_of_type(self, process_type: ProcessType) -> list[ProcessRecord]:
        return [r for r in self.get_all_processes() if r.process_type is process_type]

    def top_by_cpu(self, limit: int = 10) -> list[ProcessRecord]:
        return sorted(self.get_all_processes(), key=lambda r: r.cpu_percent, reverse=True)[:limit]

    def top_by_memory(self, limit: int = 10) -> list[ProcessRecord]:
        return sorted(self.get_all_processes(), key=lambda r: r.memory_percent, reverse=True)[
            :limit
        ]
