"""Inventory cache and the coordinator that owns it.

ProcessManager is the public face of the package: it answers queries from a
time-bounded cached snapshot, rescans when the snapshot is stale, and sends
termination signals.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial

import structlog

from reactor.classifier import ProcessClassifier
from reactor.config import Config
from reactor.icons import IconHandle, IconResolver
from reactor.introspection import ProcessIntrospection
from reactor.locks import ReadWriteLock
from reactor.models import ProcessCategory, ProcessRecord, ProcessType
from reactor.runner import CommandRunner
from reactor.scanner import ProcessScanningService
from reactor.sources import ForegroundAppEnumerator, TableScanner
from reactor.system import SystemInfo, get_system_info
from reactor.workspace import AppKitRegistry

log = structlog.get_logger()

KILL_PATH = "/bin/kill"
KILL_TIMEOUT = 5.0

# Hidden when show_system_processes is off
SYSTEM_TYPES = (ProcessType.SYSTEM_DAEMON, ProcessType.KERNEL)

Snapshot = tuple[ProcessRecord, ...]


class InventoryCache:
    """Last snapshot plus the time it was built.

    Empty until the first replace(); fresh while younger than timeout; stale
    afterwards until the next replace(). An empty snapshot is never fresh.
    """

    def __init__(self, timeout: float = 5.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.timeout = timeout
        self._clock = clock
        self._lock = ReadWriteLock()
        self._snapshot: Snapshot = ()
        self._built_at: float | None = None

    def get(self) -> Snapshot:
        with self._lock.read():
            return self._snapshot

    def age(self) -> float | None:
        """Seconds since the last replace(), or None if never populated."""
        with self._lock.read():
            built_at = self._built_at
        if built_at is None:
            return None
        return self._clock() - built_at

    def is_fresh(self) -> bool:
        with self._lock.read():
            if not self._snapshot or self._built_at is None:
                return False
            return self._clock() - self._built_at < self.timeout

    def replace(self, snapshot: Snapshot) -> None:
        with self._lock.write():
            self._snapshot = tuple(snapshot)
            self._built_at = self._clock()

    def clear(self) -> None:
        with self._lock.write():
            self._snapshot = ()
            self._built_at = None


class ProcessManager:
    """Coordinates scanning, caching, icon warm-up and termination."""

    def __init__(
        self,
        scanner: ProcessScanningService,
        icons: IconResolver | None = None,
        cache: InventoryCache | None = None,
        runner: CommandRunner | None = None,
        config: Config | None = None,
        system_info: Callable[..., SystemInfo] = get_system_info,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.config = config or Config()
        inventory = self.config.inventory
        self.scanner = scanner
        self.icons = icons or IconResolver()
        self.cache = cache or InventoryCache(timeout=inventory.cache_timeout)
        self.runner = runner or CommandRunner()
        self._system_info = system_info
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="reactor"
        )
        self._refresh_lock = threading.Lock()
        self._timers: list[threading.Timer] = []
        self._timers_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Config) -> ProcessManager:
        """Wire up the macOS collaborators from configuration."""
        inventory = config.inventory
        runner = CommandRunner()
        registry = AppKitRegistry()
        introspection = ProcessIntrospection(
            runner=runner,
            registry=registry,
            service_timeout=inventory.service_timeout,
            lsof_timeout=inventory.lsof_timeout,
        )
        scanner = ProcessScanningService(
            table_scanner=TableScanner(runner, timeout=inventory.scan_timeout),
            enumerator=ForegroundAppEnumerator(registry),
            classifier=ProcessClassifier(introspection),
            introspection=introspection,
            enhanced=inventory.enhanced_metadata,
        )
        return cls(scanner, runner=runner, config=config)

    # ─────────────────────────────────────────────────────────────────────────
    # Snapshot access
    # ─────────────────────────────────────────────────────────────────────────

    def get_all(self, force_refresh: bool = False) -> Snapshot:
        """Return the cached snapshot if fresh, otherwise rescan.

        Scans are serialized; a caller that waited on another caller's scan
        reuses its result instead of scanning again.
        """
        if not force_refresh and self.cache.is_fresh():
            return self.cache.get()

        with self._refresh_lock:
            if not force_refresh and self.cache.is_fresh():
                return self.cache.get()
            snapshot = self.scanner.get_all_processes()
            self.cache.replace(snapshot)

        self._preload_icons(snapshot)
        return snapshot

    def cached_only(self) -> Snapshot:
        """Current cached snapshot without scanning (possibly empty or stale)."""
        return self.cache.get()

    def is_cache_fresh(self) -> bool:
        return self.cache.is_fresh()

    async def refresh_async(self, force_refresh: bool = False) -> Snapshot:
        """Run get_all in the worker pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(self.get_all, force_refresh))

    def refresh_in_background(
        self,
        force_refresh: bool = False,
        callback: Callable[[Snapshot], None] | None = None,
    ) -> Future:
        """Submit get_all to the worker pool; call callback with the snapshot."""
        future = self._executor.submit(self.get_all, force_refresh)
        if callback is not None:

            def _done(f: Future) -> None:
                if f.cancelled():
                    return
                exc = f.exception()
                if exc is not None:
                    log.error("background_refresh_failed", error=str(exc))
                    return
                callback(f.result())

            future.add_done_callback(_done)
        return future

    def _preload_icons(self, snapshot: Snapshot) -> None:
        count = self.config.inventory.icon_preload_count
        if count <= 0 or not snapshot:
            return
        top = sorted(snapshot, key=lambda r: r.cpu_percent, reverse=True)[:count]
        future = self._executor.submit(self.icons.preload, top)
        future.add_done_callback(_log_preload_failure)

    # ─────────────────────────────────────────────────────────────────────────
    # Queries (cached snapshot only, never scan)
    # ─────────────────────────────────────────────────────────────────────────

    def top_by_cpu(self, n: int = 10) -> list[ProcessRecord]:
        return sorted(self.cache.get(), key=lambda r: r.cpu_percent, reverse=True)[:n]

    def top_by_memory(self, n: int = 10) -> list[ProcessRecord]:
        return sorted(self.cache.get(), key=lambda r: r.memory_percent, reverse=True)[:n]

    def by_category(self, category: ProcessCategory) -> list[ProcessRecord]:
        return [r for r in self.cache.get() if r.category is category]

    def by_type(self, process_type: ProcessType) -> list[ProcessRecord]:
        return [r for r in self.cache.get() if r.process_type is process_type]

    def by_type_group(self, category: ProcessCategory) -> list[ProcessRecord]:
        """Records whose type is a member of category.types (overlapping view)."""
        members = category.types
        return [r for r in self.cache.get() if r.process_type in members]

    def visible(self) -> list[ProcessRecord]:
        """Cached snapshot filtered by the show_system_processes preference."""
        snapshot = self.cache.get()
        if self.config.preferences.show_system_processes:
            return list(snapshot)
        return [r for r in snapshot if r.process_type not in SYSTEM_TYPES]

    def grouped_by_category(self) -> dict[ProcessCategory, list[ProcessRecord]]:
        """Visible records keyed by category, every category present, in priority order."""
        groups: dict[ProcessCategory, list[ProcessRecord]] = {
            category: [] for category in sorted(ProcessCategory, key=lambda c: c.priority)
        }
        for record in self.visible():
            groups[record.category].append(record)
        return groups

    def find(self, pid: int) -> ProcessRecord | None:
        for record in self.cache.get():
            if record.pid == pid:
                return record
        return None

    # ─────────────────────────────────────────────────────────────────────────
    # Termination
    # ─────────────────────────────────────────────────────────────────────────

    def kill_process(self, pid: int) -> bool:
        """Send SIGTERM; True iff kill exited with status 0."""
        return self._signal(pid, "TERM")

    def force_kill_process(self, pid: int) -> bool:
        """Send SIGKILL; True iff kill exited with status 0."""
        return self._signal(pid, "KILL")

    async def kill_async(self, pid: int) -> bool:
        """Run kill_process in the worker pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.kill_process, pid)

    async def force_kill_async(self, pid: int) -> bool:
        """Run force_kill_process in the worker pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.force_kill_process, pid)

    def _signal(self, pid: int, signal_name: str) -> bool:
        result = self.runner.run([KILL_PATH, f"-{signal_name}", str(pid)], KILL_TIMEOUT)
        success = result is not None and result.ok
        if success:
            log.info("process_signalled", pid=pid, signal=signal_name)
            self._schedule_refresh(self.config.inventory.refresh_after_kill)
        else:
            log.warning(
                "process_signal_failed",
                pid=pid,
                signal=signal_name,
                returncode=result.returncode if result else None,
            )
        return success

    def _schedule_refresh(self, delay: float) -> None:
        timer = threading.Timer(delay, self._refresh_after_termination)
        timer.daemon = True
        with self._timers_lock:
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
        timer.start()

    def _refresh_after_termination(self) -> None:
        try:
            self.get_all(force_refresh=True)
        except Exception:
            log.exception("refresh_after_termination_failed")

    # ─────────────────────────────────────────────────────────────────────────
    # Misc
    # ─────────────────────────────────────────────────────────────────────────

    def get_system_info(self) -> SystemInfo:
        return self._system_info(process_count=len(self.cache.get()))

    def icon(self, record: ProcessRecord) -> IconHandle:
        return self.icons.icon_for(record)

    def clear_caches(self) -> None:
        """Drop the cached snapshot, resolved icons and per-pid lookups."""
        self.cache.clear()
        self.icons.clear()
        self.scanner.introspection.clear()
        log.info("caches_cleared")

    @property
    def pending_refreshes(self) -> int:
        with self._timers_lock:
            return sum(1 for t in self._timers if t.is_alive())

    def shutdown(self) -> None:
        """Cancel scheduled refreshes and stop the worker pool."""
        with self._timers_lock:
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)


def _log_preload_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        log.warning("icon_preload_failed", error=str(exc))
