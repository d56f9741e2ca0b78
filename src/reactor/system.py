"""System-wide memory summary."""

from dataclasses import dataclass

import psutil

from reactor.formatting import format_bytes, format_percent


@dataclass(frozen=True)
class SystemInfo:
    """OS memory accounting plus the size of the current inventory."""

    total_memory: int
    used_memory: int
    memory_percent: float
    process_count: int

    @property
    def formatted_total(self) -> str:
        return format_bytes(self.total_memory)

    @property
    def formatted_used(self) -> str:
        return format_bytes(self.used_memory)

    @property
    def formatted_percent(self) -> str:
        return format_percent(self.memory_percent)


def get_system_info(process_count: int = 0) -> SystemInfo:
    """Read memory totals from the OS.

    Args:
        process_count: Number of processes in the caller's snapshot

    Returns:
        SystemInfo built from psutil.virtual_memory()
    """
    vm = psutil.virtual_memory()
    return SystemInfo(
        total_memory=vm.total,
        used_memory=vm.total - vm.available,
        memory_percent=vm.percent,
        process_count=process_count,
    )
