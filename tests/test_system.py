"""Tests for the system memory summary."""

from types import SimpleNamespace
from unittest.mock import patch

from reactor.system import SystemInfo, get_system_info


def test_get_system_info_uses_available_memory():
    vm = SimpleNamespace(total=16 * 1024**3, available=4 * 1024**3, percent=75.0)
    with patch("reactor.system.psutil.virtual_memory", return_value=vm):
        info = get_system_info(process_count=412)

    assert info.total_memory == 16 * 1024**3
    assert info.used_memory == 12 * 1024**3
    assert info.memory_percent == 75.0
    assert info.process_count == 412


def test_formatted_fields():
    info = SystemInfo(
        total_memory=16 * 1024**3, used_memory=12 * 1024**3, memory_percent=75.0, process_count=3
    )
    assert info.formatted_total == "16.0G"
    assert info.formatted_used == "12.0G"
    assert info.formatted_percent == "75.0%"


def test_real_memory_is_sane():
    info = get_system_info()
    assert info.total_memory > 0
    assert 0 <= info.used_memory <= info.total_memory
    assert info.process_count == 0
