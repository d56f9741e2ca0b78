"""Tests for the inventory builder."""

from datetime import datetime
from unittest.mock import MagicMock, patch

import psutil
import pytest

from reactor.models import ProcessCategory, ProcessType
from reactor.scanner import process_metadata
from reactor.sources import ForegroundApp, TableRow
from tests.conftest import FakeRunner, make_app, make_scanner, ok, ps_output

XCODE = "/Applications/Xcode.app/Contents/MacOS/Xcode"


@pytest.fixture(autouse=True)
def no_libproc():
    """Force executable paths through the lsof fallback."""
    with patch("reactor.introspection.libproc.pid_path", return_value=None):
        yield


def lsof_for(paths: dict[int, str]):
    def respond(argv):
        path = paths.get(int(argv[2]))
        return ok(f"p{argv[2]}\nftxt\nn{path}\n") if path else None

    return respond


class TestGetAllProcesses:
    """Tests for ProcessScanningService.get_all_processes()."""

    def test_merges_app_and_table_row(self) -> None:
        runner = FakeRunner(
            {
                "ps": ps_output("    1   0.0  0.1 launchd", " 4203  85.3  4.2 Xcode"),
                "lsof": lsof_for({1: "/sbin/launchd"}),
            }
        )
        scanner = make_scanner(runner, apps=[make_app(4203, "Xcode", XCODE)])

        snapshot = scanner.get_all_processes()

        assert len(snapshot) == 2
        by_pid = {r.pid: r for r in snapshot}
        xcode = by_pid[4203]
        assert xcode.command == "Xcode"
        assert xcode.is_application
        assert xcode.process_type is ProcessType.USER_APPLICATION
        assert xcode.cpu_percent == 85.3
        assert xcode.memory_percent == 4.2
        assert by_pid[1].process_type is ProcessType.SYSTEM_DAEMON
        assert not scanner.last_scan_degraded

    def test_snapshot_is_sorted(self) -> None:
        runner = FakeRunner(
            {
                "ps": ps_output(
                    "    0   3.0  0.0 kernel_task",
                    "   40   1.0  0.1 /usr/libexec/logd",
                    "   41   9.0  0.1 /usr/sbin/syslogd",
                    " 4203  85.3  4.2 Xcode",
                ),
            }
        )
        scanner = make_scanner(runner, apps=[make_app(4203, "Xcode", XCODE)])

        snapshot = scanner.get_all_processes()

        assert isinstance(snapshot, tuple)
        assert [r.pid for r in snapshot] == [4203, 41, 40, 0]
        assert snapshot == tuple(sorted(snapshot, key=lambda r: r.sort_key))

    def test_one_record_per_pid(self) -> None:
        runner = FakeRunner({"ps": ps_output(" 4203  85.3  4.2 Xcode", " 4203  1.0  1.0 Xcode")})
        apps = [make_app(4203, "Xcode", XCODE), make_app(4203, "Xcode", XCODE)]
        snapshot = make_scanner(runner, apps=apps).get_all_processes()
        assert [r.pid for r in snapshot] == [4203]

    def test_app_without_row_has_zero_metrics(self) -> None:
        runner = FakeRunner({"ps": ps_output("    1   0.0  0.1 launchd")})
        scanner = make_scanner(runner, apps=[make_app(900, "Notes", "/Applications/Notes.app")])
        notes = next(r for r in scanner.get_all_processes() if r.pid == 900)
        assert (notes.cpu_percent, notes.memory_percent) == (0.0, 0.0)

    def test_row_path_falls_back_to_command(self) -> None:
        runner = FakeRunner({"ps": ps_output("   77   0.0  0.0 /usr/sbin/cfprefsd")})
        record = make_scanner(runner).get_all_processes()[0]
        assert record.executable_path == "/usr/sbin/cfprefsd"
        assert record.process_type is ProcessType.SYSTEM_DAEMON

    def test_ps_failure_uses_fallback(self) -> None:
        scanner = make_scanner(FakeRunner({"ps": None}))

        snapshot = scanner.get_all_processes()

        by_pid = {r.pid: r for r in snapshot}
        assert set(by_pid) == {0, 1}
        assert by_pid[0].process_type is ProcessType.KERNEL
        assert by_pid[1].process_type is ProcessType.SYSTEM_DAEMON
        assert scanner.last_scan_degraded

    def test_ps_failure_keeps_apps(self) -> None:
        scanner = make_scanner(FakeRunner({"ps": None}), apps=[make_app(4203, "Xcode", XCODE)])
        assert sorted(r.pid for r in scanner.get_all_processes()) == [0, 1, 4203]

    def test_empty_ps_output_is_not_degraded(self) -> None:
        scanner = make_scanner(FakeRunner({"ps": ps_output()}))
        assert scanner.get_all_processes() == ()
        assert not scanner.last_scan_degraded


class TestMerge:
    def test_apps_own_their_pid(self) -> None:
        scanner = make_scanner(FakeRunner(), apps=[make_app(5, "Mail", "/Applications/Mail.app")])
        records = scanner.merge(
            [ForegroundApp(5, "Mail", "/Applications/Mail.app")],
            [TableRow(5, 2.0, 1.0, "/Applications/Mail.app/Contents/MacOS/Mail")],
        )
        assert len(records) == 1
        assert records[0].command == "Mail"
        assert records[0].cpu_percent == 2.0

    def test_fallback_not_duplicated(self) -> None:
        scanner = make_scanner(FakeRunner())
        records = scanner.merge([ForegroundApp(1, "launchd", "/sbin/launchd")], None)
        assert sorted(r.pid for r in records) == [0, 1]


class TestEnhanced:
    def test_metadata_attached(self) -> None:
        started = datetime(2026, 1, 2, 3, 4, 5)
        runner = FakeRunner({"ps": ps_output("   77   0.0  0.0 /usr/sbin/cfprefsd")})
        scanner = make_scanner(runner, enhanced=True)

        with patch("reactor.scanner.process_metadata", return_value=(started, 1, "root")):
            record = scanner.get_all_processes()[0]

        assert record.start_time == started
        assert record.parent_pid == 1
        assert record.user == "root"

    def test_plain_scan_skips_metadata(self) -> None:
        runner = FakeRunner({"ps": ps_output("   77   0.0  0.0 /usr/sbin/cfprefsd")})
        with patch("reactor.scanner.process_metadata") as metadata:
            record = make_scanner(runner).get_all_processes()[0]
        metadata.assert_not_called()
        assert record.user is None

    def test_process_metadata_reads_psutil(self) -> None:
        proc = MagicMock()
        proc.create_time.return_value = 1_700_000_000.0
        proc.ppid.return_value = 1
        proc.username.return_value = "me"
        with patch("reactor.scanner.psutil.Process", return_value=proc):
            started, parent, user = process_metadata(4242)
        assert started == datetime.fromtimestamp(1_700_000_000.0)
        assert (parent, user) == (1, "me")

    @pytest.mark.parametrize(
        "error", [psutil.NoSuchProcess(1), psutil.AccessDenied(1), psutil.ZombieProcess(1)]
    )
    def test_process_metadata_unavailable(self, error) -> None:
        with patch("reactor.scanner.psutil.Process", side_effect=error):
            assert process_metadata(1) == (None, None, None)


class TestQueries:
    @pytest.fixture
    def scanner(self):
        runner = FakeRunner(
            {
                "ps": ps_output(
                    "   40   1.0  9.0 /usr/libexec/logd",
                    "   41   9.0  0.1 /usr/sbin/syslogd",
                    " 4203  85.3  4.2 Xcode",
                ),
            }
        )
        return make_scanner(runner, apps=[make_app(4203, "Xcode", XCODE)])

    def test_top_by_cpu(self, scanner) -> None:
        assert [r.pid for r in scanner.top_by_cpu(2)] == [4203, 41]

    def test_top_by_memory(self, scanner) -> None:
        assert [r.pid for r in scanner.top_by_memory(1)] == [40]

    def test_processes_for_category(self, scanner) -> None:
        records = scanner.processes_for_category(ProcessCategory.SYSTEM_SERVICES)
        assert sorted(r.pid for r in records) == [40, 41]

    def test_processes_of_type(self, scanner) -> None:
        records = scanner.processes_of_type(ProcessType.USER_APPLICATION)
        assert [r.pid for r in records] == [4203]
