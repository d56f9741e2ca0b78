"""Tests for the ps table scanner and the application enumerator."""

from reactor.sources import (
    ForegroundApp,
    ForegroundAppEnumerator,
    TableRow,
    TableScanner,
    parse_table_output,
)
from reactor.workspace import ActivationPolicy, StaticRegistry
from tests.conftest import FakeRunner, failed, make_app, ps_output


class TestParseTableOutput:
    """Tests for parse_table_output()."""

    def test_parses_rows(self) -> None:
        text = "  PID  %CPU %MEM COMM\n    1   0.0  0.1 /sbin/launchd\n 4203  85.3  4.2 Xcode\n"
        assert parse_table_output(text) == [
            TableRow(pid=1, cpu_percent=0.0, memory_percent=0.1, command="/sbin/launchd"),
            TableRow(pid=4203, cpu_percent=85.3, memory_percent=4.2, command="Xcode"),
        ]

    def test_command_with_spaces(self) -> None:
        text = (
            "PID %CPU %MEM COMM\n"
            "  88 1.5 0.3 /Applications/Google Chrome.app/Contents/MacOS/Google  Chrome\n"
        )
        rows = parse_table_output(text)
        assert rows[0].command == "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome"

    def test_skips_header_blank_and_short_lines(self) -> None:
        text = "PID %CPU %MEM COMM\n\n   \n 12 0.0\n 13 0.0 0.0 ok\n"
        assert [r.pid for r in parse_table_output(text)] == [13]

    def test_drops_unparseable_rows(self) -> None:
        text = "PID %CPU %MEM COMM\nabc 0.0 0.0 bad\n 7 x.y 0.0 bad\n 8 0.5 0.5 good\n"
        assert [r.pid for r in parse_table_output(text)] == [8]

    def test_header_only(self) -> None:
        assert parse_table_output("PID %CPU %MEM COMM\n") == []

    def test_empty(self) -> None:
        assert parse_table_output("") == []


class TestTableScanner:
    """Tests for TableScanner.scan()."""

    def test_runs_ps_with_timeout(self) -> None:
        runner = FakeRunner({"ps": ps_output("    1   0.0  0.1 launchd")})
        rows = TableScanner(runner, timeout=5.0).scan()

        assert rows == [TableRow(1, 0.0, 0.1, "launchd")]
        assert runner.calls == [(["/bin/ps", "-axo", "pid,pcpu,pmem,comm"], 5.0)]

    def test_spawn_failure_or_timeout(self) -> None:
        assert TableScanner(FakeRunner({"ps": None})).scan() is None

    def test_non_zero_exit(self) -> None:
        assert TableScanner(FakeRunner({"ps": failed(1, "ps: error")})).scan() is None


class TestForegroundAppEnumerator:
    """Tests for ForegroundAppEnumerator.enumerate()."""

    def test_enumerates_apps(self) -> None:
        registry = StaticRegistry(
            [make_app(4203, "Xcode", "/Applications/Xcode.app/Contents/MacOS/Xcode")]
        )
        assert ForegroundAppEnumerator(registry).enumerate() == [
            ForegroundApp(4203, "Xcode", "/Applications/Xcode.app/Contents/MacOS/Xcode")
        ]

    def test_name_and_path_fallbacks(self) -> None:
        registry = StaticRegistry(
            [
                make_app(
                    1, name=None, bundle_identifier="com.example.one", bundle_path="/A/One.app"
                ),
                make_app(2, name=None, executable_path="/opt/two/bin/two"),
                make_app(3, name=None),
            ]
        )
        apps = ForegroundAppEnumerator(registry).enumerate()

        assert apps[0] == ForegroundApp(1, "com.example.one", "/A/One.app")
        assert apps[1] == ForegroundApp(2, "two", "/opt/two/bin/two")
        assert apps[2] == ForegroundApp(3, "pid 3", "pid 3")

    def test_includes_every_policy(self) -> None:
        registry = StaticRegistry(
            [make_app(5, policy=ActivationPolicy.PROHIBITED), make_app(6)]
        )
        assert [a.pid for a in ForegroundAppEnumerator(registry).enumerate()] == [5, 6]

    def test_registry_error_yields_empty(self) -> None:
        class BrokenRegistry(StaticRegistry):
            def running_applications(self):
                raise RuntimeError("no window server")

        assert ForegroundAppEnumerator(BrokenRegistry()).enumerate() == []
