"""Shared test fixtures for reactor."""

import plistlib
from pathlib import Path

import pytest

from reactor.classifier import ProcessClassifier, categorize
from reactor.config import Config
from reactor.introspection import ProcessIntrospection
from reactor.models import ProcessCategory, ProcessRecord, ProcessType
from reactor.runner import CommandResult
from reactor.scanner import ProcessScanningService
from reactor.sources import ForegroundAppEnumerator, TableScanner
from reactor.workspace import ActivationPolicy, RunningApplication, StaticRegistry

PS_HEADER = "  PID  %CPU %MEM COMM"


class FakeRunner:
    """CommandRunner stand-in keyed on argv[0]'s basename.

    responses maps a program name ("ps", "lsof", "launchctl", "kill") to
    either a CommandResult, None (spawn failure or timeout), or a callable
    taking argv and returning one of those.
    """

    def __init__(self, responses: dict | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[tuple[list[str], float]] = []

    def run(self, argv: list[str], timeout: float) -> CommandResult | None:
        self.calls.append((list(argv), timeout))
        response = self.responses.get(Path(argv[0]).name)
        if callable(response):
            return response(argv)
        return response

    def calls_to(self, program: str) -> list[list[str]]:
        return [argv for argv, _ in self.calls if Path(argv[0]).name == program]


def ok(stdout: str = "") -> CommandResult:
    """A successful CommandResult."""
    return CommandResult(returncode=0, stdout=stdout, stderr="", duration=0.01)


def failed(returncode: int = 1, stderr: str = "") -> CommandResult:
    """A CommandResult with a non-zero exit status."""
    return CommandResult(returncode=returncode, stdout="", stderr=stderr, duration=0.01)


def ps_output(*rows: str) -> CommandResult:
    """ps output with a header line followed by rows."""
    return ok("\n".join([PS_HEADER, *rows]) + "\n")


def make_app(
    pid: int,
    name: str | None = "App",
    executable_path: str | None = None,
    bundle_path: str | None = None,
    bundle_identifier: str | None = None,
    policy: ActivationPolicy = ActivationPolicy.REGULAR,
) -> RunningApplication:
    """Create a RunningApplication for testing."""
    return RunningApplication(
        pid=pid,
        name=name,
        bundle_identifier=bundle_identifier,
        executable_path=executable_path,
        bundle_path=bundle_path,
        activation_policy=policy,
    )


def make_record(
    pid: int = 123,
    command: str = "test_cmd",
    cpu: float = 1.0,
    mem: float = 0.5,
    process_type: ProcessType = ProcessType.UNKNOWN,
    category: ProcessCategory | None = None,
    executable_path: str | None = None,
    is_application: bool = False,
    bundle_identifier: str | None = None,
) -> ProcessRecord:
    """Create a ProcessRecord directly, bypassing classification."""
    if category is None:
        category = categorize(process_type)
    return ProcessRecord(
        pid=pid,
        cpu_percent=cpu,
        memory_percent=mem,
        command=command,
        executable_path=executable_path or command,
        process_type=process_type,
        category=category,
        is_application=is_application,
        bundle_identifier=bundle_identifier,
    )


def make_introspection(
    runner: FakeRunner | None = None, apps: list[RunningApplication] | None = None
) -> ProcessIntrospection:
    """ProcessIntrospection over fakes."""
    return ProcessIntrospection(
        runner=runner or FakeRunner(),
        registry=StaticRegistry(apps),
    )


def make_scanner(
    runner: FakeRunner, apps: list[RunningApplication] | None = None, enhanced: bool = False
) -> ProcessScanningService:
    """ProcessScanningService wired to a FakeRunner and a StaticRegistry."""
    registry = StaticRegistry(apps)
    introspection = ProcessIntrospection(runner=runner, registry=registry)
    return ProcessScanningService(
        table_scanner=TableScanner(runner),
        enumerator=ForegroundAppEnumerator(registry),
        classifier=ProcessClassifier(introspection),
        introspection=introspection,
        enhanced=enhanced,
    )


def write_bundle(root: Path, name: str, info: dict) -> Path:
    """Create <root>/<name>.app/Contents/Info.plist and return the bundle path."""
    bundle = root / f"{name}.app"
    contents = bundle / "Contents"
    (contents / "MacOS").mkdir(parents=True)
    with open(contents / "Info.plist", "wb") as f:
        plistlib.dump(info, f)
    return bundle


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def config() -> Config:
    return Config()
