"""Process classification.

classify() walks CLASSIFICATION_RULES in order and returns the first
non-None answer. The order matters: OS-provided signals (application
registry, bundle layout) come before launchd descriptors and path
prefixes, and the name heuristic comes last.
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from reactor.introspection import ProcessIntrospection
from reactor.models import ProcessCategory, ProcessType, read_bundle_info
from reactor.workspace import ActivationPolicy

KERNEL_TASK = "kernel_task"
LOGIN_WINDOW_BUNDLE = "loginwindow.app"

SYSTEM_BUNDLE_PREFIXES = ("/system/applications/",)
SYSTEM_BUNDLE_MARKERS = ("/system/library/coreservices/", "/applications/utilities/")

SYSTEM_DAEMON_PREFIXES = ("/system/library/", "/usr/libexec/", "/usr/sbin/", "/sbin/")
USER_AGENT_MARKER = "/library/launchagents/"

HELPER_KEYWORDS = ("helper", "service", "agent")

# ".app" closing a path segment
_BUNDLE_RE = re.compile(r"\.app(?=/|$)", re.IGNORECASE)

_CATEGORY_FOR_TYPE = {
    ProcessType.USER_APPLICATION: ProcessCategory.APPLICATIONS,
    ProcessType.SYSTEM_APPLICATION: ProcessCategory.APPLICATIONS,
    ProcessType.SYSTEM_DAEMON: ProcessCategory.SYSTEM_SERVICES,
    ProcessType.BACKGROUND_TASK: ProcessCategory.BACKGROUND_PROCESSES,
    ProcessType.USER_DAEMON: ProcessCategory.DAEMONS,
    ProcessType.KERNEL: ProcessCategory.KERNEL_PROCESSES,
    ProcessType.UNKNOWN: ProcessCategory.BACKGROUND_PROCESSES,
}


def categorize(process_type: ProcessType) -> ProcessCategory:
    """Category for a type. UNKNOWN maps to BACKGROUND_PROCESSES."""
    return _CATEGORY_FOR_TYPE[process_type]


# ─────────────────────────────────────────────────────────────────────────────
# Bundle helpers
# ─────────────────────────────────────────────────────────────────────────────


def app_bundle_path(path: str) -> str | None:
    """Return the enclosing .app bundle root of path, or None.

    A path is inside a bundle when an `.app` segment is followed by
    `/Contents`, or when the `.app` directory holds Contents/Info.plist.
    """
    for match in _BUNDLE_RE.finditer(path):
        root = path[: match.end()]
        rest = path[match.end() :]
        if rest.lower().startswith("/contents"):
            return root
        if os.path.isfile(os.path.join(root, "Contents", "Info.plist")):
            return root
    return None


def is_system_bundle(path: str) -> bool:
    """True when path lies under a system application root."""
    lp = path.lower()
    return lp.startswith(SYSTEM_BUNDLE_PREFIXES) or any(m in lp for m in SYSTEM_BUNDLE_MARKERS)


def is_login_window(path: str) -> bool:
    bundle = app_bundle_path(path)
    return bundle is not None and Path(bundle).name.lower() == LOGIN_WINDOW_BUNDLE


# ─────────────────────────────────────────────────────────────────────────────
# Rules
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Subject:
    """Inputs for one classification."""

    pid: int
    command: str
    path: str

    @property
    def lc_command(self) -> str:
        return self.command.lower()

    @property
    def lc_path(self) -> str:
        return self.path.lower()


Rule = Callable[[Subject, ProcessIntrospection], ProcessType | None]


def kernel_rule(subject: Subject, introspection: ProcessIntrospection) -> ProcessType | None:
    cmd = subject.lc_command
    if subject.pid == 0 or cmd == KERNEL_TASK or " kernel" in cmd:
        return ProcessType.KERNEL
    return None


def registry_rule(subject: Subject, introspection: ProcessIntrospection) -> ProcessType | None:
    app = introspection.running_application(subject.pid)
    if app is None:
        return None
    if app.activation_policy is ActivationPolicy.REGULAR:
        if is_system_bundle(subject.path):
            return ProcessType.SYSTEM_APPLICATION
        return ProcessType.USER_APPLICATION
    if app.activation_policy is ActivationPolicy.ACCESSORY:
        return ProcessType.BACKGROUND_TASK
    # PROHIBITED: no UI, keep looking
    return None


def bundle_rule(subject: Subject, introspection: ProcessIntrospection) -> ProcessType | None:
    if app_bundle_path(subject.path) is None:
        return None
    if is_login_window(subject.path) or is_system_bundle(subject.path):
        return ProcessType.SYSTEM_APPLICATION
    return ProcessType.USER_APPLICATION


def service_rule(subject: Subject, introspection: ProcessIntrospection) -> ProcessType | None:
    info = introspection.service_info(subject.pid)
    if info is None:
        return None
    if info.plist_path:
        plist = info.plist_path.lower()
        if "/launchdaemons/" in plist:
            return ProcessType.SYSTEM_DAEMON
        if "/launchagents/" in plist:
            return ProcessType.USER_DAEMON
    if info.service_type and "user" in info.service_type.lower():
        return ProcessType.USER_DAEMON
    return None


def path_prefix_rule(subject: Subject, introspection: ProcessIntrospection) -> ProcessType | None:
    lp = subject.lc_path
    if lp.startswith(SYSTEM_DAEMON_PREFIXES):
        return ProcessType.SYSTEM_DAEMON
    if USER_AGENT_MARKER in lp:
        return ProcessType.USER_DAEMON
    return None


def name_rule(subject: Subject, introspection: ProcessIntrospection) -> ProcessType | None:
    if any(keyword in subject.lc_command for keyword in HELPER_KEYWORDS):
        return ProcessType.BACKGROUND_TASK
    return None


CLASSIFICATION_RULES: tuple[tuple[str, Rule], ...] = (
    ("kernel", kernel_rule),
    ("registry", registry_rule),
    ("bundle", bundle_rule),
    ("service", service_rule),
    ("path_prefix", path_prefix_rule),
    ("name", name_rule),
)


# ─────────────────────────────────────────────────────────────────────────────
# Classifier
# ─────────────────────────────────────────────────────────────────────────────


class ProcessClassifier:
    """Assigns a ProcessType and ProcessCategory to a process."""

    def __init__(
        self,
        introspection: ProcessIntrospection | None = None,
        rules: tuple[tuple[str, Rule], ...] = CLASSIFICATION_RULES,
    ) -> None:
        self.introspection = introspection or ProcessIntrospection.shared()
        self.rules = rules

    def resolve_path(self, command: str, full_path: str, pid: int) -> str:
        if full_path:
            return full_path
        return self.introspection.executable_path(pid) or command

    def explain(self, command: str, full_path: str, pid: int) -> tuple[str, ProcessType]:
        """Return the name of the deciding rule and its answer."""
        subject = Subject(pid=pid, command=command, path=self.resolve_path(command, full_path, pid))
        for name, rule in self.rules:
            result = rule(subject, self.introspection)
            if result is not None:
                return name, result
        return "default", ProcessType.UNKNOWN

    def classify(self, command: str, full_path: str, pid: int) -> ProcessType:
        """Classify a process; an empty full_path is resolved from the pid."""
        return self.explain(command, full_path, pid)[1]

    def categorize(self, process_type: ProcessType) -> ProcessCategory:
        return categorize(process_type)

    def is_application(self, command: str, full_path: str) -> bool:
        """True when the executable lives inside an application bundle."""
        return app_bundle_path(full_path or command) is not None

    def bundle_identifier(self, full_path: str) -> str | None:
        """CFBundleIdentifier from the enclosing bundle's Info.plist, if any."""
        bundle = app_bundle_path(full_path)
        if bundle is None:
            return None
        info = read_bundle_info(bundle)
        if not info:
            return None
        identifier = info.get("CFBundleIdentifier")
        return identifier if isinstance(identifier, str) else None
