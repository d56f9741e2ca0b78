"""Bounded subprocess execution.

Every external lookup (ps, lsof, launchctl, kill) goes through
CommandRunner.run so timeouts, logging and failure handling live in one
place. Failures come back as None, never as exceptions.
"""

import subprocess
import time
from dataclasses import dataclass

import structlog

log = structlog.get_logger()


@dataclass(frozen=True)
class CommandResult:
    """Completed command output."""

    returncode: int
    stdout: str
    stderr: str
    duration: float

    @property
    def ok(self) -> bool:
        """True when the command exited with status 0."""
        return self.returncode == 0


class CommandRunner:
    """Run external commands with a hard timeout."""

    def run(self, argv: list[str], timeout: float) -> CommandResult | None:
        """Run argv and capture its output.

        Args:
            argv: Command and arguments (no shell)
            timeout: Seconds before the child is killed

        Returns:
            CommandResult (any exit status), or None if the command could not
            be spawned or timed out. On timeout the child is killed and its
            partial output discarded.
        """
        start = time.monotonic()
        try:
            completed = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            log.warning("command_timeout", argv=argv, timeout=timeout)
            return None
        except OSError as e:
            log.warning("command_failed", argv=argv, error=str(e))
            return None

        duration = time.monotonic() - start
        log.debug(
            "command_executed",
            argv=argv,
            returncode=completed.returncode,
            success=completed.returncode == 0,
            duration=round(duration, 4),
        )
        return CommandResult(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration=duration,
        )
