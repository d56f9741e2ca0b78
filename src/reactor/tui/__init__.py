"""Terminal dashboard."""

from reactor.tui.app import ReactorApp, run_tui

__all__ = ["ReactorApp", "run_tui"]
