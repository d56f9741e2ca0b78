"""Live process dashboard for reactor.

Main screen: a header with memory and process count, and one table of
processes grouped by category. Refreshes on a timer through the manager's
cache; r forces a rescan, t and k terminate the selected process after a
confirmation dialog. Signals are sent from the worker pool.
"""

from typing import Any

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Footer, Label, Static

from reactor.config import Config
from reactor.formatting import truncate
from reactor.manager import ProcessManager
from reactor.models import ProcessCategory, ProcessRecord, ProcessType
from reactor.system import SystemInfo

LOADING_MESSAGE = "Loading processes..."


def type_style(process_type: ProcessType, config: Config) -> str:
    """Map a process type to its configured Rich color."""
    colors = config.tui.colors
    return {
        ProcessType.USER_APPLICATION: colors.user_application,
        ProcessType.SYSTEM_APPLICATION: colors.system_application,
        ProcessType.BACKGROUND_TASK: colors.background_task,
        ProcessType.USER_DAEMON: colors.user_daemon,
        ProcessType.SYSTEM_DAEMON: colors.system_daemon,
        ProcessType.KERNEL: colors.kernel,
        ProcessType.UNKNOWN: colors.unknown,
    }[process_type]


def build_rows(
    groups: dict[ProcessCategory, list[ProcessRecord]], limit: int
) -> list[tuple[str, ProcessCategory, ProcessRecord | None, int]]:
    """Flatten category groups into display rows.

    Each row is (kind, category, record, hidden) where kind is "header",
    "process" or "more". Empty categories are skipped; at most limit
    processes are shown per category, followed by a "more" row carrying
    the number hidden.
    """
    rows: list[tuple[str, ProcessCategory, ProcessRecord | None, int]] = []
    for category, records in groups.items():
        if not records:
            continue
        rows.append(("header", category, None, len(records)))
        for record in records[:limit]:
            rows.append(("process", category, record, 0))
        hidden = len(records) - limit
        if hidden > 0:
            rows.append(("more", category, None, hidden))
    return rows


class SummaryBar(Static):
    """Header showing memory usage and process count."""

    DEFAULT_CSS = """
    SummaryBar {
        height: 3;
        padding: 0 1;
        border: solid green;
        border-title-align: left;
    }

    SummaryBar Horizontal {
        height: 1;
        width: 100%;
    }

    SummaryBar #summary-left {
        width: 1fr;
    }

    SummaryBar #summary-right {
        width: auto;
    }
    """

    def compose(self) -> ComposeResult:
        yield Horizontal(
            Label(LOADING_MESSAGE, id="summary-left"),
            Label("", id="summary-right"),
        )

    def on_mount(self) -> None:
        self.border_title = "SYSTEM"

    def update_info(self, info: SystemInfo, cache_fresh: bool) -> None:
        """Show memory and process count."""
        try:
            left = self.query_one("#summary-left", Label)
            right = self.query_one("#summary-right", Label)
        except NoMatches:
            return
        left.update(
            f"Memory {info.formatted_used} / {info.formatted_total} "
            f"({info.formatted_percent})   Processes {info.process_count}"
        )
        right.update(Text("cached" if cache_fresh else "stale", style="dim"))


class ProcessTable(Static):
    """Processes grouped by category, a few per group."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
        border-title-align: left;
    }

    ProcessTable DataTable {
        width: 100%;
        height: 100%;
    }
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._table: DataTable | None = None
        self._row_pids: dict[int, int] = {}

    def compose(self) -> ComposeResult:
        yield DataTable(id="process-table", zebra_stripes=True, cursor_type="row")

    def on_mount(self) -> None:
        self.border_title = "PROCESSES"
        self._table = self.query_one("#process-table", DataTable)
        self._table.add_columns("PID", "Process", "Type", "CPU", "MEM")
        self.set_loading()

    def set_loading(self) -> None:
        """Show the loading marker (distinct from an empty inventory)."""
        if self._table is None:
            return
        self._table.clear()
        self._row_pids = {}
        self._table.add_row("", Text(LOADING_MESSAGE, style="dim italic"), "", "", "")

    def update_groups(
        self, groups: dict[ProcessCategory, list[ProcessRecord]], config: Config
    ) -> None:
        """Replace table contents with the grouped snapshot."""
        if self._table is None:
            return
        self._table.clear()
        self._row_pids = {}

        rows = build_rows(groups, config.tui.category_limit)
        if not rows:
            self._table.add_row("", Text("No processes", style="dim"), "", "", "")
            return

        length = config.tui.command_truncate_length
        for index, (kind, category, record, count) in enumerate(rows):
            if kind == "header":
                self._table.add_row(
                    "", Text(f"{category.value} ({count})", style="bold"), "", "", ""
                )
            elif kind == "more":
                self._table.add_row("", Text(f"... and {count} more", style="dim"), "", "", "")
            else:
                style = type_style(record.process_type, config)
                self._table.add_row(
                    Text(str(record.pid), style="dim"),
                    Text(truncate(record.display_name, length), style=style),
                    Text(record.process_type.value, style=style),
                    record.formatted_cpu,
                    record.formatted_memory,
                )
                self._row_pids[index] = record.pid

    def selected_pid(self) -> int | None:
        """PID under the cursor, or None on a header/marker row."""
        if self._table is None:
            return None
        return self._row_pids.get(self._table.cursor_row)


class ConfirmSignal(ModalScreen[bool]):
    """Ask before sending a signal; dismisses with True to go ahead."""

    DEFAULT_CSS = """
    ConfirmSignal {
        align: center middle;
    }

    ConfirmSignal #dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        border: thick $error;
        background: $surface;
    }

    ConfirmSignal #details {
        margin: 1 0;
    }

    ConfirmSignal #buttons {
        height: auto;
        align-horizontal: right;
    }

    ConfirmSignal Button {
        margin-left: 1;
    }
    """

    BINDINGS = [
        ("y", "confirm", "Yes"),
        ("n,escape", "cancel", "Cancel"),
    ]

    def __init__(self, record: ProcessRecord, signal_name: str) -> None:
        super().__init__()
        self.record = record
        self.signal_name = signal_name

    def compose(self) -> ComposeResult:
        label = "Force Kill" if self.signal_name == "SIGKILL" else "Terminate"
        with Vertical(id="dialog"):
            yield Label(
                f"Send {self.signal_name} to {self.record.display_name} ({self.record.pid})?"
            )
            yield Static(self.record.detailed_description, id="details")
            with Horizontal(id="buttons"):
                yield Button(label, variant="error", id="confirm")
                yield Button("Cancel", id="cancel")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class ReactorApp(App):
    """Live process dashboard for reactor."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #header {
        height: 3;
    }

    #main-area {
        height: 1fr;
    }
    """

    BINDINGS = [
        ("r", "refresh", "Refresh"),
        ("t", "terminate", "Terminate"),
        ("k", "force_kill", "Force kill"),
        ("q", "quit", "Quit"),
    ]

    def __init__(self, config: Config | None = None, manager: ProcessManager | None = None):
        super().__init__()
        self.config = config or Config.load()
        # Create config file with defaults if it doesn't exist
        if manager is None and not self.config.config_path.exists():
            self.config.save()
        self.manager = manager or ProcessManager.from_config(self.config)
        self._refreshing = False

    def compose(self) -> ComposeResult:
        yield SummaryBar(id="header")
        yield ProcessTable(id="main-area")
        yield Footer()

    def on_mount(self) -> None:
        self.title = "reactor"
        self.sub_title = "Processes"
        self.run_worker(self._refresh(force=False), exclusive=True)
        self.set_interval(self.config.preferences.refresh_interval, self._tick)

    def on_unmount(self) -> None:
        self.manager.shutdown()

    def _tick(self) -> None:
        if not self._refreshing:
            self.run_worker(self._refresh(force=False), exclusive=True)

    async def _refresh(self, force: bool) -> None:
        self._refreshing = True
        try:
            await self.manager.refresh_async(force_refresh=force)
        finally:
            self._refreshing = False
        self.show_snapshot()

    def show_snapshot(self) -> None:
        """Render the manager's cached snapshot."""
        try:
            table = self.query_one("#main-area", ProcessTable)
            header = self.query_one("#header", SummaryBar)
        except NoMatches:
            return
        table.update_groups(self.manager.grouped_by_category(), self.config)
        header.update_info(self.manager.get_system_info(), self.manager.is_cache_fresh())

    def action_refresh(self) -> None:
        self.run_worker(self._refresh(force=True), exclusive=True)

    def _selected_record(self) -> ProcessRecord | None:
        try:
            pid = self.query_one("#main-area", ProcessTable).selected_pid()
        except NoMatches:
            return None
        if pid is None:
            return None
        return self.manager.find(pid)

    def action_terminate(self) -> None:
        self._confirm_signal("SIGTERM")

    def action_force_kill(self) -> None:
        self._confirm_signal("SIGKILL")

    def _confirm_signal(self, signal_name: str) -> None:
        if isinstance(self.screen, ModalScreen):
            return
        record = self._selected_record()
        if record is None:
            return

        def handle(confirmed: bool | None) -> None:
            if confirmed:
                self.run_worker(self._send_signal(record.pid, signal_name), group="signal")

        self.push_screen(ConfirmSignal(record, signal_name), handle)

    async def _send_signal(self, pid: int, signal_name: str) -> None:
        if signal_name == "SIGKILL":
            success = await self.manager.force_kill_async(pid)
        else:
            success = await self.manager.kill_async(pid)
        if success:
            self.notify(f"Sent {signal_name} to {pid}")
        else:
            self.notify(f"Could not send {signal_name} to {pid}", severity="error")


def run_tui(config: Config | None = None) -> None:
    """Run the TUI application."""
    from reactor import logging as rlog

    config = config or Config.load()
    rlog.configure(config, source="tui")
    app = ReactorApp(config)
    app.run()
