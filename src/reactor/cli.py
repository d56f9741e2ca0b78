"""CLI commands for reactor."""

import click

from reactor.models import ProcessCategory, ProcessType

_CATEGORY_CHOICES = {c.name.lower(): c for c in ProcessCategory}
_TYPE_CHOICES = {t.name.lower(): t for t in ProcessType}


def _load_config():
    """Load config, turning a bad config file into a clean exit."""
    from reactor import logging as rlog
    from reactor.config import Config

    try:
        config = Config.load()
    except ValueError as e:
        rlog.config_invalid(str(e))
        raise SystemExit(1)
    rlog.configure(config)
    return config


def _make_manager(config):
    from reactor.manager import ProcessManager

    return ProcessManager.from_config(config)


def _echo_table(records, truncate_length: int = 32) -> None:
    from reactor.formatting import truncate

    click.echo(f"{'PID':>7}  {'CPU':>6}  {'MEM':>6}  {'Type':18}  {'Process'}")
    click.echo("-" * 75)
    for r in records:
        click.echo(
            f"{r.pid:>7}  {r.formatted_cpu:>6}  {r.formatted_memory:>6}  "
            f"{r.process_type.value:18}  {truncate(r.display_name, truncate_length)}"
        )


@click.group()
@click.version_option()
def main() -> None:
    """Classify, watch and terminate macOS processes."""
    pass


@main.command("list")
@click.option(
    "--category",
    "-c",
    type=click.Choice(sorted(_CATEGORY_CHOICES)),
    default=None,
    help="Only show one category",
)
@click.option(
    "--type",
    "-t",
    "type_name",
    type=click.Choice(sorted(_TYPE_CHOICES)),
    default=None,
    help="Only show one process type",
)
@click.option("--all", "-a", "show_all", is_flag=True, help="Include system processes")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def list_processes(
    category: str | None, type_name: str | None, show_all: bool, as_json: bool
) -> None:
    """List processes grouped by category."""
    import json

    from reactor import logging as rlog

    config = _load_config()
    if show_all:
        config.preferences.show_system_processes = True
    manager = _make_manager(config)
    try:
        manager.get_all()
        records = manager.visible()
        degraded = manager.scanner.last_scan_degraded
    finally:
        manager.shutdown()

    if category:
        records = [r for r in records if r.category is _CATEGORY_CHOICES[category]]
    if type_name:
        records = [r for r in records if r.process_type is _TYPE_CHOICES[type_name]]

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in records], indent=2))
        return

    if degraded:
        rlog.scan_degraded()
    if not records:
        click.echo("No processes found.")
        return

    truncate_length = config.tui.command_truncate_length
    for cat in sorted(ProcessCategory, key=lambda c: c.priority):
        group = [r for r in records if r.category is cat]
        if not group:
            continue
        click.echo(f"\n{cat.value} ({len(group)})")
        _echo_table(group, truncate_length)


@main.command()
@click.option(
    "--by", "sort_by", type=click.Choice(["cpu", "memory"]), default="cpu", help="Sort key"
)
@click.option("--limit", "-n", default=10, help="Number of processes to show")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def top(sort_by: str, limit: int, as_json: bool) -> None:
    """Show the heaviest processes."""
    import json

    config = _load_config()
    manager = _make_manager(config)
    try:
        manager.get_all()
        if sort_by == "memory":
            records = manager.top_by_memory(limit)
        else:
            records = manager.top_by_cpu(limit)
    finally:
        manager.shutdown()

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in records], indent=2))
        return

    if not records:
        click.echo("No processes found.")
        return
    _echo_table(records, config.tui.command_truncate_length)


@main.command()
@click.argument("pid", type=int)
def show(pid: int) -> None:
    """Show details for one process."""
    from reactor.formatting import format_age

    config = _load_config()
    manager = _make_manager(config)
    try:
        manager.get_all()
        record = manager.find(pid)
        if record is None:
            click.echo(f"Process {pid} not found.", err=True)
            raise SystemExit(1)
        icon = manager.icon(record)
        rule, _ = manager.scanner.classifier.explain(
            record.command, record.executable_path, record.pid
        )
    finally:
        manager.shutdown()

    click.echo(record.detailed_description)
    if record.start_time is not None:
        click.echo(f"Age: {format_age(record.start_time)}")
    click.echo(f"Category: {record.category.value}")
    click.echo(f"Classified by: {rule}")
    click.echo(f"Icon: {icon.kind} {icon.name}")


@main.command()
@click.argument("pid", type=int)
@click.option("--force", "-f", is_flag=True, help="Send SIGKILL instead of SIGTERM")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def kill(pid: int, force: bool, yes: bool) -> None:
    """Terminate a process."""
    from reactor import logging as rlog

    config = _load_config()
    manager = _make_manager(config)
    signal_name = "SIGKILL" if force else "SIGTERM"
    try:
        if not yes:
            manager.get_all()
            record = manager.find(pid)
            label = f"{record.display_name} ({pid})" if record else str(pid)
            click.confirm(f"Send {signal_name} to {label}?", abort=True)

        ok = manager.force_kill_process(pid) if force else manager.kill_process(pid)
    finally:
        manager.shutdown()

    if not ok:
        rlog.termination_failed(pid, signal_name)
        raise SystemExit(1)
    rlog.termination_sent(pid, signal_name)


@main.command()
def info() -> None:
    """Show system memory and process count."""
    import time

    from reactor import logging as rlog

    config = _load_config()
    manager = _make_manager(config)
    try:
        start = time.monotonic()
        snapshot = manager.get_all(force_refresh=True)
        rlog.scan_complete(len(snapshot), time.monotonic() - start)
        if manager.scanner.last_scan_degraded:
            rlog.scan_degraded()
        system = manager.get_system_info()
    finally:
        manager.shutdown()

    click.echo(
        f"Memory: {system.formatted_used} / {system.formatted_total} "
        f"({system.formatted_percent})"
    )
    click.echo(f"Processes: {system.process_count}")


@main.command()
@click.option("--interval", "-i", default=None, type=float, help="Seconds between refreshes")
@click.option("--limit", "-n", default=10, help="Number of processes to show")
def watch(interval: float | None, limit: int) -> None:
    """Print the top processes by CPU until interrupted."""
    import threading

    from reactor.live import LiveUpdater

    config = _load_config()
    manager = _make_manager(config)
    interval = interval or config.preferences.refresh_interval

    def on_update(snapshot) -> None:
        click.clear()
        _echo_table(manager.top_by_cpu(limit), config.tui.command_truncate_length)

    updater = LiveUpdater(manager, interval, on_update)
    updater.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        updater.stop()
        manager.shutdown()


@main.command()
def tui() -> None:
    """Launch interactive dashboard."""
    from reactor.config import Config
    from reactor.tui import run_tui

    try:
        config = Config.load()
    except ValueError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        raise SystemExit(1)
    run_tui(config)


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    from reactor.config import Config

    cfg = Config.load()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[inventory]")
    click.echo(f"  cache_timeout = {cfg.inventory.cache_timeout}")
    click.echo(f"  scan_timeout = {cfg.inventory.scan_timeout}")
    click.echo(f"  service_timeout = {cfg.inventory.service_timeout}")
    click.echo(f"  lsof_timeout = {cfg.inventory.lsof_timeout}")
    click.echo(f"  icon_preload_count = {cfg.inventory.icon_preload_count}")
    click.echo(f"  refresh_after_kill = {cfg.inventory.refresh_after_kill}")
    click.echo(f"  enhanced_metadata = {cfg.inventory.enhanced_metadata}")
    click.echo()
    click.echo("[preferences]")
    click.echo(f"  refresh_interval = {cfg.preferences.refresh_interval}")
    click.echo(f"  show_system_processes = {cfg.preferences.show_system_processes}")
    click.echo()
    click.echo("[logging]")
    click.echo(f"  level = {cfg.logging.level}")


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    from reactor import logging as rlog
    from reactor.config import Config

    cfg = Config.load()

    # Create config if it doesn't exist
    if not cfg.config_path.exists():
        cfg.save()
        rlog.config_created(str(cfg.config_path))

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from reactor.config import Config

    cfg = Config()
    cfg.save()
    click.echo(f"Config reset to defaults at {cfg.config_path}")
