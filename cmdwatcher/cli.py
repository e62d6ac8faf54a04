import json
import os
import signal
import time

import click
from rich.console import Console
from rich.table import Table

from cmdwatcher import config
from cmdwatcher import daemon as daemon_module
from cmdwatcher import logger as cw_logger
from cmdwatcher.config import EventType
from cmdwatcher.errors import ConfigError
from cmdwatcher.router import EventRouter
from cmdwatcher.watcher import install_signal_handlers


@click.group()
@click.option("--config", "-c", "rules_path", default=None, help="Path to the watch rules file or directory (JSON/YAML).")
@click.option("--settings", "-s", "settings_path", default=None, help="Path to settings TOML file.")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx, rules_path, settings_path, debug):
    """
    CmdWatcher CLI: Run commands when files in watched folders change.
    """
    try:
        settings = config.load_settings(settings_path)
    except ConfigError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        ctx.exit(1)
    if debug:
        settings["logging"]["level"] = "DEBUG"

    cw_logger.setup_logger(
        "cmdwatcher",
        level=cw_logger.parse_level(settings["logging"]["level"]),
        console=settings["logging"].get("console", True),
    )
    ctx.obj = {
        "settings": settings,
        "rules_path": config.resolve_rules_path(rules_path, settings),
        "debug": debug,
    }


def get_log_dir(settings):
    settings_path = settings.get("__settings_path__")
    base_dir = os.path.dirname(os.path.abspath(settings_path)) if settings_path else os.getcwd()
    return os.path.join(base_dir, settings.get("logging", {}).get("log_dir", "logs"))


def load_rules_or_exit(ctx):
    rules_path = ctx.obj["rules_path"]
    try:
        rules = config.load_watch_rules_configs(rules_path)
    except ConfigError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        ctx.exit(1)
    return rules


@main.command()
@click.argument("path", required=False)
@click.option("--daemon", "as_daemon", is_flag=True, help="Detach and run as a daemon.")
@click.pass_context
def run(ctx, path, as_daemon):
    """
    Watch all configured folders until SIGINT or SIGTERM.

    PATH is accepted for compatibility with single-folder mode. It must be an
    existing directory but does not add a watch.
    """
    settings = ctx.obj["settings"]
    rules = load_rules_or_exit(ctx)
    click.echo(f"Configuration loaded successfully from {ctx.obj['rules_path']}.")

    if path is not None and not os.path.isdir(path):
        click.echo(f"Error: Specified path is not a valid directory: {path}", err=True)
        ctx.exit(1)

    log_dir = get_log_dir(settings)
    if as_daemon:
        click.echo("Starting daemon...")
        daemon_module.run_daemon(rules, settings, log_dir)
        return

    log_cfg = settings["logging"]
    cw_logger.setup_logger(
        "cmdwatcher",
        log_dir,
        log_cfg.get("log_file", "cmdwatcher.log"),
        level=cw_logger.parse_level(log_cfg.get("level", "INFO")),
        console=log_cfg.get("console", True),
    )
    manager = daemon_module.build_manager(rules, settings)
    install_signal_handlers(manager.shutdown)
    click.echo("Press Ctrl+C to stop monitoring...")
    manager.run()


@main.command()
@click.pass_context
def stop(ctx):
    """
    Stop the CmdWatcher daemon.
    """
    pid_file = daemon_module.get_pid_file(get_log_dir(ctx.obj["settings"]))
    pid = daemon_module.read_pid(pid_file)
    if pid is None:
        click.echo("Daemon is not running (pid file not found).")
        return
    try:
        os.kill(pid, signal.SIGTERM)
        click.echo(f"Sent SIGTERM to daemon (pid {pid}).")
        time.sleep(2)
    except OSError as e:
        click.echo(f"Error stopping daemon: {e}", err=True)


@main.command()
@click.pass_context
def status(ctx):
    """
    Check the status of the CmdWatcher daemon.
    Displays process info (memory, CPU, threads, start time) and rule count.
    """
    pid_file = daemon_module.get_pid_file(get_log_dir(ctx.obj["settings"]))
    pid = daemon_module.read_pid(pid_file)
    if pid is None:
        click.echo("Daemon is not running (pid file not found).")
        return

    info = daemon_module.process_status(pid)
    if info is None:
        click.echo("Daemon process not found.")
        return

    status_table = Table(title="CmdWatcher Daemon Status")
    status_table.add_column("Property", style="cyan")
    status_table.add_column("Value", style="magenta")
    for key, value in info.items():
        status_table.add_row(key, str(value))

    try:
        rules = config.load_watch_rules_configs(ctx.obj["rules_path"])
        status_table.add_row("Watch Rules", str(len(rules)))
        status_table.add_row("Folders", ", ".join(rule.folder for rule in rules))
    except ConfigError as e:
        status_table.add_row("Watch Rules", f"Error loading: {e}")

    Console().print(status_table)


@main.command(name="show-config")
@click.pass_context
def show_config(ctx):
    """
    Show the effective settings and the loaded watch rules.
    """
    settings = {k: v for k, v in ctx.obj["settings"].items() if not k.startswith("__")}
    click.echo(json.dumps(settings, indent=2))
    click.echo(f"Rules file: {ctx.obj['rules_path']}")

    rules = load_rules_or_exit(ctx)
    table = Table(title="Watch Rules")
    table.add_column("Folder", style="cyan")
    table.add_column("Extension")
    table.add_column("Events", style="magenta")
    table.add_column("Command")
    for rule in rules:
        table.add_row(
            rule.folder,
            rule.file_extension or "*",
            ", ".join(et.value for et in rule.enabled_events()) or "-",
            rule.command or "(observe only)",
        )
    Console().print(table)


@main.command()
@click.argument("path")
@click.option(
    "--event",
    "-e",
    "event_name",
    default=EventType.MODIFIED.value,
    type=click.Choice([et.value for et in EventType], case_sensitive=False),
    help="Event type to simulate.",
)
@click.pass_context
def trigger(ctx, path, event_name):
    """
    Route one event for PATH through every rule watching its folder.
    """
    rules = load_rules_or_exit(ctx)
    manager = daemon_module.build_manager(rules, ctx.obj["settings"])
    absolute_path = os.path.abspath(path)
    folder, name = os.path.split(absolute_path)
    event_type = EventType(event_name.lower())

    matched = [rule for rule in rules if rule.folder == folder]
    if not matched:
        click.echo(f"No watch rule covers folder {folder}.")
        return

    for rule in matched:
        router = EventRouter(rule, executor=manager.executor, reader=manager.reader)
        outcome = router.route(name, event_type)
        click.echo(f"{rule.folder} [{rule.file_extension or '*'}]: {outcome.value}")


if __name__ == "__main__":
    main()
