"""Command Center CLI — main application entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.table import Table

from cmdcenter.engine.config import WatcherConfig
from cmdcenter.engine.errors import CommandCenterError
from cmdcenter.engine.paths import normalize_cwd
from cmdcenter.engine.state_file import ParseFailure, StateFileReader

logger = logging.getLogger(__name__)


def configure_logging(config: WatcherConfig, *, to_stderr: bool) -> Path:
    """Rotating file log under ``config.log_dir``; optionally mirror to stderr."""
    config.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = config.log_dir / "cmdcenter.log"

    root = logging.getLogger()
    root.setLevel(getattr(logging, config.log_level, logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"
    )
    file_handler = RotatingFileHandler(
        log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    if to_stderr:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)
    return log_file


def parse_terminal_arg(value: str) -> tuple[str, str]:
    """argparse type for ``--terminal ID=CWD``."""
    terminal_id, sep, cwd = value.partition("=")
    if not sep or not terminal_id or not cwd:
        raise argparse.ArgumentTypeError(
            f"expected ID=CWD, got {value!r}"
        )
    return terminal_id, str(Path(cwd).expanduser())


def load_config(config_path: str | None) -> WatcherConfig:
    """Env config, with the YAML file (explicit or auto-discovered) on top."""
    config = WatcherConfig.from_env()
    if config_path is None:
        candidate = Path.home() / ".cmdcenter" / "config.yaml"
        if candidate.exists():
            config_path = str(candidate)
    if config_path:
        from cmdcenter.engine.yaml_config import load_yaml_config

        config = load_yaml_config(config_path, base=config)
    return config


def build_status_table(config: WatcherConfig) -> Table:
    """Render the shared state file as a table, newest first."""
    table = Table(title=str(config.state_file_path))
    table.add_column("Session", style="cyan", no_wrap=True)
    table.add_column("Directory")
    table.add_column("Event")
    table.add_column("State", style="bold")
    table.add_column("Updated", style="dim")

    result = StateFileReader(config.state_file_path).read()
    if isinstance(result, ParseFailure):
        table.caption = f"unreadable: {result.reason}"
        return table
    for record in sorted(result.values(), key=lambda r: r.timestamp_ms, reverse=True):
        table.add_row(
            record.session_id,
            normalize_cwd(record.cwd),
            record.event_name,
            record.display_state.value if record.display_state else "—",
            datetime.fromtimestamp(record.timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S"),
        )
    if not result:
        table.caption = "no sessions"
    return table


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="cmdcenter",
        description="Track agent session state for terminals via hook callbacks",
    )
    parser.add_argument(
        "--server", action="store_true",
        help="Run the HTTP/SSE bridge instead of the TUI",
    )
    parser.add_argument("--host", default=None, help="Server bind host")
    parser.add_argument("--port", type=int, default=None, help="Server port (0 = any)")
    parser.add_argument(
        "--terminal", "-t",
        action="append", type=parse_terminal_arg, default=[],
        metavar="ID=CWD",
        help="Register a terminal at startup (repeatable)",
    )
    parser.add_argument(
        "--install-hooks", action="store_true",
        help="Add hook entries to the agent tool settings and exit",
    )
    parser.add_argument(
        "--uninstall-hooks", action="store_true",
        help="Remove hook entries from the agent tool settings and exit",
    )
    parser.add_argument(
        "--status", action="store_true",
        help="Print the shared state file and exit",
    )
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging",
    )
    args = parser.parse_args(argv)

    console = Console()
    try:
        config = load_config(args.config)
    except CommandCenterError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(2)
    if args.verbose:
        config.log_level = "DEBUG"

    if args.status:
        console.print(build_status_table(config))
        sys.exit(0)

    if args.install_hooks or args.uninstall_hooks:
        from cmdcenter.hooks.installer import install_hooks, uninstall_hooks

        configure_logging(config, to_stderr=False)
        try:
            if args.install_hooks:
                changed = install_hooks(config.settings_path)
                verb = "Installed/updated"
            else:
                changed = uninstall_hooks(config.settings_path)
                verb = "Removed"
        except CommandCenterError as exc:
            console.print(f"[red]{exc}[/red]")
            sys.exit(1)
        if changed:
            console.print(f"{verb} hooks for: {', '.join(changed)}")
            if args.install_hooks:
                console.print("[dim]Restart the agent tool for hooks to take effect.[/dim]")
        elif args.install_hooks:
            console.print("Hooks already up to date.")
        else:
            console.print("No hooks to remove.")
        sys.exit(0)

    if args.server:
        from cmdcenter.server.server import CommandCenterServer

        log_file = configure_logging(config, to_stderr=True)
        logger.info(
            "Starting server mode state_file=%s config=%s log=%s",
            config.state_file_path, args.config or "<none>", log_file,
        )
        server = CommandCenterServer(config, host=args.host, port=args.port)
        for terminal_id, cwd in args.terminal:
            server.bridge.register_terminal(terminal_id, cwd)
        try:
            asyncio.run(server.start())
        except KeyboardInterrupt:
            pass
        sys.exit(0)

    # TUI mode
    from cmdcenter.tui.app import CommandCenterApp

    configure_logging(config, to_stderr=False)
    app = CommandCenterApp(config=config, terminals=args.terminal)
    app.run()


if __name__ == "__main__":
    main()
