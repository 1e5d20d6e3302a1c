"""Typer-powered command line for ``localdbctl``.

The commands inspect the descriptor left behind by a running local database
server: show it (password redacted), print where it lives, clear a stale one
and preview how a listen specification resolves on this host.
"""
from __future__ import annotations

import json
import logging
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from . import __version__
from .config import AppConfig, ConfigError, load_config
from .exit_codes import ExitCode
from .network import (
    AddressResolutionError,
    InterfaceAddresses,
    SystemInterfaces,
    resolve_listen_addresses,
)
from .state import (
    RunningInfoAbsence,
    RunningInfoStore,
    RunningInstanceInfo,
)

console = Console()
err_console = Console(stderr=True)

LOGGER = logging.getLogger(__name__)

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to localdbctl's YAML config file.",
)

JSON_OPTION = typer.Option(
    False,
    "--json",
    help="Emit machine-readable JSON instead of a table.",
)

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Inspect the descriptor of the locally running database server.

        The descriptor records the process id, listen addresses, port and
        credentials of the running server so other tools can connect to it.
        """
    ).strip(),
)


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config: AppConfig
    store: RunningInfoStore
    interfaces: InterfaceAddresses


def _configure_logging(level: str) -> None:
    package_logger = logging.getLogger("localdbctl")
    package_logger.setLevel(level.upper())
    if not any(isinstance(handler, RichHandler) for handler in package_logger.handlers):
        package_logger.addHandler(
            RichHandler(console=err_console, show_path=False, show_time=False)
        )


def _ensure_runtime(ctx: typer.Context, config_file: Path | None) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime

    try:
        config = load_config(config_file=config_file)
    except ConfigError as exc:
        _fail(str(exc), ExitCode.VALIDATION)

    _configure_logging(config.log_level)
    runtime = RuntimeContext(
        config=config,
        store=RunningInfoStore(config.running_info_file),
        interfaces=SystemInterfaces(),
    )
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    return _ensure_runtime(ctx, None)


def _fail(message: str, code: ExitCode) -> NoReturn:
    err_console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code=int(code))


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the localdbctl version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"localdbctl {__version__}")
        raise typer.Exit(code=0)

    _ensure_runtime(ctx, config_file)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


@app.command("status")
def status(ctx: typer.Context, json_output: bool = JSON_OPTION) -> None:
    """Show the recorded running instance (password redacted)."""
    runtime = _get_runtime(ctx)
    try:
        result = runtime.store.load_result()
    except OSError as exc:
        _fail(f"Unable to read {runtime.store.path}: {exc}", ExitCode.ENVIRONMENT)

    if result.info is None:
        if json_output:
            payload = {
                "running": False,
                "reason": result.absence.value if result.absence else None,
                "detail": result.detail,
                "path": str(runtime.store.path),
            }
            console.print_json(data=payload)
            return
        if result.absence is RunningInfoAbsence.UNPARSEABLE:
            typer.echo(
                f"No running instance recorded: {runtime.store.path} could not be parsed "
                f"({result.detail})."
            )
        else:
            typer.echo("No running instance recorded.")
        return

    if json_output:
        console.print_json(result.info.render_redacted())
        return

    console.print(_descriptor_table(result.info))


@app.command("path")
def path(ctx: typer.Context) -> None:
    """Print the location of the running instance file."""
    runtime = _get_runtime(ctx)
    typer.echo(str(runtime.store.path))


@app.command("clear")
def clear(ctx: typer.Context) -> None:
    """Remove the running instance file."""
    runtime = _get_runtime(ctx)
    try:
        runtime.store.remove()
    except FileNotFoundError:
        _fail(f"No running instance file at {runtime.store.path}.", ExitCode.ENVIRONMENT)
    except OSError as exc:
        _fail(f"Failed to remove {runtime.store.path}: {exc}", ExitCode.ENVIRONMENT)
    typer.echo(f"Removed {runtime.store.path}.")


listen_app = typer.Typer(help="Preview listen address resolution.")
config_app = typer.Typer(help="Inspect configuration.")

app.add_typer(listen_app, name="listen")
app.add_typer(config_app, name="config")


@listen_app.command("resolve")
def listen_resolve(
    ctx: typer.Context,
    addresses: list[str] | None = typer.Argument(
        None,
        help="Addresses to resolve; 'localhost' and '*' expand to host addresses.",
    ),
    json_output: bool = JSON_OPTION,
) -> None:
    """Show the addresses a listen specification resolves to."""
    runtime = _get_runtime(ctx)
    requested = list(addresses) if addresses else list(runtime.config.database.listen)
    try:
        resolved = resolve_listen_addresses(requested, interfaces=runtime.interfaces)
    except AddressResolutionError as exc:
        _fail(str(exc), ExitCode.PROVIDER)

    LOGGER.debug("Resolved listen addresses %s -> %s", requested, resolved)
    if json_output:
        console.print_json(data={"requested": requested, "resolved": resolved})
        return
    for address in resolved:
        typer.echo(address)


@config_app.command("show")
def config_show(ctx: typer.Context, json_output: bool = JSON_OPTION) -> None:
    """Render the effective configuration."""
    runtime = _get_runtime(ctx)
    data = runtime.config.to_dict()
    if json_output:
        console.print_json(json.dumps(data))
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in _flatten(data):
        table.add_row(key, Text(value))
    console.print(table)


def _descriptor_table(info: RunningInstanceInfo) -> Table:
    redacted = info.redacted()
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("pid", str(redacted.pid))
    table.add_row("listen", Text(", ".join(redacted.listen) or "(none)"))
    table.add_row("port", str(redacted.port))
    table.add_row("database", Text(redacted.database))
    table.add_row("user", Text(redacted.user))
    table.add_row("password", redacted.password)
    table.add_row("invoker", Text(str(redacted.invoker)))
    table.add_row("struct_version", str(redacted.struct_version))
    return table


def _flatten(data: dict[str, object], prefix: str = "") -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            rows.extend(_flatten(value, prefix=f"{name}."))
        elif isinstance(value, list):
            rows.append((name, ", ".join(str(item) for item in value)))
        else:
            rows.append((name, "" if value is None else str(value)))
    return rows


def main() -> None:
    """Console script entry point."""
    app()
