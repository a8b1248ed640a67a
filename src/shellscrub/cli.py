"""shellscrub command line.

``shellscrub hook`` is the Claude Code command hook; the rest are operator
tools for inspecting and verifying the rewrite.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from shellscrub import configure_logging
from shellscrub.bootstrap import create_registry
from shellscrub.claude_settings import SETTINGS_FILE, install_hook
from shellscrub.config import Settings, get_settings
from shellscrub.environment import find_leaked_secrets, retained_secrets
from shellscrub.errors import ConfigurationError, MalformedPayloadError
from shellscrub.hooks.registry import HookRegistry
from shellscrub.protocol import handle_payload
from shellscrub.runtime import ToolRuntime
from shellscrub.sanitizer import sanitize_command

NEON_CYAN = "#80ffea"
ELECTRIC_PURPLE = "#e135ff"
SUCCESS_GREEN = "#50fa7b"
ERROR_RED = "#ff6363"

# Hook protocol: exit 2 makes Claude Code block the tool call
BLOCK_EXIT_CODE = 2

console = Console(stderr=True)

app = typer.Typer(
    name="shellscrub",
    help="Keep parent-process secrets out of agent shell subprocesses",
    add_completion=False,
    no_args_is_help=True,
)


def success(message: str) -> None:
    console.print(f"[{SUCCESS_GREEN}]✓[/{SUCCESS_GREEN}] {message}")


def error(message: str) -> None:
    console.print(f"[{ERROR_RED}]✗[/{ERROR_RED}] {message}")


def _load() -> tuple[Settings, HookRegistry]:
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        return settings, create_registry(settings)
    except ConfigurationError as e:
        error(e.message)
        raise typer.Exit(1) from e


@app.command()
def rewrite(
    command: Annotated[str, typer.Argument(help="Shell command to sanitize")],
) -> None:
    """Print the command as it would be executed."""
    settings = get_settings()
    try:
        secrets = settings.secret_set()
    except ConfigurationError as e:
        error(e.message)
        raise typer.Exit(1) from e
    typer.echo(sanitize_command(command, secrets) if command else command)


def _respond_to_hook(stdin: str) -> dict:
    settings = get_settings()
    configure_logging(settings.log_level)
    registry = create_registry(settings)

    payload = json.loads(stdin or "{}")
    if not isinstance(payload, dict):
        raise MalformedPayloadError("Hook payload is not a JSON object")
    return handle_payload(registry, payload)


@app.command()
def hook() -> None:
    """Claude Code PreToolUse command hook (JSON on stdin, JSON on stdout).

    Any failure, including bad configuration, exits with the blocking code:
    exit 1 would let Claude Code run the original command.
    """
    try:
        response = _respond_to_hook(sys.stdin.read())
    except Exception as e:
        typer.echo(f"shellscrub: blocking tool call: {e}", err=True)
        raise typer.Exit(BLOCK_EXIT_CODE) from e

    typer.echo(json.dumps(response))


@app.command()
def run(
    command: Annotated[str, typer.Argument(help="Shell command to run sanitized")],
    tool: Annotated[str, typer.Option("--tool", "-t", help="Tool name to dispatch as")] = "",
) -> None:
    """Run a command through the hook pipeline and print its output."""
    settings, registry = _load()
    runtime = ToolRuntime(
        registry=registry,
        shell_tools=settings.shell_tools,
        timeout_seconds=settings.command_timeout,
    )
    result = asyncio.run(runtime.execute(tool or settings.shell_tools[0], {"command": command}))

    if result.output:
        typer.echo(result.output, nl=False)
    if result.error:
        typer.echo(result.error, err=True, nl=False)
    if result.status == "blocked":
        raise typer.Exit(BLOCK_EXIT_CODE)
    if result.exit_code is not None:
        raise typer.Exit(result.exit_code)
    raise typer.Exit(0 if result.ok else 1)


@app.command()
def check() -> None:
    """Show which protected names the parent process currently holds."""
    settings = get_settings()
    try:
        secrets = settings.secret_set()
    except ConfigurationError as e:
        error(e.message)
        raise typer.Exit(1) from e

    held = set(retained_secrets(secrets))
    table = Table(title="Protected variables", border_style=NEON_CYAN)
    table.add_column("Name", style=ELECTRIC_PURPLE)
    table.add_column("Parent", style=NEON_CYAN)
    for name in secrets.names:
        table.add_row(name, "set" if name in held else "missing")
    Console().print(table)


@app.command()
def verify() -> None:
    """Spawn ``env`` through the pipeline and fail if a protected name leaks."""
    settings, registry = _load()
    secrets = settings.secret_set()
    runtime = ToolRuntime(
        registry=registry,
        shell_tools=settings.shell_tools,
        timeout_seconds=settings.command_timeout,
    )
    result = asyncio.run(runtime.execute(settings.shell_tools[0], {"command": "env"}))

    if not result.ok:
        error(f"env did not run: {result.status} {result.error or ''}".rstrip())
        raise typer.Exit(1)

    leaked = find_leaked_secrets(result.output, secrets)
    if leaked:
        error(f"Leaked into subprocess: {', '.join(leaked)}")
        raise typer.Exit(1)
    success(f"No protected variables visible to subprocess ({', '.join(secrets.names)})")


@app.command()
def install(
    settings_file: Annotated[
        Path, typer.Option("--settings", help="Claude Code settings.json to update")
    ] = SETTINGS_FILE,
) -> None:
    """Register ``shellscrub hook`` as a PreToolUse hook in Claude Code settings."""
    settings = get_settings()
    try:
        report = install_hook(settings_file, shell_tools=settings.shell_tools)
    except ConfigurationError as e:
        error(e.message)
        raise typer.Exit(1) from e

    if report.backup:
        success(f"Backed up existing settings to {report.backup.name}")
    if report.preserved:
        success(f"Preserved {report.preserved} existing hooks")
    success(f"PreToolUse hook installed for {report.matcher} in {report.settings_file}")


if __name__ == "__main__":
    app()
