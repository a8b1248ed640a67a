"""Install the ``shellscrub hook`` command into Claude Code settings.

Backs up the existing settings file, drops any previous shellscrub entries,
keeps every other hook, and appends a PreToolUse entry for the shell tools.
"""

from __future__ import annotations

import json
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from shellscrub.config import DEFAULT_SHELL_TOOLS
from shellscrub.errors import ConfigurationError
from shellscrub.hooks.events import HookEvent
from shellscrub.sanitizer import shell_tool_matcher

log = structlog.get_logger()

SETTINGS_FILE = Path.home() / ".claude" / "settings.json"
HOOK_COMMAND = "shellscrub hook"
HOOK_TIMEOUT = 10


@dataclass
class InstallReport:
    """What ``install_hook`` did to the settings file."""

    settings_file: Path
    backup: Path | None
    preserved: int
    matcher: str


def build_hook_entry(
    shell_tools: Iterable[str] = DEFAULT_SHELL_TOOLS, command: str = HOOK_COMMAND
) -> dict[str, Any]:
    return {
        "matcher": shell_tool_matcher(shell_tools),
        "hooks": [{"type": "command", "command": command, "timeout": HOOK_TIMEOUT}],
    }


def is_shellscrub_hook(hook_entry: dict[str, Any]) -> bool:
    """Check if a settings hook entry runs shellscrub."""
    return any(
        "shellscrub" in str(hook.get("command", "")) for hook in hook_entry.get("hooks", [])
    )


def install_hook(
    settings_file: Path = SETTINGS_FILE,
    *,
    shell_tools: Iterable[str] = DEFAULT_SHELL_TOOLS,
    command: str = HOOK_COMMAND,
) -> InstallReport:
    """Add (or replace) the shellscrub PreToolUse entry in ``settings_file``.

    Raises:
        ConfigurationError: The existing file is not a JSON object.
    """
    settings_file.parent.mkdir(parents=True, exist_ok=True)

    settings: dict[str, Any] = {}
    if settings_file.exists():
        try:
            settings = json.loads(settings_file.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"{settings_file} is not valid JSON: {e}",
                details={"settings_file": str(settings_file)},
            ) from e
        if not isinstance(settings, dict):
            raise ConfigurationError(
                f"{settings_file} does not contain a JSON object",
                details={"settings_file": str(settings_file)},
            )

    backup: Path | None = None
    if settings_file.exists() and settings.get("hooks"):
        backup = settings_file.with_suffix(f".json.{datetime.now():%Y%m%d-%H%M%S}.bak")
        shutil.copy2(settings_file, backup)

    hooks: dict[str, list[dict[str, Any]]] = settings.get("hooks", {})
    preserved = 0
    for event in list(hooks.keys()):
        hooks[event] = [h for h in hooks[event] if not is_shellscrub_hook(h)]
        preserved += len(hooks[event])

    entry = build_hook_entry(shell_tools, command)
    # Runs ahead of other PreToolUse hooks so they see the sanitized command
    hooks[str(HookEvent.PRE_TOOL_USE)] = [entry, *hooks.get(str(HookEvent.PRE_TOOL_USE), [])]

    settings["hooks"] = hooks
    settings_file.write_text(json.dumps(settings, indent=2), encoding="utf-8")

    log.info(
        "hook_installed",
        settings_file=str(settings_file),
        backup=str(backup) if backup else None,
        preserved=preserved,
    )
    return InstallReport(
        settings_file=settings_file, backup=backup, preserved=preserved, matcher=entry["matcher"]
    )
