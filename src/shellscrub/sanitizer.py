"""Shell command sanitizer registered as a PreToolUse hook.

The rewrite runs ``unset`` as the first statement of the same shell the tool
spawns, so the protected names are removed from exactly that subprocess (and
anything it forks) before any agent-supplied text executes. The parent's own
environment is never touched.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from shellscrub.config import DEFAULT_SHELL_TOOLS
from shellscrub.hooks.events import HookEvent
from shellscrub.hooks.registry import HookRegistry
from shellscrub.models import HookRegistration, HookResult, SecretSet, ToolInvocation

log = structlog.get_logger()

COMMAND_FIELD = "command"


def build_unset_prefix(secrets: SecretSet) -> str:
    """Shell prefix that drops every protected name, silencing its own errors."""
    return f"unset {' '.join(secrets.names)} 2>/dev/null; "


def sanitize_command(command: str, secrets: SecretSet) -> str:
    """Prepend the unset prefix; ``command`` follows unmodified."""
    return build_unset_prefix(secrets) + command


@dataclass(frozen=True)
class SanitizingInterceptor:
    """PreToolUse callback that rewrites shell commands.

    Holds only the immutable SecretSet, so one instance can serve concurrent
    invocations without locking.
    """

    secrets: SecretSet
    command_field: str = COMMAND_FIELD

    def __call__(self, invocation: ToolInvocation) -> HookResult:
        command = invocation.tool_input.get(self.command_field)
        if not isinstance(command, str) or not command:
            return HookResult.unchanged()

        updated = dict(invocation.tool_input)
        updated[self.command_field] = sanitize_command(command, self.secrets)
        log.debug(
            "shell_command_sanitized",
            tool=invocation.tool_name,
            tool_use_id=invocation.tool_use_id,
            protected=len(self.secrets),
        )
        return HookResult.replace(updated)


def shell_tool_matcher(shell_tools: Iterable[str]) -> str:
    """Regex alternation matching exactly the given tool names."""
    return "|".join(re.escape(tool) for tool in shell_tools)


def register_sanitizer(
    registry: HookRegistry,
    secrets: SecretSet,
    shell_tools: Iterable[str] = DEFAULT_SHELL_TOOLS,
) -> HookRegistration:
    """Register the sanitizer for PreToolUse on the shell tools.

    Called once during process initialization, next to any other lifecycle
    hooks (pre-compaction and friends).
    """
    tools = tuple(shell_tools)
    if not tools:
        raise ValueError("At least one shell tool name is required")

    registration = registry.register(
        HookEvent.PRE_TOOL_USE,
        SanitizingInterceptor(secrets),
        matcher=shell_tool_matcher(tools),
        name="sanitize_shell_command",
    )
    log.info("sanitizer_registered", shell_tools=list(tools), protected=list(secrets.names))
    return registration
