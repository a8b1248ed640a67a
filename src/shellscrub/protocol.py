"""Claude Code hook JSON protocol helpers.

Shared by the SDK adapter (in-process callbacks) and the ``shellscrub hook``
command (out-of-process command hook). Both speak the same payload shape::

    in:  {"hook_event_name": "PreToolUse", "tool_name": "Bash",
          "tool_input": {"command": "..."}, "tool_use_id": "..."}
    out: {"hookSpecificOutput": {"hookEventName": "PreToolUse",
          "updatedInput": {...}}}
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from shellscrub.errors import MalformedPayloadError
from shellscrub.hooks.events import HookEvent
from shellscrub.hooks.registry import HookRegistry
from shellscrub.models import ToolInvocation


def parse_payload(payload: Mapping[str, Any], tool_use_id: str | None = None) -> ToolInvocation:
    """Build a ToolInvocation from a hook payload."""
    tool_name = payload.get("tool_name")
    if not isinstance(tool_name, str) or not tool_name:
        raise MalformedPayloadError("Hook payload has no tool_name")

    tool_input = payload.get("tool_input", {})
    if tool_input is None:
        tool_input = {}
    if not isinstance(tool_input, Mapping):
        raise MalformedPayloadError(
            "Hook payload tool_input is not an object",
            details={"tool_name": tool_name},
        )

    try:
        return ToolInvocation(
            tool_name=tool_name,
            tool_input=dict(tool_input),
            tool_use_id=tool_use_id or payload.get("tool_use_id"),
        )
    except ValidationError as e:
        raise MalformedPayloadError(f"Invalid hook payload: {e}") from e


def updated_output(event: str, original: ToolInvocation, final: ToolInvocation) -> dict[str, Any]:
    """Hook output carrying ``updatedInput`` when dispatch changed the input."""
    if final.tool_input == original.tool_input:
        return {}
    return {
        "hookSpecificOutput": {
            "hookEventName": str(event),
            "updatedInput": final.tool_input,
        }
    }


def block_output(event: str, reason: str) -> dict[str, Any]:
    """Hook output that stops the tool call."""
    if str(event) == HookEvent.PRE_TOOL_USE:
        return {
            "hookSpecificOutput": {
                "hookEventName": str(event),
                "permissionDecision": "deny",
                "permissionDecisionReason": reason,
            }
        }
    return {"decision": "block", "reason": reason}


def handle_payload(
    registry: HookRegistry,
    payload: Mapping[str, Any],
    *,
    event: str | None = None,
    tool_use_id: str | None = None,
) -> dict[str, Any]:
    """Dispatch one hook payload and return the protocol response.

    Raises:
        MalformedPayloadError: payload cannot be turned into an invocation.
        HookDispatchError: a callback failed; callers must block the tool.
    """
    event = str(event or payload.get("hook_event_name") or HookEvent.PRE_TOOL_USE)
    invocation = parse_payload(payload, tool_use_id)
    final = registry.dispatch(event, invocation)
    return updated_output(event, invocation, final)


__all__ = [
    "MalformedPayloadError",
    "block_output",
    "handle_payload",
    "parse_payload",
    "updated_output",
]
