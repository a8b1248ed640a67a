"""Claude Agent SDK integration.

Exposes a HookRegistry as ``ClaudeAgentOptions(hooks=...)``::

    registry = HookRegistry()
    register_sanitizer(registry, settings.secret_set(), settings.shell_tools)
    options = ClaudeAgentOptions(hooks=merge_hooks(create_sdk_hooks(registry), user_hooks))
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from claude_agent_sdk import HookMatcher

from shellscrub.errors import HookDispatchError, MalformedPayloadError
from shellscrub.hooks.events import HookEvent
from shellscrub.hooks.registry import HookRegistry
from shellscrub.protocol import block_output, handle_payload

log = structlog.get_logger()


def _make_callback(registry: HookRegistry, event: str):
    async def dispatch_hook(
        input_data: dict[str, Any], tool_use_id: str | None, context: Any
    ) -> dict[str, Any]:
        try:
            return handle_payload(registry, input_data, event=event, tool_use_id=tool_use_id)
        except (HookDispatchError, MalformedPayloadError) as e:
            log.warning("sdk_hook_blocked", hook_event=event, error=e.message)
            return block_output(event, e.message)
        except Exception as e:
            log.error("sdk_hook_failed", hook_event=event, error=str(e))
            return block_output(event, f"shellscrub hook failed: {e}")

    dispatch_hook.__name__ = f"shellscrub_{event}"
    return dispatch_hook


def create_sdk_hooks(
    registry: HookRegistry,
    events: Iterable[str] = (HookEvent.PRE_TOOL_USE,),
) -> dict[str, list[HookMatcher]]:
    """Build the SDK ``hooks`` mapping, one catch-all matcher per event.

    Tool matching happens inside the registry so that callbacks compose in
    registration order within a single SDK callback.
    """
    return {
        str(event): [HookMatcher(matcher=None, hooks=[_make_callback(registry, str(event))])]
        for event in events
    }


def merge_hooks(
    primary: Mapping[str, list[HookMatcher]] | None,
    *others: Mapping[str, list[HookMatcher]] | None,
) -> dict[str, list[HookMatcher]]:
    """Concatenate per-event matcher lists; ``primary`` matchers run first."""
    merged: dict[str, list[HookMatcher]] = {}
    for hooks in (primary, *others):
        if not hooks:
            continue
        for event, matchers in hooks.items():
            merged.setdefault(event, []).extend(matchers)
    return merged
