"""Hook registry and event names."""

from shellscrub.hooks.events import HookEvent
from shellscrub.hooks.registry import HookRegistry

__all__ = ["HookEvent", "HookRegistry"]
