"""Process-wide hook table with ordered, fail-closed dispatch.

Registrations are (event, matcher, callback) rows kept in insertion order.
``dispatch`` runs every row whose event and matcher apply, feeding each
callback the invocation produced by the one before it. Any matcher or
callback fault aborts the whole dispatch with ``HookDispatchError`` so the
caller never falls back to executing the untransformed input.
"""

from __future__ import annotations

import threading

import structlog

from shellscrub.errors import HookDispatchError
from shellscrub.models import HookCallback, HookRegistration, HookResult, Matcher, ToolInvocation

log = structlog.get_logger()


class HookRegistry:
    """Ordered collection of hook registrations keyed by event name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._registrations: list[HookRegistration] = []

    def register(
        self,
        event: str,
        callback: HookCallback,
        matcher: Matcher = None,
        *,
        name: str | None = None,
    ) -> HookRegistration:
        """Append a registration for ``event``.

        Args:
            event: Event name, e.g. ``HookEvent.PRE_TOOL_USE``.
            callback: Called with the pending invocation; returns a HookResult
                or None for "no change".
            matcher: Regex fully matched against the tool name, a predicate over
                the tool name, or None to match every tool.
            name: Label used in logs and errors. Defaults to the callback name.

        Returns:
            The stored registration.
        """
        registration = HookRegistration(
            event=str(event), callback=callback, matcher=matcher, name=name or ""
        )
        with self._lock:
            self._registrations.append(registration)
        log.debug(
            "hook_registered",
            hook_event=registration.event,
            hook=registration.name,
            matcher=matcher if isinstance(matcher, str) else None,
        )
        return registration

    def registrations(self, event: str | None = None) -> tuple[HookRegistration, ...]:
        """Consistent snapshot of the table, optionally filtered to one event."""
        with self._lock:
            rows = tuple(self._registrations)
        if event is None:
            return rows
        return tuple(r for r in rows if r.event == str(event))

    def matching(self, event: str, tool_name: str) -> tuple[HookRegistration, ...]:
        """Registrations that apply to ``tool_name`` for ``event``, in order."""
        return tuple(r for r in self.registrations(event) if r.matches(tool_name))

    def dispatch(self, event: str, invocation: ToolInvocation) -> ToolInvocation:
        """Run matching callbacks in order and return the final invocation.

        Raises:
            HookDispatchError: A matcher or callback raised, or a callback returned
                something other than a HookResult/None. The invocation must not
                be executed.
        """
        event = str(event)
        current = invocation

        for registration in self.registrations(event):
            try:
                if not registration.matches(invocation.tool_name):
                    continue
                result = registration.callback(current)
            except Exception as e:
                log.error(
                    "hook_dispatch_failed",
                    hook_event=event,
                    tool=invocation.tool_name,
                    hook=registration.name,
                    error=str(e),
                )
                raise HookDispatchError(
                    event, invocation.tool_name, registration.name, str(e)
                ) from e

            if result is None:
                continue
            if not isinstance(result, HookResult):
                log.error(
                    "hook_dispatch_failed",
                    hook_event=event,
                    tool=invocation.tool_name,
                    hook=registration.name,
                    error=f"unexpected result type {type(result).__name__}",
                )
                raise HookDispatchError(
                    event,
                    invocation.tool_name,
                    registration.name,
                    f"callback returned {type(result).__name__}, expected HookResult or None",
                )

            if result.changed:
                log.debug(
                    "hook_applied",
                    hook_event=event,
                    tool=invocation.tool_name,
                    hook=registration.name,
                )
            current = result.apply(current)

        return current
