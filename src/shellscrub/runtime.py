"""Reference tool runtime: dispatch PreToolUse hooks, then execute.

Stands in for the agent runtime's tool dispatcher so the interception
pipeline can be exercised end to end. Shell tools run the *transformed*
command under ``/bin/sh -c`` with the parent's full environment as the base;
the sanitizer prefix is what keeps protected names out of the child.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import os
import signal
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from shellscrub.config import DEFAULT_SHELL_TOOLS
from shellscrub.errors import ConfigurationError, HookDispatchError
from shellscrub.hooks.events import HookEvent
from shellscrub.hooks.registry import HookRegistry
from shellscrub.models import ToolInvocation
from shellscrub.sanitizer import COMMAND_FIELD, SanitizingInterceptor

log = structlog.get_logger()

# Handler for a non-shell tool: (invocation) -> output text
ToolHandler = Callable[[ToolInvocation], Awaitable[str] | str]


@dataclass
class ExecutionResult:
    """Outcome of a shell subprocess."""

    status: str  # "completed" | "failed" | "timeout"
    exit_code: int | None
    stdout: str
    stderr: str
    duration_s: float
    command: list[str]


@dataclass
class ToolResult:
    """Outcome of one tool call as seen by the agent."""

    tool_name: str
    status: str  # "completed" | "failed" | "timeout" | "blocked" | "skipped"
    invocation: ToolInvocation | None = None
    output: str = ""
    error: str | None = None
    exit_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.status in ("completed", "skipped")


@dataclass
class ShellExecutor:
    """Async ``/bin/sh -c`` runner with timeout (SIGTERM -> SIGKILL).

    Usage::

        executor = ShellExecutor()
        result = await executor.run("echo hello", timeout_seconds=30)
    """

    shell: str = "/bin/sh"

    # Grace period between SIGTERM and SIGKILL (seconds)
    kill_grace_seconds: float = 5.0

    async def run(
        self,
        command: str,
        *,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        timeout_seconds: float = 120.0,
    ) -> ExecutionResult:
        """Execute ``command`` in a fresh shell.

        Args:
            command: Shell source passed to ``-c``.
            env: Child environment. None inherits the parent's.
            cwd: Working directory.
            timeout_seconds: Max wall-clock time before SIGTERM.
        """
        argv = [self.shell, "-c", command]
        start = time.monotonic()

        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            # Own process group: the prefix makes every command compound, so the
            # real command runs as a grandchild that must be signalled too
            start_new_session=True,
        )

        stdout_task = asyncio.create_task(_read_stream(process.stdout))
        stderr_task = asyncio.create_task(_read_stream(process.stderr))

        timed_out = False
        try:
            exit_code = await asyncio.wait_for(process.wait(), timeout=timeout_seconds)
        except TimeoutError:
            timed_out = True
            log.warning("shell_timeout", timeout=timeout_seconds)
            _signal_group(process, signal.SIGTERM)
            try:
                exit_code = await asyncio.wait_for(
                    process.wait(), timeout=self.kill_grace_seconds
                )
            except TimeoutError:
                _signal_group(process, signal.SIGKILL)
                exit_code = await process.wait()
            # Group members that ignored SIGTERM still hold the output pipes
            _signal_group(process, signal.SIGKILL)

        stdout, stderr = await asyncio.gather(stdout_task, stderr_task)

        if timed_out:
            status = "timeout"
        elif exit_code == 0:
            status = "completed"
        else:
            status = "failed"

        return ExecutionResult(
            status=status,
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            duration_s=time.monotonic() - start,
            command=argv,
        )


def _signal_group(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.killpg(process.pid, sig)


async def _read_stream(stream: asyncio.StreamReader | None) -> str:
    if stream is None:
        return ""
    raw = await stream.read()
    return raw.decode("utf-8", errors="replace")


@dataclass
class ToolRuntime:
    """Executes (tool name, tool input) pairs after PreToolUse dispatch.

    A dispatch failure blocks the call: the tool is never run with its
    original, unsanitized input.

    Construction fails with ``ConfigurationError`` unless every entry in
    ``shell_tools`` is covered by a sanitizer registration in ``registry``.
    """

    registry: HookRegistry
    shell_tools: tuple[str, ...] = DEFAULT_SHELL_TOOLS
    handlers: dict[str, ToolHandler] = field(default_factory=dict)
    executor: ShellExecutor = field(default_factory=ShellExecutor)
    base_env: Mapping[str, str] | None = None
    cwd: Path | None = None
    timeout_seconds: float = 120.0

    def __post_init__(self) -> None:
        unguarded = [
            tool
            for tool in self.shell_tools
            if not any(
                isinstance(r.callback, SanitizingInterceptor)
                for r in self.registry.matching(HookEvent.PRE_TOOL_USE, tool)
            )
        ]
        if unguarded:
            raise ConfigurationError(
                f"Shell tools without a sanitizer registration: {', '.join(unguarded)}",
                details={"shell_tools": unguarded},
            )

    async def execute(
        self,
        tool_name: str,
        tool_input: Mapping[str, Any],
        *,
        tool_use_id: str | None = None,
    ) -> ToolResult:
        """Dispatch hooks for one tool call and run the transformed input."""
        invocation = ToolInvocation(
            tool_name=tool_name, tool_input=dict(tool_input), tool_use_id=tool_use_id
        )

        try:
            final = self.registry.dispatch(HookEvent.PRE_TOOL_USE, invocation)
        except HookDispatchError as e:
            log.warning("tool_blocked", tool=tool_name, hook=e.hook_name)
            return ToolResult(tool_name=tool_name, status="blocked", error=e.message)

        if tool_name in self.shell_tools:
            return await self._run_shell(final)
        return await self._run_handler(final)

    async def execute_all(
        self, invocations: Iterable[tuple[str, Mapping[str, Any]]]
    ) -> list[ToolResult]:
        """Execute tool calls one after another, in the given order."""
        results: list[ToolResult] = []
        for tool_name, tool_input in invocations:
            results.append(await self.execute(tool_name, tool_input))
        return results

    async def _run_shell(self, invocation: ToolInvocation) -> ToolResult:
        command = invocation.tool_input.get(COMMAND_FIELD)
        if not isinstance(command, str) or not command:
            return ToolResult(
                tool_name=invocation.tool_name, status="skipped", invocation=invocation
            )

        result = await self.executor.run(
            command,
            env=self.base_env,
            cwd=self.cwd,
            timeout_seconds=self.timeout_seconds,
        )
        log.debug(
            "shell_tool_finished",
            tool=invocation.tool_name,
            status=result.status,
            exit_code=result.exit_code,
            duration_s=round(result.duration_s, 3),
        )
        return ToolResult(
            tool_name=invocation.tool_name,
            status=result.status,
            invocation=invocation,
            output=result.stdout,
            error=result.stderr or None,
            exit_code=result.exit_code,
        )

    async def _run_handler(self, invocation: ToolInvocation) -> ToolResult:
        handler = self.handlers.get(invocation.tool_name)
        if handler is None:
            return ToolResult(
                tool_name=invocation.tool_name,
                status="failed",
                invocation=invocation,
                error=f"No handler for tool {invocation.tool_name!r}",
            )

        try:
            output = handler(invocation)
            if inspect.isawaitable(output):
                output = await output
        except Exception as e:
            log.warning("tool_handler_failed", tool=invocation.tool_name, error=str(e))
            return ToolResult(
                tool_name=invocation.tool_name,
                status="failed",
                invocation=invocation,
                error=str(e),
            )

        return ToolResult(
            tool_name=invocation.tool_name,
            status="completed",
            invocation=invocation,
            output=str(output),
        )
