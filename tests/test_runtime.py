"""End-to-end tests: dispatch, rewrite, and execute in a real /bin/sh."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from shellscrub.errors import ConfigurationError
from shellscrub.hooks import HookEvent, HookRegistry
from shellscrub.models import HookResult, SecretSet, ToolInvocation
from shellscrub.runtime import ShellExecutor, ToolRuntime
from shellscrub.sanitizer import register_sanitizer

PREFIX = "unset SECRET_A SECRET_B 2>/dev/null; "

pytestmark = pytest.mark.skipif(not Path("/bin/sh").exists(), reason="requires /bin/sh")


@pytest.fixture
def runtime(registry: HookRegistry) -> ToolRuntime:
    return ToolRuntime(registry=registry, timeout_seconds=30)


class TestShellExecutor:
    """Subprocess runner."""

    async def test_completed(self) -> None:
        result = await ShellExecutor().run("echo hello")
        assert result.status == "completed"
        assert result.exit_code == 0
        assert result.stdout == "hello\n"
        assert result.command == ["/bin/sh", "-c", "echo hello"]

    async def test_failed(self) -> None:
        result = await ShellExecutor().run("echo oops >&2; exit 3")
        assert result.status == "failed"
        assert result.exit_code == 3
        assert result.stderr == "oops\n"

    async def test_timeout(self) -> None:
        result = await ShellExecutor(kill_grace_seconds=1).run("sleep 5", timeout_seconds=0.2)
        assert result.status == "timeout"

    async def test_timeout_kills_compound_command(self) -> None:
        """The prefixed command forks its real work; the whole group is killed."""
        result = await ShellExecutor(kill_grace_seconds=0.5).run(
            "true; sleep 6", timeout_seconds=0.5
        )
        assert result.status == "timeout"
        assert result.duration_s < 4

    async def test_env_passed(self) -> None:
        result = await ShellExecutor().run("echo $ONLY_VAR", env={"ONLY_VAR": "x"})
        assert result.stdout == "x\n"


class TestSecretIsolation:
    """Protected names never resolve in the spawned shell."""

    async def test_env_dump_has_no_secrets(self, runtime: ToolRuntime, parent_secrets) -> None:
        result = await runtime.execute("Bash", {"command": "env"})

        assert result.status == "completed"
        assert result.invocation.tool_input["command"] == PREFIX + "env"
        lines = result.output.splitlines()
        assert not any(line.startswith(("SECRET_A=", "SECRET_B=")) for line in lines)
        for value in parent_secrets.values():
            assert value not in result.output

    async def test_direct_reference_is_empty(self, runtime: ToolRuntime, parent_secrets) -> None:
        result = await runtime.execute("Bash", {"command": "echo $SECRET_A"})
        assert result.invocation.tool_input["command"] == PREFIX + "echo $SECRET_A"
        assert result.output == "\n"

    @pytest.mark.skipif(not Path("/proc/self/environ").exists(), reason="requires procfs")
    async def test_forked_child_environment_block_is_clean(
        self, runtime: ToolRuntime, parent_secrets
    ) -> None:
        """Processes the shell starts after the unset get a block without the names."""
        command = "cat /proc/self/environ | tr '\\0' '\\n'"
        result = await runtime.execute("Bash", {"command": command})
        assert result.status == "completed"
        assert "PATH=" in result.output
        assert "SECRET_A=" not in result.output
        assert "SECRET_B=" not in result.output

    @pytest.mark.skipif(not Path("/proc/self/environ").exists(), reason="requires procfs")
    async def test_shell_own_environment_block_retains_values(
        self, runtime: ToolRuntime, parent_secrets
    ) -> None:
        """Known limitation: the spawned shell's initial exec block is not rewritten."""
        command = "tr '\\0' '\\n' < /proc/$$/environ"
        result = await runtime.execute("Bash", {"command": command})
        assert result.status == "completed"
        assert f"SECRET_A={parent_secrets['SECRET_A']}" in result.output

    async def test_reexport_only_sees_own_value(
        self, runtime: ToolRuntime, parent_secrets
    ) -> None:
        result = await runtime.execute(
            "Bash", {"command": "export SECRET_A=fabricated; printenv SECRET_A"}
        )
        assert result.output == "fabricated\n"

    async def test_parent_keeps_secrets(self, runtime: ToolRuntime, parent_secrets) -> None:
        await runtime.execute("Bash", {"command": "unset SECRET_A; env"})
        assert os.environ["SECRET_A"] == parent_secrets["SECRET_A"]
        assert os.environ["SECRET_B"] == parent_secrets["SECRET_B"]

    async def test_without_sanitizer_secret_is_visible(self, parent_secrets) -> None:
        """Control: the same shell without the prefix leaks the parent's value."""
        result = await ShellExecutor().run("echo $SECRET_A", timeout_seconds=30)
        assert result.output == parent_secrets["SECRET_A"] + "\n"

    async def test_concurrent_invocations(self, runtime: ToolRuntime, parent_secrets) -> None:
        first, second = await asyncio.gather(
            runtime.execute("Bash", {"command": "echo one:$SECRET_A"}),
            runtime.execute("Bash", {"command": "echo two:$SECRET_B"}),
        )

        assert first.invocation.tool_input["command"] == PREFIX + "echo one:$SECRET_A"
        assert second.invocation.tool_input["command"] == PREFIX + "echo two:$SECRET_B"
        assert first.output == "one:\n"
        assert second.output == "two:\n"


class TestToolRuntime:
    """Dispatch and routing."""

    async def test_empty_command_skipped(self, runtime: ToolRuntime) -> None:
        result = await runtime.execute("Bash", {"command": ""})
        assert result.status == "skipped"
        assert result.invocation.tool_input == {"command": ""}

    async def test_non_shell_tool_passes_through(self, registry: HookRegistry) -> None:
        seen: list[ToolInvocation] = []

        def read(invocation: ToolInvocation) -> str:
            seen.append(invocation)
            return "contents"

        runtime = ToolRuntime(registry=registry, handlers={"Read": read})
        tool_input = {"file_path": "/tmp/notes.txt", "command": "not shell"}
        result = await runtime.execute("Read", tool_input)

        assert result.status == "completed"
        assert result.output == "contents"
        assert seen[0].tool_input == tool_input

    async def test_async_handler(self, registry: HookRegistry) -> None:
        async def fetch(invocation: ToolInvocation) -> str:
            return invocation.tool_input["url"]

        runtime = ToolRuntime(registry=registry, handlers={"WebFetch": fetch})
        result = await runtime.execute("WebFetch", {"url": "https://example.com"})
        assert result.output == "https://example.com"

    async def test_unknown_tool_fails(self, runtime: ToolRuntime) -> None:
        result = await runtime.execute("Mystery", {})
        assert result.status == "failed"
        assert "No handler" in result.error

    async def test_faulting_hook_blocks_execution(
        self, registry: HookRegistry, tmp_path: Path
    ) -> None:
        """A hook failure must never degrade into running the original command."""

        def broken(invocation: ToolInvocation) -> HookResult:
            raise RuntimeError("sanitizer crashed")

        registry.register(HookEvent.PRE_TOOL_USE, broken, "Bash")
        marker = tmp_path / "ran"
        runtime = ToolRuntime(registry=registry, timeout_seconds=30)

        result = await runtime.execute("Bash", {"command": f"touch {marker}"})

        assert result.status == "blocked"
        assert "sanitizer crashed" in result.error
        assert result.invocation is None
        assert not marker.exists()

    async def test_execute_all_in_order(self, runtime: ToolRuntime, tmp_path: Path) -> None:
        log_file = tmp_path / "order.log"
        results = await runtime.execute_all(
            [
                ("Bash", {"command": f"echo first >> {log_file}"}),
                ("Bash", {"command": ""}),
                ("Bash", {"command": f"echo second >> {log_file}"}),
            ]
        )

        assert [r.status for r in results] == ["completed", "skipped", "completed"]
        assert log_file.read_text() == "first\nsecond\n"

    def test_shell_tool_without_sanitizer_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Bash"):
            ToolRuntime(registry=HookRegistry())

    def test_shell_tool_outside_sanitizer_matcher_rejected(
        self, registry: HookRegistry
    ) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ToolRuntime(registry=registry, shell_tools=("Bash", "Shell"))
        assert exc_info.value.details == {"shell_tools": ["Shell"]}

    def test_other_matching_hook_does_not_count(self) -> None:
        registry = HookRegistry()
        registry.register(HookEvent.PRE_TOOL_USE, lambda inv: None, "Bash", name="audit")
        with pytest.raises(ConfigurationError):
            ToolRuntime(registry=registry)

    def test_all_shell_tools_covered(self, secrets: SecretSet) -> None:
        registry = HookRegistry()
        register_sanitizer(registry, secrets, ("Bash", "Shell"))
        runtime = ToolRuntime(registry=registry, shell_tools=("Bash", "Shell"))
        assert runtime.shell_tools == ("Bash", "Shell")
