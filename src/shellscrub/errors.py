"""Custom exceptions for shellscrub."""


class ShellScrubError(Exception):
    """Base exception for all shellscrub errors."""

    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ShellScrubError):
    """Raised when settings cannot produce a usable configuration."""


class InvalidSecretNameError(ShellScrubError):
    """Raised when a secret name is not a valid shell identifier."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Invalid secret variable name: {name!r}",
            details={"name": name},
        )


class SecretLeakError(ShellScrubError):
    """Raised when a protected variable would be handed to a child process."""

    def __init__(self, names: list[str]) -> None:
        super().__init__(
            f"Refusing to pass protected variables to a child process: {', '.join(names)}",
            details={"names": names},
        )


class HookDispatchError(ShellScrubError):
    """Raised when a hook callback fails; the tool call must not run."""

    def __init__(self, event: str, tool_name: str, hook_name: str, reason: str) -> None:
        super().__init__(
            f"Hook {hook_name!r} failed on {event} for tool {tool_name!r}: {reason}",
            details={"event": event, "tool_name": tool_name, "hook_name": hook_name},
        )
        self.event = event
        self.tool_name = tool_name
        self.hook_name = hook_name


class MalformedPayloadError(ShellScrubError):
    """Raised when a hook payload is missing its tool name or input."""
