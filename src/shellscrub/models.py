"""Data models for the interception pipeline."""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shellscrub.errors import InvalidSecretNameError

# Names are spliced into shell text, so only plain identifiers are allowed
_SHELL_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# Matchers that apply to every tool, following Claude Code's hook matcher convention
_MATCH_ALL = {"", "*"}


class SecretSet(BaseModel):
    """Ordered, immutable list of environment variable names to hide from children.

    Only the names matter here. Values stay in the parent's environment.
    """

    model_config = ConfigDict(frozen=True)

    names: tuple[str, ...] = Field(description="Protected variable names, in order")

    @field_validator("names")
    @classmethod
    def validate_names(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        """Reject non-identifiers and drop duplicates (first occurrence wins)."""
        seen: dict[str, None] = {}
        for name in value:
            if not isinstance(name, str) or not _SHELL_IDENTIFIER.fullmatch(name):
                raise InvalidSecretNameError(str(name))
            seen.setdefault(name, None)
        if not seen:
            raise ValueError("SecretSet requires at least one variable name")
        return tuple(seen)

    @classmethod
    def of(cls, *names: str) -> SecretSet:
        return cls(names=names)

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __len__(self) -> int:
        return len(self.names)


class ToolInvocation(BaseModel):
    """A pending tool call: the tool name plus its tool-specific input record."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    tool_input: dict[str, Any] = Field(default_factory=dict)
    tool_use_id: str | None = None

    def with_input(self, tool_input: Mapping[str, Any]) -> ToolInvocation:
        """Return a copy of this invocation carrying a replacement input record."""
        return self.model_copy(update={"tool_input": dict(tool_input)})


@dataclass(frozen=True)
class HookResult:
    """Outcome of a hook callback: no change, or a replacement input record."""

    updated_input: dict[str, Any] | None = None

    @classmethod
    def unchanged(cls) -> HookResult:
        return cls()

    @classmethod
    def replace(cls, tool_input: Mapping[str, Any]) -> HookResult:
        return cls(updated_input=dict(tool_input))

    @property
    def changed(self) -> bool:
        return self.updated_input is not None

    def apply(self, invocation: ToolInvocation) -> ToolInvocation:
        if self.updated_input is None:
            return invocation
        return invocation.with_input(self.updated_input)


# (invocation) -> HookResult, or None for "no change"
HookCallback = Callable[[ToolInvocation], HookResult | None]

# Regex string (full match on tool name), predicate over tool name, or None for all tools
Matcher = str | Callable[[str], bool] | None


@dataclass(frozen=True)
class HookRegistration:
    """One (event, matcher, callback) row in the hook table."""

    event: str
    callback: HookCallback
    matcher: Matcher = None
    name: str = ""
    _pattern: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.name:
            object.__setattr__(
                self, "name", getattr(self.callback, "__name__", type(self.callback).__name__)
            )
        if isinstance(self.matcher, str) and self.matcher not in _MATCH_ALL:
            object.__setattr__(self, "_pattern", re.compile(self.matcher))

    def matches(self, tool_name: str) -> bool:
        """Whether this registration applies to the given tool."""
        if self.matcher is None:
            return True
        if isinstance(self.matcher, str):
            if self._pattern is None:
                return True
            return self._pattern.fullmatch(tool_name) is not None
        return bool(self.matcher(tool_name))
