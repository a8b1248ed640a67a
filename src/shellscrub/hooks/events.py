"""Lifecycle points at which hooks can run."""

from enum import StrEnum


class HookEvent(StrEnum):
    """Hook event names, matching the Claude Code hook event vocabulary."""

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    PRE_COMPACT = "PreCompact"
    SESSION_START = "SessionStart"
    STOP = "Stop"
