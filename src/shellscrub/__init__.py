"""shellscrub - keep parent-process secrets out of agent shell subprocesses.

Intercepts shell tool invocations before they run and prefixes each command
with an ``unset`` of the protected variable names, so the spawned shell never
sees them while the parent keeps them for its own API authentication.
"""

import logging
import sys

import structlog

# Configure structlog FIRST before any other modules grab a logger.
# Logs go to stderr: the command-hook protocol owns stdout.
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(colors=False, pad_event=30),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    cache_logger_on_first_use=False,
)


def configure_logging(level: str = "INFO") -> None:
    """Re-apply the log level filter (e.g. from ``SHELLSCRUB_LOG_LEVEL``)."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
    )


from shellscrub.config import Settings, get_settings  # noqa: E402 - must come after structlog config
from shellscrub.errors import (  # noqa: E402
    ConfigurationError,
    HookDispatchError,
    InvalidSecretNameError,
    MalformedPayloadError,
    SecretLeakError,
    ShellScrubError,
)
from shellscrub.hooks import HookEvent, HookRegistry  # noqa: E402
from shellscrub.models import (  # noqa: E402
    HookRegistration,
    HookResult,
    SecretSet,
    ToolInvocation,
)
from shellscrub.sanitizer import (  # noqa: E402
    SanitizingInterceptor,
    build_unset_prefix,
    register_sanitizer,
    sanitize_command,
)

__version__ = "0.1.0"
__all__ = [
    "ConfigurationError",
    "HookDispatchError",
    "HookEvent",
    "HookRegistration",
    "HookRegistry",
    "HookResult",
    "InvalidSecretNameError",
    "MalformedPayloadError",
    "SanitizingInterceptor",
    "SecretLeakError",
    "SecretSet",
    "Settings",
    "ShellScrubError",
    "ToolInvocation",
    "__version__",
    "build_unset_prefix",
    "configure_logging",
    "get_settings",
    "register_sanitizer",
    "sanitize_command",
]
