"""Parent vs. child environment bookkeeping.

The parent process keeps the protected variables for its own outbound
authentication; nothing here mutates ``os.environ``. Children get either the
shell-level unset prefix (see ``shellscrub.sanitizer``) or, for spawn paths
that bypass the shell tool, a scrubbed copy built by ``build_child_env``.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping

import structlog

from shellscrub.errors import SecretLeakError
from shellscrub.models import SecretSet

log = structlog.get_logger()

_ENV_LINE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=", re.MULTILINE)


def retained_secrets(secrets: SecretSet, env: Mapping[str, str] | None = None) -> tuple[str, ...]:
    """Protected names currently set in the parent environment, in SecretSet order."""
    env = os.environ if env is None else env
    return tuple(name for name in secrets.names if env.get(name))


def check_parent_environment(
    secrets: SecretSet, env: Mapping[str, str] | None = None
) -> tuple[str, ...]:
    """Warn about protected names the parent does not hold. Returns the missing names."""
    held = set(retained_secrets(secrets, env))
    missing = tuple(name for name in secrets.names if name not in held)
    if missing:
        log.warning("parent_secrets_missing", missing=list(missing))
    return missing


def build_child_env(
    secrets: SecretSet,
    *,
    base_env: Mapping[str, str] | None = None,
    extra: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build a scrubbed environment dict for a child process.

    Args:
        secrets: Names to strip.
        base_env: Starting environment (defaults to ``os.environ``).
        extra: Additional env vars merged last. May not reintroduce a
            protected name.

    Returns:
        A new dict; the parent environment is left untouched.

    Raises:
        SecretLeakError: ``extra`` names a protected variable.
    """
    env = dict(os.environ if base_env is None else base_env)

    for name in secrets.names:
        env.pop(name, None)

    if extra:
        leaked = [name for name in extra if name in secrets]
        if leaked:
            raise SecretLeakError(leaked)
        env.update(extra)

    return env


def find_leaked_secrets(env_dump: str, secrets: SecretSet) -> tuple[str, ...]:
    """Protected names that appear as ``NAME=`` lines in ``env``-style output."""
    present = set(_ENV_LINE.findall(env_dump))
    return tuple(name for name in secrets.names if name in present)
