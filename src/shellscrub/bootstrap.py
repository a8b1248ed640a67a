"""Process start-up wiring: settings -> SecretSet -> registry."""

from __future__ import annotations

import structlog

from shellscrub.config import Settings, get_settings
from shellscrub.environment import check_parent_environment
from shellscrub.hooks.registry import HookRegistry
from shellscrub.sanitizer import register_sanitizer

log = structlog.get_logger()


def create_registry(settings: Settings | None = None) -> HookRegistry:
    """Build a registry with the shell sanitizer registered.

    The SecretSet is fixed here for the lifetime of the returned registry.

    Raises:
        ConfigurationError: ``secret_names`` is empty or not made of identifiers.
    """
    settings = settings or get_settings()
    secrets = settings.secret_set()

    registry = HookRegistry()
    register_sanitizer(registry, secrets, settings.shell_tools)
    check_parent_environment(secrets)
    return registry
