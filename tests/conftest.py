"""Pytest configuration and fixtures."""

import pytest

from shellscrub.config import get_settings
from shellscrub.hooks import HookRegistry
from shellscrub.models import SecretSet
from shellscrub.sanitizer import register_sanitizer


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached per process; tests change SHELLSCRUB_* freely."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def secrets() -> SecretSet:
    """The two-name SecretSet used throughout the scenarios."""
    return SecretSet.of("SECRET_A", "SECRET_B")


@pytest.fixture
def registry(secrets: SecretSet) -> HookRegistry:
    """Registry with the sanitizer registered for the Bash tool."""
    registry = HookRegistry()
    register_sanitizer(registry, secrets, ("Bash",))
    return registry


@pytest.fixture
def parent_secrets(monkeypatch) -> dict[str, str]:
    """Put protected values into the parent environment."""
    values = {"SECRET_A": "sk-parent-a-123", "SECRET_B": "oauth-parent-b-456"}
    for name, value in values.items():
        monkeypatch.setenv(name, value)
    return values
