"""Configuration management for shellscrub."""

from functools import lru_cache
from typing import Annotated, Any, Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from shellscrub.errors import ConfigurationError, InvalidSecretNameError
from shellscrub.models import SecretSet

# Credentials the agent runtime uses for its own outbound API calls
DEFAULT_SECRET_NAMES = ("ANTHROPIC_API_KEY", "CLAUDE_CODE_OAUTH_TOKEN")
DEFAULT_SHELL_TOOLS = ("Bash",)


class Settings(BaseSettings):
    """Settings loaded from ``SHELLSCRUB_*`` environment variables.

    No dotenv file is read: the working directory belongs to the agent, and a
    file there must not be able to change what gets sanitized.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHELLSCRUB_",
        extra="ignore",
    )

    secret_names: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_SECRET_NAMES,
        description="Comma-separated variable names hidden from shell subprocesses",
    )
    shell_tools: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_SHELL_TOOLS,
        description="Comma-separated tool names whose commands run in a shell",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    command_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Seconds before a shell command run by the reference runtime is killed",
    )

    @field_validator("secret_names", "shell_tools", mode="before")
    @classmethod
    def split_comma_separated(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value

    @field_validator("shell_tools")
    @classmethod
    def require_shell_tool(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("At least one shell tool name is required")
        return value

    def secret_set(self) -> SecretSet:
        """Build the process-lifetime SecretSet from ``secret_names``."""
        try:
            return SecretSet(names=self.secret_names)
        except (InvalidSecretNameError, ValidationError) as e:
            raise ConfigurationError(
                f"SHELLSCRUB_SECRET_NAMES is not usable: {e}",
                details={"secret_names": list(self.secret_names)},
            ) from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read once."""
    return Settings()
