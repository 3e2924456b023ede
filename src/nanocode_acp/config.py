"""Configuration loader and process-wide settings for nanocode-acp."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, ValidationError

from nanocode_acp.auth import ApiKeyAuth, NoAuth, make_authentication, secret_from_source
from nanocode_acp.environment import EnvironmentVariable, parse_environment
from nanocode_acp.errors import ConfigurationError
from nanocode_acp.paths import get_config_path

if TYPE_CHECKING:
    from collections.abc import Iterable

    from nanocode_acp.auth import CredentialProvider

DEFAULT_COMMAND = "nanocode"
DEFAULT_ARGS = ("acp",)


class AuthenticationConfig(BaseModel):
    """The ``[authentication]`` table."""

    api_key: str | None = Field(
        default=None,
        description="Literal key, or a source: 'env:VAR', 'file:PATH', 'command:CMD'",
    )
    none: bool = Field(default=False, description="The agent needs no API key")

    def to_spec(self) -> ApiKeyAuth | NoAuth:
        spec = make_authentication(self.api_key, none=self.none)
        if isinstance(spec, NoAuth) or self.api_key is None:
            return spec
        return ApiKeyAuth(secret=secret_from_source(self.api_key))


class AgentSection(BaseModel):
    """The ``[agent]`` table."""

    command: str = Field(default=DEFAULT_COMMAND, description="Agent executable")
    args: list[str] = Field(default_factory=lambda: list(DEFAULT_ARGS))
    environment: list[str] = Field(
        default_factory=list, description="Extra NAME=VALUE entries for the agent process"
    )
    cwd: str | None = Field(default=None, description="Working directory for the agent")


class NanocodeConfig(BaseModel):
    """Root configuration model."""

    authentication: AuthenticationConfig | None = None
    agent: AgentSection = Field(default_factory=AgentSection)

    @classmethod
    def load(cls, config_path: Path | None = None) -> NanocodeConfig:
        """Load configuration from a TOML file, or defaults when it does not exist.

        Raises:
            ConfigurationError: If the file is not valid TOML or has invalid values.
        """
        if config_path is None:
            config_path = get_config_path()
        if not config_path.exists():
            return cls()

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
            return cls.model_validate(data)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {exc}") from exc
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {exc}") from exc

    def authentication_spec(self) -> ApiKeyAuth | NoAuth:
        """A missing ``[authentication]`` table means no authentication."""
        if self.authentication is None:
            return NoAuth()
        return self.authentication.to_spec()

    def environment_variables(self) -> list[EnvironmentVariable]:
        return parse_environment(self.agent.environment)


@dataclass(frozen=True, slots=True)
class SettingsSnapshot:
    """Settings as read at the start of one client creation."""

    authentication: ApiKeyAuth | NoAuth
    environment: tuple[EnvironmentVariable, ...]
    command: str
    args: tuple[str, ...]
    cwd: Path | None


@dataclass
class Settings:
    """Process-wide, user-editable settings read by the client maker."""

    authentication: ApiKeyAuth | NoAuth = field(default_factory=NoAuth)
    environment: list[EnvironmentVariable] = field(default_factory=list)
    command: str = DEFAULT_COMMAND
    args: list[str] = field(default_factory=lambda: list(DEFAULT_ARGS))
    cwd: Path | None = None

    def set_authentication(
        self, api_key: str | CredentialProvider | None = None, *, none: bool = False
    ) -> None:
        self.authentication = make_authentication(api_key, none=none)

    def set_environment(self, entries: Iterable[str]) -> None:
        self.environment = parse_environment(entries)

    def apply(self, config: NanocodeConfig) -> None:
        """Replace current settings with a loaded configuration."""
        authentication = config.authentication_spec()
        environment = config.environment_variables()
        self.authentication = authentication
        self.environment = environment
        self.command = config.agent.command
        self.args = list(config.agent.args)
        self.cwd = Path(config.agent.cwd).expanduser() if config.agent.cwd else None

    def reset(self) -> None:
        self.authentication = NoAuth()
        self.environment = []
        self.command = DEFAULT_COMMAND
        self.args = list(DEFAULT_ARGS)
        self.cwd = None

    def snapshot(self) -> SettingsSnapshot:
        return SettingsSnapshot(
            authentication=self.authentication,
            environment=tuple(self.environment),
            command=self.command,
            args=tuple(self.args),
            cwd=self.cwd,
        )


settings = Settings()


def load_settings(config_path: Path | None = None) -> Settings:
    """Load the config file into the process-wide settings."""
    settings.apply(NanocodeConfig.load(config_path))
    return settings
