"""nanocode-acp: configure and launch the nanocode coding agent over ACP."""

from nanocode_acp.auth import (
    ApiKeyAuth,
    DeferredSecret,
    LiteralSecret,
    NoAuth,
    NotRequired,
    Secret,
    make_authentication,
    resolve_credential,
)
from nanocode_acp.environment import API_KEY_ENV_VAR, EnvironmentVariable, compose_environment
from nanocode_acp.errors import AuthenticationError, ConfigurationError, NanocodeError
from nanocode_acp.factory import LaunchDescriptor, create_client, make_client

__all__ = [
    "API_KEY_ENV_VAR",
    "ApiKeyAuth",
    "AuthenticationError",
    "ConfigurationError",
    "DeferredSecret",
    "EnvironmentVariable",
    "LaunchDescriptor",
    "LiteralSecret",
    "NanocodeError",
    "NoAuth",
    "NotRequired",
    "Secret",
    "compose_environment",
    "create_client",
    "make_authentication",
    "make_client",
    "resolve_credential",
]
