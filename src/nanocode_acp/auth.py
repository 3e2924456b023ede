"""Authentication spec and credential resolution for the nanocode agent.

An :data:`AuthenticationSpec` says how the agent authenticates: either
with an API key (a literal value or a provider called at connection time)
or not at all. :func:`resolve_credential` turns a spec into a
:data:`ResolvedCredential` on every client creation, so providers are
re-invoked each time and rotated keys are picked up.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from nanocode_acp.errors import API_KEY_NOT_FOUND, AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

type CredentialProvider = Callable[[], str]


class LiteralSecret(BaseModel):
    """An API key given verbatim."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["literal"] = "literal"
    value: str = Field(repr=False)


class DeferredSecret(BaseModel):
    """An API key produced on demand by a zero-argument provider."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["deferred"] = "deferred"
    provider: Callable[[], str] = Field(repr=False)
    source: str | None = Field(default=None, description="Where the provider reads from")


SecretSource = Annotated[LiteralSecret | DeferredSecret, Field(discriminator="kind")]


class ApiKeyAuth(BaseModel):
    """Authenticate the agent with an API key."""

    model_config = ConfigDict(frozen=True)

    type: Literal["api_key"] = "api_key"
    secret: SecretSource


class NoAuth(BaseModel):
    """The agent needs no credentials."""

    model_config = ConfigDict(frozen=True)

    type: Literal["none"] = "none"


AuthenticationSpec = Annotated[ApiKeyAuth | NoAuth, Field(discriminator="type")]


@dataclass(frozen=True, slots=True)
class Secret:
    """A resolved API key."""

    value: str

    def __repr__(self) -> str:
        return "Secret(value='***')"


@dataclass(frozen=True, slots=True)
class NotRequired:
    """Resolution outcome when no credential is needed."""


type ResolvedCredential = Secret | NotRequired


def make_authentication(
    api_key: str | CredentialProvider | None = None, *, none: bool = False
) -> ApiKeyAuth | NoAuth:
    """Build an authentication spec from exactly one of ``api_key`` or ``none``.

    Args:
        api_key: A literal key, or a zero-argument callable returning one.
        none: True when the agent needs no authentication.

    Returns:
        ``ApiKeyAuth`` wrapping a literal or deferred secret, or ``NoAuth``.

    Raises:
        ConfigurationError: If both or neither option is supplied.
    """
    has_api_key = api_key is not None and api_key != ""
    if has_api_key and none:
        raise ConfigurationError(
            "Authentication options conflict: both api_key and none were supplied",
            surface="authentication",
        )
    if not has_api_key and not none:
        raise ConfigurationError(
            "Authentication is not configured: neither api_key nor none was supplied",
            surface="authentication",
        )
    if none:
        return NoAuth()
    if isinstance(api_key, str):
        return ApiKeyAuth(secret=LiteralSecret(value=api_key))
    if not callable(api_key):
        raise ConfigurationError(
            f"api_key must be a string or a provider, got {type(api_key).__name__}",
            surface="authentication",
        )
    return ApiKeyAuth(secret=DeferredSecret(provider=api_key))


def resolve_credential(spec: ApiKeyAuth | NoAuth) -> ResolvedCredential:
    """Turn an authentication spec into a concrete credential.

    Provider failures are translated into a fixed :class:`AuthenticationError`;
    the provider's own message and traceback are dropped so secret-store
    internals never reach the user.

    Raises:
        AuthenticationError: If a deferred provider fails.
        ConfigurationError: If ``spec`` is not an authentication spec.
    """
    if isinstance(spec, NoAuth):
        logger.debug("Authentication not required")
        return NotRequired()

    if not isinstance(spec, ApiKeyAuth):
        raise ConfigurationError(
            f"Unsupported authentication spec: {type(spec).__name__}",
            surface="authentication",
        )

    secret = spec.secret
    if isinstance(secret, LiteralSecret):
        logger.debug("Using literal API key")
        return Secret(secret.value)

    logger.debug("Invoking API key provider (source=%s)", secret.source or "callable")
    try:
        value = secret.provider()
    except Exception:
        logger.warning("API key provider failed (source=%s)", secret.source or "callable")
        raise AuthenticationError(API_KEY_NOT_FOUND) from None
    return Secret(value)


def _env_provider(var_name: str) -> CredentialProvider:
    def provide() -> str:
        value = os.environ.get(var_name)
        if value is None:
            raise LookupError(f"Environment variable {var_name!r} is not set")
        return value

    return provide


def _file_provider(file_path: str) -> CredentialProvider:
    def provide() -> str:
        return Path(file_path).expanduser().read_text(encoding="utf-8").strip()

    return provide


def _command_provider(command: str) -> CredentialProvider:
    def provide() -> str:
        result = subprocess.run(
            shlex.split(command), capture_output=True, text=True, check=True, timeout=30
        )
        return result.stdout.strip()

    return provide


def secret_from_source(source: str) -> LiteralSecret | DeferredSecret:
    """Build a secret from a config-file source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]`` at connection time
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"command:pass show nanogpt"`` -- runs the command, uses stripped stdout

    Any other string is taken as the literal key.

    Raises:
        ConfigurationError: If a prefixed source has nothing after the prefix.
    """
    for prefix, build in (
        ("env:", _env_provider),
        ("file:", _file_provider),
        ("command:", _command_provider),
    ):
        if source.startswith(prefix):
            target = source[len(prefix) :].strip()
            if not target:
                raise ConfigurationError(
                    f"Empty credential source: {source!r}", surface="authentication"
                )
            return DeferredSecret(provider=build(target), source=source)
    return LiteralSecret(value=source)


def describe_authentication(spec: ApiKeyAuth | NoAuth) -> str:
    """Human-readable summary of a spec that never includes the key."""
    if isinstance(spec, NoAuth):
        return "none"
    if isinstance(spec.secret, LiteralSecret):
        return "api_key (literal)"
    return f"api_key ({spec.secret.source or 'provider'})"


__all__ = [
    "ApiKeyAuth",
    "AuthenticationSpec",
    "CredentialProvider",
    "DeferredSecret",
    "LiteralSecret",
    "NoAuth",
    "NotRequired",
    "ResolvedCredential",
    "Secret",
    "describe_authentication",
    "make_authentication",
    "resolve_credential",
    "secret_from_source",
]
