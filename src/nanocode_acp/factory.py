"""Client factory: turn configuration into a launched nanocode client.

Resolution, composition and spawning always run in that order. A failure
in any step aborts creation before the next one starts, so nothing is
spawned unless the full environment is ready.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from nanocode_acp.auth import NoAuth, resolve_credential
from nanocode_acp.environment import compose_environment, redact_environment
from nanocode_acp.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from textual.message import Message

    from nanocode_acp.acp.client import NanocodeAgent
    from nanocode_acp.auth import ApiKeyAuth
    from nanocode_acp.environment import EnvironmentVariable

logger = logging.getLogger(__name__)


class Context(Protocol):
    """The session or buffer that owns the agent and receives its output."""

    def post_message(self, message: Message) -> bool: ...


class ClientConstructor(Protocol):
    """Protocol for building a protocol client from a launch descriptor."""

    def __call__(
        self,
        command: str,
        args: Sequence[str],
        environment: Sequence[EnvironmentVariable],
        context: Context,
    ) -> Any: ...


@dataclass(frozen=True, slots=True)
class LaunchDescriptor:
    """Everything needed to start the agent process."""

    command: str
    args: tuple[str, ...]
    environment: tuple[EnvironmentVariable, ...]
    context: Context
    cwd: Path | None = None

    def environment_strings(self) -> list[str]:
        return [str(variable) for variable in self.environment]

    def redacted(self) -> str:
        env = " ".join(redact_environment(self.environment))
        argv = " ".join((self.command, *self.args))
        return f"{env} {argv}" if env else argv


def spawn_client(
    command: str,
    args: Sequence[str],
    environment: Sequence[EnvironmentVariable],
    context: Context,
    *,
    cwd: Path | None = None,
) -> NanocodeAgent:
    """Default constructor: start a real ACP session on the running loop."""
    from nanocode_acp.acp.client import NanocodeAgent

    agent = NanocodeAgent(command, args, environment, context, cwd=cwd)
    agent.start()
    return agent


def build_launch_descriptor(
    context: Context | None,
    command: tuple[str, Sequence[str]],
    auth: ApiKeyAuth | NoAuth,
    extra_variables: Sequence[EnvironmentVariable],
    *,
    cwd: Path | None = None,
) -> LaunchDescriptor:
    """Validate inputs, resolve credentials and compose the launch environment.

    Raises:
        ConfigurationError: If the context is missing or the command is empty.
        AuthenticationError: If a required credential cannot be produced.
    """
    if context is None:
        raise ConfigurationError(
            "Missing context: a nanocode client needs a session to stream output into",
            surface="context",
        )
    name, args = command
    if not name:
        raise ConfigurationError("Missing agent command", surface="command")

    credential = resolve_credential(auth)
    environment = compose_environment(
        credential, extra_variables, auth_required=not isinstance(auth, NoAuth)
    )
    return LaunchDescriptor(
        command=name,
        args=tuple(args),
        environment=tuple(environment),
        context=context,
        cwd=cwd,
    )


def create_client(
    context: Context | None,
    command: tuple[str, Sequence[str]],
    auth: ApiKeyAuth | NoAuth,
    extra_variables: Sequence[EnvironmentVariable],
    *,
    constructor: ClientConstructor | None = None,
    cwd: Path | None = None,
) -> Any:
    """Create a nanocode client for ``context``.

    Args:
        context: Owner of the process; receives the agent's messages.
        command: ``(name, args)`` of the agent binary, e.g. ``("nanocode", ["acp"])``.
        auth: Authentication spec, resolved afresh on every call.
        extra_variables: User-supplied variables appended after the API key.
        constructor: Builds the protocol client. Defaults to :func:`spawn_client`.
        cwd: Working directory for the agent process. Only the default
            constructor receives it; a custom ``constructor`` is called with the
            four launch arguments and chooses its own directory.

    Returns:
        Whatever ``constructor`` returns. Its errors propagate unchanged.

    Raises:
        ConfigurationError: If the context is missing or the command is empty.
        AuthenticationError: If a required credential cannot be produced.
    """
    descriptor = build_launch_descriptor(context, command, auth, extra_variables, cwd=cwd)
    logger.info("Launching agent: %s", descriptor.redacted())

    if constructor is None:
        return spawn_client(
            descriptor.command,
            descriptor.args,
            descriptor.environment,
            descriptor.context,
            cwd=descriptor.cwd,
        )
    if descriptor.cwd is not None:
        logger.debug("Custom constructor ignores working directory %s", descriptor.cwd)
    return constructor(
        descriptor.command, descriptor.args, descriptor.environment, descriptor.context
    )


def make_client(context: Context | None, *, constructor: ClientConstructor | None = None) -> Any:
    """Client maker for the nanocode agent config.

    Reads the process-wide settings once and passes them down explicitly.
    """
    from nanocode_acp.config import settings

    snapshot = settings.snapshot()
    return create_client(
        context,
        (snapshot.command, snapshot.args),
        snapshot.authentication,
        snapshot.environment,
        constructor=constructor,
        cwd=snapshot.cwd,
    )
