"""Environment composition for the spawned agent process."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, NamedTuple

from nanocode_acp.auth import NotRequired, Secret
from nanocode_acp.errors import MISSING_AUTHENTICATION, AuthenticationError, ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from nanocode_acp.auth import ResolvedCredential

logger = logging.getLogger(__name__)

# The nanocode binary reads its key from exactly this variable.
API_KEY_ENV_VAR = "NANOGPT_API_KEY"


class EnvironmentVariable(NamedTuple):
    """A single ``NAME=VALUE`` pair passed to the agent process."""

    name: str
    value: str

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


def parse_environment(entries: Iterable[str]) -> list[EnvironmentVariable]:
    """Parse ``NAME=VALUE`` strings, keeping their order.

    Raises:
        ConfigurationError: If an entry has no ``=`` or an empty name.
    """
    variables: list[EnvironmentVariable] = []
    for entry in entries:
        name, sep, value = entry.partition("=")
        if not sep or not name.strip():
            raise ConfigurationError(
                f"Invalid environment entry {entry!r}: expected NAME=VALUE",
                surface="environment",
            )
        variables.append(EnvironmentVariable(name.strip(), value))
    return variables


def compose_environment(
    credential: ResolvedCredential | None,
    extra_variables: Sequence[EnvironmentVariable],
    *,
    auth_required: bool = True,
) -> list[EnvironmentVariable]:
    """Merge the resolved credential with user-supplied variables.

    The API key variable comes first so a user entry with the same name
    wins when the launcher applies variables in order.

    Args:
        credential: Output of :func:`~nanocode_acp.auth.resolve_credential`,
            or None when resolution never ran.
        extra_variables: User-supplied variables, in order.
        auth_required: Whether the authentication spec demands a key.

    Raises:
        AuthenticationError: If no credential was resolved but one is required.
    """
    if isinstance(credential, Secret):
        logger.debug("Adding %s to agent environment", API_KEY_ENV_VAR)
        return [EnvironmentVariable(API_KEY_ENV_VAR, credential.value), *extra_variables]
    if isinstance(credential, NotRequired):
        return list(extra_variables)
    if auth_required:
        raise AuthenticationError(MISSING_AUTHENTICATION)
    return list(extra_variables)


def redact_environment(variables: Iterable[EnvironmentVariable]) -> list[str]:
    """Render variables as ``NAME=VALUE`` with the API key masked."""
    return [
        f"{variable.name}=***" if variable.name == API_KEY_ENV_VAR else str(variable)
        for variable in variables
    ]
