"""Agent definitions and the registry host shells pick them from."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from nanocode_acp.factory import make_client

if TYPE_CHECKING:
    from nanocode_acp.factory import Context

logger = logging.getLogger(__name__)

BANNER = r"""
 _ __   __ _ _ __   ___   ___ ___   __| | ___
| '_ \ / _` | '_ \ / _ \ / __/ _ \ / _` |/ _ \
| | | | (_| | | | | (_) | (_| (_) | (_| |  __/
|_| |_|\__,_|_| |_|\___/ \___\___/ \__,_|\___|
""".strip("\n")


@dataclass
class AgentConfig:
    """Declarative description of one agent backend."""

    identifier: str
    name: str
    short_name: str
    prompt: str
    prompt_regexp: str
    welcome_message: Callable[[AgentConfig], str]
    install_instructions: str
    client_maker: Callable[[Context | None], Any]


def default_welcome_message(config: AgentConfig) -> str:
    """Generic welcome text a host shell shows for any agent."""
    return f"\nWelcome to {config.name}. Type a prompt and press enter to start."


def welcome_message(config: AgentConfig, base: str | None = None) -> str:
    """Banner followed by the host's welcome text, minus one leading newline."""
    if base is None:
        base = default_welcome_message(config)
    if base.startswith("\n"):
        base = base[1:]
    return f"{BANNER}\n\n{base}"


NANOCODE_AGENT = AgentConfig(
    identifier="nanocode",
    name="Nanocode",
    short_name="nanocode",
    prompt="Nanocode> ",
    prompt_regexp=r"^Nanocode> ",
    welcome_message=welcome_message,
    install_instructions=(
        "Install the nanocode CLI and make sure `nanocode acp` runs from your PATH, "
        "then set an API key under [authentication] (or none = true)."
    ),
    client_maker=make_client,
)

_REGISTRY: dict[str, AgentConfig] = {NANOCODE_AGENT.identifier: NANOCODE_AGENT}


def register_agent(config: AgentConfig) -> None:
    """Register an agent config, replacing any with the same identifier."""
    _REGISTRY[config.identifier] = config


def get_agent(identifier: str) -> AgentConfig | None:
    """Get an agent config by identifier or short name."""
    config = _REGISTRY.get(identifier)
    if config is not None:
        return config
    return next((c for c in _REGISTRY.values() if c.short_name == identifier), None)


def list_agents() -> list[AgentConfig]:
    """Get all registered agent configs."""
    return list(_REGISTRY.values())


def start_shell(config: AgentConfig, context: Context | None) -> Any:
    """Start a session for ``config`` in ``context`` and show its welcome text."""
    logger.info("Starting %s shell", config.name)
    client = config.client_maker(context)
    if context is not None:
        from nanocode_acp.acp.messages import AgentUpdate

        context.post_message(AgentUpdate("welcome", config.welcome_message(config)))
    return client
