"""Tests for agent definitions and the welcome message."""

from __future__ import annotations

import re
from dataclasses import replace

import pytest

from nanocode_acp import agents
from nanocode_acp.acp.messages import AgentUpdate
from nanocode_acp.agents import (
    BANNER,
    NANOCODE_AGENT,
    default_welcome_message,
    get_agent,
    list_agents,
    register_agent,
    start_shell,
    welcome_message,
)
from nanocode_acp.factory import make_client

pytestmark = pytest.mark.unit


def test_nanocode_agent_fields() -> None:
    assert NANOCODE_AGENT.identifier == "nanocode"
    assert NANOCODE_AGENT.name == "Nanocode"
    assert NANOCODE_AGENT.prompt == "Nanocode> "
    assert re.match(NANOCODE_AGENT.prompt_regexp, "Nanocode> hello")
    assert NANOCODE_AGENT.welcome_message is welcome_message
    assert NANOCODE_AGENT.client_maker is make_client


def test_welcome_strips_one_leading_newline() -> None:
    assert welcome_message(NANOCODE_AGENT, "\nWelcome!") == f"{BANNER}\n\nWelcome!"


def test_welcome_strips_only_first_newline() -> None:
    assert welcome_message(NANOCODE_AGENT, "\n\nWelcome!") == f"{BANNER}\n\n\nWelcome!"


def test_welcome_keeps_text_without_leading_newline() -> None:
    assert welcome_message(NANOCODE_AGENT, "Welcome!") == f"{BANNER}\n\nWelcome!"


def test_welcome_with_empty_base() -> None:
    assert welcome_message(NANOCODE_AGENT, "") == f"{BANNER}\n\n"


def test_welcome_defaults_to_generic_text() -> None:
    expected = default_welcome_message(NANOCODE_AGENT)[1:]
    assert welcome_message(NANOCODE_AGENT) == f"{BANNER}\n\n{expected}"


def test_banner_has_no_surrounding_newlines() -> None:
    assert not BANNER.startswith("\n")
    assert not BANNER.endswith("\n")


def test_registry_lookup() -> None:
    assert get_agent("nanocode") is NANOCODE_AGENT
    assert get_agent("missing") is None
    assert NANOCODE_AGENT in list_agents()


def test_register_agent_by_short_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(agents, "_REGISTRY", dict(agents._REGISTRY))
    custom = replace(NANOCODE_AGENT, identifier="nanocode-dev", short_name="ncd")
    register_agent(custom)

    assert get_agent("ncd") is custom
    assert get_agent("nanocode") is NANOCODE_AGENT


def test_start_shell_posts_welcome(context, constructor) -> None:
    config = replace(
        NANOCODE_AGENT,
        client_maker=lambda ctx: make_client(ctx, constructor=constructor),
    )

    client = start_shell(config, context)

    assert client is constructor.last
    [update] = context.of_type(AgentUpdate)
    assert update.content_type == "welcome"
    assert update.text.startswith(BANNER)
