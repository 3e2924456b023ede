"""Tests for the client factory."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from nanocode_acp.auth import NoAuth, make_authentication
from nanocode_acp.config import settings
from nanocode_acp.environment import EnvironmentVariable
from nanocode_acp.errors import AuthenticationError, ConfigurationError
from nanocode_acp.factory import (
    LaunchDescriptor,
    build_launch_descriptor,
    create_client,
    make_client,
)

pytestmark = pytest.mark.unit

COMMAND = ("nanocode", ["acp"])


def test_no_auth_and_no_extra_gives_empty_environment(context, constructor) -> None:
    create_client(context, COMMAND, NoAuth(), [], constructor=constructor)

    assert constructor.last == {
        "command": "nanocode",
        "args": ["acp"],
        "environment": [],
        "context": context,
    }


def test_api_key_and_extra_are_composed_in_order(context, constructor) -> None:
    create_client(
        context,
        COMMAND,
        make_authentication("k1"),
        [EnvironmentVariable("X", "1")],
        constructor=constructor,
    )

    assert constructor.last["environment"] == ["NANOGPT_API_KEY=k1", "X=1"]


def test_returns_constructor_result(context, constructor) -> None:
    result = create_client(context, COMMAND, NoAuth(), [], constructor=constructor)
    assert result is constructor.last


def test_provider_runs_once_per_creation(context, constructor) -> None:
    provider = MagicMock(side_effect=["k1", "k2"])
    auth = make_authentication(provider)

    create_client(context, COMMAND, auth, [], constructor=constructor)
    create_client(context, COMMAND, auth, [], constructor=constructor)

    assert provider.call_count == 2
    assert [call["environment"] for call in constructor.calls] == [
        ["NANOGPT_API_KEY=k1"],
        ["NANOGPT_API_KEY=k2"],
    ]


def test_missing_context_fails_before_resolution(constructor) -> None:
    with (
        patch("nanocode_acp.factory.resolve_credential") as resolve,
        patch("nanocode_acp.factory.compose_environment") as compose,
        pytest.raises(ConfigurationError, match="Missing context") as exc_info,
    ):
        create_client(None, COMMAND, make_authentication("k1"), [], constructor=constructor)

    assert exc_info.value.surface == "context"
    resolve.assert_not_called()
    compose.assert_not_called()
    assert constructor.calls == []


def test_missing_context_never_calls_provider(constructor) -> None:
    provider = MagicMock(return_value="k1")

    with pytest.raises(ConfigurationError, match="Missing context"):
        create_client(None, COMMAND, make_authentication(provider), [], constructor=constructor)

    assert provider.call_count == 0
    assert constructor.calls == []


def test_empty_command_is_rejected(context, constructor) -> None:
    with pytest.raises(ConfigurationError, match="Missing agent command") as exc_info:
        create_client(context, ("", []), NoAuth(), [], constructor=constructor)
    assert exc_info.value.surface == "command"
    assert constructor.calls == []


def test_provider_failure_aborts_before_construction(context, constructor) -> None:
    def provider() -> str:
        raise RuntimeError("secret store offline")

    with pytest.raises(AuthenticationError, match="API key not found"):
        create_client(
            context, COMMAND, make_authentication(provider), [], constructor=constructor
        )
    assert constructor.calls == []


def test_constructor_errors_propagate_unchanged(context) -> None:
    error = FileNotFoundError("nanocode")

    def failing_constructor(command, args, environment, context):
        raise error

    with pytest.raises(FileNotFoundError) as exc_info:
        create_client(context, COMMAND, NoAuth(), [], constructor=failing_constructor)
    assert exc_info.value is error


def test_default_constructor_spawns_agent(context) -> None:
    with patch("nanocode_acp.factory.spawn_client") as spawn:
        result = create_client(
            context,
            COMMAND,
            make_authentication("k1"),
            [],
            cwd=Path("/work"),
        )

    assert result is spawn.return_value
    spawn.assert_called_once_with(
        "nanocode",
        ("acp",),
        (EnvironmentVariable("NANOGPT_API_KEY", "k1"),),
        context,
        cwd=Path("/work"),
    )


def test_custom_constructor_gets_launch_arguments_only(context, constructor, caplog) -> None:
    with caplog.at_level("DEBUG", logger="nanocode_acp.factory"):
        create_client(context, COMMAND, NoAuth(), [], constructor=constructor, cwd=Path("/work"))

    assert set(constructor.last) == {"command", "args", "environment", "context"}
    assert "Custom constructor ignores working directory /work" in caplog.text


def test_launch_log_never_contains_key(context, constructor, caplog) -> None:
    with caplog.at_level("INFO", logger="nanocode_acp.factory"):
        create_client(
            context, COMMAND, make_authentication("sk-very-secret"), [], constructor=constructor
        )

    assert "sk-very-secret" not in caplog.text
    assert "NANOGPT_API_KEY=*** nanocode acp" in caplog.text


# === Launch descriptor ===
def test_descriptor_renders_environment(context) -> None:
    descriptor = build_launch_descriptor(
        context, COMMAND, make_authentication("k1"), [EnvironmentVariable("X", "1")]
    )

    assert isinstance(descriptor, LaunchDescriptor)
    assert descriptor.args == ("acp",)
    assert descriptor.environment_strings() == ["NANOGPT_API_KEY=k1", "X=1"]
    assert descriptor.redacted() == "NANOGPT_API_KEY=*** X=1 nanocode acp"


def test_descriptor_without_environment_renders_argv_only(context) -> None:
    descriptor = build_launch_descriptor(context, COMMAND, NoAuth(), [])
    assert descriptor.redacted() == "nanocode acp"


# === Client maker ===
def test_make_client_reads_settings(context, constructor) -> None:
    settings.set_authentication("k-settings")
    settings.set_environment(["X=1"])
    settings.command = "/opt/nanocode/bin/nanocode"

    make_client(context, constructor=constructor)

    assert constructor.last["command"] == "/opt/nanocode/bin/nanocode"
    assert constructor.last["args"] == ["acp"]
    assert constructor.last["environment"] == ["NANOGPT_API_KEY=k-settings", "X=1"]


def test_make_client_sees_setting_changes(context, constructor) -> None:
    make_client(context, constructor=constructor)
    settings.set_authentication("k-new")
    make_client(context, constructor=constructor)

    assert constructor.calls[0]["environment"] == []
    assert constructor.calls[1]["environment"] == ["NANOGPT_API_KEY=k-new"]


def test_make_client_without_context_fails(constructor) -> None:
    with pytest.raises(ConfigurationError, match="Missing context"):
        make_client(None, constructor=constructor)
