"""Pytest fixtures for nanocode-acp tests."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from hypothesis import Phase, Verbosity, settings
from tests.helpers.mocks import RecordingConstructor, RecordingContext

_TEST_BASE_DIR = Path(tempfile.mkdtemp(prefix="nanocode-acp-tests-"))
os.environ["NANOCODE_ACP_CONFIG_DIR"] = str(_TEST_BASE_DIR / "config")

if TYPE_CHECKING:
    from collections.abc import Generator


settings.register_profile(
    "ci",
    max_examples=100,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)
settings.register_profile(
    "dev",
    max_examples=20,
    deadline=500,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture
def context() -> RecordingContext:
    return RecordingContext()


@pytest.fixture
def constructor() -> RecordingConstructor:
    return RecordingConstructor()


@pytest.fixture(autouse=True)
def _reset_settings() -> Generator[None, None, None]:
    """Keep the process-wide settings from leaking between tests."""
    from nanocode_acp.config import settings as nanocode_settings

    nanocode_settings.reset()
    yield
    nanocode_settings.reset()


@pytest.fixture
def config_file(tmp_path: Path):
    """Write a config.toml and return its path."""

    def _write(content: str) -> Path:
        path = tmp_path / "config.toml"
        path.write_text(content, encoding="utf-8")
        return path

    return _write
