"""Test helpers package."""

from tests.helpers.mocks import (
    AnsweringContext,
    FakeProcess,
    FakeSpawn,
    RecordingConstructor,
    RecordingContext,
)

__all__ = [
    "AnsweringContext",
    "FakeProcess",
    "FakeSpawn",
    "RecordingConstructor",
    "RecordingContext",
]
