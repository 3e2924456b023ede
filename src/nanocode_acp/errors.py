"""Exception hierarchy for nanocode-acp.

Every error names the configuration surface the user has to fix, so a
host shell can print plain text without a traceback::

    NanocodeError
    +-- ConfigurationError   (structurally invalid input)
    +-- AuthenticationError  (no usable credential)
"""

from __future__ import annotations

from typing import Literal

type Surface = Literal["authentication", "context", "command", "environment", "config"]


class NanocodeError(Exception):
    """Base exception for all nanocode-acp errors."""

    surface: Surface = "config"

    def __init__(self, message: str, *, surface: Surface | None = None) -> None:
        super().__init__(message)
        if surface is not None:
            self.surface = surface

    def user_message(self) -> str:
        """Plain error text tagged with the surface to fix."""
        return f"Error ({self.surface}): {self}"


class ConfigurationError(NanocodeError):
    """Raised for invalid configuration before any process is spawned."""


class AuthenticationError(NanocodeError):
    """Raised when a required credential cannot be produced.

    Messages are fixed strings; provider failure details never reach them.
    """

    surface: Surface = "authentication"


API_KEY_NOT_FOUND = (
    "API key not found. Check the [authentication] settings for nanocode "
    "(api_key or none = true)."
)
MISSING_AUTHENTICATION = (
    "Missing authentication: nanocode requires an API key but none was resolved. "
    "Check the [authentication] settings."
)
