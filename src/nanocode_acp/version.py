"""Shared package version helpers."""

from __future__ import annotations

from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version


@lru_cache(maxsize=1)
def get_version() -> str:
    """Return the installed nanocode-acp version, or 'dev' without package metadata."""
    try:
        return version("nanocode-acp")
    except PackageNotFoundError:
        return "dev"


__all__ = ["get_version"]
