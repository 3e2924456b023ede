"""Text file access for ACP ``fs/*`` requests, confined to the agent's working directory."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import aiofiles
from acp import RequestError

from nanocode_acp.debug_log import log

if TYPE_CHECKING:
    from pathlib import Path


class WorkspaceFiles:
    """Reads and writes text files below ``root`` on behalf of the agent."""

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()

    def locate(self, path: str) -> Path:
        """Resolve ``path`` (absolute or relative to the root).

        Raises:
            RequestError: If the resolved path lies outside the root.
        """
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root):
            log.warning("Blocked file access outside working directory", path=str(target))
            raise RequestError.invalid_params(
                {"path": path, "details": "Access denied: path outside working directory"}
            )
        return target

    async def read(self, path: str, *, line: int | None = None, limit: int | None = None) -> str:
        """Read a file, optionally from 1-based ``line`` for ``limit`` lines.

        Unreadable files read as empty text.
        """
        target = self.locate(path)
        try:
            async with aiofiles.open(target, encoding="utf-8", errors="replace") as handle:
                text = await handle.read()
        except OSError as exc:
            log.warning("Could not read file", path=str(target), error=str(exc))
            return ""

        if line is None and limit is None:
            return text
        first = max(line or 1, 1) - 1
        stop = None if limit is None else first + limit
        return "\n".join(text.splitlines()[first:stop])

    async def write(self, path: str, content: str) -> Path:
        target = self.locate(path)
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        async with aiofiles.open(target, "w", encoding="utf-8") as handle:
            await handle.write(content)
        log.info("Wrote file", path=str(target), chars=len(content))
        return target
