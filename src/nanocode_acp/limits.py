"""Timeouts (seconds) and size caps shared across the package."""

from __future__ import annotations

AGENT_TIMEOUT = 30.0
SHUTDOWN_TIMEOUT = 5.0
PERMISSION_TIMEOUT = 330.0

# Buffered stream chunks and replayable messages per agent.
RESPONSE_BUFFER = 10000
MESSAGE_BUFFER = 500
# asyncio StreamReader limit for ACP lines from the agent process.
SUBPROCESS_LIMIT = 10 * 1024 * 1024

MAX_LOG_MESSAGE_LENGTH = 4096
