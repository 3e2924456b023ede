"""ACP client for the nanocode agent, backed by the agent-client-protocol SDK.

:class:`NanocodeAgent` owns one ``nanocode acp`` process. Session updates
become Textual messages posted to the context, permission requests are
answered by the context (or auto-approved), and ``fs/*`` requests go
through :class:`~nanocode_acp.acp.files.WorkspaceFiles`.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
from pathlib import Path
from typing import TYPE_CHECKING, Any

from acp import PROTOCOL_VERSION, RequestError, spawn_agent_process, text_block
from acp.schema import (
    AgentCapabilities,
    AgentMessageChunk,
    AgentPlanUpdate,
    AgentThoughtChunk,
    AllowedOutcome,
    AvailableCommandsUpdate,
    ClientCapabilities,
    CurrentModeUpdate,
    DeniedOutcome,
    FileSystemCapability,
    Implementation,
    ReadTextFileResponse,
    RequestPermissionResponse,
    TextContentBlock,
    ToolCall,
    ToolCallProgress,
    ToolCallStart,
    WriteTextFileResponse,
)

from nanocode_acp.acp import messages
from nanocode_acp.acp.files import WorkspaceFiles
from nanocode_acp.debug_log import log
from nanocode_acp.limits import PERMISSION_TIMEOUT, SHUTDOWN_TIMEOUT, SUBPROCESS_LIMIT
from nanocode_acp.version import get_version

if TYPE_CHECKING:
    from collections.abc import Sequence

    from acp.schema import PermissionOption, SessionInfoUpdate, ToolCallUpdate, UserMessageChunk
    from textual.message import Message

    from nanocode_acp.environment import EnvironmentVariable
    from nanocode_acp.factory import Context

    type SessionUpdate = (
        UserMessageChunk
        | AgentMessageChunk
        | AgentThoughtChunk
        | ToolCallStart
        | ToolCallProgress
        | AgentPlanUpdate
        | AvailableCommandsUpdate
        | CurrentModeUpdate
        | SessionInfoUpdate
    )

CLIENT_NAME = "nanocode-acp"
CLIENT_TITLE = "nanocode ACP shell"
CLIENT_CAPABILITIES = ClientCapabilities(
    fs=FileSystemCapability(read_text_file=True, write_text_file=True),
    terminal=False,
)

ALLOW_KINDS = ("allow_once", "allow_always")
REJECT_KINDS = ("reject_once", "reject_always")

# Tool-call fields a progress update may overwrite.
TOOL_CALL_FIELDS = ("title", "kind", "status", "content", "locations", "raw_input", "raw_output")

STDERR_EXCERPT = 500


def build_process_environment(environment: Sequence[EnvironmentVariable]) -> dict[str, str]:
    """Overlay launch variables on the current environment, in order (last wins)."""
    env = os.environ.copy()
    env.update((variable.name, variable.value) for variable in environment)
    return env


class NanocodeAgent:
    """A running nanocode session that streams its output into a context."""

    def __init__(
        self,
        command: str,
        args: Sequence[str],
        environment: Sequence[EnvironmentVariable],
        context: Context,
        *,
        cwd: Path | None = None,
    ) -> None:
        self.command = command
        self.args = tuple(args)
        self.environment = tuple(environment)
        self.cwd = (cwd or Path.cwd()).absolute()
        self.files = WorkspaceFiles(self.cwd)

        self.session_id = ""
        self.tool_calls: dict[str, ToolCall] = {}
        self.agent_capabilities = AgentCapabilities()

        self._context = context
        self._transcript = messages.Transcript()
        self._connection: Any = None
        self._process: asyncio.subprocess.Process | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._reaper: asyncio.Task[None] | None = None

        self._ready = asyncio.Event()
        self._finished = asyncio.Event()
        self._auto_approve = False
        self._stop_requested = False
        self._prompt_completed = False

    # --- context -------------------------------------------------------

    @property
    def context(self) -> Context:
        return self._context

    def set_context(self, context: Context) -> None:
        """Move output to another context and replay what was already shown."""
        self._context = context
        replayed = self._transcript.replay(context)
        if replayed:
            log.debug("Replayed buffered messages", count=replayed)

    def post_message(self, message: Message) -> bool:
        # Permission prompts hold a live future and are never replayed.
        if not isinstance(message, messages.RequestPermission):
            self._transcript.remember(message)
        return self._context.post_message(message)

    def set_auto_approve(self, enabled: bool) -> None:
        self._auto_approve = enabled
        log.debug("Auto-approve changed", enabled=enabled)

    # --- process lifecycle --------------------------------------------

    def start(self) -> None:
        """Spawn the agent process on the running event loop."""
        log.info("Starting nanocode", command=self.command, cwd=str(self.cwd))
        self._stop_requested = False
        self._prompt_completed = False
        self._ready.clear()
        self._finished.clear()
        self._run_task = asyncio.create_task(self._run(), name=f"nanocode:{self.command}")

    async def _run(self) -> None:
        try:
            async with spawn_agent_process(
                self,  # type: ignore[arg-type]
                self.command,
                *self.args,
                env=build_process_environment(self.environment),
                cwd=str(self.cwd),
                transport_kwargs={"limit": SUBPROCESS_LIMIT, "shutdown_timeout": SHUTDOWN_TIMEOUT},
            ) as (conn, process):
                self._connection = conn
                self._process = process
                if await self._handshake(conn):
                    self._ready.set()
                    self.post_message(messages.AgentReady())
                exit_code = await process.wait()
                if exit_code and not self._should_ignore_exit_code(exit_code):
                    details = await _read_stderr(process)
                    log.error("nanocode exited", code=exit_code, stderr=details[:STDERR_EXCERPT])
                    self.post_message(
                        messages.AgentFail(f"Agent exited with code {exit_code}", details)
                    )
        except RequestError as exc:
            self._fail("Failed to initialize", exc)
        except OSError as exc:
            self._fail(f"Failed to start {self.command}", exc)
        except Exception as exc:
            log.exception("nanocode session crashed")
            self.post_message(messages.AgentFail("Failed to start agent", str(exc)))
        finally:
            self._finished.set()

    async def _handshake(self, conn) -> bool:
        """Run ``initialize`` and ``session/new``; report failure to the context."""
        try:
            init = await conn.initialize(
                protocol_version=PROTOCOL_VERSION,
                client_capabilities=CLIENT_CAPABILITIES,
                client_info=Implementation(
                    name=CLIENT_NAME, title=CLIENT_TITLE, version=get_version()
                ),
            )
            session = await conn.new_session(cwd=str(self.cwd), mcp_servers=[])
        except RequestError as exc:
            self._fail("Failed to initialize", exc)
            return False

        if init.agent_capabilities:
            self.agent_capabilities = init.agent_capabilities
        self.session_id = session.session_id
        log.info("ACP session established", session_id=self.session_id)

        if session.modes:
            available = {
                mode.id: messages.Mode(mode.id, mode.name, mode.description)
                for mode in session.modes.available_modes
            }
            self.post_message(messages.SetModes(session.modes.current_mode_id, available))
        return True

    def _fail(self, summary: str, exc: BaseException) -> None:
        log.error(f"{summary}: {exc}")
        self.post_message(messages.AgentFail(summary, str(exc)))

    def _should_ignore_exit_code(self, code: int) -> bool:
        """SIGTERM after a requested stop or a finished prompt is not a failure."""
        return code == -signal.SIGTERM and (self._stop_requested or self._prompt_completed)

    async def wait_ready(self, timeout: float = 30.0) -> None:
        async with asyncio.timeout(timeout):
            await self._ready.wait()

    async def wait_done(self) -> None:
        await self._finished.wait()

    async def stop(self) -> None:
        """Terminate the agent process; reaping happens in the background."""
        self._transcript.reset()
        self._stop_requested = True
        process = self._process
        if process is not None and process.returncode is None:
            process.terminate()
            self._reaper = asyncio.create_task(_reap(process))

    # --- prompting -----------------------------------------------------

    def _require_connection(self) -> Any:
        if self._connection is None:
            raise RequestError.internal_error({"details": "nanocode is not connected"})
        return self._connection

    async def send_prompt(self, prompt: str) -> str | None:
        """Send one prompt and wait for the turn to end; returns the stop reason."""
        conn = self._require_connection()
        self._transcript.start_turn()
        self.tool_calls.clear()
        log.info("Sending prompt", chars=len(prompt))

        try:
            response = await conn.prompt(prompt=[text_block(prompt)], session_id=self.session_id)
        except RequestError as exc:
            self._fail("Agent error", exc)
            raise

        self._prompt_completed = True
        self.post_message(messages.AgentComplete())
        if response is None or response.stop_reason is None:
            return None
        return str(response.stop_reason)

    async def set_mode(self, mode_id: str) -> str | None:
        """Switch the session mode. Returns an error message, or None on success."""
        if self._connection is None:
            return "Agent connection not ready"
        try:
            await self._connection.set_session_mode(session_id=self.session_id, mode_id=mode_id)
        except RequestError as exc:
            return str(exc)
        return None

    async def cancel(self) -> bool:
        if self._connection is None:
            return False
        await self._connection.cancel(session_id=self.session_id)
        return True

    def get_response_text(self) -> str:
        return self._transcript.text

    # --- ACP client callbacks -----------------------------------------

    def on_connect(self, conn) -> None:
        self._connection = conn

    async def session_update(self, session_id: str, update: SessionUpdate, **kwargs: Any) -> None:
        del session_id, kwargs
        match update:
            case AgentMessageChunk(content=TextContentBlock(text=text)):
                self._transcript.add_text(text)
                self.post_message(messages.AgentUpdate("text", text))
            case AgentThoughtChunk(content=TextContentBlock(text=text)):
                self.post_message(messages.Thinking("text", text))
            case ToolCallStart():
                self.tool_calls[update.tool_call_id] = update
                self.post_message(messages.ToolCall(update))
            case ToolCallProgress():
                record = self._apply_tool_call_update(update)
                self.post_message(messages.ToolCallUpdate(record, update))
            case AgentPlanUpdate(entries=entries):
                self.post_message(messages.Plan(entries))
            case AvailableCommandsUpdate(available_commands=commands):
                self.post_message(messages.AvailableCommandsUpdate(commands))
            case CurrentModeUpdate(current_mode_id=mode_id):
                self.post_message(messages.ModeUpdate(mode_id))
            case _:
                log.debug(f"Ignored session update: {type(update).__name__}")

    async def request_permission(
        self,
        options: list[PermissionOption],
        session_id: str,
        tool_call: ToolCallUpdate,
        **kwargs: Any,
    ) -> RequestPermissionResponse:
        del session_id, kwargs
        record = self._apply_tool_call_update(tool_call)
        log.info("Permission requested", tool=record.title, auto_approve=self._auto_approve)

        if self._auto_approve:
            return _choose(options, ALLOW_KINDS, fallback_first=True)

        answer = await self._ask_context(options, record)
        if answer is None:
            log.warning("No permission answer in time, rejecting", tool=record.title)
            return _choose(options, REJECT_KINDS)
        if not answer.id:
            return _cancelled()
        return _selected(answer.id)

    async def _ask_context(
        self, options: list[PermissionOption], record: ToolCall
    ) -> messages.Answer | None:
        future: asyncio.Future[messages.Answer] = asyncio.get_running_loop().create_future()
        self.post_message(messages.RequestPermission(options, record, future))
        try:
            return await asyncio.wait_for(future, timeout=PERMISSION_TIMEOUT)
        except TimeoutError:
            return None

    async def read_text_file(
        self,
        path: str,
        session_id: str,
        limit: int | None = None,
        line: int | None = None,
        **kwargs: Any,
    ) -> ReadTextFileResponse:
        del session_id, kwargs
        return ReadTextFileResponse(content=await self.files.read(path, line=line, limit=limit))

    async def write_text_file(
        self, content: str, path: str, session_id: str, **kwargs: Any
    ) -> WriteTextFileResponse:
        del session_id, kwargs
        await self.files.write(path, content)
        return WriteTextFileResponse()

    def _apply_tool_call_update(self, update: ToolCallUpdate | ToolCallProgress) -> ToolCall:
        record = self.tool_calls.get(update.tool_call_id)
        if record is None:
            record = ToolCall(toolCallId=update.tool_call_id, title=update.title or "Tool call")
            self.tool_calls[update.tool_call_id] = record
        for field_name in TOOL_CALL_FIELDS:
            value = getattr(update, field_name, None)
            if value is not None:
                setattr(record, field_name, value)
        return record


async def _read_stderr(process: asyncio.subprocess.Process) -> str:
    if process.stderr is None:
        return "stderr not available"
    try:
        data = await process.stderr.read()
    except (OSError, ValueError) as exc:
        return f"Failed to read stderr: {exc}"
    return data.decode("utf-8", "replace")


async def _reap(process: asyncio.subprocess.Process) -> None:
    try:
        await asyncio.wait_for(process.wait(), timeout=SHUTDOWN_TIMEOUT)
    except TimeoutError:
        with contextlib.suppress(ProcessLookupError):
            process.kill()


def _selected(option_id: str) -> RequestPermissionResponse:
    return RequestPermissionResponse(outcome=AllowedOutcome(outcome="selected", optionId=option_id))


def _cancelled() -> RequestPermissionResponse:
    return RequestPermissionResponse(outcome=DeniedOutcome(outcome="cancelled"))


def _choose(
    options: list[PermissionOption], kinds: tuple[str, ...], *, fallback_first: bool = False
) -> RequestPermissionResponse:
    """Pick the option whose kind ranks first in ``kinds``; cancel when none match."""
    ranked = sorted(
        (option for option in options if option.kind in kinds),
        key=lambda option: kinds.index(option.kind),
    )
    if ranked:
        return _selected(ranked[0].option_id)
    if fallback_first and options:
        return _selected(options[0].option_id)
    return _cancelled()
