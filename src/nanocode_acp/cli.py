"""Command line for checking configuration and running headless nanocode sessions."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click
from acp import RequestError

from nanocode_acp.acp import messages
from nanocode_acp.agents import NANOCODE_AGENT
from nanocode_acp.auth import describe_authentication
from nanocode_acp.config import load_settings
from nanocode_acp.debug_log import export_logs_to_file, setup_debug_logging
from nanocode_acp.errors import NanocodeError
from nanocode_acp.factory import build_launch_descriptor, make_client
from nanocode_acp.limits import AGENT_TIMEOUT, SHUTDOWN_TIMEOUT
from nanocode_acp.version import get_version

if TYPE_CHECKING:
    from textual.message import Message

    from nanocode_acp.acp.client import NanocodeAgent


class ConsoleContext:
    """Context that writes agent output to the terminal."""

    def __init__(self) -> None:
        self.settled = asyncio.Event()
        self.failure: messages.AgentFail | None = None

    def post_message(self, message: Message) -> bool:
        if isinstance(message, messages.AgentUpdate):
            click.echo(message.text, nl=message.content_type != "text")
        elif isinstance(message, messages.ToolCall):
            click.secho(f"\n[tool] {message.tool_call.title}", fg="cyan", err=True)
        elif isinstance(message, messages.RequestPermission):
            option_id = next(
                (o.option_id for o in message.options if o.kind.startswith("reject")), ""
            )
            click.secho("[permission denied: rerun with --auto-approve]", fg="yellow", err=True)
            message.result_future.set_result(messages.Answer(option_id))
        elif isinstance(message, messages.AgentReady):
            self.settled.set()
        elif isinstance(message, messages.AgentFail):
            self.failure = message
            self.settled.set()
        return True


def _fail(error: NanocodeError) -> None:
    click.secho(error.user_message(), fg="red", err=True)
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.toml (defaults to the user config directory)",
)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, version: bool) -> None:
    """Configure and launch the nanocode coding agent over ACP."""
    if version:
        click.echo(f"nanocode-acp {get_version()}")
        ctx.exit(0)

    try:
        load_settings(config_path)
    except NanocodeError as error:
        _fail(error)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def check() -> None:
    """Resolve credentials and show the command that would be launched."""
    from nanocode_acp.config import settings

    snapshot = settings.snapshot()
    try:
        descriptor = build_launch_descriptor(
            ConsoleContext(),
            (snapshot.command, snapshot.args),
            snapshot.authentication,
            snapshot.environment,
            cwd=snapshot.cwd,
        )
    except NanocodeError as error:
        _fail(error)
        return

    click.secho("Configuration OK", fg="green", bold=True)
    click.echo(f"  Authentication: {describe_authentication(snapshot.authentication)}")
    click.echo(f"  Launch: {descriptor.redacted()}")
    if descriptor.cwd is not None:
        click.echo(f"  Working directory: {descriptor.cwd}")


@cli.command()
def welcome() -> None:
    """Print the nanocode welcome banner."""
    click.echo(NANOCODE_AGENT.welcome_message(NANOCODE_AGENT))


async def _run_prompt(text: str, *, auto_approve: bool, timeout: float) -> int:
    context = ConsoleContext()
    agent: NanocodeAgent = make_client(context)
    agent.set_auto_approve(auto_approve)
    try:
        async with asyncio.timeout(timeout):
            await context.settled.wait()
        if context.failure is not None:
            _report_failure(context.failure)
            return 1
        try:
            stop_reason = await agent.send_prompt(text)
        except (RequestError, ConnectionError) as exc:
            _report_failure(context.failure or messages.AgentFail("Agent error", str(exc)))
            return 1
        click.echo()
        click.secho(f"[{stop_reason or 'done'}]", dim=True, err=True)
        return 0
    except TimeoutError:
        click.secho(f"Agent did not become ready within {timeout:.0f}s", fg="red", err=True)
        return 1
    finally:
        await agent.stop()
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(agent.wait_done(), timeout=SHUTDOWN_TIMEOUT)


def _report_failure(failure: messages.AgentFail) -> None:
    click.secho(f"\n{failure.message}", fg="red", err=True)
    if failure.details:
        click.echo(failure.details, err=True)


@cli.command()
@click.argument("text")
@click.option("--auto-approve", is_flag=True, help="Allow every tool permission request")
@click.option("--timeout", type=float, default=AGENT_TIMEOUT, show_default=True)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the debug log to this file when the session ends",
)
def prompt(text: str, auto_approve: bool, timeout: float, log_file: str | None) -> None:
    """Send one prompt to nanocode and stream the reply."""
    if log_file:
        setup_debug_logging(logging.DEBUG)
    try:
        code = asyncio.run(_run_prompt(text, auto_approve=auto_approve, timeout=timeout))
    except NanocodeError as error:
        _fail(error)
        return
    finally:
        if log_file:
            export_logs_to_file(log_file)
    sys.exit(code)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
