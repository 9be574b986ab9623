"""CLI command implementations. Every command goes through ReplyAssistant."""

from __future__ import annotations

import asyncio
import logging
from typing import TextIO

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from brandreply.assistant import NoticeLevel, ReplyAssistant, build_assistant
from brandreply.config import AppConfig
from brandreply.errors import BrandReplyError
from brandreply.profile.types import Settings
from brandreply.session.controller import SyncState

logger = logging.getLogger(__name__)
console = Console(width=200)

_SETTINGS_TIMEOUT_SECONDS = 15.0

_NOTICE_STYLE: dict[NoticeLevel, str] = {
    NoticeLevel.SUCCESS: "green",
    NoticeLevel.WARNING: "yellow",
    NoticeLevel.ERROR: "red",
}


# ── Helpers ────────────────────────────────────────────────────────────────────


async def _start(config: AppConfig) -> ReplyAssistant | None:
    """Build and start an assistant, waiting for the first settings sync.

    Returns None (after printing why) when the assistant could not be built or
    sign-in failed.  The caller owns closing a returned assistant.
    """
    try:
        assistant = build_assistant(config)
    except BrandReplyError as exc:
        console.print(f"[red]{exc.user_message}[/red]")
        logger.error("Could not build assistant: %s", exc)
        return None

    if not await assistant.start():
        _print_notices(assistant)
        await assistant.close()
        return None

    try:
        await assistant.session.wait_for_settings(timeout=_SETTINGS_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        console.print("[yellow]Settings did not load in time; using defaults.[/yellow]")
    return assistant


def _print_notices(assistant: ReplyAssistant) -> None:
    for notice in assistant.notices:
        style = _NOTICE_STYLE[notice.level]
        console.print(f"[{style}]{notice.message}[/{style}]")
    assistant.notices.clear()


def _settings_table(settings: Settings) -> Table:
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("Sender name", settings.sender_name)
    table.add_row("Sender email", settings.sender_email)
    table.add_row("Mission", settings.mission)
    return table


# ── whoami ─────────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def whoami(config: AppConfig) -> None:
    """Sign in and print the session identity."""
    if not asyncio.run(_whoami_async(config)):
        raise SystemExit(1)


async def _whoami_async(config: AppConfig) -> bool:
    assistant = await _start(config)
    if assistant is None:
        return False
    async with assistant:
        identity = assistant.session.identity
        assert identity is not None
        kind = "anonymous" if identity.anonymous else "token"
        console.print(f"Signed in as: [bold]{identity.uid}[/bold] [dim]({kind})[/dim]")
        _print_notices(assistant)
    return True


# ── settings ───────────────────────────────────────────────────────────────────


@click.group()
def settings() -> None:
    """Show or update the company details used to steer replies."""


@settings.command("show")
@click.pass_obj
def settings_show(config: AppConfig) -> None:
    """Print the current company details (stored values or defaults)."""
    if not asyncio.run(_settings_show_async(config)):
        raise SystemExit(1)


async def _settings_show_async(config: AppConfig) -> bool:
    assistant = await _start(config)
    if assistant is None:
        return False
    async with assistant:
        console.print(Panel(_settings_table(assistant.settings), title="[bold]Company Settings[/bold]"))
        failed = assistant.session.sync_state == SyncState.SUBSCRIPTION_FAILED
        _print_notices(assistant)
    return not failed


@settings.command("save")
@click.option("--mission", default=None, help="Company mission / product description.")
@click.option("--sender-name", default=None, help="Name the reply is signed with.")
@click.option("--sender-email", default=None, help="Email address the reply is sent from.")
@click.pass_obj
def settings_save(
    config: AppConfig,
    mission: str | None,
    sender_name: str | None,
    sender_email: str | None,
) -> None:
    """Save company details. Options left out keep their current value."""
    if not asyncio.run(_settings_save_async(config, mission, sender_name, sender_email)):
        raise SystemExit(1)


async def _settings_save_async(
    config: AppConfig,
    mission: str | None,
    sender_name: str | None,
    sender_email: str | None,
) -> bool:
    assistant = await _start(config)
    if assistant is None:
        return False
    async with assistant:
        current = assistant.settings
        updated = Settings(
            mission=mission if mission is not None else current.mission,
            sender_name=sender_name if sender_name is not None else current.sender_name,
            sender_email=sender_email if sender_email is not None else current.sender_email,
        )
        saved = await assistant.save_settings(updated)
        _print_notices(assistant)
        if saved:
            console.print(_settings_table(updated))
    return saved


# ── generate ───────────────────────────────────────────────────────────────────


@click.command()
@click.argument("email_file", type=click.File("r"), default="-")
@click.pass_obj
def generate(config: AppConfig, email_file: TextIO) -> None:
    """Draft an on-brand reply to the email in EMAIL_FILE (default: stdin)."""
    inbound = email_file.read()
    if not asyncio.run(_generate_async(config, inbound)):
        raise SystemExit(1)


async def _generate_async(config: AppConfig, inbound: str) -> bool:
    assistant = await _start(config)
    if assistant is None:
        return False
    async with assistant:
        with console.status("Generating..."):
            outcome = await assistant.generate_reply(inbound)
        _print_notices(assistant)
        if outcome.ok:
            console.print(Panel(outcome.text or "", title="[bold]Generated Reply[/bold]", border_style="magenta"))
    return outcome.ok
