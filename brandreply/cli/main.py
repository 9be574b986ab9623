"""CLI entry point for the on-brand reply assistant."""

import logging

import click

from brandreply.config import EnvConfigSource

logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log at INFO level.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Draft on-brand replies to inbound emails from a saved company profile."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,  # keep CLI output clean
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj = EnvConfigSource().load()


# Import and register commands after cli is defined to avoid circular imports.
from brandreply.cli.commands import generate, settings, whoami  # noqa: E402

cli.add_command(whoami)
cli.add_command(settings)
cli.add_command(generate)
