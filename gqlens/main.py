"""CLI entry point for gqlens."""

from __future__ import annotations

import os

import click

from gqlens.commands.config.cmd import config
from gqlens.commands.operations.cmd import execute, lenses
from gqlens.helpers import console as output


@click.group()
@click.version_option(version="0.1.0", prog_name="gqlens")
@click.option("--debug", is_flag=True, default=False, help="Enable debug logs on stderr")
def cli(debug: bool) -> None:
    """Find and execute GraphQL operations embedded in source files."""
    output.init(debug=debug)


cli.add_command(lenses)
cli.add_command(execute)
cli.add_command(config)


@cli.command()
def debug() -> None:
    """Report whether debug mode is on."""
    from gqlens.session import DEBUG_COMMAND, Session

    session = Session([os.getcwd()], check_config=False)
    session.execute_command(DEBUG_COMMAND)


if __name__ == "__main__":
    cli()
