"""CLI commands for the project configuration."""

from __future__ import annotations

import os
import sys

import click
from rich.markup import escape
from rich.table import Table

from gqlens.errors import ConfigurationMissing
from gqlens.helpers.console import console


@click.group()
def config() -> None:
    """Inspect the GraphQL project configuration."""


@config.command()
@click.option(
    "-w",
    "--workspace",
    "folders",
    multiple=True,
    type=click.Path(exists=True, file_okay=False),
    help="Workspace folder, repeatable in declared order (default: current directory)",
)
@click.option("-f", "--file", "file_path", type=click.Path(dir_okay=False), default=None, help="Resolve for this source file")
@click.option("-p", "--project", default=None, help="Project name")
@click.option("-e", "--endpoint", default=None, help="Endpoint name")
def check(
    folders: tuple[str, ...],
    file_path: str | None,
    project: str | None,
    endpoint: str | None,
) -> None:
    """Check that a config file exists and show the endpoint it resolves to."""
    from gqlens.config.resolver import EndpointResolver, require_config

    workspace = list(folders) or [os.getcwd()]
    try:
        config_path = require_config(workspace)
        resolver = EndpointResolver(workspace)
        resolved = resolver.resolve(
            config_path.parent, project=project, endpoint=endpoint, file_path=file_path
        )
    except ConfigurationMissing as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    console.print(f"[bold]Config:[/bold] {config_path}")
    table = Table(title=f"Endpoint '{resolved.endpoint_name}'")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("HTTP URL", resolved.http_url)
    table.add_row(
        "Subscription URL",
        resolved.subscription_url or f"{resolved.duplex_url} (derived)",
    )
    for name in resolved.headers:
        # header values often carry credentials
        table.add_row(f"Header {name}", "***" if resolved.headers[name] else "(empty)")
    console.print(table)
