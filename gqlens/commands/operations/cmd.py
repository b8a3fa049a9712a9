"""CLI commands for embedded operations: list annotations, execute one."""

from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any

import click
from rich.live import Live
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from gqlens.errors import ConfigurationMissing, OperationNotFound
from gqlens.execute.types import ExecutionState
from gqlens.helpers.console import console, truncate
from gqlens.render.renderer import ResultRenderer, VirtualDocument

_workspace_option = click.option(
    "-w",
    "--workspace",
    "folders",
    multiple=True,
    type=click.Path(exists=True, file_okay=False),
    help="Workspace folder, repeatable in declared order (default: current directory)",
)


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def lenses(path: str) -> None:
    """List the executable operations found in a source file."""
    from gqlens.lenses.provider import provide_annotations
    from gqlens.workspace import TextDocument

    document = TextDocument.from_path(path)
    annotation_set = provide_annotations(document)

    if not annotation_set.annotations and not annotation_set.failures:
        console.print(f"[yellow]No GraphQL operations found in {escape(path)}[/yellow]")
        return

    if annotation_set.annotations:
        table = Table(title=Path(path).name)
        table.add_column("Line", justify="right", style="cyan")
        table.add_column("Action")
        table.add_column("Tag")
        table.add_column("Variables")
        for annotation in annotation_set.annotations:
            operation = annotation.operation
            literal = operation.literal
            table.add_row(
                str(annotation.line + 1),
                annotation.title,
                (literal.enclosing_tag_name if literal else None) or "-",
                ", ".join(f"${v.name}: {v.type}" for v in operation.variable_definitions) or "-",
            )
        console.print(table)

    for failure in annotation_set.failures:
        where = f"{failure.line + 1}:{failure.column + 1}" if failure.line is not None else "?"
        console.print(f"[red]{escape(path)}:{where}[/red] {escape(failure.message)}", soft_wrap=True)


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("-l", "--line", type=int, default=None, help="1-based line inside the literal (default: first operation)")
@click.option("-o", "--offset", type=int, default=None, help="0-based character offset inside the literal")
@click.option("-n", "--operation-name", default=None, help="Operation to run when a literal holds several")
@click.option("-v", "--var", "var_items", multiple=True, help="Variable as NAME=VALUE (VALUE parsed as JSON when possible)")
@click.option("--variables", "variables_json", default=None, help="Variables as a JSON object")
@click.option("-p", "--project", default=None, help="Project name from the config file")
@click.option("-e", "--endpoint", default=None, help="Endpoint name (default: 'default')")
@_workspace_option
def execute(
    path: str,
    line: int | None,
    offset: int | None,
    operation_name: str | None,
    var_items: tuple[str, ...],
    variables_json: str | None,
    project: str | None,
    endpoint: str | None,
    folders: tuple[str, ...],
) -> None:
    """Execute an embedded operation and show its result live.

    Subscriptions keep streaming until the server completes them or
    Ctrl+C is pressed.
    """
    from gqlens.session import Session

    try:
        variables = _parse_variables(variables_json, var_items)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)
    try:
        session = Session(list(folders) or [os.getcwd()])
    except ConfigurationMissing as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    document = session.open_document(path)
    annotation_set = session.annotations_for(document.uri)
    if offset is not None:
        annotation = annotation_set.annotation_at_offset(offset, operation_name)
    elif line is not None:
        annotation = annotation_set.annotation_at_line(line - 1)
    else:
        annotation = annotation_set.annotations[0] if annotation_set.annotations else None
    if annotation is None:
        where = ""
        if offset is not None:
            where = f" at offset {offset}"
        elif line is not None:
            where = f" at line {line}"
        console.print(f"[red]No executable GraphQL operation{where} in {escape(path)}[/red]")
        sys.exit(1)

    console.print(f"[bold]{annotation.title}[/bold] ({escape(path)}:{annotation.line + 1})")
    try:
        renderer = asyncio.run(
            _run_live(
                session,
                document.uri,
                annotation.arguments.start_offset,
                operation_name or annotation.arguments.operation_name,
                variables,
                project,
                endpoint,
            )
        )
    except OperationNotFound as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Disposed.[/yellow]")
        return

    if renderer.handle.state is ExecutionState.FAILED:
        sys.exit(1)


async def _run_live(
    session: Any,
    uri: str,
    offset: int,
    operation_name: str | None,
    variables: dict[str, Any],
    project: str | None,
    endpoint: str | None,
) -> ResultRenderer:
    with Live(Text("Executing..."), console=console, auto_refresh=False) as live:

        def on_update(document: VirtualDocument) -> None:
            live.update(_renderable(renderer, document), refresh=True)

        renderer = session.execute_operation(
            uri,
            offset,
            operation_name=operation_name,
            variables=variables,
            project=project,
            endpoint=endpoint,
            on_update=on_update,
        )
        try:
            await renderer.run()
        finally:
            renderer.dispose()
            await renderer.handle.wait_closed()
    return renderer


def _renderable(renderer: ResultRenderer, document: VirtualDocument) -> Any:
    event = renderer.last_event
    if event is not None and event.error is not None:
        return Text(document.content, style="red")
    return Syntax(document.content, "json", word_wrap=True)


def _parse_variables(variables_json: str | None, var_items: tuple[str, ...]) -> dict[str, Any]:
    variables: dict[str, Any] = {}
    if variables_json:
        try:
            parsed = json.loads(variables_json)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid --variables: not valid JSON ({exc})") from exc
        if not isinstance(parsed, dict):
            raise ValueError("Invalid --variables: must be a JSON object")
        variables.update(parsed)
    for item in var_items:
        name, sep, raw = item.partition("=")
        if not sep or not name:
            raise ValueError(f"Invalid --var {truncate(item, 40)!r} (expected NAME=VALUE)")
        try:
            variables[name] = json.loads(raw)
        except json.JSONDecodeError:
            variables[name] = raw
    return variables
