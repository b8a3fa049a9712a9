"""The command surface an editor (or the CLI) drives.

A ``Session`` ties the pieces together for one workspace: it checks the
project configuration once at startup, keeps annotations current for open
documents, and turns an execute command into an ``ExecutionHandle`` plus the
``ResultRenderer`` showing it.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from functools import partial
import logging
from pathlib import Path
from typing import Any

from gqlens.config.resolver import EndpointResolver, require_config
from gqlens.errors import OperationNotFound
from gqlens.execute.engine import ExecutionEngine
from gqlens.helpers import console as output
from gqlens.lenses.provider import (
    EXECUTE_COMMAND,
    AnnotationProvider,
    AnnotationSet,
    ExecuteArguments,
)
from gqlens.render.renderer import ResultRenderer, VirtualDocument
from gqlens.workspace import TextDocument, Workspace

logger = logging.getLogger(__name__)

DEBUG_COMMAND = "gqlens.isDebugging"


class Session:
    def __init__(
        self,
        folders: Sequence[str | Path],
        *,
        environ: Mapping[str, str] | None = None,
        debug: bool | None = None,
        engine: ExecutionEngine | None = None,
        resolver: EndpointResolver | None = None,
        log_sink: Callable[[str], None] | None = None,
        check_config: bool = True,
    ):
        # Without a project config nothing can execute: fail loudly, once.
        self.config_path = require_config(folders) if check_config else None
        self.workspace = Workspace(folders)
        self.resolver = resolver or EndpointResolver(self.workspace.folders, environ)
        self.engine = engine or ExecutionEngine()
        self.annotations = AnnotationProvider()
        self.debug = output.is_debug() if debug is None else debug
        self._log_sink = log_sink or output.console.print
        self._renderers: dict[str, list[ResultRenderer]] = {}

    # -- documents -----------------------------------------------------------

    def open_document(self, path: str | Path) -> TextDocument:
        document = self.workspace.open(path)
        self.annotations.document_changed(document)
        return document

    def open_text(self, uri: str, text: str, language_id: str | None = None) -> TextDocument:
        document = self.workspace.open_text(uri, text, language_id)
        self.annotations.document_changed(document)
        return document

    def change_document(self, uri: str, text: str) -> AnnotationSet:
        return self.annotations.document_changed(self.workspace.change(uri, text))

    def close_document(self, uri: str) -> None:
        """Closing a document disposes every result view it started."""
        for renderer in list(self._renderers.get(uri, ())):
            renderer.dispose()
        self._renderers.pop(uri, None)
        self.annotations.document_closed(uri)
        self.workspace.close(uri)

    def annotations_for(self, uri: str) -> AnnotationSet:
        return self.annotations.provide(self.workspace.get(uri))

    # -- commands ------------------------------------------------------------

    def execute_command(self, command: str, *args: Any, **kwargs: Any) -> Any:
        if command == EXECUTE_COMMAND:
            arguments: ExecuteArguments = args[0]
            return self.execute_operation(
                arguments.uri,
                arguments.start_offset,
                end_offset=arguments.end_offset,
                operation_name=arguments.operation_name,
                **kwargs,
            )
        if command == DEBUG_COMMAND:
            return self.report_debug_state()
        raise ValueError(f"Unknown command '{command}'")

    def execute_operation(
        self,
        uri: str,
        start_offset: int,
        *,
        end_offset: int | None = None,
        operation_name: str | None = None,
        variables: Mapping[str, Any] | None = None,
        project: str | None = None,
        endpoint: str | None = None,
        on_update: Callable[[VirtualDocument], None] | None = None,
    ) -> ResultRenderer:
        """Start the operation at *start_offset* and return its result view.

        Must be called from a running event loop.  Raises
        ``OperationNotFound`` when no executable operation is there.
        """
        document = self.workspace.get(uri)
        annotation_set = self.annotations.provide(document)
        operation = annotation_set.operation_at(start_offset, operation_name)
        if operation is None and end_offset is not None:
            operation = annotation_set.operation_at(end_offset, operation_name)
        if operation is None:
            raise OperationNotFound(f"No executable GraphQL operation at offset {start_offset} of {uri}")

        resolve = partial(
            self.resolver.resolve,
            file_path=document.path,
            project=project,
            endpoint=endpoint,
        )
        handle = self.engine.start(operation, variables or {}, resolve)
        renderer = ResultRenderer(handle, on_update=on_update)
        self._renderers.setdefault(uri, []).append(renderer)
        renderer.on_dispose(partial(self._forget, uri))
        renderer.on_finish(partial(self._forget, uri))
        logger.debug("started %r from %s", handle, uri)
        return renderer

    def renderers(self, uri: str) -> list[ResultRenderer]:
        """Result views of *uri* that are still streaming."""
        return list(self._renderers.get(uri, ()))

    def report_debug_state(self) -> str:
        message = f"is in debug mode: {bool(self.debug)}"
        self._log_sink(message)
        return message

    def dispose(self) -> None:
        for uri in list(self._renderers):
            for renderer in list(self._renderers.get(uri, ())):
                renderer.dispose()
        self._renderers.clear()

    def _forget(self, uri: str, renderer: ResultRenderer) -> None:
        renderers = self._renderers.get(uri)
        if renderers and renderer in renderers:
            renderers.remove(renderer)
        if not renderers:
            self._renderers.pop(uri, None)
