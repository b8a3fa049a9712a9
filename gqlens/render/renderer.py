"""Render an execution's result stream into a read-only virtual document."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import json
from typing import Any

from gqlens.execute.engine import ExecutionHandle
from gqlens.execute.types import ErrorDescriptor, ResultEvent

RESULT_SCHEME = "graphql"
RESULT_URI = f"{RESULT_SCHEME}://authority/graphql"

PENDING_TEXT = "Executing..."


@dataclass
class VirtualDocument:
    uri: str
    content: str = PENDING_TEXT
    version: int = 0


def format_payload(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


def format_error(error: ErrorDescriptor) -> str:
    text = f"Error ({error.kind}): {error.message}"
    if error.details is not None:
        text += "\n\n" + format_payload(error.details)
    return text


def format_event(event: ResultEvent) -> str:
    """Error description when the event carries one, else the payload."""
    if event.error is not None:
        return format_error(event.error)
    return format_payload(event.payload)


class ResultRenderer:
    """Keep one document in sync with the latest event of a handle.

    Every event replaces the content wholesale.  A final event without
    payload or error (a subscription completing) keeps the last payload.
    Disposing the renderer disposes the handle, which closes its transport.
    """

    def __init__(
        self,
        handle: ExecutionHandle,
        uri: str = RESULT_URI,
        on_update: Callable[[VirtualDocument], None] | None = None,
    ):
        self.handle = handle
        self.document = VirtualDocument(uri=uri)
        self.on_update = on_update
        self.last_event: ResultEvent | None = None
        self.disposed = False
        self._on_dispose: list[Callable[[ResultRenderer], None]] = []
        self._on_finish: list[Callable[[ResultRenderer], None]] = []

    @property
    def content(self) -> str:
        return self.document.content

    def on_dispose(self, callback: Callable[[ResultRenderer], None]) -> None:
        self._on_dispose.append(callback)

    def on_finish(self, callback: Callable[[ResultRenderer], None]) -> None:
        """Call *callback* once the final event has been rendered."""
        self._on_finish.append(callback)

    async def run(self) -> VirtualDocument:
        """Consume events until the final one or disposal."""
        async for event in self.handle.events():
            if self.disposed:
                break
            self._apply(event)
        if not self.disposed and self.last_event is not None and self.last_event.is_final:
            for callback in self._on_finish:
                callback(self)
        return self.document

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        self.handle.dispose()
        for callback in self._on_dispose:
            callback(self)

    def _apply(self, event: ResultEvent) -> None:
        self.last_event = event
        completes_only = event.is_final and event.error is None and event.payload is None
        if completes_only and self.document.version > 0:
            return
        self.document.content = format_event(event)
        self.document.version += 1
        if self.on_update is not None:
            self.on_update(self.document)
