"""Tests for the result renderer."""

from __future__ import annotations

import pytest

from gqlens.execute.engine import ExecutionHandle
from gqlens.execute.types import ErrorDescriptor, ExecutionState, ResultEvent
from gqlens.render.renderer import (
    PENDING_TEXT,
    RESULT_URI,
    ResultRenderer,
    format_error,
    format_event,
)
from tests.conftest import make_operation


def _handle(*events: ResultEvent) -> ExecutionHandle:
    handle = ExecutionHandle(make_operation("subscription S { s }"), {})
    for event in events:
        handle._emit(event)
    return handle


def test_format_error_with_details():
    error = ErrorDescriptor(kind="TransportError", message="HTTP 503: down", details={"status": 503})
    assert format_error(error) == 'Error (TransportError): HTTP 503: down\n\n{\n  "status": 503\n}'


def test_format_event_prefers_error():
    event = ResultEvent(payload={"a": 1}, error=ErrorDescriptor(kind="GraphQLError", message="bad"))
    assert format_event(event).startswith("Error (GraphQLError): bad")
    assert format_event(ResultEvent(payload={"a": 1})) == '{\n  "a": 1\n}'


def test_initial_document():
    renderer = ResultRenderer(_handle())
    assert renderer.document.uri == RESULT_URI
    assert renderer.content == PENDING_TEXT
    assert renderer.document.version == 0


@pytest.mark.asyncio
async def test_each_event_replaces_content():
    handle = _handle(
        ResultEvent(payload={"n": 1}),
        ResultEvent(payload={"n": 2}),
        ResultEvent(is_final=True),
    )
    updates = []
    renderer = ResultRenderer(handle, on_update=lambda doc: updates.append((doc.version, doc.content)))
    document = await renderer.run()

    assert updates == [(1, '{\n  "n": 1\n}'), (2, '{\n  "n": 2\n}')]
    # completion keeps the last payload on screen
    assert document.content == '{\n  "n": 2\n}'
    assert renderer.last_event.is_final


@pytest.mark.asyncio
async def test_error_event_is_rendered():
    handle = ExecutionHandle(make_operation("{ a }"), {})
    handle._fail(RuntimeError("exploded"))
    renderer = ResultRenderer(handle)
    await renderer.run()
    assert renderer.content == "Error (RuntimeError): exploded"


@pytest.mark.asyncio
async def test_final_null_payload_without_previous_content():
    renderer = ResultRenderer(_handle(ResultEvent(is_final=True)))
    await renderer.run()
    assert renderer.content == "null"


@pytest.mark.asyncio
async def test_dispose_disposes_handle_and_notifies():
    handle = _handle(ResultEvent(payload={"n": 1}))
    renderer = ResultRenderer(handle)
    disposed = []
    renderer.on_dispose(disposed.append)

    renderer.dispose()
    renderer.dispose()

    assert disposed == [renderer]
    assert handle.state is ExecutionState.DISPOSED
    # queued events are dropped
    await renderer.run()
    assert renderer.content == PENDING_TEXT


@pytest.mark.asyncio
async def test_finish_callback_after_final_event_only():
    finished = []
    handle = _handle(ResultEvent(payload={"n": 1}), ResultEvent(payload={"n": 2}, is_final=True))
    renderer = ResultRenderer(handle)
    renderer.on_finish(finished.append)
    await renderer.run()
    assert finished == [renderer]

    disposed = ResultRenderer(_handle(ResultEvent(payload={"n": 1}, is_final=True)))
    disposed.on_finish(finished.append)
    disposed.dispose()
    await disposed.run()
    assert finished == [renderer]
