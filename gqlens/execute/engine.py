"""Execute parsed operations and stream their results.

Each execution is an ``ExecutionHandle`` moving through::

    IDLE -> RESOLVING -> CONNECTING -> STREAMING -> COMPLETED | FAILED

and to ``DISPOSED`` when the consumer disposes it before a final event.
Disposing a finished handle releases it but keeps COMPLETED or FAILED.  Results
are pushed into a per-handle ``asyncio.Queue`` in the order the transport
produced them; the renderer pulls them with ``handle.events()``.

Failures never escape the handle: they become a final ``ResultEvent`` with
an ``ErrorDescriptor``.  There is no timeout and no retry; a failed
execution has to be started again.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
import contextlib
import inspect
import logging
from typing import Any, Union
import uuid

from gqlens.config.resolver import EndpointConfig
from gqlens.errors import ConfigurationMissing, MissingVariable, TransportError
from gqlens.execute.transports import HttpTransport, SubscriptionTransport
from gqlens.execute.types import (
    ErrorDescriptor,
    ExecutionRequest,
    ExecutionState,
    ResultEvent,
)
from gqlens.operations.types import OperationType, ParsedOperation

logger = logging.getLogger(__name__)

Resolve = Union[
    EndpointConfig,
    Callable[[], Union[EndpointConfig, Awaitable[EndpointConfig]]],
]


class ExecutionHandle:
    """One in-flight or finished execution.

    Owns the transport task until it finishes or ``dispose()`` is called.
    """

    def __init__(self, operation: ParsedOperation, variables: Mapping[str, Any]):
        self.id = uuid.uuid4().hex
        self.operation = operation
        self.variables = dict(variables)
        self.state = ExecutionState.IDLE
        self.request: ExecutionRequest | None = None
        self.error: ErrorDescriptor | None = None
        self._queue: asyncio.Queue[ResultEvent | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._released = False

    def __repr__(self) -> str:
        name = self.operation.operation_name or "anonymous"
        return f"<ExecutionHandle {self.id[:8]} {name} {self.state.value}>"

    @property
    def endpoint(self) -> EndpointConfig | None:
        return self.request.endpoint if self.request is not None else None

    @property
    def disposed(self) -> bool:
        return self.state is ExecutionState.DISPOSED

    async def events(self) -> AsyncIterator[ResultEvent]:
        """Yield events in transport order until the final one or disposal."""
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event
            if event.is_final:
                return

    def dispose(self) -> None:
        """Tear down the transport and drop any further events.

        A handle that already reached COMPLETED or FAILED keeps that state.
        """
        if self._released:
            return
        self._released = True
        if not self.state.terminal:
            self._transition(ExecutionState.DISPOSED)
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the transport task has finished (or was cancelled)."""
        if self._task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    def _transition(self, state: ExecutionState) -> None:
        logger.debug("%r -> %s", self, state.value)
        self.state = state

    def _emit(self, event: ResultEvent) -> None:
        if self._released:
            return
        if event.is_final:
            self._transition(ExecutionState.COMPLETED)
        elif self.state is not ExecutionState.STREAMING:
            self._transition(ExecutionState.STREAMING)
        self._queue.put_nowait(event)

    def _fail(self, exc: Exception) -> None:
        if self._released:
            return
        self.error = ErrorDescriptor.from_exception(exc)
        logger.debug("%r failed: %s", self, exc)
        self._transition(ExecutionState.FAILED)
        self._queue.put_nowait(ResultEvent(error=self.error, is_final=True))


class ExecutionEngine:
    """Start executions, picking the transport from the operation type."""

    def __init__(
        self,
        http_transport: HttpTransport | None = None,
        subscription_transport: SubscriptionTransport | None = None,
    ):
        self.http_transport = http_transport or HttpTransport()
        self.subscription_transport = subscription_transport or SubscriptionTransport()

    def start(
        self,
        operation: ParsedOperation,
        variables: Mapping[str, Any],
        resolve: Resolve,
    ) -> ExecutionHandle:
        """Start executing *operation*; returns immediately.

        Missing required variables fail the handle before this returns and
        without touching the network.  Otherwise the endpoint is resolved and
        the operation runs in a task on the current event loop.
        """
        handle = ExecutionHandle(operation, variables)
        handle._transition(ExecutionState.RESOLVING)

        missing = operation.missing_variables(handle.variables)
        if missing:
            handle._fail(MissingVariable(missing))
            return handle

        handle._task = asyncio.get_running_loop().create_task(self._run(handle, resolve))
        return handle

    async def _run(self, handle: ExecutionHandle, resolve: Resolve) -> None:
        try:
            await self._execute(handle, resolve)
        except (ConfigurationMissing, TransportError) as exc:
            handle._fail(exc)
        except Exception as exc:
            # every failure still ends the stream with a final event
            logger.debug("%r: unexpected error", handle, exc_info=True)
            handle._fail(exc)

    async def _execute(self, handle: ExecutionHandle, resolve: Resolve) -> None:
        endpoint = await _resolve_endpoint(resolve)
        handle.request = ExecutionRequest(
            operation=handle.operation, variables=handle.variables, endpoint=endpoint
        )
        handle._transition(ExecutionState.CONNECTING)

        if handle.operation.operation_type is OperationType.SUBSCRIPTION:
            await self._subscribe(handle)
        else:
            handle._emit(await self.http_transport.execute(handle.request))

    async def _subscribe(self, handle: ExecutionHandle) -> None:
        assert handle.request is not None

        def on_open() -> None:
            if not handle._released:
                handle._transition(ExecutionState.STREAMING)

        stream = self.subscription_transport.stream(handle.request, handle.id, on_open=on_open)
        try:
            async for event in stream:
                handle._emit(event)
                if event.is_final:
                    break
        finally:
            await stream.aclose()


async def _resolve_endpoint(resolve: Resolve) -> EndpointConfig:
    if isinstance(resolve, EndpointConfig):
        return resolve
    result = resolve()
    if inspect.isawaitable(result):
        result = await result
    return result
