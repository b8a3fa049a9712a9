"""HTTP and websocket transports for executing operations.

Queries and mutations are one HTTP POST.  Subscriptions use the
``graphql-ws`` websocket subprotocol (the subscriptions-transport-ws
message set): ``connection_init`` / ``connection_ack``, then ``start`` keyed
by a subscription id, ``data`` messages, and ``complete``; ``stop`` and
``connection_terminate`` on teardown.

Neither transport applies a timeout or retries.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable
import json
import logging
from typing import Any

import aiohttp
from aiohttp import WSMsgType

from gqlens.errors import TransportError
from gqlens.execute.types import ExecutionRequest, ResultEvent, event_from_envelope
from gqlens.helpers.console import truncate

logger = logging.getLogger(__name__)

SUBPROTOCOL = "graphql-ws"

GQL_CONNECTION_INIT = "connection_init"
GQL_CONNECTION_ACK = "connection_ack"
GQL_CONNECTION_ERROR = "connection_error"
GQL_CONNECTION_KEEP_ALIVE = "ka"
GQL_CONNECTION_TERMINATE = "connection_terminate"
GQL_START = "start"
GQL_DATA = "data"
GQL_ERROR = "error"
GQL_COMPLETE = "complete"
GQL_STOP = "stop"

_NORMAL_CLOSE_CODES = (None, 1000, 1001)

SessionFactory = Callable[[], aiohttp.ClientSession]


def _default_session() -> aiohttp.ClientSession:
    return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None))


def request_headers(request: ExecutionRequest) -> dict[str, str]:
    """Default JSON headers overridden by the endpoint's headers."""
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if request.endpoint is not None:
        headers.update(request.endpoint.headers)
    return headers


class HttpTransport:
    """Single-shot request/response transport for queries and mutations."""

    def __init__(self, session_factory: SessionFactory = _default_session):
        self._session_factory = session_factory

    async def execute(self, request: ExecutionRequest) -> ResultEvent:
        if request.endpoint is None:
            raise TransportError("No endpoint to send the request to")
        url = request.endpoint.http_url
        logger.debug("POST %s (%s)", url, request.operation.operation_name or "anonymous")

        try:
            async with self._session_factory() as session:
                async with session.post(
                    url,
                    data=json.dumps(request.body()),
                    headers=request_headers(request),
                ) as response:
                    status = response.status
                    charset = response.charset or "utf-8"
                    raw = await response.read()
        except aiohttp.ClientError as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc

        if not 200 <= status < 300:
            text = raw.decode(charset, errors="replace")
            raise TransportError(f"HTTP {status}: {truncate(text, 500)}", status=status)
        try:
            text = raw.decode(charset)
        except (UnicodeDecodeError, LookupError) as exc:
            raise TransportError(
                f"Response body is not valid {charset} text: {exc}", status=status
            ) from exc
        try:
            envelope = json.loads(text)
        except json.JSONDecodeError as exc:
            raise TransportError(
                f"Invalid JSON response: {truncate(text, 200)}", status=status
            ) from exc
        return event_from_envelope(envelope, is_final=True)


class SubscriptionTransport:
    """Persistent websocket transport for subscriptions."""

    def __init__(self, session_factory: SessionFactory = _default_session):
        self._session_factory = session_factory

    async def stream(
        self,
        request: ExecutionRequest,
        subscription_id: str,
        on_open: Callable[[], None] | None = None,
    ) -> AsyncGenerator[ResultEvent, None]:
        """Yield one event per ``data`` message, then a final event.

        *on_open* is called once the server acknowledged the connection and
        the ``start`` message was sent.  Closing the generator (or cancelling
        the task consuming it) stops the subscription and closes the socket.
        """
        if request.endpoint is None:
            raise TransportError("No endpoint to subscribe to")
        url = request.endpoint.duplex_url
        logger.debug("subscribing %s at %s", subscription_id, url)

        async with self._session_factory() as session:
            try:
                ws = await session.ws_connect(
                    url,
                    protocols=(SUBPROTOCOL,),
                    headers=dict(request.endpoint.headers),
                )
            except aiohttp.ClientError as exc:
                raise TransportError(f"Websocket connection to {url} failed: {exc}") from exc

            started = False
            try:
                await ws.send_json(
                    {
                        "type": GQL_CONNECTION_INIT,
                        "payload": dict(request.endpoint.connection_params),
                    }
                )
                await _await_ack(ws)
                await ws.send_json(
                    {"id": subscription_id, "type": GQL_START, "payload": request.body()}
                )
                started = True
                if on_open is not None:
                    on_open()

                while True:
                    message = await _receive(ws)
                    if message is None:
                        started = False
                        yield ResultEvent(is_final=True)
                        return
                    kind = message.get("type")
                    if kind == GQL_CONNECTION_KEEP_ALIVE:
                        continue
                    if message.get("id") not in (None, subscription_id):
                        continue
                    if kind == GQL_DATA:
                        yield event_from_envelope(message.get("payload"), is_final=False)
                    elif kind == GQL_COMPLETE:
                        started = False
                        yield ResultEvent(is_final=True)
                        return
                    elif kind in (GQL_ERROR, GQL_CONNECTION_ERROR):
                        started = False
                        raise TransportError(_error_message(message.get("payload")))
                    else:
                        logger.debug("ignoring %r message", kind)
            except aiohttp.ClientError as exc:
                raise TransportError(f"Websocket error: {exc}") from exc
            finally:
                await _teardown(ws, subscription_id if started else None)


async def _await_ack(ws: Any) -> None:
    while True:
        message = await _receive(ws)
        if message is None:
            raise TransportError("Websocket closed before connection_ack")
        kind = message.get("type")
        if kind == GQL_CONNECTION_ACK:
            return
        if kind == GQL_CONNECTION_ERROR:
            raise TransportError(_error_message(message.get("payload")))
        # keep-alives may precede the ack


async def _receive(ws: Any) -> dict[str, Any] | None:
    """Next protocol message, or None when the socket closed normally."""
    while True:
        msg = await ws.receive()
        if msg.type == WSMsgType.TEXT:
            try:
                message = json.loads(msg.data)
            except json.JSONDecodeError as exc:
                raise TransportError(f"Malformed websocket message: {truncate(msg.data, 200)}") from exc
            if not isinstance(message, dict):
                raise TransportError("Malformed websocket message: expected an object")
            return message
        if msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED):
            if ws.close_code not in _NORMAL_CLOSE_CODES:
                raise TransportError(f"Websocket closed with code {ws.close_code}")
            return None
        if msg.type == WSMsgType.ERROR:
            raise TransportError(f"Websocket error: {ws.exception()}")
        # binary frames and pings carry nothing for this protocol


async def _teardown(ws: Any, subscription_id: str | None) -> None:
    if not ws.closed:
        try:
            if subscription_id is not None:
                await ws.send_json({"id": subscription_id, "type": GQL_STOP})
            await ws.send_json({"type": GQL_CONNECTION_TERMINATE})
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as exc:
            # the peer may already be gone; closing below is what matters
            logger.debug("could not send stop: %s", exc)
    await asyncio.shield(ws.close())


def _error_message(payload: Any) -> str:
    if isinstance(payload, list):
        return "; ".join(_error_message(p) for p in payload)
    if isinstance(payload, dict):
        return str(payload.get("message") or payload)
    return str(payload) if payload else "Subscription error"
