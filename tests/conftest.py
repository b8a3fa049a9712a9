"""Shared test fixtures for gqlens tests."""

from __future__ import annotations

import asyncio
from collections import namedtuple
import json
from pathlib import Path
from typing import Any

from aiohttp import WSMsgType
import pytest
import yaml

from gqlens.config.resolver import EndpointConfig
from gqlens.extract.languages import LanguageKind
from gqlens.extract.literals import SourceLiteral, extract_literals
from gqlens.helpers import console as output
from gqlens.operations.index import parse_literal
from gqlens.operations.types import ParsedOperation

FakeMessage = namedtuple("FakeMessage", "type data extra")

HTTP_URL = "http://api.test/graphql"


@pytest.fixture(autouse=True)
def _reset_output():
    yield
    output.reset()


def make_literal(text: str, tag: str | None = "gql") -> SourceLiteral:
    """A literal as if extracted from ``gql`<text>``` at the start of a file."""
    source = f"{tag}`{text}`" if tag else f"/* GraphQL */`{text}`"
    literals = list(extract_literals(source, LanguageKind.JAVASCRIPT))
    assert len(literals) == 1
    return literals[0]


def make_operation(text: str) -> ParsedOperation:
    """The first operation parsed from *text*."""
    result = parse_literal(make_literal(text))
    assert isinstance(result, list) and result, result
    return result[0]


def make_endpoint(
    http_url: str = HTTP_URL,
    subscription_url: str | None = None,
    headers: dict[str, str] | None = None,
    connection_params: dict[str, Any] | None = None,
) -> EndpointConfig:
    return EndpointConfig(
        http_url=http_url,
        subscription_url=subscription_url,
        headers=headers or {},
        resolved_from="test",
        connection_params=connection_params or {},
    )


def write_config(root: Path, data: dict[str, Any], name: str = ".graphqlconfig.yml") -> Path:
    path = root / name
    if name.endswith((".yml", ".yaml")):
        path.write_text(yaml.safe_dump(data))
    else:
        path.write_text(json.dumps(data))
    return path


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A workspace folder with a single-endpoint config."""
    write_config(
        tmp_path,
        {
            "schemaPath": "schema.graphql",
            "extensions": {
                "endpoints": {
                    "default": {
                        "url": HTTP_URL,
                        "headers": {"Authorization": "Bearer ${env:TOKEN}"},
                    }
                }
            },
        },
    )
    return tmp_path


class FakeWebSocket:
    """Scripted stand-in for ``aiohttp.ClientWebSocketResponse``.

    Incoming protocol messages are pushed with ``push()``; ``receive()``
    waits for them, so tests control exactly when the server "speaks".
    """

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.close_code: int | None = None
        self._incoming: asyncio.Queue[FakeMessage] = asyncio.Queue()

    def push(self, message: dict[str, Any]) -> None:
        self._incoming.put_nowait(FakeMessage(WSMsgType.TEXT, json.dumps(message), None))

    def push_raw(self, msg_type: WSMsgType, data: Any = None, close_code: int | None = None) -> None:
        if close_code is not None:
            self.close_code = close_code
        self._incoming.put_nowait(FakeMessage(msg_type, data, None))

    async def receive(self) -> FakeMessage:
        return await self._incoming.get()

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.closed:
            raise RuntimeError("websocket is closed")
        self.sent.append(data)

    async def close(self) -> bool:
        if not self.closed:
            self.closed = True
            self.close_code = self.close_code or 1000
        return True

    def exception(self) -> BaseException | None:
        return None

    def sent_types(self) -> list[str]:
        return [m["type"] for m in self.sent]


class FakeSession:
    """Stand-in for ``aiohttp.ClientSession`` handing out one FakeWebSocket."""

    def __init__(self, ws: FakeWebSocket, connect_error: Exception | None = None):
        self.ws = ws
        self.connect_error = connect_error
        self.connect_calls: list[dict[str, Any]] = []
        self.closed = False

    async def __aenter__(self) -> FakeSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True

    async def ws_connect(self, url: str, **kwargs: Any) -> FakeWebSocket:
        self.connect_calls.append({"url": url, **kwargs})
        if self.connect_error is not None:
            raise self.connect_error
        return self.ws


@pytest.fixture
def fake_ws() -> FakeWebSocket:
    return FakeWebSocket()


@pytest.fixture
def fake_session(fake_ws: FakeWebSocket) -> FakeSession:
    return FakeSession(fake_ws)
