"""Requests, events and states of the execution engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from gqlens.config.resolver import EndpointConfig
from gqlens.errors import TransportError
from gqlens.operations.types import ParsedOperation


class ExecutionState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    DISPOSED = "disposed"

    @property
    def terminal(self) -> bool:
        return self in (ExecutionState.COMPLETED, ExecutionState.FAILED, ExecutionState.DISPOSED)


@dataclass(frozen=True)
class ErrorDescriptor:
    kind: str  # exception class name, or "GraphQLError" for response errors
    message: str
    details: Any = None

    @classmethod
    def from_exception(cls, exc: Exception) -> ErrorDescriptor:
        details = None
        if isinstance(exc, TransportError) and exc.status is not None:
            details = {"status": exc.status}
        return cls(kind=type(exc).__name__, message=str(exc), details=details)


@dataclass(frozen=True)
class ResultEvent:
    payload: Any = None
    error: ErrorDescriptor | None = None
    is_final: bool = False


@dataclass(frozen=True)
class ExecutionRequest:
    operation: ParsedOperation
    variables: Mapping[str, Any] = field(default_factory=dict)
    endpoint: EndpointConfig | None = None

    def body(self) -> dict[str, Any]:
        """The GraphQL-over-HTTP request body (also the subscription payload)."""
        return {
            "query": self.operation.source_text,
            "operationName": self.operation.operation_name,
            "variables": dict(self.variables),
        }


def event_from_envelope(envelope: Any, *, is_final: bool) -> ResultEvent:
    """Build an event from a ``{"data": ..., "errors": [...]}`` envelope.

    Raises ``TransportError`` when *envelope* is not such a mapping.
    """
    if not isinstance(envelope, dict) or ("data" not in envelope and "errors" not in envelope):
        raise TransportError("Malformed response envelope: expected 'data' or 'errors'")

    error = None
    errors = envelope.get("errors")
    if errors:
        messages = [
            e.get("message", str(e)) if isinstance(e, dict) else str(e)
            for e in (errors if isinstance(errors, list) else [errors])
        ]
        error = ErrorDescriptor(kind="GraphQLError", message="; ".join(messages), details=errors)
    return ResultEvent(payload=envelope.get("data"), error=error, is_final=is_final)
