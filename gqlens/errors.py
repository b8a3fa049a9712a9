"""Error conditions raised by the resolver and the execution engine.

Extraction and parsing never raise: skipped literals and parse failures are
returned as values (see ``gqlens.extract.literals.Skipped`` and
``gqlens.operations.types.ParseFailure``).
"""

from __future__ import annotations

from collections.abc import Sequence


class GqlensError(Exception):
    """Base class for all gqlens errors."""


class ConfigurationMissing(GqlensError):
    """No usable GraphQL project configuration was found."""


class ConfigurationInvalid(ConfigurationMissing):
    """A configuration file exists but cannot provide an endpoint."""


class MissingVariable(GqlensError):
    """Required operation variables were not supplied."""

    def __init__(self, names: Sequence[str]):
        self.names = list(names)
        joined = ", ".join(f"${n}" for n in self.names)
        super().__init__(f"Missing value for required variable(s): {joined}")


class TransportError(GqlensError):
    """HTTP or websocket failure while executing an operation."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class OperationNotFound(GqlensError):
    """No executable operation at the requested document position."""
