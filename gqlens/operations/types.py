"""Types produced by the operation index."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from graphql.language import DocumentNode, OperationType

from gqlens.extract.literals import SourceLiteral

__all__ = [
    "OperationType",
    "ParseFailure",
    "ParsedOperation",
    "VariableDefinition",
]


@dataclass(frozen=True)
class VariableDefinition:
    """A declared variable of an operation."""

    name: str  # without $
    type: str  # GraphQL type as string, e.g. "ID!", "[String]"
    required: bool  # non-null and no default value
    default_value: Any = None


@dataclass(frozen=True, eq=False)
class ParsedOperation:
    """One executable operation of a literal.

    Operations of the same literal share ``document``; the whole literal is
    sent as the query text so fragments defined beside the operation resolve.
    In ``.graphql`` files the fragments it uses from other definitions follow.
    """

    document: DocumentNode
    operation_type: OperationType
    operation_name: str | None
    variable_definitions: tuple[VariableDefinition, ...] = field(default_factory=tuple)
    literal: SourceLiteral | None = None
    source_text: str = ""

    def missing_variables(self, variables: Mapping[str, Any]) -> list[str]:
        """Names of required variables absent (or null) in *variables*."""
        return [
            var.name
            for var in self.variable_definitions
            if var.required and variables.get(var.name) is None
        ]


@dataclass(frozen=True)
class ParseFailure:
    """A literal whose text is not valid GraphQL.

    ``offset``, ``line`` and ``column`` locate the error in the document
    (0-based) when graphql-core reports a position.
    """

    message: str
    literal: SourceLiteral
    offset: int | None = None
    line: int | None = None
    column: int | None = None
