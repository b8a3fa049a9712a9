"""Parse extracted literals into executable operations.

Uses graphql-core to parse each literal's text.  A literal yields one
``ParsedOperation`` per operation definition; fragment-only literals yield
none.  Syntax errors come back as ``ParseFailure`` values so one invalid
literal never hides its siblings.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from typing import Any

from graphql import parse as gql_parse
from graphql.error import GraphQLSyntaxError
from graphql.language import print_ast
from graphql.language.ast import (
    BooleanValueNode,
    DocumentNode,
    EnumValueNode,
    FloatValueNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    IntValueNode,
    ListValueNode,
    NonNullTypeNode,
    NullValueNode,
    ObjectValueNode,
    OperationDefinitionNode,
    StringValueNode,
    VariableDefinitionNode,
)

from gqlens.extract.literals import SourceLiteral
from gqlens.operations.types import ParsedOperation, ParseFailure, VariableDefinition


@dataclass
class IndexedLiteral:
    """A literal together with its executable operations (possibly none)."""

    literal: SourceLiteral
    operations: list[ParsedOperation] = field(default_factory=lambda: list[ParsedOperation]())
    document: DocumentNode | None = field(default=None, repr=False)

    @property
    def executable(self) -> bool:
        return bool(self.operations)


@dataclass
class LiteralIndex:
    entries: list[IndexedLiteral] = field(default_factory=lambda: list[IndexedLiteral]())
    failures: list[ParseFailure] = field(default_factory=lambda: list[ParseFailure]())

    def operations(self) -> list[ParsedOperation]:
        return [op for entry in self.entries for op in entry.operations]

    def operation_at(self, offset: int, operation_name: str | None = None) -> ParsedOperation | None:
        """Find the operation whose literal contains *offset*.

        With *operation_name*, pick that operation among the literal's
        operations; otherwise the first one.
        """
        for entry in self.entries:
            if not entry.operations or not entry.literal.contains(offset):
                continue
            if operation_name is None:
                return entry.operations[0]
            for op in entry.operations:
                if op.operation_name == operation_name:
                    return op
        return None


def parse_literal(literal: SourceLiteral) -> list[ParsedOperation] | ParseFailure:
    """Parse one literal.  Never raises on invalid GraphQL."""
    document = _parse(literal)
    if isinstance(document, ParseFailure):
        return document
    return _operations(literal, document)


def index_literals(literals: Iterable[SourceLiteral]) -> LiteralIndex:
    """Parse every literal, collecting failures beside the valid entries."""
    index = LiteralIndex()
    for literal in literals:
        document = _parse(literal)
        if isinstance(document, ParseFailure):
            index.failures.append(document)
        else:
            operations = _operations(literal, document)
            index.entries.append(IndexedLiteral(literal=literal, operations=operations, document=document))
    return index


def link_fragments(index: LiteralIndex) -> None:
    """Append fragments defined in other literals to the operations using them.

    A ``.graphql`` file is split into one literal per definition, so an
    operation's own text lacks the fragments declared elsewhere in the file.
    Fragments are followed transitively; the first definition of a name wins.
    """
    available: dict[str, tuple[FragmentDefinitionNode, str]] = {}
    for entry in index.entries:
        if entry.document is None:
            continue
        text = entry.literal.graphql_text
        for defn in entry.document.definitions:
            if isinstance(defn, FragmentDefinitionNode) and defn.loc is not None:
                available.setdefault(defn.name.value, (defn, text[defn.loc.start : defn.loc.end]))
    if not available:
        return

    for entry in index.entries:
        if not entry.operations or entry.document is None:
            continue
        seen = {
            defn.name.value
            for defn in entry.document.definitions
            if isinstance(defn, FragmentDefinitionNode)
        }
        pending = list(_spread_names(entry.document))
        extra: list[str] = []
        while pending:
            name = pending.pop(0)
            if name in seen or name not in available:
                continue
            seen.add(name)
            defn, fragment_text = available[name]
            extra.append(fragment_text)
            pending.extend(_spread_names(defn))
        if extra:
            source_text = "\n\n".join([entry.operations[0].source_text.strip(), *extra])
            entry.operations = [replace(op, source_text=source_text) for op in entry.operations]


def _parse(literal: SourceLiteral) -> DocumentNode | ParseFailure:
    try:
        return gql_parse(literal.graphql_text)
    except GraphQLSyntaxError as exc:
        return _failure(literal, exc)


def _operations(literal: SourceLiteral, document: DocumentNode) -> list[ParsedOperation]:
    text = literal.graphql_text
    operations: list[ParsedOperation] = []
    for defn in document.definitions:
        if not isinstance(defn, OperationDefinitionNode):
            continue
        operations.append(
            ParsedOperation(
                document=document,
                operation_type=defn.operation,
                operation_name=defn.name.value if defn.name else None,
                variable_definitions=tuple(
                    _variable(var_def) for var_def in defn.variable_definitions or ()
                ),
                literal=literal,
                source_text=text,
            )
        )
    return operations


def _failure(literal: SourceLiteral, exc: GraphQLSyntaxError) -> ParseFailure:
    message = exc.message
    if not exc.positions:
        return ParseFailure(message=message, literal=literal)

    # graphql-core positions index into the literal text, which has the same
    # length as the raw literal, so they map straight onto the document.
    position = exc.positions[0]
    offset = literal.start_offset + position
    prefix = literal.raw_text[:position]
    line_in_literal = prefix.count("\n")
    if line_in_literal == 0:
        column = literal.start_column + position
    else:
        column = position - (prefix.rfind("\n") + 1)
    return ParseFailure(
        message=message,
        literal=literal,
        offset=offset,
        line=literal.start_line + line_in_literal,
        column=column,
    )


def _variable(node: VariableDefinitionNode) -> VariableDefinition:
    default = None
    if node.default_value is not None:
        default = _ast_value_to_python(node.default_value)
    return VariableDefinition(
        name=node.variable.name.value,
        type=print_ast(node.type),
        required=isinstance(node.type, NonNullTypeNode) and node.default_value is None,
        default_value=default,
    )


def _spread_names(node: Any) -> Iterator[str]:
    """Names of the fragment spreads under *node*, in document order."""
    if isinstance(node, DocumentNode):
        for defn in node.definitions:
            yield from _spread_names(defn)
        return
    if isinstance(node, FragmentSpreadNode):
        yield node.name.value
        return
    selection_set = getattr(node, "selection_set", None)
    if selection_set is not None:
        for selection in selection_set.selections:
            yield from _spread_names(selection)


def _ast_value_to_python(node: Any) -> Any:
    """Convert a graphql-core AST value node to a Python value."""
    if isinstance(node, StringValueNode):
        return node.value
    if isinstance(node, IntValueNode):
        return int(node.value)
    if isinstance(node, FloatValueNode):
        return float(node.value)
    if isinstance(node, BooleanValueNode):
        return node.value
    if isinstance(node, NullValueNode):
        return None
    if isinstance(node, EnumValueNode):
        return node.value
    if isinstance(node, ListValueNode):
        return [_ast_value_to_python(v) for v in node.values]
    if isinstance(node, ObjectValueNode):
        return {f.name.value: _ast_value_to_python(f.value) for f in node.fields}
    return print_ast(node)
