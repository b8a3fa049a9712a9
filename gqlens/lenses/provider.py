"""Inline "Execute ..." annotations for the operations of a document."""

from __future__ import annotations

from dataclasses import dataclass, field

from gqlens.extract.languages import LanguageKind
from gqlens.extract.literals import Found, Skipped, scan_literals
from gqlens.operations.index import LiteralIndex, index_literals, link_fragments
from gqlens.operations.types import ParsedOperation, ParseFailure
from gqlens.workspace import TextDocument

EXECUTE_COMMAND = "gqlens.executeOperation"


@dataclass(frozen=True)
class ExecuteArguments:
    """What the execute command needs to find the operation again."""

    uri: str
    start_offset: int
    end_offset: int
    operation_name: str | None = None


@dataclass(frozen=True)
class Annotation:
    line: int  # 0-based, the literal's first line
    column: int
    title: str
    command: str
    arguments: ExecuteArguments
    operation: ParsedOperation = field(compare=False, repr=False)


@dataclass
class AnnotationSet:
    uri: str
    version: int
    text: str = field(repr=False, default="")
    annotations: list[Annotation] = field(default_factory=lambda: list[Annotation]())
    failures: list[ParseFailure] = field(default_factory=lambda: list[ParseFailure]())
    skipped: list[Skipped] = field(default_factory=lambda: list[Skipped]())
    index: LiteralIndex = field(default_factory=LiteralIndex, repr=False)

    def operation_at(self, offset: int, operation_name: str | None = None) -> ParsedOperation | None:
        return self.index.operation_at(offset, operation_name)

    def annotation_at_offset(self, offset: int, operation_name: str | None = None) -> Annotation | None:
        operation = self.operation_at(offset, operation_name)
        for annotation in self.annotations:
            if annotation.operation is operation:
                return annotation
        return None

    def annotation_at_line(self, line: int) -> Annotation | None:
        """First annotation whose literal spans *line* (0-based)."""
        for annotation in self.annotations:
            literal = annotation.operation.literal
            if literal is not None and literal.start_line <= line <= literal.end_line:
                return annotation
        return None


def annotation_title(operation: ParsedOperation, named: bool = False) -> str:
    title = f"Execute {operation.operation_type.value.capitalize()}"
    if named and operation.operation_name:
        title += f" {operation.operation_name}"
    return title


def provide_annotations(document: TextDocument) -> AnnotationSet:
    """One annotation per executable operation; fragment-only literals get none."""
    result = AnnotationSet(uri=document.uri, version=document.version, text=document.text)
    literals = []
    for item in scan_literals(document.text, document.language):
        if isinstance(item, Found):
            literals.append(item.literal)
        else:
            result.skipped.append(item)

    result.index = index_literals(literals)
    if document.language is LanguageKind.GRAPHQL:
        link_fragments(result.index)
    result.failures = list(result.index.failures)
    for entry in result.index.entries:
        named = len(entry.operations) > 1
        for operation in entry.operations:
            literal = entry.literal
            result.annotations.append(
                Annotation(
                    line=literal.start_line,
                    column=literal.start_column,
                    title=annotation_title(operation, named=named),
                    command=EXECUTE_COMMAND,
                    arguments=ExecuteArguments(
                        uri=document.uri,
                        start_offset=literal.start_offset,
                        end_offset=literal.end_offset,
                        operation_name=operation.operation_name,
                    ),
                    operation=operation,
                )
            )
    return result


class AnnotationProvider:
    """Latest annotations per document, recomputed when the text changes."""

    def __init__(self) -> None:
        self._sets: dict[str, AnnotationSet] = {}

    def provide(self, document: TextDocument) -> AnnotationSet:
        current = self._sets.get(document.uri)
        if current is not None and current.version == document.version and current.text == document.text:
            return current
        return self.document_changed(document)

    def document_changed(self, document: TextDocument) -> AnnotationSet:
        # Replaces the previous set, so annotations of vanished literals are gone.
        annotation_set = provide_annotations(document)
        self._sets[document.uri] = annotation_set
        return annotation_set

    def document_closed(self, uri: str) -> None:
        self._sets.pop(uri, None)

    def annotations(self, uri: str) -> list[Annotation]:
        current = self._sets.get(uri)
        return list(current.annotations) if current is not None else []
