"""Locate GraphQL operation literals inside source text.

Two scanners share one result type:

- JavaScript/TypeScript: a tolerant tokenizer that skips strings, comments
  and regex literals, and reports template literals tagged with ``gql``,
  ``graphql`` or ``graphql.experimental`` (also the call form ``gql(`...`)``
  and templates preceded by a ``/* GraphQL */`` marker comment).
- GraphQL files: every top-level definition is one literal.

Scanning is a single forward pass and never raises.  Anything that cannot be
isolated with confidence is reported as ``Skipped`` and left out.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterator
from dataclasses import dataclass
import logging
import re
import string
from typing import Union

from gqlens.extract.languages import LanguageKind

logger = logging.getLogger(__name__)

GRAPHQL_TAGS = ("gql", "graphql")
EXPERIMENTAL_TAG = "graphql.experimental"

_IDENT_CHARS = frozenset(string.ascii_letters + string.digits + "_$")
_WHITESPACE = frozenset(" \t\r\n\f\v﻿")
_MARKER_RE = re.compile(r"\s*graphql\s*", re.IGNORECASE)

# A '/' after one of these starts a regex literal, not a division
_REGEX_PRECEDERS = frozenset("(,=:[!&|?{};~+-*%<>^")
_REGEX_KEYWORDS = frozenset(
    {
        "return", "typeof", "instanceof", "in", "of", "new", "delete",
        "void", "throw", "case", "do", "else", "yield", "await",
    }
)

_DEFINITION_KEYWORDS = frozenset(
    {
        "query", "mutation", "subscription", "fragment", "schema", "scalar",
        "type", "interface", "union", "enum", "input", "directive", "extend",
    }
)


@dataclass(frozen=True)
class SourceLiteral:
    """The content of one GraphQL literal, delimiters excluded.

    Offsets index into the document text; lines and columns are 0-based.
    ``interpolations`` holds ``${...}`` spans relative to ``start_offset``.
    """

    raw_text: str
    start_offset: int
    end_offset: int
    start_line: int
    start_column: int
    end_line: int
    end_column: int
    enclosing_tag_name: str | None = None
    interpolations: tuple[tuple[int, int], ...] = ()

    @property
    def graphql_text(self) -> str:
        """``raw_text`` with interpolations blanked to same-length whitespace."""
        if not self.interpolations:
            return self.raw_text
        chars = list(self.raw_text)
        for start, end in self.interpolations:
            for i in range(start, end):
                if chars[i] not in "\r\n":
                    chars[i] = " "
        return "".join(chars)

    def contains(self, offset: int) -> bool:
        return self.start_offset <= offset <= self.end_offset


@dataclass(frozen=True)
class Found:
    literal: SourceLiteral


@dataclass(frozen=True)
class Skipped:
    reason: str
    offset: int


ExtractionResult = Union[Found, Skipped]


class LineIndex:
    """Offset to (line, column) mapping built once per document."""

    def __init__(self, text: str):
        self._starts = [0]
        self._starts.extend(m.end() for m in re.finditer("\n", text))

    def position(self, offset: int) -> tuple[int, int]:
        line = bisect_right(self._starts, offset) - 1
        return line, offset - self._starts[line]

    def offset(self, line: int, column: int = 0) -> int:
        if line < 0:
            return 0
        if line >= len(self._starts):
            line = len(self._starts) - 1
        return self._starts[line] + column


def scan_literals(text: str, language: LanguageKind) -> Iterator[ExtractionResult]:
    """Yield every literal (or skipped candidate) in source order."""
    lines = LineIndex(text)
    if language is LanguageKind.JAVASCRIPT:
        results = _JavaScriptScanner(text, lines).scan()
    elif language is LanguageKind.GRAPHQL:
        results = _scan_graphql(text, lines)
    else:
        return
    for result in results:
        if isinstance(result, Skipped):
            logger.debug("skipped literal at offset %d: %s", result.offset, result.reason)
        yield result


def extract_literals(text: str, language: LanguageKind) -> Iterator[SourceLiteral]:
    """Like ``scan_literals`` but only the literals that were found."""
    for result in scan_literals(text, language):
        if isinstance(result, Found):
            yield result.literal


def _make_literal(
    text: str,
    lines: LineIndex,
    start: int,
    end: int,
    tag: str | None,
    interpolations: tuple[tuple[int, int], ...] = (),
) -> SourceLiteral:
    start_line, start_column = lines.position(start)
    end_line, end_column = lines.position(end)
    return SourceLiteral(
        raw_text=text[start:end],
        start_offset=start,
        end_offset=end,
        start_line=start_line,
        start_column=start_column,
        end_line=end_line,
        end_column=end_column,
        enclosing_tag_name=tag,
        interpolations=interpolations,
    )


def _drain(gen: Iterator[ExtractionResult], sink: list[ExtractionResult]) -> int | None:
    """Exhaust *gen* into *sink* and return its return value."""
    while True:
        try:
            sink.append(next(gen))
        except StopIteration as stop:
            return stop.value


# -- JavaScript / TypeScript --------------------------------------------------


class _JavaScriptScanner:
    def __init__(self, text: str, lines: LineIndex):
        self.text = text
        self.lines = lines
        self.n = len(text)

    def scan(self) -> Iterator[ExtractionResult]:
        yield from self._code(0, nested=False)

    def _code(self, i: int, nested: bool):
        """Scan code from *i*.

        Returns the offset after the closing ``}`` of an interpolation when
        *nested*, the end of text otherwise, or None when text ends early.
        """
        text = self.text
        n = self.n
        depth = 0
        prev = ""  # last significant character, "a" for identifiers
        word = ""
        marker = False

        while i < n:
            c = text[i]
            if c in _WHITESPACE:
                i += 1
                continue
            if text.startswith("//", i):
                nl = text.find("\n", i)
                i = n if nl < 0 else nl
                continue
            if text.startswith("/*", i):
                end = text.find("*/", i + 2)
                if end < 0:
                    return None if nested else n
                marker = _MARKER_RE.fullmatch(text[i + 2 : end]) is not None
                i = end + 2
                continue

            if c == "`":
                end = yield from self._template(i, marker)
                if end is None:
                    return None if nested else n
                i = end
                prev, word, marker = "`", "", False
                continue

            marker = False
            if c in "'\"":
                i = self._skip_string(i)
                prev, word = c, ""
            elif c == "/":
                regex_end = None
                if prev == "" or prev in _REGEX_PRECEDERS or (prev == "a" and word in _REGEX_KEYWORDS):
                    regex_end = self._skip_regex(i)
                if regex_end is None:
                    i += 1
                    prev, word = "/", ""
                else:
                    i = regex_end
                    prev, word = "a", ""
            elif c in _IDENT_CHARS:
                j = i + 1
                while j < n and text[j] in _IDENT_CHARS:
                    j += 1
                word = text[i:j]
                prev = "a"
                i = j
            else:
                if c == "{":
                    depth += 1
                elif c == "}":
                    if nested and depth == 0:
                        return i + 1
                    depth = max(depth - 1, 0)
                prev, word = c, ""
                i += 1

        return None if nested else n

    def _template(self, start: int, marker: bool):
        """Scan the template literal opening at *start*.

        Yields the literal (when tagged) followed by any literals found in its
        interpolations, and returns the offset after the closing backtick.
        """
        text = self.text
        n = self.n
        tag = self._tag_before(start)
        tagged = tag is not None or marker
        nested: list[ExtractionResult] = []
        spans: list[tuple[int, int]] = []
        content_start = start + 1

        i = content_start
        while i < n:
            c = text[i]
            if c == "\\":
                i += 2
                continue
            if c == "`":
                break
            if text.startswith("${", i):
                end = _drain(self._code(i + 2, nested=True), nested)
                if end is None:
                    i = n
                    break
                spans.append((i - content_start, end - content_start))
                i = end
                continue
            i += 1

        if i >= n:
            if tagged:
                yield Skipped("unterminated template literal", start)
            yield from nested
            return None

        if tagged:
            if text[content_start:i].strip():
                yield Found(
                    _make_literal(text, self.lines, content_start, i, tag, tuple(spans))
                )
            else:
                yield Skipped("empty template literal", start)
        yield from nested
        return i + 1

    def _tag_before(self, backtick: int) -> str | None:
        text = self.text
        j = backtick - 1
        while j >= 0 and text[j] in _WHITESPACE:
            j -= 1
        if j >= 0 and text[j] == "(":
            j -= 1
            while j >= 0 and text[j] in _WHITESPACE:
                j -= 1
        end = j + 1
        while j >= 0 and (text[j] in _IDENT_CHARS or text[j] == "."):
            j -= 1
        chain = text[j + 1 : end].strip(".")
        if not chain:
            return None
        if chain == EXPERIMENTAL_TAG or chain.endswith("." + EXPERIMENTAL_TAG):
            return chain
        if chain.rsplit(".", 1)[-1] in GRAPHQL_TAGS:
            return chain
        return None

    def _skip_string(self, i: int) -> int:
        text = self.text
        quote = text[i]
        j = i + 1
        while j < self.n:
            c = text[j]
            if c == "\\":
                j += 2
                continue
            if c == quote:
                return j + 1
            if c == "\n":
                return j
            j += 1
        return self.n

    def _skip_regex(self, i: int) -> int | None:
        text = self.text
        j = i + 1
        in_class = False
        while j < self.n:
            c = text[j]
            if c == "\\":
                j += 2
                continue
            if c == "\n":
                return None
            if in_class:
                if c == "]":
                    in_class = False
            elif c == "[":
                in_class = True
            elif c == "/":
                if j == i + 1:
                    return None
                j += 1
                while j < self.n and text[j] in _IDENT_CHARS:
                    j += 1
                return j
            j += 1
        return None


# -- GraphQL documents --------------------------------------------------------


def _scan_graphql(text: str, lines: LineIndex) -> Iterator[ExtractionResult]:
    """Split a GraphQL document into its top-level definitions.

    A definition ends where the next one starts: a definition keyword at
    nesting depth 0, or a second ``{`` block after an anonymous query.
    """
    n = len(text)
    i = 0
    depth = 0
    start: int | None = None
    last_end = 0  # end of the current construct's last token
    closed_group = False  # current construct already closed a top-level {...}
    has_body = False  # current construct has more than description strings
    prev_word = ""

    while i < n:
        c = text[i]
        if c in _WHITESPACE or c == ",":
            i += 1
            continue
        if c == "#":
            nl = text.find("\n", i)
            i = n if nl < 0 else nl
            continue

        token_start = i
        word = ""
        if text.startswith('"""', i):
            end = _find_block_string_end(text, i + 3)
            if end is None:
                yield Skipped("unterminated block string", token_start if start is None else start)
                return
            i = end
            kind = "string"
        elif c == '"':
            i = _skip_graphql_string(text, i)
            kind = "string"
        elif c in _IDENT_CHARS or c == "@":
            i += 1
            while i < n and text[i] in _IDENT_CHARS:
                i += 1
            word = text[token_start:i]
            kind = "word"
        else:
            i += 1
            kind = c

        if depth == 0 and start is not None and has_body:
            starts_definition = (
                kind == "word" and word in _DEFINITION_KEYWORDS and prev_word != "extend"
            )
            if starts_definition or (kind == "{" and closed_group):
                yield Found(_make_literal(text, lines, start, last_end, None))
                start = None
                closed_group = False
                has_body = False

        if kind in ("{", "(", "["):
            depth += 1
        elif kind in ("}", ")", "]"):
            if depth == 0:
                if start is not None and has_body:
                    yield Found(_make_literal(text, lines, start, last_end, None))
                yield Skipped(f"unbalanced '{kind}'", token_start)
                start = None
                closed_group = False
                has_body = False
                prev_word = ""
                continue
            depth -= 1
            if depth == 0 and kind == "}":
                closed_group = True

        if start is None:
            start = token_start
        if kind != "string":
            has_body = True
        prev_word = word
        last_end = i

    if start is None:
        return
    if depth != 0:
        yield Skipped("unterminated definition", start)
        return
    yield Found(_make_literal(text, lines, start, last_end, None))


def _find_block_string_end(text: str, i: int) -> int | None:
    while True:
        end = text.find('"""', i)
        if end < 0:
            return None
        if text[end - 1] == "\\":
            i = end + 3
            continue
        return end + 3


def _skip_graphql_string(text: str, i: int) -> int:
    j = i + 1
    n = len(text)
    while j < n:
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == '"' or c == "\n":
            return j + 1
        j += 1
    return n
