"""Tests for parsing literals into operations."""

from __future__ import annotations

from gqlens.extract.languages import LanguageKind
from gqlens.extract.literals import extract_literals
from gqlens.operations.index import index_literals, link_fragments, parse_literal
from gqlens.operations.types import OperationType, ParseFailure
from tests.conftest import make_literal, make_operation


class TestParseLiteral:
    def test_named_query(self):
        [op] = parse_literal(make_literal("query Hero { hero { name } }"))
        assert op.operation_type is OperationType.QUERY
        assert op.operation_name == "Hero"
        assert op.variable_definitions == ()

    def test_anonymous_shorthand_query(self):
        [op] = parse_literal(make_literal("{ viewer { id } }"))
        assert op.operation_type is OperationType.QUERY
        assert op.operation_name is None

    def test_mutation_and_subscription(self):
        mutation = make_operation("mutation Like($id: ID!) { like(id: $id) { count } }")
        subscription = make_operation("subscription OnLike { liked { id } }")
        assert mutation.operation_type is OperationType.MUTATION
        assert subscription.operation_type is OperationType.SUBSCRIPTION

    def test_variable_definitions(self):
        op = make_operation(
            "query Q($id: ID!, $first: Int = 10, $tags: [String!], $strict: Boolean! = true) { q }"
        )
        variables = {v.name: v for v in op.variable_definitions}
        assert variables["id"].type == "ID!"
        assert variables["id"].required is True
        assert variables["first"].required is False
        assert variables["first"].default_value == 10
        assert variables["tags"].type == "[String!]"
        assert variables["tags"].required is False
        # non-null with a default is optional
        assert variables["strict"].required is False
        assert variables["strict"].default_value is True

    def test_missing_variables(self):
        op = make_operation("query Q($id: ID!, $name: String!, $opt: Int) { q }")
        assert op.missing_variables({"id": 1}) == ["name"]
        assert op.missing_variables({"id": 1, "name": None}) == ["name"]
        assert op.missing_variables({"id": 1, "name": "x"}) == []

    def test_fragment_only_literal_has_no_operations(self):
        assert parse_literal(make_literal("fragment F on User { id }")) == []

    def test_operations_share_the_whole_literal(self):
        text = "query A { ...F }\nquery B { b }\nfragment F on Q { a }"
        first, second = parse_literal(make_literal(text))
        assert (first.operation_name, second.operation_name) == ("A", "B")
        assert first.document is second.document
        assert first.source_text == second.source_text == text

    def test_interpolations_do_not_break_parsing(self):
        [literal] = extract_literals(
            "gql`\n  query Q { ...F }\n  ${FRAGMENT}\n`", LanguageKind.JAVASCRIPT
        )
        [op] = parse_literal(literal)
        assert "${" not in op.source_text

    def test_syntax_error_located_in_document(self):
        source = "const a = 1;\nconst Q = gql`\n  query Q {\n    hero(\n  }\n`;"
        [literal] = extract_literals(source, LanguageKind.JAVASCRIPT)
        failure = parse_literal(literal)
        assert isinstance(failure, ParseFailure)
        assert failure.message.startswith("Syntax Error")
        assert failure.offset is not None
        assert failure.line == 4
        assert failure.column == 2
        assert source[failure.offset] == "}"

    def test_syntax_error_on_literal_first_line(self):
        failure = parse_literal(make_literal("query {"))
        assert isinstance(failure, ParseFailure)
        assert failure.line == 0
        # 'gql`' precedes the literal text
        assert failure.column == 4 + len("query {")


class TestIndex:
    def test_failures_do_not_hide_valid_literals(self):
        source = "a = gql`query A { a }`;\nb = gql`query B {`;\nc = gql`mutation C { c }`;"
        index = index_literals(extract_literals(source, LanguageKind.JAVASCRIPT))
        assert [op.operation_name for op in index.operations()] == ["A", "C"]
        assert len(index.failures) == 1
        assert index.failures[0].line == 1

    def test_operation_at(self):
        source = "a = gql`query A { a }`;\nb = gql`query B { b } query C { c }`;\nf = gql`fragment F on T { f }`;"
        literals = list(extract_literals(source, LanguageKind.JAVASCRIPT))
        index = index_literals(literals)
        second = literals[1]
        assert index.operation_at(literals[0].start_offset).operation_name == "A"
        assert index.operation_at(second.start_offset + 3).operation_name == "B"
        assert index.operation_at(second.end_offset, "C").operation_name == "C"
        assert index.operation_at(second.start_offset, "Missing") is None
        assert index.operation_at(literals[2].start_offset + 1) is None
        assert index.operation_at(0) is None
        assert not index.entries[2].executable


class TestLinkFragments:
    SOURCE = (
        "query Hero { hero { ...HeroFields ...Unknown } }\n\n"
        "fragment HeroFields on Hero { name ...Extra }\n\n"
        "fragment Extra on Hero { id }\n\n"
        "fragment Unused on Hero { x }\n\n"
        "mutation Plain { like }\n"
    )

    def test_appends_used_fragments_transitively(self):
        index = index_literals(extract_literals(self.SOURCE, LanguageKind.GRAPHQL))
        link_fragments(index)
        hero, plain = index.operations()

        assert hero.source_text == (
            "query Hero { hero { ...HeroFields ...Unknown } }\n\n"
            "fragment HeroFields on Hero { name ...Extra }\n\n"
            "fragment Extra on Hero { id }"
        )
        assert "fragment" not in plain.source_text
        assert index.operation_at(hero.literal.start_offset) is hero

    def test_fragments_already_in_the_literal_are_not_repeated(self):
        source = "a = gql`query A { ...F } fragment F on T { f }`;\nb = gql`fragment F on T { g }`;"
        index = index_literals(extract_literals(source, LanguageKind.JAVASCRIPT))
        link_fragments(index)
        [op] = index.operations()
        assert op.source_text == "query A { ...F } fragment F on T { f }"
