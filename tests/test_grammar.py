"""Tests for the bundled query grammar"""

import pytest

from db_console.grammar import DEFAULT_GRAMMAR, StatementSyntaxError, query_type_keywords


class TestParseStatement:
    def test_single_clause(self):
        parsed = DEFAULT_GRAMMAR.parse_statement("match $x isa person;")
        assert parsed.clauses == ("match",)
        assert parsed.end == len("match $x isa person;")
        assert not parsed.has_explicit_end

    def test_pipeline_of_clauses(self):
        source = 'match $x isa person;\nfetch { "name": $x.name };\nlimit 10;'
        parsed = DEFAULT_GRAMMAR.parse_statement(source)
        assert parsed.clauses == ("match", "fetch", "limit")
        assert parsed.end == len(source)

    def test_clause_with_several_parts(self):
        source = "define\n  entity person, owns name;\n  attribute name, value string;"
        parsed = DEFAULT_GRAMMAR.parse_statement(source)
        assert parsed.clauses == ("define",)
        assert parsed.end == len(source)

    def test_blank_line_ends_pipeline(self):
        source = "match $x isa person;\n\ninsert $y isa person;"
        parsed = DEFAULT_GRAMMAR.parse_statement(source)
        assert parsed.clauses == ("match",)
        assert parsed.end == len("match $x isa person;")

    def test_explicit_end(self):
        source = "match $x isa person;\nend;\nmatch $y isa dog;"
        parsed = DEFAULT_GRAMMAR.parse_statement(source)
        assert parsed.has_explicit_end
        assert parsed.text == "match $x isa person;\nend;"

    def test_semicolons_inside_strings_and_brackets(self):
        source = 'insert $x isa note, has text "a; b";\nfetch { "v": { $x.text } };'
        parsed = DEFAULT_GRAMMAR.parse_statement(source)
        assert parsed.clauses == ("insert", "fetch")
        assert parsed.end == len(source)

    def test_string_may_contain_blank_line(self):
        source = 'insert $x isa note, has text "first\n\nsecond";'
        parsed = DEFAULT_GRAMMAR.parse_statement(source)
        assert parsed.end == len(source)

    def test_comments_are_skipped(self):
        source = "# people\nmatch $x isa person; # all of them\n"
        parsed = DEFAULT_GRAMMAR.parse_statement(source)
        assert parsed.clauses == ("match",)

    def test_parse_exactly_one_rejects_trailing_input(self):
        with pytest.raises(StatementSyntaxError, match="after the end of the query"):
            DEFAULT_GRAMMAR.parse_exactly_one("match $x isa person;\nend;\nmatch $y isa dog;")


class TestSyntaxErrors:
    def test_empty_input_has_no_position(self):
        with pytest.raises(StatementSyntaxError) as excinfo:
            DEFAULT_GRAMMAR.parse_statement("   \n")
        assert excinfo.value.line is None
        assert excinfo.value.column is None

    def test_unknown_keyword_position(self):
        with pytest.raises(StatementSyntaxError) as excinfo:
            DEFAULT_GRAMMAR.parse_statement("\n  frobnicate $x;")
        assert excinfo.value.line == 2
        assert excinfo.value.column == 3
        assert "frobnicate" in str(excinfo.value)

    def test_unexpected_end_reported_at_last_significant_character(self):
        with pytest.raises(StatementSyntaxError) as excinfo:
            DEFAULT_GRAMMAR.parse_statement("match\n  $x isa person\n\n")
        assert excinfo.value.line == 2

    def test_unbalanced_bracket(self):
        with pytest.raises(StatementSyntaxError, match="Unexpected '}'"):
            DEFAULT_GRAMMAR.parse_statement("match $x isa person };")

    def test_end_without_semicolon(self):
        with pytest.raises(StatementSyntaxError, match="Expected ';' after 'end'"):
            DEFAULT_GRAMMAR.parse_statement("match $x isa person;\nend")


def test_query_type_keywords():
    assert query_type_keywords(("define",)) == "schema"
    assert query_type_keywords(("match", "insert")) == "write"
    assert query_type_keywords(("match", "fetch")) == "read"
