"""Query statement grammar

Recognises TypeQL-shaped statements: a pipeline of clauses, each starting
with a clause keyword followed by one or more parts that end with ``;``
outside brackets and string literals, optionally closed by an explicit
``end;``. A blank line between two parts ends the pipeline.
"""

from dataclasses import dataclass

CLAUSE_KEYWORDS = frozenset(
    {
        "match",
        "insert",
        "put",
        "update",
        "delete",
        "define",
        "undefine",
        "redefine",
        "fetch",
        "select",
        "sort",
        "offset",
        "limit",
        "reduce",
        "require",
        "distinct",
        "with",
    }
)
SCHEMA_KEYWORDS = frozenset({"define", "undefine", "redefine"})
WRITE_KEYWORDS = frozenset({"insert", "put", "update", "delete"})
END_KEYWORD = "end"

_BRACKETS = {"(": ")", "[": "]", "{": "}"}
_CLOSING = frozenset(_BRACKETS.values())
_QUOTES = frozenset("\"'")


@dataclass(frozen=True)
class ParsedStatement:
    """A statement parsed from the start of a buffer"""

    text: str
    end: int
    has_explicit_end: bool
    clauses: tuple[str, ...]


class StatementSyntaxError(Exception):
    """Raised when the buffer does not start with a valid statement

    ``line`` and ``column`` are 1-based and None when the error has no
    position (an empty statement).
    """

    def __init__(self, message: str, source: str, position: int | None):
        self.message = message
        self.position = position
        if position is None:
            self.line = None
            self.column = None
        else:
            self.line = source.count("\n", 0, position) + 1
            self.column = position - (source.rfind("\n", 0, position) + 1) + 1
        super().__init__(self._describe())

    def _describe(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} (line {self.line}, column {self.column})"


class QueryGrammar:
    """Parser for one statement at the start of a text buffer"""

    def parse_statement(self, source: str) -> ParsedStatement:
        pos, _ = self._skip_trivia(source, 0)
        if pos >= len(source):
            raise StatementSyntaxError("Expected a query but found no input", source, None)

        clauses: list[str] = []
        while True:
            word_end = self._word_end(source, pos)
            keyword = source[pos:word_end]
            if keyword not in CLAUSE_KEYWORDS:
                found = keyword or source[pos]
                raise StatementSyntaxError(f"Unexpected '{found}', expected a query clause", source, pos)
            clauses.append(keyword)
            end = self._clause_end(source, word_end)

            # a clause body is one or more ';'-terminated parts
            while True:
                pos, crossed_blank_line = self._skip_trivia(source, end)
                if pos >= len(source) or crossed_blank_line:
                    return ParsedStatement(source[:end], end, False, tuple(clauses))

                word_end = self._word_end(source, pos)
                word = source[pos:word_end]
                if word == END_KEYWORD:
                    after, _ = self._skip_trivia(source, word_end)
                    if after < len(source) and source[after] == ";":
                        return ParsedStatement(source[: after + 1], after + 1, True, tuple(clauses))
                    raise StatementSyntaxError(f"Expected ';' after '{END_KEYWORD}'", source, word_end - 1)
                if word in CLAUSE_KEYWORDS:
                    break
                end = self._clause_end(source, pos)

    def parse_exactly_one(self, source: str) -> ParsedStatement:
        """Parse a statement and reject anything left after it"""
        parsed = self.parse_statement(source)
        rest, _ = self._skip_trivia(source, parsed.end)
        if rest < len(source):
            raise StatementSyntaxError("Unexpected input after the end of the query", source, rest)
        return parsed

    @staticmethod
    def _word_end(source: str, pos: int) -> int:
        end = pos
        while end < len(source) and (source[end].isalnum() or source[end] in "_-"):
            end += 1
        return end

    @staticmethod
    def _skip_trivia(source: str, pos: int) -> tuple[int, bool]:
        """Skip whitespace and comments, reporting whether a blank line was crossed"""
        newlines = 0
        crossed_blank_line = False
        while pos < len(source):
            char = source[pos]
            if char == "\n":
                newlines += 1
                if newlines >= 2:
                    crossed_blank_line = True
            elif char == "#":
                while pos < len(source) and source[pos] != "\n":
                    pos += 1
                newlines = 0
                continue
            elif not char.isspace():
                break
            pos += 1
        return pos, crossed_blank_line

    def _clause_end(self, source: str, pos: int) -> int:
        """Offset just past the ';' closing the clause body that starts at pos"""
        open_brackets: list[str] = []
        last_significant = pos - 1
        newlines = 0
        while pos < len(source):
            char = source[pos]
            if char == "\n":
                newlines += 1
                if newlines >= 2:
                    # a blank line outside string literals ends the clause body
                    break
            elif not char.isspace():
                newlines = 0
            if char in _QUOTES:
                pos = self._string_end(source, pos)
                last_significant = pos - 1
                continue
            if char == "#":
                while pos < len(source) and source[pos] != "\n":
                    pos += 1
                continue
            if char in _BRACKETS:
                open_brackets.append(_BRACKETS[char])
            elif char in _CLOSING:
                if not open_brackets or open_brackets[-1] != char:
                    raise StatementSyntaxError(f"Unexpected '{char}'", source, pos)
                open_brackets.pop()
            elif char == ";" and not open_brackets:
                return pos + 1
            if not char.isspace():
                last_significant = pos
            pos += 1

        # reported at the last significant character so a following blank line still bounds the statement
        expected = f"'{open_brackets[-1]}'" if open_brackets else "';'"
        raise StatementSyntaxError(f"Unexpected end of input, expected {expected}", source, max(last_significant, 0))

    @staticmethod
    def _string_end(source: str, pos: int) -> int:
        quote = source[pos]
        index = pos + 1
        while index < len(source):
            char = source[index]
            if char == "\\":
                index += 2
                continue
            if char == quote:
                return index + 1
            index += 1
        last_significant = len(source.rstrip()) - 1
        raise StatementSyntaxError("Unterminated string literal", source, max(last_significant, pos))


def query_type_keywords(clauses: tuple[str, ...]) -> str:
    """Classify a clause pipeline as 'schema', 'write' or 'read'"""
    if clauses and clauses[0] in SCHEMA_KEYWORDS:
        return "schema"
    if any(clause in WRITE_KEYWORDS for clause in clauses):
        return "write"
    return "read"


DEFAULT_GRAMMAR = QueryGrammar()
