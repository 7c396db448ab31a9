"""Statement boundary detection for free-form query text

Decides how much of a (possibly multi-statement, multi-line) buffer makes up
one statement. The detector is stateless: callers that get None back keep
reading input and call again with the larger buffer.
"""

import logging
import re

from .grammar import DEFAULT_GRAMMAR, QueryGrammar, StatementSyntaxError

logger = logging.getLogger(__name__)

_EMPTY_LINE = re.compile(r"\n[^\S\n]*\n")


def find_empty_line_index(input: str) -> int | None:
    """Offset of the newline that starts the first blank line, if any"""
    match = _EMPTY_LINE.search(input)
    return None if match is None else match.start()


def _line_start_offset(input: str, line: int) -> int:
    offset = 0
    for _ in range(line - 1):
        newline = input.find("\n", offset)
        if newline == -1:
            return len(input)
        offset = newline + 1
    return offset


def find_statement_end(
    input: str,
    coerce_to_one_line: bool = False,
    grammar: QueryGrammar | None = None,
) -> int | None:
    """End offset of the first statement in input, or None if more input is needed"""
    if coerce_to_one_line:
        return len(input)
    if not input.strip():
        return None

    grammar = grammar or DEFAULT_GRAMMAR
    try:
        parsed = grammar.parse_statement(input)
    except StatementSyntaxError as err:
        # wait for the user to finish typing before reporting: look for a blank line after the error
        search_from = 0 if err.line is None else _line_start_offset(input, err.line)
        logger.debug("Statement does not parse yet (%s), searching for a blank line from %d", err, search_from)
        index = find_empty_line_index(input[search_from:])
        return None if index is None else search_from + index

    if parsed.has_explicit_end:
        return len(input[: parsed.end].rstrip())

    index = find_empty_line_index(input[parsed.end :])
    return None if index is None else parsed.end + index


def parse_one_query(input: str, coerce_to_one_line: bool = False) -> int | None:
    """Argument reader for query text"""
    return find_statement_end(input, coerce_to_one_line)


def split_statements(text: str, grammar: QueryGrammar | None = None) -> list[str]:
    """Split a whole file body into statements

    End of text is an implicit boundary for the last statement.
    """
    statements = []
    remaining = text
    while remaining.strip():
        end = find_statement_end(remaining, grammar=grammar) or len(remaining)
        statement = remaining[:end].strip()
        if statement:
            statements.append(statement)
        remaining = remaining[end:]
    return statements
