"""Command tree for db-console: tokens, argument inputs, leaves and subcommand groups"""

import logging
import re
from collections.abc import Callable, Iterator
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

_INLINE_WHITESPACE = re.compile(r"[^\S\n]*")
_ANY_WHITESPACE = re.compile(r"\s*")
_WHITESPACE = re.compile(r"\s")

# reader(input, coerce_to_one_line) -> end offset of the argument, or None when absent
InputReader = Callable[[str, bool], int | None]
InputCompleter = Callable[[str], list[str]]
HiddenInput = Callable[[str], str]
CommandExecutor = Callable[[Any, list[str]], None]


class ReplError(Exception):
    """Structural or user-input error raised while matching or executing a command"""


class Requiredness(Enum):
    """How an argument behaves when it is absent from the command line"""

    REQUIRED = "required"
    OPTIONAL_TRAILING = "optional"
    REQUIRED_HIDDEN = "hidden"


def get_word(input: str, coerce_to_one_line: bool = False) -> int | None:
    """Read one whitespace-delimited word, skipping leading whitespace"""
    if not input.strip():
        return None
    start = len(input) - len(input.lstrip())
    boundary = _WHITESPACE.search(input, start)
    return len(input) if boundary is None else boundary.start()


def get_remainder(input: str, coerce_to_one_line: bool = False) -> int | None:
    """Read everything that is left"""
    if not input.strip():
        return None
    return len(input)


def _rest_of_line(input: str) -> str:
    newline = input.find("\n")
    return input if newline == -1 else input[:newline]


def _no_hidden_input(usage: str) -> str:
    raise ReplError(f"{usage} must be entered as part of the command.")


class CommandToken:
    """A literal keyword matched at the start of the input"""

    __slots__ = ("token",)

    def __init__(self, token: str):
        self.token = token

    @property
    def first_word(self) -> str:
        words = self.token.split()
        return words[0] if words else ""

    def match(self, input: str, multiline: bool = False) -> tuple[str, str, int] | None:
        """Match the token after a whitespace-only prefix

        In single-line mode the prefix may not cross a newline. A non-empty
        token must end at a word boundary.

        Returns:
            (matched_prefix, remainder, end_offset) or None
        """
        whitespace = _ANY_WHITESPACE if multiline else _INLINE_WHITESPACE
        start = whitespace.match(input).end()
        if not input.startswith(self.token, start):
            return None
        end = start + len(self.token)
        if self.token and end < len(input) and not input[end].isspace():
            return None
        return input[:end], input[end:], end

    def completes(self, input: str) -> bool:
        """True when input is a partially typed first word of this token"""
        partial = input.lstrip()
        if _WHITESPACE.search(partial):
            return False
        return self.token.startswith(partial)

    def __eq__(self, other):
        return isinstance(other, CommandToken) and self.token == other.token

    def __hash__(self):
        return hash(self.token)

    def __str__(self):
        return self.token

    def __repr__(self):
        return f"CommandToken({self.token!r})"


class CommandInput:
    """One argument of a command leaf"""

    def __init__(
        self,
        usage: str,
        reader: InputReader,
        requiredness: Requiredness = Requiredness.REQUIRED,
        hidden_reader: InputReader | None = None,
        completer: InputCompleter | None = None,
    ):
        if requiredness is Requiredness.REQUIRED_HIDDEN and hidden_reader is None:
            raise ValueError(f"Hidden input '{usage}' needs a hidden reader")
        self.usage = usage
        self.reader = reader
        self.requiredness = requiredness
        self.hidden_reader = hidden_reader
        self.completer = completer

    @classmethod
    def required(cls, usage: str, reader: InputReader, completer: InputCompleter | None = None) -> "CommandInput":
        return cls(usage, reader, Requiredness.REQUIRED, completer=completer)

    @classmethod
    def optional(cls, usage: str, reader: InputReader, completer: InputCompleter | None = None) -> "CommandInput":
        return cls(usage, reader, Requiredness.OPTIONAL_TRAILING, completer=completer)

    @classmethod
    def hidden(
        cls,
        usage: str,
        reader: InputReader,
        hidden_reader: InputReader,
        completer: InputCompleter | None = None,
    ) -> "CommandInput":
        return cls(usage, reader, Requiredness.REQUIRED_HIDDEN, hidden_reader=hidden_reader, completer=completer)

    @property
    def is_hidden(self) -> bool:
        return self.requiredness is Requiredness.REQUIRED_HIDDEN

    @property
    def is_optional(self) -> bool:
        return self.requiredness is Requiredness.OPTIONAL_TRAILING

    @property
    def is_required(self) -> bool:
        return self.requiredness is Requiredness.REQUIRED

    def read_end_index_from(self, input: str, coerce_to_one_line: bool) -> int | None:
        return self.reader(input, coerce_to_one_line)

    def request_hidden(self, hidden_input: HiddenInput | None = None) -> str:
        """Prompt for the argument on a masked channel and validate what was typed"""
        if hidden_input is None:
            from .line_reader import read_hidden

            hidden_input = read_hidden

        try:
            value = hidden_input(f"{self.usage}: ").strip()
        except (EOFError, KeyboardInterrupt) as e:
            raise ReplError(f"Could not read input for '{self.usage}'") from e
        end = self.hidden_reader(value, True)
        if end is None or value[:end].strip() != value:
            raise ReplError(f"Could not read input for '{self.usage}'")
        return value

    def completions(self, partial: str) -> list[str]:
        """Candidates for a partially typed argument, excluding the partial word itself"""
        if self.completer is None:
            return []
        if partial:
            end = self.read_end_index_from(partial, True)
            if end is None:
                return []
            partial = partial[:end]
        return [candidate for candidate in self.completer(partial) if candidate != partial]

    def usage_label(self) -> str:
        if self.is_hidden:
            return f"<{self.usage} (enter in hidden input)>"
        if self.is_optional:
            return f"[{self.usage}]"
        return f"<{self.usage}>"


class CommandLeaf:
    """A terminal command: token, ordered arguments and an executor"""

    def __init__(
        self,
        token: str,
        description: str,
        executor: CommandExecutor,
        inputs: list[CommandInput] | None = None,
        multiline: bool = False,
    ):
        self.token = CommandToken(token)
        self.description = description
        self.executor = executor
        self.inputs = list(inputs or [])
        self.multiline = multiline

        seen_optional = False
        for argument in self.inputs:
            if argument.is_optional:
                seen_optional = True
            elif seen_optional:
                raise ValueError(
                    f"Command '{token}': required input '{argument.usage}' cannot follow an optional input"
                )

    def match_first(
        self,
        input: str,
        coerce_to_one_line: bool = False,
        hidden_input: HiddenInput | None = None,
    ) -> tuple["CommandLeaf", list[str], int] | None:
        matched = self.token.match(input, self.multiline)
        if matched is None:
            return None

        _, remaining, command_end_index = matched
        parsed_args: list[str] = []
        for index, argument in enumerate(self.inputs):
            if argument.is_required or coerce_to_one_line or _rest_of_line(remaining).strip():
                end_index = argument.read_end_index_from(remaining, coerce_to_one_line)
            else:
                # optional and hidden arguments are only read from the command's own line
                end_index = None
            if end_index is None:
                if argument.is_hidden:
                    parsed_args.append(argument.request_hidden(hidden_input))
                    continue
                if argument.is_optional:
                    break
                raise ReplError(f"Missing argument {index + 1}: {argument.usage}")

            value = remaining[:end_index]
            # an argument that consumed nothing must not shadow the default leaf
            if not value.strip():
                return None
            parsed_args.append(value.strip())
            command_end_index += end_index
            remaining = remaining[end_index:]

        return self, parsed_args, command_end_index

    def execute(self, context, args: list[str]):
        logger.debug("Executing '%s' with %d argument(s)", self.token, len(args))
        self.executor(context, args)

    def compute_completions(self, input: str) -> list[str]:
        matched = self.token.match(input, self.multiline)
        if matched is None:
            if self.token.token and self.token.completes(input) and self.token.token != input.strip():
                return [self.token.token]
            return []

        _, remaining, _ = matched
        if self.token.token and not remaining[:1].isspace():
            return []

        words = remaining.split()
        if not words or remaining[-1].isspace():
            index, partial = len(words), ""
        else:
            index, partial = len(words) - 1, words[-1]

        if index >= len(self.inputs):
            return []
        return self.inputs[index].completions(partial)

    def usage_description(self) -> Iterator[tuple[str, str]]:
        usage = " ".join([self.token.token] + [argument.usage_label() for argument in self.inputs]).strip()
        yield usage, self.description


class Subcommand:
    """An internal node of the command tree

    Children are tried longest token first so that a longer sibling is never
    shadowed by a shorter one that happens to prefix it.
    """

    def __init__(self, token: str):
        self.token = CommandToken(token)
        self._subcommands: list[CommandLeaf | Subcommand] = []
        self._match_order: list[CommandLeaf | Subcommand] = []

    @property
    def subcommands(self) -> list["CommandLeaf | Subcommand"]:
        return list(self._subcommands)

    def add(self, command: "CommandLeaf | Subcommand") -> "Subcommand":
        for existing in self._subcommands:
            if existing.token.first_word == command.token.first_word:
                raise ValueError(f"Duplicate subcommands with token: {command.token}")
        self._subcommands.append(command)
        ordered = sorted(enumerate(self._subcommands), key=lambda item: (len(item[1].token.token), item[0]), reverse=True)
        self._match_order = [cmd for _, cmd in ordered]
        return self

    def match_first(
        self,
        input: str,
        coerce_to_one_line: bool = False,
        hidden_input: HiddenInput | None = None,
    ) -> tuple[CommandLeaf, list[str], int] | None:
        matched = self.token.match(input)
        if matched is None:
            return None

        _, remaining, token_end_index = matched
        for subcommand in self._match_order:
            found = subcommand.match_first(remaining, coerce_to_one_line, hidden_input)
            if found is None:
                continue
            command, arguments, command_end_index = found
            # children only see the remainder, so shift their offset back
            return command, arguments, token_end_index + command_end_index

        if self.token.token:
            raise ReplError(
                f"Unrecognised '{self.token}' subcommand: '{remaining.strip()}', "
                "please type 'help' to see the help menu."
            )
        raise ReplError(f"Unrecognised command: {remaining.strip()}")

    def is_complete_command(self, input: str) -> bool:
        """True when the input already holds one whole command"""
        try:
            return self.match_first(input, False, _no_hidden_input) is not None
        except ReplError:
            return False

    def compute_completions(self, input: str) -> list[str]:
        matched = self.token.match(input)
        if matched is not None:
            _, remaining, _ = matched
            if not self.token.token or remaining[:1].isspace():
                stripped = remaining.lstrip()
                return [
                    completion
                    for subcommand in self._subcommands
                    for completion in subcommand.compute_completions(stripped)
                ]
            return []
        if self.token.completes(input) and self.token.token != input.strip():
            return [self.token.token]
        return []

    def usage_description(self) -> Iterator[tuple[str, str]]:
        for command in self._subcommands:
            for usage, description in command.usage_description():
                if self.token.token:
                    yield f"{self.token} {usage}", description
                else:
                    yield usage, description
