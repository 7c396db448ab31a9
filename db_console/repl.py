"""Session frames and the stack that holds them"""

import logging
from collections.abc import Callable
from pathlib import Path

from rich.console import Console

from .command import CommandLeaf, HiddenInput, Subcommand

logger = logging.getLogger(__name__)

HELP_PADDING = 4


class ReplContext:
    """Anything that owns a stack of session frames

    The stack is never empty while the console runs; the bottom frame is the
    entry frame.
    """

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self.repl_stack: list[Repl] = []

    def current_repl(self) -> "Repl":
        return self.repl_stack[-1]

    def push_repl(self, repl: "Repl"):
        logger.debug("Entering frame '%s' (depth %d)", repl.prompt.strip(), len(self.repl_stack) + 1)
        self.repl_stack.append(repl)

    def pop_repl(self) -> "Repl":
        repl = self.repl_stack.pop()
        logger.debug("Leaving frame '%s' (depth %d)", repl.prompt.strip(), len(self.repl_stack))
        repl.finished(self)
        return repl

    def exit_all(self):
        while self.repl_stack:
            self.pop_repl()


def _exit(context: ReplContext, args: list[str]):
    context.exit_all()


def _help(context: ReplContext, args: list[str]):
    context.console.print(context.current_repl().help(), markup=False, highlight=False)


def _clear(context: ReplContext, args: list[str]):
    context.console.clear()


class Repl:
    """One level of the session stack: a prompt and the commands it accepts"""

    def __init__(
        self,
        prompt: str,
        history_file: Path | None = None,
        multiline_input: bool = False,
        on_finish: Callable[[ReplContext], None] | None = None,
        dirty_prompt: str | None = None,
    ):
        self.prompt = prompt
        self.dirty_prompt = dirty_prompt or prompt
        self.history_file = history_file
        self.multiline_input = multiline_input
        self.on_finish = on_finish
        self.commands = Subcommand("")
        self.commands.add(CommandLeaf("exit", "Exit console", _exit))
        self.commands.add(CommandLeaf("help", "Show help menu", _help))
        self.commands.add(CommandLeaf("clear", "Clear console screen", _clear))
        self._reader = None

    def add(self, command: CommandLeaf | Subcommand) -> "Repl":
        self.commands.add(command)
        return self

    def match_first_command(
        self,
        input: str,
        coerce_to_one_line: bool = False,
        hidden_input: HiddenInput | None = None,
    ) -> tuple[CommandLeaf, list[str], int] | None:
        return self.commands.match_first(input, coerce_to_one_line, hidden_input)

    def is_complete_command(self, input: str) -> bool:
        return self.commands.is_complete_command(input)

    def help(self) -> str:
        entries = list(self.commands.usage_description())
        width = max((len(usage) for usage, _ in entries), default=0) + HELP_PADDING
        return "\n".join(f"{usage.ljust(width)}{description}" for usage, description in entries)

    def get_prompt(self, has_changes: bool = False) -> str:
        return self.dirty_prompt if has_changes else self.prompt

    def get_input(self, has_changes: bool = False) -> str:
        if self._reader is None:
            from .line_reader import LineReader

            self._reader = LineReader(self.commands, self.history_file, self.multiline_input)
        return self._reader.readline(self.get_prompt(has_changes))

    def finished(self, context: ReplContext):
        if self.on_finish is not None:
            self.on_finish(context)
