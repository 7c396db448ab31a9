"""prompt_toolkit front end: line editing, history, completion and hidden input"""

import logging
from pathlib import Path
from typing import Any

from prompt_toolkit import PromptSession, prompt
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import FileHistory
from prompt_toolkit.key_binding import KeyBindings

from .command import Subcommand

logger = logging.getLogger(__name__)


def _partial_word(text: str) -> str:
    if not text or text[-1].isspace():
        return ""
    return text.split()[-1]


class CommandCompleter(Completer):
    """Tab completion driven by the frame's command tree"""

    def __init__(self, commands: Subcommand):
        self.commands = commands

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        word = _partial_word(text)
        for candidate in self.commands.compute_completions(text):
            yield Completion(candidate, start_position=-len(word))


class CommandAutoSuggest(AutoSuggest):
    """Grey hint with the rest of the only possible completion"""

    def __init__(self, commands: Subcommand):
        self.commands = commands

    def get_suggestion(self, buffer, document):
        text = document.text_before_cursor
        if not text.strip() or not document.is_cursor_at_the_end:
            return None
        candidates = self.commands.compute_completions(text)
        if len(candidates) != 1:
            return None
        word = _partial_word(text)
        if not candidates[0].startswith(word):
            return None
        return Suggestion(candidates[0][len(word) :])


def create_key_bindings(commands: Subcommand, multiline: bool) -> KeyBindings:
    kb = KeyBindings()

    @kb.add("c-c")
    def _(event):
        buffer = event.current_buffer
        if buffer.text:
            buffer.reset()
        else:
            event.app.exit(exception=KeyboardInterrupt, style="class:aborting")

    @kb.add("escape", "enter")  # Esc-Enter adds newline
    def _(event):
        event.current_buffer.insert_text("\n")

    if multiline:

        @kb.add("enter")
        def _(event):
            buffer = event.current_buffer
            text = buffer.text
            if not text.strip() or commands.is_complete_command(text + "\n"):
                buffer.validate_and_handle()
            else:
                buffer.insert_text("\n")

    return kb


class LineReader:
    """Reads one (possibly multi-line) input per call for a session frame

    Usage:
        reader = LineReader(commands, history_file, multiline=True)
        text = reader.readline("db::read>> ")
    """

    def __init__(self, commands: Subcommand, history_file: Path | None = None, multiline: bool = False):
        history = None
        if history_file is not None:
            history_file.parent.mkdir(parents=True, exist_ok=True)
            history = FileHistory(str(history_file))

        self.session: Any = PromptSession(
            multiline=multiline,
            completer=CommandCompleter(commands),
            auto_suggest=CommandAutoSuggest(commands),
            complete_while_typing=False,
            enable_history_search=True,
            history=history,
            key_bindings=create_key_bindings(commands, multiline),
        )

    def readline(self, message: str) -> str:
        """Read input, raising EOFError on end of input and KeyboardInterrupt on Ctrl-C"""
        return self.session.prompt(message) + "\n"


def read_hidden(message: str) -> str:
    """Read a value without echoing it"""
    return prompt(message, is_password=True)
