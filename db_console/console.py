"""Console context and the loops that feed it input

Three input modes share execute_commands: interactive (one prompt per
frame), a list of single-line commands, and script files executed as one
interactive-compatible buffer.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

from rich.console import Console

from .backend import Backend, BackendError, Transaction
from .command import HiddenInput, ReplError
from .completions import CompletionCache
from .config import ConsoleConfig
from .printer import print_command_echo, print_command_error, println_error
from .repl import ReplContext
from .runtime import BackgroundRuntime
from .sources import resolve_path

logger = logging.getLogger(__name__)

WELCOME_BANNER = "\n[bold cyan]Welcome to db-console![/bold cyan]\n"


class CommandError(Exception):
    """A command could not be matched or failed; the message has already been printed"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConsoleContext(ReplContext):
    """Everything an executor needs: backend, runtime, output and the session stack"""

    def __init__(
        self,
        backend: Backend,
        runtime: BackgroundRuntime,
        console: Console | None = None,
        error_console: Console | None = None,
        config: ConsoleConfig | None = None,
        config_dir: Path | None = None,
        invocation_dir: Path | None = None,
        hidden_input: HiddenInput | None = None,
    ):
        super().__init__(console)
        self.error_console = error_console or Console(stderr=True)
        self.backend = backend
        self.runtime = runtime
        self.config = config or ConsoleConfig()
        self.config_dir = config_dir
        self.invocation_dir = invocation_dir or Path.cwd()
        self.script_dir: Path | None = None
        self.hidden_input = hidden_input

        self.transaction: Transaction | None = None
        self.has_writes = False

        self.database_cache = CompletionCache()
        self.user_cache = CompletionCache()

    def has_changes(self) -> bool:
        return self.transaction is not None and self.has_writes

    def mark_writes(self):
        self.has_writes = True

    def base_dir(self) -> Path:
        """Directory relative paths resolve against: the running script's, else the invocation directory"""
        return self.script_dir or self.invocation_dir

    def convert_path(self, path: str) -> Path:
        return resolve_path(path, self.base_dir())

    def history_path(self, file_name: str) -> Path | None:
        if self.config_dir is None:
            return None
        return self.config.history_path(self.config_dir, file_name)


def create_context(
    backend: Backend,
    runtime: BackgroundRuntime,
    config: ConsoleConfig | None = None,
    config_dir: Path | None = None,
    console: Console | None = None,
    error_console: Console | None = None,
    hidden_input: HiddenInput | None = None,
) -> ConsoleContext:
    """Create a context with the entry frame already on the stack"""
    from .commands import entry_repl

    context = ConsoleContext(
        backend,
        runtime,
        console=console,
        error_console=error_console,
        config=config,
        config_dir=config_dir,
        hidden_input=hidden_input,
    )
    context.push_repl(entry_repl(context))
    return context


def execute_commands(
    context: ConsoleContext,
    input: str,
    coerce_to_one_line: bool = False,
    must_log_command: bool = False,
):
    """Execute every command in input against the current frame, in order

    Each command is resolved against whichever frame is on top when it is
    reached, so a command that pushes or pops a frame changes how the rest
    of the input is read.

    Raises:
        CommandError: on the first command that cannot be matched or fails
    """
    multiple_commands = False
    input = input.lstrip()
    while context.repl_stack and input.strip():
        depth = len(context.repl_stack)
        repl = context.current_repl()

        try:
            matched = repl.match_first_command(input, coerce_to_one_line, context.hidden_input)
        except ReplError as e:
            println_error(context.error_console, str(e))
            raise CommandError(str(e)) from e
        if matched is None:
            message = f"Unrecognised command: {input.strip()}"
            println_error(context.error_console, message)
            raise CommandError(message)

        command, arguments, end = matched
        command_string = input[:end].strip()
        if not multiple_commands and input[end:].strip():
            multiple_commands = True
        if must_log_command or multiple_commands:
            print_command_echo(context.console, depth, command_string)

        try:
            command.execute(context, arguments)
        except (ReplError, BackendError, OSError) as e:
            message = f"**Error executing command**\n{command_string}\n--> Error\n{e}"
            print_command_error(context.error_console, command_string, e)
            raise CommandError(message) from e

        input = input[end:].lstrip()


def execute_interactive(context: ConsoleContext):
    context.console.print(WELCOME_BANNER)
    while context.repl_stack:
        depth = len(context.repl_stack)
        repl = context.current_repl()
        try:
            input = repl.get_input(context.has_changes())
        except (EOFError, KeyboardInterrupt):
            # end of input (or Ctrl-C on an empty line) leaves the current frame
            if len(context.repl_stack) == depth:
                context.pop_repl()
            continue

        if not input.strip():
            continue
        try:
            execute_commands(context, input)
        except CommandError as e:
            logger.debug("Command failed: %s", e.message)


def execute_command_list(context: ConsoleContext, commands: Iterable[str]):
    for command in commands:
        if not context.repl_stack:
            break
        try:
            execute_commands(context, command, coerce_to_one_line=True, must_log_command=True)
        except CommandError:
            println_error(context.error_console, f"### Stopped executing at command: {command}")
            raise


def execute_scripts(context: ConsoleContext, files: Iterable[str]):
    for file in files:
        path = context.convert_path(file)
        if not path.is_file():
            raise FileNotFoundError(f"Error opening file: {path}")
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise OSError(f"Error reading file '{path}': {e}") from e
        execute_script(context, path, lines)


def execute_script(context: ConsoleContext, path: Path, lines: Iterable[str]):
    """Run a script's lines as one buffer, resolving relative paths against its directory"""
    # the trailing blank line makes end of file a statement boundary
    combined_input = "".join(f"\n{line}" for line in lines) + "\n\n"
    context.script_dir = path.parent
    try:
        execute_commands(context, combined_input, must_log_command=True)
    finally:
        context.script_dir = None
