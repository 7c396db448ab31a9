"""Command trees for the entry frame and transaction frames"""

import logging
from typing import TYPE_CHECKING

from . import operations
from .backend import BackendError, TransactionType
from .command import CommandInput, CommandLeaf, Subcommand, get_remainder, get_word
from .completions import database_name_completer, file_completer, user_name_completer
from .printer import println_warning
from .repl import Repl
from .statement import parse_one_query

if TYPE_CHECKING:
    from .console import ConsoleContext

logger = logging.getLogger(__name__)

PROMPT = ">> "
DIRTY_MARKER = "*"
ENTRY_HISTORY_FILE = "entry_history.txt"
TRANSACTION_HISTORY_FILE = "transaction_history.txt"

SHA256_USAGE = "sha256 (hex or sha256:hex)"


def entry_repl(context: "ConsoleContext") -> Repl:
    """Build the bottom frame with the server, database, user, replica and transaction commands"""
    threshold = context.config.completion_refresh_threshold
    database_names = database_name_completer(context.backend, context.runtime, context.database_cache, threshold)
    user_names = user_name_completer(context.backend, context.runtime, context.user_cache, threshold)

    server_commands = Subcommand("server").add(
        CommandLeaf("version", "Retrieve server version.", operations.server_version)
    )

    database_commands = (
        Subcommand("database")
        .add(CommandLeaf("list", "List databases on the server.", operations.database_list))
        .add(
            CommandLeaf(
                "create",
                "Create a new database with the given name.",
                operations.database_create,
                [CommandInput.required("db", get_word)],
            )
        )
        .add(
            CommandLeaf(
                "create-init",
                "Create a new database with the given name and load schema and data from files. "
                "Files may be HTTP-hosted files, or absolute or relative paths. File contents are treated "
                "identically to 'transaction source' commands run explicitly. File sha256 sums may be provided.",
                operations.database_create_init,
                [
                    CommandInput.required("db", get_word),
                    CommandInput.required("schema file", get_word, file_completer),
                    CommandInput.required("data file", get_word, file_completer),
                    CommandInput.optional(f"schema file {SHA256_USAGE}", get_word),
                    CommandInput.optional(f"data file {SHA256_USAGE}", get_word),
                ],
            )
        )
        .add(
            CommandLeaf(
                "delete",
                "Delete the database with the given name.",
                operations.database_delete,
                [CommandInput.required("db", get_word, database_names)],
            )
        )
        .add(
            CommandLeaf(
                "schema",
                "Retrieve the schema definition of a database.",
                operations.database_schema,
                [CommandInput.required("db", get_word, database_names)],
            )
        )
        .add(
            CommandLeaf(
                "import",
                "Create a database with the given name from a previously exported schema and data file.",
                operations.database_import,
                [
                    CommandInput.required("db", get_word),
                    CommandInput.required("schema file path", get_word, file_completer),
                    CommandInput.required("data file path", get_word, file_completer),
                ],
            )
        )
        .add(
            CommandLeaf(
                "export",
                "Export a database into a schema definition file and a data file.",
                operations.database_export,
                [
                    CommandInput.required("db", get_word, database_names),
                    CommandInput.required("schema file path", get_word, file_completer),
                    CommandInput.required("data file path", get_word, file_completer),
                ],
            )
        )
    )

    user_commands = (
        Subcommand("user")
        .add(CommandLeaf("list", "List users.", operations.user_list))
        .add(
            CommandLeaf(
                "create",
                "Create new user.",
                operations.user_create,
                [
                    CommandInput.required("name", get_word),
                    CommandInput.hidden("password", get_word, get_remainder),
                ],
            )
        )
        .add(
            CommandLeaf(
                "delete",
                "Delete existing user.",
                operations.user_delete,
                [CommandInput.required("name", get_word, user_names)],
            )
        )
        .add(
            CommandLeaf(
                "update-password",
                "Set existing user's password.",
                operations.user_update_password,
                [
                    CommandInput.required("name", get_word, user_names),
                    CommandInput.hidden("new password", get_word, get_remainder),
                ],
            )
        )
    )

    replica_commands = (
        Subcommand("replica")
        .add(CommandLeaf("list", "List replicas.", operations.replica_list))
        .add(CommandLeaf("primary", "Get current primary replica.", operations.replica_primary))
        .add(
            CommandLeaf(
                "register",
                "Register new replica. Requires a clustering address, not a connection address.",
                operations.replica_register,
                [
                    CommandInput.required("replica id", get_word),
                    CommandInput.required("clustering address", get_word),
                ],
            )
        )
        .add(
            CommandLeaf(
                "deregister",
                "Deregister existing replica.",
                operations.replica_deregister,
                [CommandInput.required("replica id", get_word)],
            )
        )
    )

    transaction_commands = (
        Subcommand("transaction")
        .add(
            CommandLeaf(
                "read",
                "Open read transaction.",
                operations.transaction_read,
                [CommandInput.required("db", get_word, database_names)],
            )
        )
        .add(
            CommandLeaf(
                "write",
                "Open write transaction.",
                operations.transaction_write,
                [CommandInput.required("db", get_word, database_names)],
            )
        )
        .add(
            CommandLeaf(
                "schema",
                "Open schema transaction.",
                operations.transaction_schema,
                [CommandInput.required("db", get_word, database_names)],
            )
        )
    )

    return (
        Repl(PROMPT, context.history_path(ENTRY_HISTORY_FILE))
        .add(server_commands)
        .add(database_commands)
        .add(user_commands)
        .add(replica_commands)
        .add(transaction_commands)
    )


def transaction_repl(context: "ConsoleContext", database: str, transaction_type: TransactionType) -> Repl:
    """Build a multi-line frame for one open transaction"""
    prefix = f"{database}::{transaction_type.value}"
    return (
        Repl(
            f"{prefix}{PROMPT}",
            context.history_path(TRANSACTION_HISTORY_FILE),
            multiline_input=True,
            on_finish=on_transaction_repl_finished,
            dirty_prompt=f"{prefix}{DIRTY_MARKER}{PROMPT}",
        )
        .add(CommandLeaf("commit", "Commit the current transaction.", operations.transaction_commit))
        .add(
            CommandLeaf(
                "rollback",
                "Roll back the current transaction to the initial snapshot state.",
                operations.transaction_rollback,
            )
        )
        .add(CommandLeaf("close", "Close the current transaction.", operations.transaction_close))
        .add(
            CommandLeaf(
                "source",
                "Execute a file containing a sequence of queries, separated by blank lines or 'end;'. "
                "May be a HTTP-hosted file, an absolute path, or a path relative to the invoking script "
                "(if there is one) or else the current working directory. A sha256 may be provided.",
                operations.transaction_source,
                [
                    CommandInput.required("file", get_word, file_completer),
                    CommandInput.optional(f"file {SHA256_USAGE}", get_word),
                ],
            )
        )
        # no token: anything else in the frame is a query
        .add(
            CommandLeaf(
                "",
                "Execute query string.",
                operations.transaction_query,
                [CommandInput.required("query", parse_one_query)],
                multiline=True,
            )
        )
    )


def on_transaction_repl_finished(context: "ConsoleContext"):
    """Discard the frame's transaction, closing it if it is still open"""
    transaction = context.transaction
    context.transaction = None
    context.has_writes = False
    if transaction is None or not transaction.is_open:
        return
    try:
        context.runtime.run(transaction.close())
    except BackendError as e:
        println_warning(context.error_console, f"Could not close transaction: {e}")
