"""Command executors: one backend operation per recognised command

Every executor has the signature ``executor(context, args)`` where args are
the trimmed argument strings matched for the command. Failures are raised
(ReplError, BackendError, OSError) and reported by the execute loop.
"""

import logging
from typing import TYPE_CHECKING

from rich.console import Console

from .backend import BackendError, DocumentStream, OkAnswer, QueryAnswer, QueryType, Transaction, TransactionType
from .command import ReplError
from .printer import print_document, print_row, println_warning
from .sources import load_source, write_export
from .statement import split_statements

if TYPE_CHECKING:
    from .console import ConsoleContext

logger = logging.getLogger(__name__)


# Server


def server_version(context: "ConsoleContext", args: list[str]):
    version = context.runtime.run(context.backend.server_version())
    context.console.print(version, markup=False, highlight=False)


# Databases


def database_list(context: "ConsoleContext", args: list[str]):
    for name in context.runtime.run(context.backend.database_names()):
        context.console.print(name, markup=False, highlight=False)


def database_create(context: "ConsoleContext", args: list[str]):
    context.runtime.run(context.backend.create_database(args[0]))
    context.database_cache.clear()
    context.console.print("Successfully created database.")


def database_delete(context: "ConsoleContext", args: list[str]):
    context.runtime.run(context.backend.delete_database(args[0]))
    context.database_cache.clear()
    context.console.print("Successfully deleted database.")


def database_schema(context: "ConsoleContext", args: list[str]):
    schema = context.runtime.run(context.backend.database_schema(args[0]))
    context.console.print(schema, markup=False, highlight=False)


def database_export(context: "ConsoleContext", args: list[str]):
    name, schema_file, data_file = args
    schema_path = context.convert_path(schema_file)
    data_path = context.convert_path(data_file)
    for path in (schema_path, data_path):
        if path.exists():
            raise ReplError(f"File already exists: {path}")

    schema, data = context.runtime.run(context.backend.export_database(name))
    write_export(schema_path, schema)
    write_export(data_path, data)
    context.console.print("Successfully exported database.")


def database_import(context: "ConsoleContext", args: list[str]):
    name, schema_file, data_file = args
    schema = load_source(schema_file, context.base_dir())
    data = load_source(data_file, context.base_dir())
    context.runtime.run(context.backend.import_database(name, schema, data))
    context.database_cache.clear()
    context.console.print("Successfully imported database.")


async def _drain(answer: QueryAnswer):
    if isinstance(answer, OkAnswer):
        return
    stream = answer.documents if isinstance(answer, DocumentStream) else answer.rows
    async for _ in stream:
        pass


async def _apply_statements(transaction: Transaction, statements: list[str], label: str):
    try:
        for number, statement in enumerate(statements, start=1):
            try:
                await _drain(await transaction.query(statement))
            except BackendError as e:
                raise BackendError(f"{e}\n### Stopped loading {label} at statement: {number}") from e
        await transaction.commit()
    finally:
        if transaction.is_open:
            await transaction.close()


def _load_database(context: "ConsoleContext", name: str, schema: str, data: str):
    backend = context.backend

    async def load():
        schema_transaction = await backend.transaction(name, TransactionType.SCHEMA)
        await _apply_statements(schema_transaction, split_statements(schema), "schema")
        data_transaction = await backend.transaction(name, TransactionType.WRITE)
        await _apply_statements(data_transaction, split_statements(data), "data")

    context.runtime.run(load())


def database_create_init(context: "ConsoleContext", args: list[str]):
    name, schema_file, data_file = args[:3]
    schema_sha256 = args[3] if len(args) > 3 else None
    data_sha256 = args[4] if len(args) > 4 else None

    schema = load_source(schema_file, context.base_dir(), schema_sha256)
    data = load_source(data_file, context.base_dir(), data_sha256)

    context.runtime.run(context.backend.create_database(name))
    context.database_cache.clear()
    try:
        _load_database(context, name, schema, data)
    except (BackendError, ReplError):
        logger.debug("Loading '%s' failed, deleting the new database", name)
        try:
            context.runtime.run(context.backend.delete_database(name))
        except BackendError as e:
            println_warning(context.error_console, f"Could not delete database '{name}' after a failed load: {e}")
        raise
    context.console.print("Successfully created database and loaded schema and data.")


# Users


def user_list(context: "ConsoleContext", args: list[str]):
    for name in context.runtime.run(context.backend.user_names()):
        context.console.print(name, markup=False, highlight=False)


def user_create(context: "ConsoleContext", args: list[str]):
    name, password = args
    context.runtime.run(context.backend.create_user(name, password))
    context.user_cache.clear()
    context.console.print("Successfully created user.")


def _require_user(context: "ConsoleContext", name: str):
    if not context.runtime.run(context.backend.user_exists(name)):
        raise ReplError(f"User {name} not found.")


def user_delete(context: "ConsoleContext", args: list[str]):
    name = args[0]
    _require_user(context, name)
    context.runtime.run(context.backend.delete_user(name))
    context.user_cache.clear()
    context.console.print("Successfully deleted user.")


def user_update_password(context: "ConsoleContext", args: list[str]):
    name, new_password = args
    _require_user(context, name)
    backend = context.backend

    async def update() -> bool:
        current_user = await backend.current_user()
        await backend.update_user_password(name, new_password)
        return current_user == name

    if context.runtime.run(update()):
        context.console.print(
            "Successfully updated current user's password, exiting console. "
            "Please log in with the updated credentials."
        )
        context.exit_all()
    else:
        context.console.print("Successfully updated user password.")


# Replicas


def replica_list(context: "ConsoleContext", args: list[str]):
    for replica in context.runtime.run(context.backend.replicas()):
        suffix = " (primary)" if replica.primary else ""
        context.console.print(f"{replica.id}: {replica.address}{suffix}", markup=False, highlight=False)


def replica_primary(context: "ConsoleContext", args: list[str]):
    replica = context.runtime.run(context.backend.primary_replica())
    if replica is None:
        context.console.print("No primary replica.")
    else:
        context.console.print(f"{replica.id}: {replica.address}", markup=False, highlight=False)


def replica_register(context: "ConsoleContext", args: list[str]):
    replica_id, address = args
    context.runtime.run(context.backend.register_replica(replica_id, address))
    context.console.print("Successfully registered replica.")


def replica_deregister(context: "ConsoleContext", args: list[str]):
    context.runtime.run(context.backend.deregister_replica(args[0]))
    context.console.print("Successfully deregistered replica.")


# Transactions


def _open_transaction(context: "ConsoleContext", database: str, transaction_type: TransactionType):
    from .commands import transaction_repl

    transaction = context.runtime.run(context.backend.transaction(database, transaction_type))
    context.transaction = transaction
    context.has_writes = False
    context.push_repl(transaction_repl(context, database, transaction_type))


def transaction_read(context: "ConsoleContext", args: list[str]):
    _open_transaction(context, args[0], TransactionType.READ)


def transaction_write(context: "ConsoleContext", args: list[str]):
    _open_transaction(context, args[0], TransactionType.WRITE)


def transaction_schema(context: "ConsoleContext", args: list[str]):
    _open_transaction(context, args[0], TransactionType.SCHEMA)


def _current_transaction(context: "ConsoleContext") -> Transaction:
    if context.transaction is None:
        raise ReplError("No transaction is open.")
    return context.transaction


def transaction_commit(context: "ConsoleContext", args: list[str]):
    transaction = _current_transaction(context)
    try:
        context.runtime.run(transaction.commit())
    finally:
        context.pop_repl()
    context.console.print("Successfully committed transaction.")


def transaction_rollback(context: "ConsoleContext", args: list[str]):
    transaction = _current_transaction(context)
    try:
        context.runtime.run(transaction.rollback())
    except BackendError:
        context.pop_repl()
        raise
    context.console.print("Transaction changes rolled back.")


def transaction_close(context: "ConsoleContext", args: list[str]):
    transaction = _current_transaction(context)
    if transaction.type is TransactionType.READ:
        message = "Transaction closed"
    else:
        message = "Transaction closed without committing changes."
    context.pop_repl()
    context.console.print(message)


def transaction_source(context: "ConsoleContext", args: list[str]):
    file = args[0]
    expected_sha256 = args[1] if len(args) > 1 else None
    text = load_source(file, context.base_dir(), expected_sha256)

    count = 0
    for number, statement in enumerate(split_statements(text), start=1):
        if context.transaction is None:
            raise ReplError(f"Transaction closed\n### Stopped executing sourced file '{file}' at statement: {number}")
        try:
            execute_query(context, statement, print_answers=False)
        except BackendError as e:
            raise BackendError(f"{e}\n### Stopped executing sourced file '{file}' at statement: {number}") from e
        count += 1
    context.console.print(f"Successfully executed {count} queries.")


def transaction_query(context: "ConsoleContext", args: list[str]):
    execute_query(context, args[0])


async def _print_answer(console: Console, answer: QueryAnswer):
    type_name = answer.query_type.value
    if isinstance(answer, OkAnswer):
        console.print(f"Finished {type_name} query.")
        return

    console.print(f"Finished {type_name} query validation and compilation...")
    is_write = answer.query_type is QueryType.WRITE
    count = 0
    if isinstance(answer, DocumentStream):
        console.print("Finished writes. Streaming documents..." if is_write else "Streaming documents...")
        async for document in answer.documents:
            print_document(console, document)
            count += 1
    else:
        console.print("Finished writes. Streaming rows..." if is_write else "Streaming rows...")
        has_columns = bool(answer.column_names)
        if not has_columns:
            console.print("\nNo columns to show.\n")
        async for row in answer.rows:
            if has_columns:
                print_row(console, row, count == 0)
            count += 1
    console.print(f"Finished. Total answers: {count}")


def execute_query(context: "ConsoleContext", query: str, print_answers: bool = True):
    """Run one query in the open transaction, printing answers as they stream

    If the backend closed the transaction (successfully or not) the
    transaction frame is popped.
    """
    transaction = _current_transaction(context)
    console = context.console

    async def run() -> QueryType:
        answer = await transaction.query(query)
        if print_answers:
            await _print_answer(console, answer)
        else:
            await _drain(answer)
        return answer.query_type

    try:
        query_type = context.runtime.run(run())
    finally:
        if not transaction.is_open and context.transaction is transaction:
            logger.debug("Transaction closed by the server, leaving its frame")
            context.pop_repl()

    if query_type is not QueryType.READ and context.transaction is transaction:
        context.mark_writes()
