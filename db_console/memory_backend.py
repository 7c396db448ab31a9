"""In-process backend that keeps databases and users in memory

Selected with ``--address memory``. Queries are validated with the bundled
statement grammar and recorded; they are not evaluated.
"""

import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from .backend import (
    Backend,
    BackendError,
    ConnectionSettings,
    DocumentStream,
    OkAnswer,
    QueryAnswer,
    QueryType,
    Replica,
    RowStream,
    Transaction,
    TransactionType,
)
from .grammar import DEFAULT_GRAMMAR, StatementSyntaxError, query_type_keywords
from .statement import split_statements

logger = logging.getLogger(__name__)

MEMORY_ADDRESS = "memory"
DEFAULT_USERNAME = "admin"
DEFAULT_PASSWORD = "password"

_VARIABLE = re.compile(r"\$([A-Za-z_][\w-]*)")


def is_memory_address(address: str) -> bool:
    return address == MEMORY_ADDRESS or address.startswith(f"{MEMORY_ADDRESS}://")


async def _iterate(items: list[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


def _variables(query: str) -> list[str]:
    names: list[str] = []
    for name in _VARIABLE.findall(query):
        if name not in names:
            names.append(name)
    return names


@dataclass
class MemoryDatabase:
    name: str
    schema: list[str] = field(default_factory=list)
    data: list[str] = field(default_factory=list)


class MemoryTransaction(Transaction):
    def __init__(self, database: MemoryDatabase, transaction_type: TransactionType):
        self._database = database
        self._type = transaction_type
        self._open = True
        self._pending: list[tuple[QueryType, str]] = []

    @property
    def type(self) -> TransactionType:
        return self._type

    @property
    def is_open(self) -> bool:
        return self._open

    def _check_open(self):
        if not self._open:
            raise BackendError("The transaction is closed and no further operation is allowed.")

    async def query(self, query: str) -> QueryAnswer:
        self._check_open()
        try:
            parsed = DEFAULT_GRAMMAR.parse_exactly_one(query)
        except StatementSyntaxError as err:
            raise BackendError(f"Query parsing failed: {err}") from err

        query_type = QueryType(query_type_keywords(parsed.clauses))
        if query_type is QueryType.SCHEMA and self._type is not TransactionType.SCHEMA:
            raise BackendError("Schema queries can only be run in schema transactions.")
        if query_type is QueryType.WRITE and self._type is TransactionType.READ:
            raise BackendError("Write queries cannot be run in read transactions.")

        if query_type is not QueryType.READ:
            self._pending.append((query_type, parsed.text.strip()))
        if query_type is QueryType.SCHEMA:
            return OkAnswer(query_type)

        variables = _variables(parsed.text)
        if "fetch" in parsed.clauses:
            documents = [{"query": len(self._database.data) + len(self._pending)}] if query_type is QueryType.WRITE else []
            return DocumentStream(query_type, _iterate(documents))
        rows = []
        if query_type is QueryType.WRITE and variables:
            serial = len(self._database.data) + len(self._pending)
            rows.append({name: f"{name}#{serial}" for name in variables})
        return RowStream(query_type, variables, _iterate(rows))

    async def commit(self):
        self._check_open()
        if self._type is TransactionType.READ:
            self._open = False
            raise BackendError("Read transactions cannot be committed.")
        for query_type, text in self._pending:
            if query_type is QueryType.SCHEMA:
                self._database.schema.append(text)
            else:
                self._database.data.append(text)
        logger.debug("Committed %d statement(s) to '%s'", len(self._pending), self._database.name)
        self._pending.clear()
        self._open = False

    async def rollback(self):
        self._check_open()
        self._pending.clear()

    async def close(self):
        self._pending.clear()
        self._open = False


class MemoryBackend(Backend):
    """A single-replica server held in process memory"""

    def __init__(self, username: str = DEFAULT_USERNAME, address: str = MEMORY_ADDRESS):
        self._databases: dict[str, MemoryDatabase] = {}
        self._users: dict[str, str] = {DEFAULT_USERNAME: DEFAULT_PASSWORD}
        self._current_user = username
        self._replicas: dict[str, Replica] = {"1": Replica("1", address, primary=True)}
        self._closed = False

    @classmethod
    async def connect(cls, settings: ConnectionSettings) -> "MemoryBackend":
        address = settings.addresses[0] if settings.addresses else MEMORY_ADDRESS
        backend = cls(username=settings.username, address=address)
        if backend._users.get(settings.username) != settings.password:
            raise BackendError(f"Invalid credentials for user '{settings.username}'.")
        return backend

    def _check_connected(self):
        if self._closed:
            raise BackendError("The connection to the server has been closed.")

    def _database(self, name: str) -> MemoryDatabase:
        self._check_connected()
        try:
            return self._databases[name]
        except KeyError:
            raise BackendError(f"Database '{name}' does not exist.") from None

    async def server_version(self) -> str:
        self._check_connected()
        return "memory"

    async def database_names(self) -> list[str]:
        self._check_connected()
        return sorted(self._databases)

    async def database_exists(self, name: str) -> bool:
        self._check_connected()
        return name in self._databases

    async def create_database(self, name: str):
        self._check_connected()
        if name in self._databases:
            raise BackendError(f"Database '{name}' already exists.")
        self._databases[name] = MemoryDatabase(name)

    async def delete_database(self, name: str):
        self._database(name)
        del self._databases[name]

    async def database_schema(self, name: str) -> str:
        return "\n\n".join(self._database(name).schema)

    async def export_database(self, name: str) -> tuple[str, str]:
        database = self._database(name)
        return "\n\n".join(database.schema), "\n\n".join(database.data)

    async def import_database(self, name: str, schema: str, data: str):
        self._check_connected()
        if name in self._databases:
            raise BackendError(f"Database '{name}' already exists.")
        database = MemoryDatabase(name)
        for statement in split_statements(schema):
            database.schema.append(statement)
        for statement in split_statements(data):
            database.data.append(statement)
        self._databases[name] = database

    async def user_names(self) -> list[str]:
        self._check_connected()
        return sorted(self._users)

    async def user_exists(self, name: str) -> bool:
        self._check_connected()
        return name in self._users

    async def create_user(self, name: str, password: str):
        self._check_connected()
        if name in self._users:
            raise BackendError(f"User '{name}' already exists.")
        self._users[name] = password

    async def delete_user(self, name: str):
        self._check_connected()
        if name not in self._users:
            raise BackendError(f"User '{name}' does not exist.")
        if name == self._current_user:
            raise BackendError("Cannot delete the currently logged in user.")
        del self._users[name]

    async def update_user_password(self, name: str, password: str):
        self._check_connected()
        if name not in self._users:
            raise BackendError(f"User '{name}' does not exist.")
        self._users[name] = password

    async def current_user(self) -> str:
        self._check_connected()
        return self._current_user

    async def replicas(self) -> list[Replica]:
        self._check_connected()
        return list(self._replicas.values())

    async def primary_replica(self) -> Replica | None:
        self._check_connected()
        return next((replica for replica in self._replicas.values() if replica.primary), None)

    async def register_replica(self, replica_id: str, address: str):
        self._check_connected()
        if replica_id in self._replicas:
            raise BackendError(f"Replica '{replica_id}' is already registered.")
        self._replicas[replica_id] = Replica(replica_id, address)

    async def deregister_replica(self, replica_id: str):
        self._check_connected()
        replica = self._replicas.get(replica_id)
        if replica is None:
            raise BackendError(f"Replica '{replica_id}' is not registered.")
        if replica.primary:
            raise BackendError("The primary replica cannot be deregistered.")
        del self._replicas[replica_id]

    async def transaction(self, database: str, transaction_type: TransactionType) -> Transaction:
        return MemoryTransaction(self._database(database), transaction_type)

    async def close(self):
        self._closed = True
