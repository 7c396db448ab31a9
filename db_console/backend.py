"""Backend service seam: the operations console commands call"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BackendError(Exception):
    """Any failure reported by the backend service"""


class TransactionType(Enum):
    READ = "read"
    WRITE = "write"
    SCHEMA = "schema"


class QueryType(Enum):
    READ = "read"
    WRITE = "write"
    SCHEMA = "schema"


@dataclass(frozen=True)
class Replica:
    id: str
    address: str
    primary: bool = False


@dataclass
class OkAnswer:
    """A query that produced no answers, only an acknowledgement"""

    query_type: QueryType


@dataclass
class RowStream:
    """Answers streamed as rows of named columns"""

    query_type: QueryType
    column_names: list[str]
    rows: AsyncIterator[dict[str, Any]]


@dataclass
class DocumentStream:
    """Answers streamed as JSON-like documents"""

    query_type: QueryType
    documents: AsyncIterator[Any]


QueryAnswer = OkAnswer | RowStream | DocumentStream


class Transaction(ABC):
    """An open transaction against one database"""

    @property
    @abstractmethod
    def type(self) -> TransactionType: ...

    @property
    @abstractmethod
    def is_open(self) -> bool: ...

    @abstractmethod
    async def query(self, query: str) -> QueryAnswer: ...

    @abstractmethod
    async def commit(self): ...

    @abstractmethod
    async def rollback(self): ...

    @abstractmethod
    async def close(self): ...


@dataclass
class ConnectionSettings:
    """What a backend factory needs to open a connection"""

    addresses: list[str] = field(default_factory=list)
    address_translation: dict[str, str] = field(default_factory=dict)
    username: str = ""
    password: str = ""
    tls_enabled: bool = True
    tls_root_ca: str | None = None
    use_replication: bool = True


class Backend(ABC):
    """Handle on a remote database service

    All operations are coroutines and raise BackendError on failure.
    """

    @abstractmethod
    async def server_version(self) -> str: ...

    @abstractmethod
    async def database_names(self) -> list[str]: ...

    @abstractmethod
    async def database_exists(self, name: str) -> bool: ...

    @abstractmethod
    async def create_database(self, name: str): ...

    @abstractmethod
    async def delete_database(self, name: str): ...

    @abstractmethod
    async def database_schema(self, name: str) -> str: ...

    @abstractmethod
    async def export_database(self, name: str) -> tuple[str, str]:
        """Return (schema, data) text for the database"""

    @abstractmethod
    async def import_database(self, name: str, schema: str, data: str): ...

    @abstractmethod
    async def user_names(self) -> list[str]: ...

    @abstractmethod
    async def user_exists(self, name: str) -> bool: ...

    @abstractmethod
    async def create_user(self, name: str, password: str): ...

    @abstractmethod
    async def delete_user(self, name: str): ...

    @abstractmethod
    async def update_user_password(self, name: str, password: str): ...

    @abstractmethod
    async def current_user(self) -> str: ...

    @abstractmethod
    async def replicas(self) -> list[Replica]: ...

    @abstractmethod
    async def primary_replica(self) -> Replica | None: ...

    @abstractmethod
    async def register_replica(self, replica_id: str, address: str): ...

    @abstractmethod
    async def deregister_replica(self, replica_id: str): ...

    @abstractmethod
    async def transaction(self, database: str, transaction_type: TransactionType) -> Transaction: ...

    @abstractmethod
    async def close(self): ...
