"""
In-memory catalogue store.

Keeps the whole hierarchy in dictionaries. Used by the test suite and for
previewing imports without a database.
"""

import copy
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, Dict, List, Optional

from ..exceptions import DuplicateEntityError, EntityNotFoundError
from .models import Column, ColumnIntent, Database, NewColumn, Server, Table
from .store import CatalogueStore


logger = logging.getLogger(__name__)


class InMemoryCatalogueStore(CatalogueStore):
    """CatalogueStore backed by plain dictionaries."""

    def __init__(self):
        self.servers: Dict[int, Server] = {}
        self.databases: Dict[int, Database] = {}
        self.tables: Dict[int, Table] = {}
        self.columns: Dict[int, Column] = {}
        self._next_id = 1
        self.commits = 0
        self.rollbacks = 0

    def _allocate_id(self) -> int:
        entity_id = self._next_id
        self._next_id += 1
        return entity_id

    async def find_server(self, name: str) -> Optional[Server]:
        for server in self.servers.values():
            if server.name == name:
                return replace(server)
        return None

    async def create_server(self, name: str) -> Server:
        if await self.find_server(name) is not None:
            raise DuplicateEntityError("Server", name)
        server = Server(id=self._allocate_id(), name=name)
        self.servers[server.id] = server
        return replace(server)

    async def find_database(self, server_id: int, name: str) -> Optional[Database]:
        for database in self.databases.values():
            if database.server_id == server_id and database.name == name:
                return replace(database)
        return None

    async def create_database(self, server_id: int, name: str) -> Database:
        if server_id not in self.servers:
            raise EntityNotFoundError("Server", server_id)
        if await self.find_database(server_id, name) is not None:
            raise DuplicateEntityError("Database", name)
        database = Database(id=self._allocate_id(), server_id=server_id, name=name)
        self.databases[database.id] = database
        return replace(database)

    async def find_table(
        self, database_id: int, schema_name: str, table_name: str
    ) -> Optional[Table]:
        for table in self.tables.values():
            if (
                table.database_id == database_id
                and table.schema_name == schema_name
                and table.table_name == table_name
            ):
                return replace(table)
        return None

    async def create_table(
        self,
        database_id: int,
        schema_name: str,
        table_name: str,
        estimated_row_count: Optional[int] = None,
    ) -> Table:
        if database_id not in self.databases:
            raise EntityNotFoundError("Database", database_id)
        if await self.find_table(database_id, schema_name, table_name) is not None:
            raise DuplicateEntityError("Table", f"{schema_name}.{table_name}")
        table = Table(
            id=self._allocate_id(),
            database_id=database_id,
            schema_name=schema_name,
            table_name=table_name,
            estimated_row_count=estimated_row_count,
        )
        self.tables[table.id] = table
        return replace(table)

    async def set_estimated_row_count(self, table_id: int, row_count: int) -> None:
        if table_id not in self.tables:
            raise EntityNotFoundError("Table", table_id)
        self.tables[table_id].estimated_row_count = row_count

    async def list_columns(self, table_id: int) -> List[Column]:
        columns = [
            replace(c)
            for c in self.columns.values()
            if c.table_id == table_id and c.is_active
        ]
        return sorted(columns, key=lambda c: c.sort_order)

    async def add_column(self, table_id: int, column: NewColumn) -> Column:
        if table_id not in self.tables:
            raise EntityNotFoundError("Table", table_id)
        wanted = column.column_name.casefold()
        for existing in self.columns.values():
            if (
                existing.table_id == table_id
                and existing.is_active
                and existing.column_name.casefold() == wanted
            ):
                raise DuplicateEntityError("Column", column.column_name)

        record = Column(
            id=self._allocate_id(),
            table_id=table_id,
            column_name=column.column_name,
            sort_order=column.sort_order,
        ).with_intent(column.intent)
        self.columns[record.id] = record
        return replace(record)

    async def update_column_intent(self, column_id: int, intent: ColumnIntent) -> None:
        if column_id not in self.columns:
            raise EntityNotFoundError("Column", column_id)
        self.columns[column_id] = self.columns[column_id].with_intent(intent)

    async def delete_column(self, column_id: int) -> None:
        if self.columns.pop(column_id, None) is None:
            raise EntityNotFoundError("Column", column_id)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        snapshot = copy.deepcopy(
            (self.servers, self.databases, self.tables, self.columns, self._next_id)
        )
        try:
            yield
        except BaseException:
            (
                self.servers,
                self.databases,
                self.tables,
                self.columns,
                self._next_id,
            ) = snapshot
            self.rollbacks += 1
            logger.debug("In-memory transaction rolled back")
            raise
        else:
            self.commits += 1
