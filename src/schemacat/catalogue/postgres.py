"""
PostgreSQL catalogue store for schemacat.

Persists the Server -> Database -> Table -> Column hierarchy in the
``catalogue`` schema and provides the DDL to create it.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import asyncpg

from ..database.connection import ConnectionPool
from ..exceptions import DuplicateEntityError, EntityNotFoundError, StoreError
from .models import (
    Column,
    ColumnIntent,
    Database,
    NewColumn,
    PersistenceKind,
    Server,
    Table,
)
from .store import CatalogueStore


logger = logging.getLogger(__name__)


CATALOGUE_SCHEMA = "catalogue"


REQUIRED_TABLES: Dict[str, str] = {
    "sources": f"""
    CREATE TABLE IF NOT EXISTS {CATALOGUE_SCHEMA}.sources (
        source_id SERIAL PRIMARY KEY,
        server_name VARCHAR(255) NOT NULL,
        description VARCHAR(1000),
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP NOT NULL DEFAULT NOW(),
        modified_at TIMESTAMP,

        CONSTRAINT unique_server_name UNIQUE (server_name)
    );
    """,
    "source_databases": f"""
    CREATE TABLE IF NOT EXISTS {CATALOGUE_SCHEMA}.source_databases (
        database_id SERIAL PRIMARY KEY,
        source_id INTEGER NOT NULL REFERENCES {CATALOGUE_SCHEMA}.sources(source_id)
            ON DELETE CASCADE,
        database_name VARCHAR(255) NOT NULL,
        description VARCHAR(1000),
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP NOT NULL DEFAULT NOW(),
        modified_at TIMESTAMP,

        CONSTRAINT unique_database_name UNIQUE (source_id, database_name)
    );
    """,
    "source_tables": f"""
    CREATE TABLE IF NOT EXISTS {CATALOGUE_SCHEMA}.source_tables (
        table_id SERIAL PRIMARY KEY,
        database_id INTEGER NOT NULL
            REFERENCES {CATALOGUE_SCHEMA}.source_databases(database_id) ON DELETE CASCADE,
        schema_name VARCHAR(128) NOT NULL DEFAULT 'dbo',
        table_name VARCHAR(255) NOT NULL,
        estimated_row_count BIGINT,
        notes VARCHAR(4000),
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP NOT NULL DEFAULT NOW(),
        modified_at TIMESTAMP,

        CONSTRAINT unique_table_name UNIQUE (database_id, schema_name, table_name)
    );

    ALTER TABLE {CATALOGUE_SCHEMA}.source_tables
    DROP CONSTRAINT IF EXISTS source_tables_estimated_row_count_check;
    """,
    "source_columns": f"""
    CREATE TABLE IF NOT EXISTS {CATALOGUE_SCHEMA}.source_columns (
        column_id SERIAL PRIMARY KEY,
        table_id INTEGER NOT NULL
            REFERENCES {CATALOGUE_SCHEMA}.source_tables(table_id) ON DELETE CASCADE,
        column_name VARCHAR(255) NOT NULL,
        persistence_type CHAR(1) NOT NULL DEFAULT 'R',
        is_in_dao_analysis BOOLEAN NOT NULL DEFAULT FALSE,
        is_added_by_api BOOLEAN NOT NULL DEFAULT FALSE,
        is_selected_for_load BOOLEAN NOT NULL DEFAULT FALSE,
        sort_order INTEGER NOT NULL DEFAULT 0,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP NOT NULL DEFAULT NOW(),
        modified_at TIMESTAMP,

        CONSTRAINT valid_persistence_type CHECK (persistence_type IN ('R', 'D')),
        CONSTRAINT valid_sort_order CHECK (sort_order >= 0)
    );

    DROP INDEX IF EXISTS {CATALOGUE_SCHEMA}.unique_column_name;

    CREATE UNIQUE INDEX IF NOT EXISTS unique_active_column_name
    ON {CATALOGUE_SCHEMA}.source_columns(table_id, LOWER(column_name))
    WHERE is_active;
    """,
}


def _column_from_record(record: asyncpg.Record) -> Column:
    return Column(
        id=record["column_id"],
        table_id=record["table_id"],
        column_name=record["column_name"],
        sort_order=record["sort_order"],
        persistence_kind=PersistenceKind(record["persistence_type"]),
        in_analysis=record["is_in_dao_analysis"],
        added_by_api=record["is_added_by_api"],
        selected_for_load=record["is_selected_for_load"],
        is_active=record["is_active"],
    )


def _table_from_record(record: asyncpg.Record) -> Table:
    return Table(
        id=record["table_id"],
        database_id=record["database_id"],
        schema_name=record["schema_name"],
        table_name=record["table_name"],
        estimated_row_count=record["estimated_row_count"],
        is_active=record["is_active"],
    )


class PostgresCatalogueStore(CatalogueStore):
    """CatalogueStore persisted in PostgreSQL through asyncpg."""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool
        self._conn: Optional[asyncpg.Connection] = None

    async def setup_schema(self) -> List[str]:
        """Create the catalogue schema and its tables if they are missing."""
        created = []
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(f"CREATE SCHEMA IF NOT EXISTS {CATALOGUE_SCHEMA}")
                for table_name, ddl in REQUIRED_TABLES.items():
                    await conn.execute(ddl)
                    created.append(f"{CATALOGUE_SCHEMA}.{table_name}")
        logger.info(f"Catalogue schema ready: {', '.join(created)}")
        return created

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        if self._conn is not None:
            yield self._conn
        else:
            async with self.pool.acquire() as conn:
                yield conn

    async def _call(
        self,
        method: str,
        query: str,
        *args: Any,
        duplicate: Optional[Tuple[str, str]] = None,
    ) -> Any:
        """Run one query, translating asyncpg errors into store errors."""
        try:
            async with self._connection() as conn:
                return await getattr(conn, method)(query, *args)
        except asyncpg.UniqueViolationError as e:
            if duplicate is not None:
                raise DuplicateEntityError(*duplicate) from e
            raise StoreError("Catalogue uniqueness violated", cause=e) from e
        except asyncpg.PostgresError as e:
            raise StoreError("Catalogue query failed", cause=e) from e

    async def find_server(self, name: str) -> Optional[Server]:
        record = await self._call(
            "fetchrow",
            f"SELECT source_id, server_name, is_active FROM {CATALOGUE_SCHEMA}.sources "
            "WHERE server_name = $1",
            name,
        )
        if record is None:
            return None
        return Server(
            id=record["source_id"], name=record["server_name"], is_active=record["is_active"]
        )

    async def create_server(self, name: str) -> Server:
        source_id = await self._call(
            "fetchval",
            f"INSERT INTO {CATALOGUE_SCHEMA}.sources (server_name) VALUES ($1) "
            "RETURNING source_id",
            name,
            duplicate=("Server", name),
        )
        return Server(id=source_id, name=name)

    async def find_database(self, server_id: int, name: str) -> Optional[Database]:
        record = await self._call(
            "fetchrow",
            f"SELECT database_id, source_id, database_name, is_active "
            f"FROM {CATALOGUE_SCHEMA}.source_databases "
            "WHERE source_id = $1 AND database_name = $2",
            server_id,
            name,
        )
        if record is None:
            return None
        return Database(
            id=record["database_id"],
            server_id=record["source_id"],
            name=record["database_name"],
            is_active=record["is_active"],
        )

    async def create_database(self, server_id: int, name: str) -> Database:
        database_id = await self._call(
            "fetchval",
            f"INSERT INTO {CATALOGUE_SCHEMA}.source_databases (source_id, database_name) "
            "VALUES ($1, $2) RETURNING database_id",
            server_id,
            name,
            duplicate=("Database", name),
        )
        return Database(id=database_id, server_id=server_id, name=name)

    async def find_table(
        self, database_id: int, schema_name: str, table_name: str
    ) -> Optional[Table]:
        query = (
            "SELECT table_id, database_id, schema_name, table_name, "
            f"estimated_row_count, is_active FROM {CATALOGUE_SCHEMA}.source_tables "
            "WHERE database_id = $1 AND schema_name = $2 AND table_name = $3"
        )
        if self._conn is not None:
            # Serialises concurrent imports of the same table.
            query += " FOR UPDATE"
        record = await self._call("fetchrow", query, database_id, schema_name, table_name)
        return _table_from_record(record) if record is not None else None

    async def create_table(
        self,
        database_id: int,
        schema_name: str,
        table_name: str,
        estimated_row_count: Optional[int] = None,
    ) -> Table:
        record = await self._call(
            "fetchrow",
            f"INSERT INTO {CATALOGUE_SCHEMA}.source_tables "
            "(database_id, schema_name, table_name, estimated_row_count) "
            "VALUES ($1, $2, $3, $4) "
            "RETURNING table_id, database_id, schema_name, table_name, "
            "estimated_row_count, is_active",
            database_id,
            schema_name,
            table_name,
            estimated_row_count,
            duplicate=("Table", f"{schema_name}.{table_name}"),
        )
        return _table_from_record(record)

    async def set_estimated_row_count(self, table_id: int, row_count: int) -> None:
        status = await self._call(
            "execute",
            f"UPDATE {CATALOGUE_SCHEMA}.source_tables "
            "SET estimated_row_count = $2, modified_at = NOW() WHERE table_id = $1",
            table_id,
            row_count,
        )
        if status == "UPDATE 0":
            raise EntityNotFoundError("Table", table_id)

    async def list_columns(self, table_id: int) -> List[Column]:
        records = await self._call(
            "fetch",
            "SELECT column_id, table_id, column_name, persistence_type, "
            "is_in_dao_analysis, is_added_by_api, is_selected_for_load, "
            f"sort_order, is_active FROM {CATALOGUE_SCHEMA}.source_columns "
            "WHERE table_id = $1 AND is_active ORDER BY sort_order, column_id",
            table_id,
        )
        return [_column_from_record(record) for record in records]

    async def add_column(self, table_id: int, column: NewColumn) -> Column:
        intent = column.intent
        record = await self._call(
            "fetchrow",
            f"INSERT INTO {CATALOGUE_SCHEMA}.source_columns "
            "(table_id, column_name, persistence_type, is_in_dao_analysis, "
            "is_added_by_api, is_selected_for_load, sort_order) "
            "VALUES ($1, $2, $3, $4, $5, $6, $7) "
            "RETURNING column_id, table_id, column_name, persistence_type, "
            "is_in_dao_analysis, is_added_by_api, is_selected_for_load, "
            "sort_order, is_active",
            table_id,
            column.column_name,
            intent.persistence_kind.value,
            intent.in_analysis,
            intent.added_by_api,
            intent.selected_for_load,
            column.sort_order,
            duplicate=("Column", column.column_name),
        )
        return _column_from_record(record)

    async def update_column_intent(self, column_id: int, intent: ColumnIntent) -> None:
        status = await self._call(
            "execute",
            f"UPDATE {CATALOGUE_SCHEMA}.source_columns SET persistence_type = $2, "
            "is_in_dao_analysis = $3, is_added_by_api = $4, is_selected_for_load = $5, "
            "modified_at = NOW() WHERE column_id = $1",
            column_id,
            intent.persistence_kind.value,
            intent.in_analysis,
            intent.added_by_api,
            intent.selected_for_load,
        )
        if status == "UPDATE 0":
            raise EntityNotFoundError("Column", column_id)

    async def delete_column(self, column_id: int) -> None:
        status = await self._call(
            "execute",
            f"DELETE FROM {CATALOGUE_SCHEMA}.source_columns WHERE column_id = $1",
            column_id,
        )
        if status == "DELETE 0":
            raise EntityNotFoundError("Column", column_id)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._conn is not None:
            raise StoreError("Catalogue transactions cannot be nested")

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                self._conn = conn
                try:
                    yield
                finally:
                    self._conn = None
