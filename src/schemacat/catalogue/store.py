"""
Abstract catalogue store.

This module provides the persistence interface the import reconciler consumes.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager, List, Optional

from .models import Column, ColumnIntent, Database, NewColumn, Server, Table


class CatalogueStore(ABC):
    """
    Abstract base class for catalogue stores.

    Implementations own the Server -> Database -> Table -> Column hierarchy
    and enforce its uniqueness rules: server names globally, database names
    per server, (schema, table) per database and column names per table,
    the latter case-insensitively.
    """

    @abstractmethod
    async def find_server(self, name: str) -> Optional[Server]:
        pass

    @abstractmethod
    async def create_server(self, name: str) -> Server:
        """
        Create a server.

        Raises:
            DuplicateEntityError: If the name is taken
        """
        pass

    @abstractmethod
    async def find_database(self, server_id: int, name: str) -> Optional[Database]:
        pass

    @abstractmethod
    async def create_database(self, server_id: int, name: str) -> Database:
        pass

    @abstractmethod
    async def find_table(
        self, database_id: int, schema_name: str, table_name: str
    ) -> Optional[Table]:
        pass

    @abstractmethod
    async def create_table(
        self,
        database_id: int,
        schema_name: str,
        table_name: str,
        estimated_row_count: Optional[int] = None,
    ) -> Table:
        pass

    @abstractmethod
    async def set_estimated_row_count(self, table_id: int, row_count: int) -> None:
        pass

    @abstractmethod
    async def list_columns(self, table_id: int) -> List[Column]:
        """
        List the active columns of a table, ordered by sort order.

        The returned records are snapshots; later writes do not change them.
        """
        pass

    @abstractmethod
    async def add_column(self, table_id: int, column: NewColumn) -> Column:
        pass

    @abstractmethod
    async def update_column_intent(self, column_id: int, intent: ColumnIntent) -> None:
        pass

    @abstractmethod
    async def delete_column(self, column_id: int) -> None:
        pass

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """
        Group writes into one unit of work.

        Everything written inside the block commits when it exits normally
        and is discarded when it raises.
        """
        pass
