"""
Catalogue entity records.

Server -> Database -> Table -> Column, as handed out by a CatalogueStore.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class PersistenceKind(str, Enum):
    """Where a column's data is persisted downstream."""

    RELATIONAL = "R"
    DOCUMENT = "D"


@dataclass(frozen=True)
class ColumnIntent:
    """The reviewer-owned intent fields of a column."""

    persistence_kind: PersistenceKind = PersistenceKind.RELATIONAL
    in_analysis: bool = False
    added_by_api: bool = False
    selected_for_load: bool = False


@dataclass
class Server:
    """A source server."""

    id: int
    name: str
    is_active: bool = True


@dataclass
class Database:
    """A database on a source server."""

    id: int
    server_id: int
    name: str
    is_active: bool = True


@dataclass
class Table:
    """A schema-qualified table in a source database."""

    id: int
    database_id: int
    schema_name: str
    table_name: str
    estimated_row_count: Optional[int] = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.table_name}"


@dataclass
class Column:
    """A catalogued column together with its review intent."""

    id: int
    table_id: int
    column_name: str
    sort_order: int
    persistence_kind: PersistenceKind = PersistenceKind.RELATIONAL
    in_analysis: bool = False
    added_by_api: bool = False
    selected_for_load: bool = False
    is_active: bool = True

    @property
    def intent(self) -> ColumnIntent:
        return ColumnIntent(
            persistence_kind=self.persistence_kind,
            in_analysis=self.in_analysis,
            added_by_api=self.added_by_api,
            selected_for_load=self.selected_for_load,
        )

    def with_intent(self, intent: ColumnIntent) -> "Column":
        """Copy of this column carrying the given intent."""
        return replace(
            self,
            persistence_kind=intent.persistence_kind,
            in_analysis=intent.in_analysis,
            added_by_api=intent.added_by_api,
            selected_for_load=intent.selected_for_load,
        )


@dataclass(frozen=True)
class NewColumn:
    """Column data for an insert; the store assigns the id."""

    column_name: str
    sort_order: int
    intent: ColumnIntent = ColumnIntent()
