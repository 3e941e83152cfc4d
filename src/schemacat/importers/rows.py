"""
Row descriptors shared by the import parsers and the reconciler.
"""

from dataclasses import dataclass
from typing import NamedTuple, Optional

from ..catalogue.models import ColumnIntent, PersistenceKind


DEFAULT_SCHEMA = "dbo"


class TablePath(NamedTuple):
    """Owning path of a column; one reconciliation unit per distinct path."""

    server_name: str
    database_name: str
    schema_name: str
    table_name: str

    def __str__(self) -> str:
        return (
            f"{self.server_name}/{self.database_name}/"
            f"{self.schema_name}.{self.table_name}"
        )


@dataclass
class ImportRow:
    """A single prospective column produced by a parser."""

    server_name: str = ""
    database_name: str = ""
    schema_name: str = DEFAULT_SCHEMA
    table_name: str = ""
    column_name: str = ""
    persistence_kind: PersistenceKind = PersistenceKind.RELATIONAL
    in_analysis: bool = False
    added_by_api: bool = False
    selected_for_load: bool = False
    estimated_row_count: Optional[int] = None
    warning: Optional[str] = None

    @property
    def table_path(self) -> TablePath:
        return TablePath(
            self.server_name, self.database_name, self.schema_name, self.table_name
        )

    @property
    def intent(self) -> ColumnIntent:
        return ColumnIntent(
            persistence_kind=self.persistence_kind,
            in_analysis=self.in_analysis,
            added_by_api=self.added_by_api,
            selected_for_load=self.selected_for_load,
        )

    @property
    def is_importable(self) -> bool:
        """Rows with a warning or without a column name never reach the store."""
        return bool(self.column_name) and not self.warning
