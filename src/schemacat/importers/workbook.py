"""
Legacy spreadsheet import for schemacat.

Reads the catalogue workbook that predates the catalogue itself. Header labels
are resolved through a fixed synonym table and free-text cells are coerced
into typed values. Malformed rows never fail the parse; they carry a warning
instead.
"""

import io
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, BinaryIO, Dict, List, Mapping, Optional, Sequence, Union

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..exceptions import WorkbookFormatError
from .rows import DEFAULT_SCHEMA, ImportRow, PersistenceKind


logger = logging.getLogger(__name__)


DEFAULT_WORKSHEET = "All"

EMPTY_COLUMN_WARNING = "Empty column name; row skipped."

TRUE_VALUES = frozenset({"TRUE", "1", "YES", "Y"})


class WorkbookField(str, Enum):
    """Row descriptor fields a header can map to."""

    SERVER_NAME = "server_name"
    DATABASE_NAME = "database_name"
    SCHEMA_NAME = "schema_name"
    TABLE_NAME = "table_name"
    COLUMN_NAME = "column_name"
    PERSISTENCE_KIND = "persistence_kind"
    DEV_PERSISTENCE_KIND = "dev_persistence_kind"
    IN_ANALYSIS = "in_analysis"
    ADDED_BY_API = "added_by_api"
    SELECTED_FOR_LOAD = "selected_for_load"
    ESTIMATED_ROW_COUNT = "estimated_row_count"


_KNOWN_HEADERS = {
    "Server": WorkbookField.SERVER_NAME,
    "Server Name": WorkbookField.SERVER_NAME,
    "Database": WorkbookField.DATABASE_NAME,
    "Database Name": WorkbookField.DATABASE_NAME,
    "Schema": WorkbookField.SCHEMA_NAME,
    "Table": WorkbookField.TABLE_NAME,
    "Table Name": WorkbookField.TABLE_NAME,
    "Column": WorkbookField.COLUMN_NAME,
    "Column Name": WorkbookField.COLUMN_NAME,
    "PersistenceType": WorkbookField.PERSISTENCE_KIND,
    "Persistence Type": WorkbookField.PERSISTENCE_KIND,
    "Type": WorkbookField.PERSISTENCE_KIND,
    "IsInDaoAnalysis": WorkbookField.IN_ANALYSIS,
    "DAO": WorkbookField.IN_ANALYSIS,
    "In DAO Analysis": WorkbookField.IN_ANALYSIS,
    "IsAddedByApi": WorkbookField.ADDED_BY_API,
    "API": WorkbookField.ADDED_BY_API,
    "Added By API": WorkbookField.ADDED_BY_API,
    "IsSelectedForLoad": WorkbookField.SELECTED_FOR_LOAD,
    "Selected For Load": WorkbookField.SELECTED_FOR_LOAD,
    "Generate SQL INSERTS": WorkbookField.SELECTED_FOR_LOAD,
    "For Load": WorkbookField.SELECTED_FOR_LOAD,
    "Generate": WorkbookField.SELECTED_FOR_LOAD,
    "Table in DAO Analysis": WorkbookField.IN_ANALYSIS,
    "DEV Persistence Type": WorkbookField.DEV_PERSISTENCE_KIND,
    "Number of Records": WorkbookField.ESTIMATED_ROW_COUNT,
}

# Keys are case-folded header labels.
HEADER_SYNONYMS: Mapping[str, WorkbookField] = MappingProxyType(
    {label.casefold(): target for label, target in _KNOWN_HEADERS.items()}
)


def resolve_header(label: str) -> Optional[WorkbookField]:
    """Map a header label to its field, or None when unknown."""
    return HEADER_SYNONYMS.get(label.strip().casefold())


def parse_bool(text: str) -> bool:
    return text.strip().upper() in TRUE_VALUES


def parse_row_count(text: str) -> Optional[int]:
    """Parse a row count like '1,234 567'; unparsable or negative text gives None."""
    cleaned = "".join(text.replace(",", "").split())
    if not cleaned:
        return None
    try:
        value = int(cleaned)
    except ValueError:
        return None
    return value if value >= 0 else None


def parse_persistence_kind(text: str) -> Optional[PersistenceKind]:
    """
    Read a persistence kind from its first character.

    Empty text gives None. Anything that is not a document marker is
    treated as relational.
    """
    text = text.strip()
    if not text:
        return None
    if text[0].upper() == PersistenceKind.DOCUMENT.value:
        return PersistenceKind.DOCUMENT
    return PersistenceKind.RELATIONAL


def cell_text(value: Any) -> str:
    """Render a cell value the way it reads in the sheet."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def _is_blank(values: Sequence[Any]) -> bool:
    return all(cell_text(v) == "" for v in values)


@dataclass
class ParsedWorkbook:
    """Rows read from a workbook plus the headers nobody recognised."""

    rows: List[ImportRow] = field(default_factory=list)
    unrecognised_headers: List[str] = field(default_factory=list)
    worksheet: Optional[str] = None

    @property
    def warnings(self) -> List[ImportRow]:
        return [row for row in self.rows if row.warning]


class WorkbookParser:
    """Parses catalogue spreadsheets into import rows."""

    def __init__(
        self,
        worksheet_name: str = DEFAULT_WORKSHEET,
        default_schema: str = DEFAULT_SCHEMA,
    ):
        self.worksheet_name = worksheet_name
        self.default_schema = default_schema

    def parse(self, data: Union[bytes, BinaryIO]) -> ParsedWorkbook:
        """
        Parse a workbook into import rows.

        Args:
            data: Raw xlsx bytes or a readable binary stream

        Returns:
            ParsedWorkbook with one row per populated data row

        Raises:
            WorkbookFormatError: If the workbook container cannot be read
        """
        stream = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data

        try:
            workbook = load_workbook(stream, read_only=True, data_only=True)
        except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError) as e:
            raise WorkbookFormatError("Unreadable workbook", cause=e) from e

        try:
            return self._parse_workbook(workbook)
        finally:
            workbook.close()

    def _parse_workbook(self, workbook) -> ParsedWorkbook:
        result = ParsedWorkbook()
        if not workbook.worksheets:
            return result

        worksheet = self._select_worksheet(workbook)
        result.worksheet = worksheet.title

        populated = (
            row for row in worksheet.iter_rows(values_only=True) if not _is_blank(row)
        )
        header_row = next(populated, None)
        if header_row is None:
            return result

        column_map: Dict[int, WorkbookField] = {}
        for index, value in enumerate(header_row):
            label = cell_text(value)
            if not label:
                continue
            target = resolve_header(label)
            if target is None:
                result.unrecognised_headers.append(label)
            else:
                column_map[index] = target

        if result.unrecognised_headers:
            logger.warning(
                f"Unrecognised headers in worksheet '{worksheet.title}': "
                f"{result.unrecognised_headers}"
            )

        for values in populated:
            result.rows.append(self._build_row(values, column_map))

        logger.info(
            f"Parsed worksheet '{worksheet.title}': {len(result.rows)} rows, "
            f"{len(result.warnings)} with warnings"
        )
        return result

    def _select_worksheet(self, workbook):
        wanted = self.worksheet_name.casefold()
        for worksheet in workbook.worksheets:
            if worksheet.title.casefold() == wanted:
                return worksheet
        return workbook.worksheets[0]

    def _build_row(
        self, values: Sequence[Any], column_map: Dict[int, WorkbookField]
    ) -> ImportRow:
        row = ImportRow(schema_name="")
        dev_kind: Optional[PersistenceKind] = None

        for index, target in column_map.items():
            text = cell_text(values[index]) if index < len(values) else ""

            if target in (
                WorkbookField.SERVER_NAME,
                WorkbookField.DATABASE_NAME,
                WorkbookField.SCHEMA_NAME,
                WorkbookField.TABLE_NAME,
                WorkbookField.COLUMN_NAME,
            ):
                setattr(row, target.value, text)
            elif target is WorkbookField.PERSISTENCE_KIND:
                row.persistence_kind = (
                    parse_persistence_kind(text) or PersistenceKind.RELATIONAL
                )
            elif target is WorkbookField.DEV_PERSISTENCE_KIND:
                dev_kind = parse_persistence_kind(text)
            elif target is WorkbookField.ESTIMATED_ROW_COUNT:
                row.estimated_row_count = parse_row_count(text)
            else:
                setattr(row, target.value, parse_bool(text))

        # The DEV column wins whenever it is filled in and disagrees.
        if dev_kind is not None and dev_kind != row.persistence_kind:
            row.persistence_kind = dev_kind

        if not row.schema_name:
            row.schema_name = self.default_schema

        row.warning = self._row_warning(row)
        return row

    @staticmethod
    def _row_warning(row: ImportRow) -> Optional[str]:
        if not row.column_name:
            return EMPTY_COLUMN_WARNING
        missing = [
            label
            for label, value in (
                ("server", row.server_name),
                ("database", row.database_name),
                ("table", row.table_name),
            )
            if not value
        ]
        if missing:
            return f"Missing {', '.join(missing)} name; row skipped."
        return None
