"""
Tests for schemacat.importers.workbook module.
"""

import io
from datetime import date

import pytest

from schemacat.exceptions import WorkbookFormatError
from schemacat.importers.rows import PersistenceKind
from schemacat.importers.workbook import (
    EMPTY_COLUMN_WARNING,
    HEADER_SYNONYMS,
    WorkbookField,
    WorkbookParser,
    cell_text,
    parse_bool,
    parse_persistence_kind,
    parse_row_count,
    resolve_header,
)


STANDARD_HEADERS = ["Server", "Database", "Schema", "Table", "Column"]


class TestHeaderResolution:
    """Test header synonym lookup."""

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("Server Name", WorkbookField.SERVER_NAME),
            ("database", WorkbookField.DATABASE_NAME),
            ("  Column Name ", WorkbookField.COLUMN_NAME),
            ("Type", WorkbookField.PERSISTENCE_KIND),
            ("DAO", WorkbookField.IN_ANALYSIS),
            ("Table in DAO Analysis", WorkbookField.IN_ANALYSIS),
            ("API", WorkbookField.ADDED_BY_API),
            ("Generate SQL INSERTS", WorkbookField.SELECTED_FOR_LOAD),
            ("generate", WorkbookField.SELECTED_FOR_LOAD),
            ("DEV Persistence Type", WorkbookField.DEV_PERSISTENCE_KIND),
            ("Number of Records", WorkbookField.ESTIMATED_ROW_COUNT),
        ],
    )
    def test_known_headers(self, label, expected):
        assert resolve_header(label) is expected

    def test_unknown_header(self):
        assert resolve_header("Owner") is None

    def test_synonym_table_is_read_only(self):
        with pytest.raises(TypeError):
            HEADER_SYNONYMS["owner"] = WorkbookField.SERVER_NAME


class TestCellCoercion:
    """Test free-text cell coercion."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("TRUE", True),
            ("true", True),
            ("1", True),
            ("Yes", True),
            ("y", True),
            ("FALSE", False),
            ("0", False),
            ("no", False),
            ("", False),
            ("maybe", False),
        ],
    )
    def test_parse_bool(self, text, expected):
        assert parse_bool(text) is expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1,234", 1234),
            (" 12 345 ", 12345),
            ("42", 42),
            ("", None),
            ("abc", None),
            ("1.5", None),
            ("-5", None),
            ("-1,000", None),
        ],
    )
    def test_parse_row_count(self, text, expected):
        assert parse_row_count(text) == expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("D", PersistenceKind.DOCUMENT),
            ("document", PersistenceKind.DOCUMENT),
            ("R", PersistenceKind.RELATIONAL),
            ("X", PersistenceKind.RELATIONAL),
            ("", None),
            ("   ", None),
        ],
    )
    def test_parse_persistence_kind(self, text, expected):
        assert parse_persistence_kind(text) is expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, ""),
            (True, "TRUE"),
            (False, "FALSE"),
            (1234.0, "1234"),
            (12.5, "12.5"),
            (7, "7"),
            (" padded ", "padded"),
            (date(2024, 1, 31), "2024-01-31"),
        ],
    )
    def test_cell_text(self, value, expected):
        assert cell_text(value) == expected


class TestWorkbookParser:
    """Test WorkbookParser."""

    @pytest.fixture
    def parser(self):
        return WorkbookParser()

    def test_parses_standard_rows(self, parser, workbook_factory):
        data = workbook_factory(
            STANDARD_HEADERS,
            [
                ["SRV1", "Sales", "dbo", "Orders", "OrderId"],
                ["SRV1", "Sales", "dbo", "Orders", "Total"],
            ],
        )

        parsed = parser.parse(data)

        assert parsed.worksheet == "All"
        assert parsed.unrecognised_headers == []
        assert [row.column_name for row in parsed.rows] == ["OrderId", "Total"]
        first = parsed.rows[0]
        assert (first.server_name, first.database_name) == ("SRV1", "Sales")
        assert (first.schema_name, first.table_name) == ("dbo", "Orders")
        assert first.warning is None

    def test_accepts_binary_stream(self, parser, workbook_factory):
        data = workbook_factory(STANDARD_HEADERS, [["S", "D", "dbo", "T", "C"]])

        parsed = parser.parse(io.BytesIO(data))

        assert len(parsed.rows) == 1

    def test_reads_intent_columns(self, parser, workbook_factory):
        data = workbook_factory(
            STANDARD_HEADERS + ["Type", "DAO", "API", "Generate SQL INSERTS"],
            [
                ["S", "D", "dbo", "T", "A", "D", "TRUE", "1", "Yes"],
                ["S", "D", "dbo", "T", "B", "R", True, False, "no"],
            ],
        )

        first, second = parser.parse(data).rows

        assert first.persistence_kind is PersistenceKind.DOCUMENT
        assert first.in_analysis is True
        assert first.added_by_api is True
        assert first.selected_for_load is True
        assert second.persistence_kind is PersistenceKind.RELATIONAL
        assert second.in_analysis is True
        assert second.added_by_api is False
        assert second.selected_for_load is False

    def test_empty_persistence_defaults_to_relational(self, parser, workbook_factory):
        data = workbook_factory(
            STANDARD_HEADERS + ["Persistence Type"],
            [["S", "D", "dbo", "T", "A", None]],
        )

        row = parser.parse(data).rows[0]

        assert row.persistence_kind is PersistenceKind.RELATIONAL

    @pytest.mark.parametrize(
        "base,dev,expected",
        [
            ("R", "D", PersistenceKind.DOCUMENT),
            ("D", "R", PersistenceKind.RELATIONAL),
            ("D", None, PersistenceKind.DOCUMENT),
            ("D", "D", PersistenceKind.DOCUMENT),
        ],
    )
    def test_dev_persistence_overrides_when_filled(
        self, parser, workbook_factory, base, dev, expected
    ):
        data = workbook_factory(
            STANDARD_HEADERS + ["PersistenceType", "DEV Persistence Type"],
            [["S", "D", "dbo", "T", "A", base, dev]],
        )

        row = parser.parse(data).rows[0]

        assert row.persistence_kind is expected

    def test_row_counts(self, parser, workbook_factory):
        data = workbook_factory(
            STANDARD_HEADERS + ["Number of Records"],
            [
                ["S", "D", "dbo", "T", "A", "1,234"],
                ["S", "D", "dbo", "T", "B", "abc"],
                ["S", "D", "dbo", "T", "C", 5000],
                ["S", "D", "dbo", "T", "E", None],
                ["S", "D", "dbo", "T", "F", -5],
            ],
        )

        counts = [row.estimated_row_count for row in parser.parse(data).rows]

        assert counts == [1234, None, 5000, None, None]

    def test_unrecognised_headers_are_reported(self, parser, workbook_factory):
        data = workbook_factory(
            STANDARD_HEADERS + ["Owner", "Notes"],
            [["S", "D", "dbo", "T", "A", "alice", "n/a"]],
        )

        parsed = parser.parse(data)

        assert parsed.unrecognised_headers == ["Owner", "Notes"]
        assert parsed.rows[0].column_name == "A"

    def test_empty_schema_defaults(self, workbook_factory):
        data = workbook_factory(STANDARD_HEADERS, [["S", "D", None, "T", "A"]])

        assert WorkbookParser().parse(data).rows[0].schema_name == "dbo"
        assert (
            WorkbookParser(default_schema="stage").parse(data).rows[0].schema_name
            == "stage"
        )

    def test_missing_schema_header_defaults(self, parser, workbook_factory):
        data = workbook_factory(["Server", "Database", "Table", "Column"], [["S", "D", "T", "A"]])

        assert parser.parse(data).rows[0].schema_name == "dbo"

    def test_empty_column_name_carries_warning(self, parser, workbook_factory):
        data = workbook_factory(STANDARD_HEADERS, [["S", "D", "dbo", "T", None]])

        parsed = parser.parse(data)

        assert len(parsed.rows) == 1
        assert parsed.rows[0].warning == EMPTY_COLUMN_WARNING
        assert parsed.warnings == parsed.rows

    def test_missing_owner_names_carry_warning(self, parser, workbook_factory):
        data = workbook_factory(
            STANDARD_HEADERS,
            [
                ["S", "D", "dbo", None, "A"],
                [None, None, "dbo", "T", "B"],
            ],
        )

        first, second = parser.parse(data).rows

        assert first.warning == "Missing table name; row skipped."
        assert second.warning == "Missing server, database name; row skipped."

    def test_blank_rows_are_ignored(self, parser, sheets_factory):
        data = sheets_factory(
            {
                "All": [
                    [None, None],
                    STANDARD_HEADERS,
                    ["S", "D", "dbo", "T", "A"],
                    [None, None, None, None, None],
                    ["S", "D", "dbo", "T", "B"],
                ]
            }
        )

        parsed = parser.parse(data)

        assert [row.column_name for row in parsed.rows] == ["A", "B"]

    def test_prefers_named_worksheet_case_insensitively(self, parser, sheets_factory):
        data = sheets_factory(
            {
                "Notes": [["Owner"], ["alice"]],
                "all": [STANDARD_HEADERS, ["S", "D", "dbo", "T", "A"]],
            }
        )

        parsed = parser.parse(data)

        assert parsed.worksheet == "all"
        assert parsed.rows[0].column_name == "A"

    def test_falls_back_to_first_worksheet(self, parser, sheets_factory):
        data = sheets_factory(
            {
                "Catalogue": [STANDARD_HEADERS, ["S", "D", "dbo", "T", "A"]],
                "Other": [STANDARD_HEADERS, ["S", "D", "dbo", "T", "B"]],
            }
        )

        parsed = parser.parse(data)

        assert parsed.worksheet == "Catalogue"
        assert [row.column_name for row in parsed.rows] == ["A"]

    def test_configured_worksheet_name(self, sheets_factory):
        data = sheets_factory(
            {
                "All": [STANDARD_HEADERS, ["S", "D", "dbo", "T", "A"]],
                "Review": [STANDARD_HEADERS, ["S", "D", "dbo", "T", "B"]],
            }
        )

        parsed = WorkbookParser(worksheet_name="Review").parse(data)

        assert [row.column_name for row in parsed.rows] == ["B"]

    def test_header_only_sheet(self, parser, workbook_factory):
        parsed = parser.parse(workbook_factory(STANDARD_HEADERS, []))

        assert parsed.rows == []
        assert parsed.worksheet == "All"

    def test_not_a_workbook(self, parser):
        with pytest.raises(WorkbookFormatError, match="Unreadable workbook"):
            parser.parse(b"plain text, not a workbook")

    def test_zip_without_workbook_parts(self, parser, sample_dacpac):
        with pytest.raises(WorkbookFormatError):
            parser.parse(sample_dacpac)
