"""
Pytest configuration and shared fixtures for schemacat tests.

DACPAC archives and workbooks are built in memory so the parsers can be
exercised without fixture files.
"""

import io
import zipfile
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest
from openpyxl import Workbook

from schemacat.catalogue.memory import InMemoryCatalogueStore
from schemacat.catalogue.models import NewColumn
from schemacat.importers.dacpac import DAC_NAMESPACE
from schemacat.importers.reconciler import CatalogueReconciler
from schemacat.importers.rows import ImportRow


# ============================================================================
# Archive and workbook builders
# ============================================================================

def make_model_xml(body: str) -> str:
    """Wrap model elements in a DataSchemaModel document."""
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<DataSchemaModel xmlns="{DAC_NAMESPACE}">\n'
        f"  <Model>\n{body}\n  </Model>\n"
        "</DataSchemaModel>\n"
    )


def make_dacpac(entries: Dict[str, str]) -> bytes:
    """Build a zip archive holding the given entries."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def make_workbook(
    sheets: Dict[str, Sequence[Sequence[Any]]],
) -> bytes:
    """Build an xlsx workbook; each sheet is a list of rows, headers first."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        worksheet = workbook.create_sheet(title)
        for row in rows:
            worksheet.append(list(row))
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


SAMPLE_MODEL_BODY = """
    <Element Type="SqlTable" Name="[dbo].[Orders]">
      <Element Type="SqlSimpleColumn" Name="[dbo].[Orders].[OrderId]" />
      <Element Type="SqlSimpleColumn" Name="[dbo].[Orders].[CustomerId]" />
    </Element>
    <Element Type="SqlTable" Name="[dbo].[Customers]">
      <Element Type="SqlSimpleColumn" Name="[dbo].[Customers].[CustomerId]" />
    </Element>
"""


@pytest.fixture
def archive_factory() -> Callable[[Dict[str, str]], bytes]:
    """Build a zip archive from raw entry contents."""
    return make_dacpac


@pytest.fixture
def dacpac_factory() -> Callable[..., bytes]:
    """Build a DACPAC from model elements, stored under the given entry name."""
    def factory(body: str, entry: str = "model.xml") -> bytes:
        return make_dacpac({entry: make_model_xml(body)})
    return factory


@pytest.fixture
def sample_dacpac() -> bytes:
    """DACPAC with two tables and three columns."""
    return make_dacpac({"model.xml": make_model_xml(SAMPLE_MODEL_BODY)})


@pytest.fixture
def sheets_factory() -> Callable[[Dict[str, Sequence[Sequence[Any]]]], bytes]:
    """Build a workbook with several named sheets."""
    return make_workbook


@pytest.fixture
def workbook_factory() -> Callable[..., bytes]:
    """Build a single-sheet workbook from headers and data rows."""
    def factory(
        headers: Sequence[str],
        rows: Sequence[Sequence[Any]],
        sheet: str = "All",
    ) -> bytes:
        return make_workbook({sheet: [list(headers), *[list(r) for r in rows]]})
    return factory


# ============================================================================
# Catalogue fixtures
# ============================================================================

@pytest.fixture
def store() -> InMemoryCatalogueStore:
    return InMemoryCatalogueStore()


@pytest.fixture
def reconciler(store) -> CatalogueReconciler:
    return CatalogueReconciler(store)


@pytest.fixture
def row_factory() -> Callable[..., ImportRow]:
    """Build import rows for SRV1/Sales/dbo.Orders unless overridden."""
    def factory(column_name: str, **overrides: Any) -> ImportRow:
        values: Dict[str, Any] = {
            "server_name": "SRV1",
            "database_name": "Sales",
            "schema_name": "dbo",
            "table_name": "Orders",
            "column_name": column_name,
        }
        values.update(overrides)
        return ImportRow(**values)
    return factory


async def _seed_table(
    store: InMemoryCatalogueStore,
    column_names: List[str],
    server: str = "SRV1",
    database: str = "Sales",
    schema: str = "dbo",
    table: str = "Orders",
    row_count: Optional[int] = None,
):
    """Create a table with columns at sort orders 10, 20, 30, ..."""
    server_record = await store.find_server(server) or await store.create_server(server)
    database_record = (
        await store.find_database(server_record.id, database)
        or await store.create_database(server_record.id, database)
    )
    table_record = await store.create_table(database_record.id, schema, table, row_count)
    for index, name in enumerate(column_names, start=1):
        await store.add_column(table_record.id, NewColumn(column_name=name, sort_order=index * 10))
    return table_record


@pytest.fixture
def seed_table(store) -> Callable:
    """Seed the in-memory store with one table and its columns."""
    async def seed(column_names: List[str], **kwargs: Any):
        return await _seed_table(store, column_names, **kwargs)
    return seed
