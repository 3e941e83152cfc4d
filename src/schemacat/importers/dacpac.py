"""
DACPAC archive parsing for schemacat.

A DACPAC is a zip container whose model.xml lists every object of a SQL
Server database project. Only tables and their simple columns are read;
no SQL Server tooling is required.
"""

import io
import logging
import xml.etree.ElementTree as ET
import zipfile
from enum import Enum
from typing import BinaryIO, Dict, List, Optional, Tuple, Union

from ..exceptions import ArchiveFormatError, ModelDocumentNotFoundError
from .rows import ImportRow, PersistenceKind


logger = logging.getLogger(__name__)


DAC_NAMESPACE = "http://schemas.microsoft.com/sqlserver/dac/Serialization/2012/02"
ELEMENT_TAG = f"{{{DAC_NAMESPACE}}}Element"

MODEL_DOCUMENT_CANDIDATES = ("model.xml", "Model/model.xml")


class ModelElementType(str, Enum):
    """Element discriminators the parser understands."""

    TABLE = "SqlTable"
    SIMPLE_COLUMN = "SqlSimpleColumn"


def split_name(name: str) -> List[str]:
    """Split a dot-qualified model name, dropping empty segments."""
    return [part for part in name.split(".") if part]


def unquote(identifier: str) -> str:
    """Strip bracket and double-quote delimiters from one name segment."""
    return identifier.lstrip("[").rstrip("]").strip('"')


def _element_type(element: ET.Element) -> Optional[ModelElementType]:
    try:
        return ModelElementType(element.get("Type", ""))
    except ValueError:
        return None


class DacpacParser:
    """Extracts table and column declarations from a DACPAC archive."""

    def parse(
        self,
        data: Union[bytes, BinaryIO],
        server_name: str,
        database_name: str,
    ) -> List[ImportRow]:
        """
        Parse a DACPAC into import rows.

        Args:
            data: Raw archive bytes or a readable binary stream
            server_name: Server the model's database lives on
            database_name: Database the model describes

        Returns:
            One ImportRow per resolved column, in document order

        Raises:
            ArchiveFormatError: If the data is not a zip archive
            ModelDocumentNotFoundError: If no model.xml is present
            xml.etree.ElementTree.ParseError: If model.xml is malformed
        """
        root = self._load_model(data)
        elements = list(root.iter(ELEMENT_TAG))

        tables: Dict[str, Tuple[str, str]] = {}
        for element in elements:
            if _element_type(element) is not ModelElementType.TABLE:
                continue
            name = element.get("Name", "")
            parts = split_name(name)
            if len(parts) >= 2:
                tables[name.casefold()] = (unquote(parts[-2]), unquote(parts[-1]))

        rows: List[ImportRow] = []
        for element in elements:
            if _element_type(element) is not ModelElementType.SIMPLE_COLUMN:
                continue
            name = element.get("Name", "")
            parts = split_name(name)
            if len(parts) < 3:
                logger.debug(f"Skipping column with unqualified name '{name}'")
                continue

            owner = tables.get(".".join(parts[:-1]).casefold())
            if owner is None:
                logger.debug(f"Skipping column '{name}': owning table not declared")
                continue

            schema_name, table_name = owner
            rows.append(
                ImportRow(
                    server_name=server_name,
                    database_name=database_name,
                    schema_name=schema_name,
                    table_name=table_name,
                    column_name=unquote(parts[-1]),
                    persistence_kind=PersistenceKind.RELATIONAL,
                )
            )

        logger.info(
            f"Parsed DACPAC for {server_name}/{database_name}: "
            f"{len(tables)} tables, {len(rows)} columns"
        )
        return rows

    def _load_model(self, data: Union[bytes, BinaryIO]) -> ET.Element:
        """Open the archive and parse its model document."""
        stream = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data

        try:
            archive = zipfile.ZipFile(stream)
        except zipfile.BadZipFile as e:
            raise ArchiveFormatError("Not a valid DACPAC archive", cause=e) from e

        with archive:
            names = set(archive.namelist())
            for candidate in MODEL_DOCUMENT_CANDIDATES:
                if candidate in names:
                    with archive.open(candidate) as document:
                        return ET.parse(document).getroot()

            raise ModelDocumentNotFoundError(MODEL_DOCUMENT_CANDIDATES, len(names))
