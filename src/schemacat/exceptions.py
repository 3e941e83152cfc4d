"""
Exception classes for schemacat.
"""

from typing import Any, Dict, Optional


class CatalogueError(Exception):
    """Base exception for all schemacat errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(CatalogueError):
    """Raised when there's an error in configuration."""

    pass


class ImportFormatError(CatalogueError):
    """Raised when an import file is structurally unreadable."""

    pass


class ArchiveFormatError(ImportFormatError):
    """Raised when a DACPAC archive cannot be opened."""

    pass


class ModelDocumentNotFoundError(ArchiveFormatError):
    """Raised when a DACPAC archive holds no model document."""

    def __init__(self, candidates: tuple, entry_count: int) -> None:
        if entry_count == 0:
            message = "DACPAC archive is empty"
        else:
            message = "model.xml not found in DACPAC archive"
        super().__init__(
            message,
            {"searched": ", ".join(candidates), "entries": entry_count},
        )
        self.candidates = candidates
        self.entry_count = entry_count


class WorkbookFormatError(ImportFormatError):
    """Raised when a spreadsheet workbook cannot be opened."""

    pass


class StoreError(CatalogueError):
    """Raised when there's an error with catalogue store operations."""

    pass


class DatabaseConnectionError(StoreError):
    """Raised when there's an error establishing or maintaining database connections."""

    pass


class DatabaseConfigurationError(StoreError):
    """Raised when there's an error in database configuration."""

    pass


class DuplicateEntityError(StoreError):
    """Raised when a catalogue record would violate a uniqueness rule."""

    def __init__(self, entity: str, key: str) -> None:
        super().__init__(f"{entity} '{key}' already exists")
        self.entity = entity
        self.key = key


class EntityNotFoundError(StoreError):
    """Raised when a catalogue record referenced by id does not exist."""

    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id
