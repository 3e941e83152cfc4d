"""
Import package for schemacat.

This package provides:
- DACPAC model parsing
- Legacy spreadsheet parsing
- Reconciliation of parsed rows against the catalogue
"""

from .rows import ImportRow, PersistenceKind, TablePath
from .dacpac import DacpacParser
from .workbook import ParsedWorkbook, WorkbookParser
from .reconciler import CatalogueReconciler, ConflictPolicy, ImportResult

__all__ = [
    "ImportRow",
    "PersistenceKind",
    "TablePath",
    "DacpacParser",
    "ParsedWorkbook",
    "WorkbookParser",
    "CatalogueReconciler",
    "ConflictPolicy",
    "ImportResult",
]
