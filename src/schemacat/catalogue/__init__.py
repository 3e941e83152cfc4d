"""
Catalogue store package for schemacat.
"""

from .models import Column, ColumnIntent, Database, NewColumn, PersistenceKind, Server, Table
from .store import CatalogueStore
from .memory import InMemoryCatalogueStore
from .postgres import PostgresCatalogueStore

__all__ = [
    "Column",
    "ColumnIntent",
    "Database",
    "NewColumn",
    "PersistenceKind",
    "Server",
    "Table",
    "CatalogueStore",
    "InMemoryCatalogueStore",
    "PostgresCatalogueStore",
]
