"""
schemacat: Schema catalogue import and reconciliation.

schemacat keeps a catalogue of source database columns together with the
review intent recorded for each of them, and merges DACPAC models and legacy
spreadsheets into it.
"""

__version__ = "0.1.0"

from .config import SchemacatConfig
from .exceptions import CatalogueError, ConfigurationError, ImportFormatError, StoreError

__all__ = [
    "__version__",
    "SchemacatConfig",
    "CatalogueError",
    "ConfigurationError",
    "ImportFormatError",
    "StoreError",
]
