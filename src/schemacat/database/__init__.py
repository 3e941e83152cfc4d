"""
Database package for schemacat.
"""

from .connection import ConnectionConfig, ConnectionPool

__all__ = [
    "ConnectionConfig",
    "ConnectionPool",
]
