"""
Test suite for schemacat.

- Unit tests for the parsers, the reconciler, the stores, configuration and CLI
- Integration tests against a live PostgreSQL catalogue
"""
