"""Unit tests for centralized database layer.

This package contains comprehensive unit tests for the new centralized
database layer in omnicrm/core/database, including:

- Repository tests against in-memory SQLite
- Query builder tests on compiled SQL
- Mocked-session tests for the generic CRUD paths

All tests use in-memory SQLite or mocks to ensure fast execution
without requiring external database services.
"""
