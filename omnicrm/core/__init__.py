"""Shared building blocks: logging, monitoring, database, error classification and utilities."""
