"""Database helpers for query-copilot."""

from query_copilot.db.connection import (
    DatabaseConnectionError,
    HealthcheckResult,
    check_postgres_health,
    connect_readonly,
)
from query_copilot.db.introspect import IntrospectionError, introspect_schema

__all__ = [
    "DatabaseConnectionError",
    "HealthcheckResult",
    "IntrospectionError",
    "check_postgres_health",
    "connect_readonly",
    "introspect_schema",
]
