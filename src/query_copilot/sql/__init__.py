"""SQL parsing, extraction and safety utilities."""

from query_copilot.sql.parser import SQLParseError, count_statements, parse_sql
from query_copilot.sql.security import SqlSecurityValidator, screen_sql

__all__ = [
    "SQLParseError",
    "SqlSecurityValidator",
    "count_statements",
    "parse_sql",
    "screen_sql",
]
