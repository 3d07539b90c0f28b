"""SQL parsing helpers backed by SQLGlot."""

from __future__ import annotations

from sqlglot import exp, parse, parse_one
from sqlglot.errors import SqlglotError


class SQLParseError(RuntimeError):
    """Raised when SQL cannot be parsed safely."""


def parse_sql(sql: str, dialect: str = "postgres") -> exp.Expression:
    """Parse a single SQL statement with the given dialect."""
    normalized = sql.strip().rstrip(";").strip()
    if not normalized:
        raise SQLParseError("SQL cannot be empty.")

    try:
        expression = parse_one(normalized, read=dialect)
    except SqlglotError as exc:
        raise SQLParseError(f"Invalid SQL: {exc}") from exc
    if expression is None:
        raise SQLParseError("SQL did not contain a statement.")
    return expression


def count_statements(sql: str, dialect: str = "postgres") -> int:
    """Number of non-empty statements in ``sql``; raises on parse failure."""
    try:
        return sum(1 for statement in parse(sql, read=dialect) if statement is not None)
    except SqlglotError as exc:
        raise SQLParseError(f"Invalid SQL: {exc}") from exc
