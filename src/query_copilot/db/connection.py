"""Read-only PostgreSQL sessions used for schema refresh and health checks."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import psycopg

logger = logging.getLogger(__name__)

_SESSION_OPTIONS = "-c default_transaction_read_only=on -c statement_timeout=15000"


class DatabaseConnectionError(RuntimeError):
    """Raised when a PostgreSQL connection or health check fails."""


@dataclass(frozen=True)
class HealthcheckResult:
    database: str
    user: str
    server_version: str
    read_only: bool


@contextmanager
def connect_readonly(
    postgres_dsn: str, *, connect_timeout: int = 5
) -> Iterator[psycopg.Connection]:
    """Yield a connection whose transactions default to read-only."""
    try:
        conn = psycopg.connect(
            postgres_dsn,
            connect_timeout=connect_timeout,
            application_name="query-copilot",
            options=_SESSION_OPTIONS,
        )
    except psycopg.Error as exc:
        raise DatabaseConnectionError(
            f"Could not connect to PostgreSQL with provided DSN: {exc}"
        ) from exc
    with conn:
        yield conn


def check_postgres_health(postgres_dsn: str) -> HealthcheckResult:
    """Confirm the database answers and that the session is read-only."""
    try:
        with connect_readonly(postgres_dsn) as conn:
            row = conn.execute(
                "SELECT current_database(), current_user, "
                "current_setting('server_version'), "
                "current_setting('transaction_read_only')"
            ).fetchone()
    except psycopg.Error as exc:
        raise DatabaseConnectionError(f"PostgreSQL health check failed: {exc}") from exc

    if row is None:
        raise DatabaseConnectionError("PostgreSQL health check returned no data.")

    database, user, server_version, read_only_setting = row
    if read_only_setting != "on":
        raise DatabaseConnectionError(
            "Connected successfully but session is not read-only."
        )
    logger.debug("Healthcheck ok for database %s as %s", database, user)
    return HealthcheckResult(
        database=database,
        user=user,
        server_version=server_version,
        read_only=True,
    )
