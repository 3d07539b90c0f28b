"""PostgreSQL schema introspection into a ``SchemaSnapshot``."""

from __future__ import annotations

import logging
from collections import defaultdict

import psycopg

from query_copilot.db.connection import DatabaseConnectionError, connect_readonly
from query_copilot.db.queries import (
    COLUMNS_QUERY,
    FOREIGN_KEYS_QUERY,
    PRIMARY_KEYS_QUERY,
    TABLES_QUERY,
)
from query_copilot.schema.models import (
    ColumnInfo,
    ForeignKeyInfo,
    SchemaSnapshot,
    TableInfo,
)

logger = logging.getLogger(__name__)

_SYSTEM_SCHEMAS = {"pg_catalog", "information_schema"}


class IntrospectionError(RuntimeError):
    """Raised when schema introspection fails."""


def _target_schemas(default_schema: str, include_schemas: list[str] | None) -> list[str]:
    requested = include_schemas or [default_schema or "public"]
    return sorted({name.strip() for name in requested if name.strip()} - _SYSTEM_SCHEMAS)


def introspect_schema(
    postgres_dsn: str,
    default_schema: str = "public",
    include_schemas: list[str] | None = None,
) -> SchemaSnapshot:
    """Read tables, columns and key constraints for the selected schemas."""
    targets = _target_schemas(default_schema, include_schemas)
    if not targets:
        raise IntrospectionError("No target schemas selected for introspection.")
    params = {"schemas": targets}

    try:
        with connect_readonly(postgres_dsn) as conn, conn.cursor() as cur:
            cur.execute("SELECT current_database()")
            row = cur.fetchone()
            if not row:
                raise IntrospectionError("Could not determine current PostgreSQL database.")
            database = row[0]

            cur.execute(TABLES_QUERY, params)
            table_rows = cur.fetchall()

            columns: dict[tuple[str, str], list[ColumnInfo]] = defaultdict(list)
            cur.execute(COLUMNS_QUERY, params)
            for schema_name, table_name, name, data_type, nullable, description in cur.fetchall():
                columns[(schema_name, table_name)].append(
                    ColumnInfo(
                        name=name,
                        data_type=data_type,
                        nullable=bool(nullable),
                        description=description,
                    )
                )

            primary_keys: dict[tuple[str, str], list[str]] = defaultdict(list)
            cur.execute(PRIMARY_KEYS_QUERY, params)
            for schema_name, table_name, column_name in cur.fetchall():
                primary_keys[(schema_name, table_name)].append(column_name)

            fk_parts: dict[tuple[str, str, str], dict[str, object]] = {}
            cur.execute(FOREIGN_KEYS_QUERY, params)
            for (
                schema_name,
                table_name,
                constraint_name,
                column_name,
                ref_schema,
                ref_table,
                ref_column,
            ) in cur.fetchall():
                entry = fk_parts.setdefault(
                    (schema_name, table_name, constraint_name),
                    {"ref_schema": ref_schema, "ref_table": ref_table, "cols": [], "refs": []},
                )
                entry["cols"].append(column_name)
                entry["refs"].append(ref_column)
    except DatabaseConnectionError as exc:
        raise IntrospectionError(str(exc)) from exc
    except psycopg.Error as exc:
        raise IntrospectionError(f"Catalog query failed: {exc}") from exc

    foreign_keys: dict[tuple[str, str], list[ForeignKeyInfo]] = defaultdict(list)
    for (schema_name, table_name, constraint_name), entry in fk_parts.items():
        foreign_keys[(schema_name, table_name)].append(
            ForeignKeyInfo(
                name=constraint_name,
                columns=tuple(entry["cols"]),
                ref_schema=str(entry["ref_schema"]),
                ref_table=str(entry["ref_table"]),
                ref_columns=tuple(entry["refs"]),
            )
        )

    tables = tuple(
        TableInfo(
            schema_name=schema_name,
            name=table_name,
            table_type=table_type,
            description=description,
            columns=tuple(columns.get((schema_name, table_name), ())),
            primary_key=tuple(primary_keys.get((schema_name, table_name), ())),
            foreign_keys=tuple(foreign_keys.get((schema_name, table_name), ())),
        )
        for schema_name, table_name, table_type, description in table_rows
    )
    logger.info(
        "Introspected %d tables from database %s (schemas: %s)",
        len(tables),
        database,
        ", ".join(targets),
    )
    return SchemaSnapshot(database=database, tables=tables)
