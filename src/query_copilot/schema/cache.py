"""Schema cache persistence and refresh routines."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from query_copilot.schema.models import SchemaSnapshot

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = "1.0"


class CacheError(RuntimeError):
    """Raised when schema cache operations fail."""


class CachedSchemaSnapshot(BaseModel):
    """Versioned on-disk representation of a schema snapshot."""

    model_config = ConfigDict(frozen=True)

    cache_format_version: str
    generated_at: str
    snapshot: SchemaSnapshot


def _now_iso() -> str:
    return datetime.now(tz=UTC).replace(microsecond=0).isoformat()


def save_schema_cache(cache_path: Path, snapshot: SchemaSnapshot) -> CachedSchemaSnapshot:
    """Persist a snapshot as JSON alongside format metadata."""
    cached = CachedSchemaSnapshot(
        cache_format_version=CACHE_FORMAT_VERSION,
        generated_at=_now_iso(),
        snapshot=snapshot,
    )
    try:
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        cache_path.write_text(cached.model_dump_json(indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise CacheError(f"Failed to write schema cache file: {exc}") from exc
    logger.info("Wrote schema cache with %d tables to %s", snapshot.table_count, cache_path)
    return cached


def load_schema_cache(cache_path: Path) -> CachedSchemaSnapshot:
    """Load and validate a cached schema file."""
    if not cache_path.exists():
        raise CacheError(f"Schema cache file does not exist: {cache_path}")

    try:
        raw = cache_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CacheError(f"Failed to read schema cache file: {exc}") from exc

    try:
        cached = CachedSchemaSnapshot.model_validate_json(raw)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'root'}: {err['msg']}"
            for err in exc.errors()
        )
        raise CacheError(f"Schema cache file is invalid: {problems}") from exc

    if cached.cache_format_version != CACHE_FORMAT_VERSION:
        raise CacheError(
            "Unsupported schema cache format version: "
            f"{cached.cache_format_version!r}. Expected {CACHE_FORMAT_VERSION!r}."
        )
    return cached


def refresh_schema_cache(
    postgres_dsn: str,
    cache_path: Path,
    default_schema: str = "public",
    include_schemas: list[str] | None = None,
) -> CachedSchemaSnapshot:
    """Introspect PostgreSQL and overwrite the local cache."""
    from query_copilot.db.introspect import IntrospectionError, introspect_schema

    try:
        snapshot = introspect_schema(
            postgres_dsn=postgres_dsn,
            default_schema=default_schema,
            include_schemas=include_schemas,
        )
    except IntrospectionError as exc:
        raise CacheError(str(exc)) from exc

    return save_schema_cache(cache_path=cache_path, snapshot=snapshot)
