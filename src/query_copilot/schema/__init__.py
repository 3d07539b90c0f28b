"""Schema metadata, cache and retrieval helpers."""

from query_copilot.schema.cache import (
    CACHE_FORMAT_VERSION,
    CacheError,
    CachedSchemaSnapshot,
    load_schema_cache,
    refresh_schema_cache,
    save_schema_cache,
)
from query_copilot.schema.models import (
    ColumnInfo,
    ForeignKeyInfo,
    SchemaSnapshot,
    TableInfo,
)
from query_copilot.schema.provider import CachedSchemaProvider, StaticSchemaProvider
from query_copilot.schema.retrieval import (
    LexicalSchemaResolver,
    RetrievalError,
    RetrievalResult,
    RetrievedTable,
    retrieve_relevant_tables,
    to_schema_context,
)

__all__ = [
    "CACHE_FORMAT_VERSION",
    "CacheError",
    "CachedSchemaProvider",
    "CachedSchemaSnapshot",
    "ColumnInfo",
    "ForeignKeyInfo",
    "LexicalSchemaResolver",
    "RetrievalError",
    "RetrievalResult",
    "RetrievedTable",
    "SchemaSnapshot",
    "StaticSchemaProvider",
    "TableInfo",
    "load_schema_cache",
    "refresh_schema_cache",
    "retrieve_relevant_tables",
    "save_schema_cache",
    "to_schema_context",
]
