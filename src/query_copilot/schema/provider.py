"""Schema providers consumed by the query pipeline."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from query_copilot.schema.cache import load_schema_cache
from query_copilot.schema.models import SchemaSnapshot


@dataclass(frozen=True)
class StaticSchemaProvider:
    """Serve a snapshot that is already in memory."""

    snapshot: SchemaSnapshot

    async def get_schema(self) -> SchemaSnapshot:
        return self.snapshot


@dataclass(frozen=True)
class CachedSchemaProvider:
    """Read the snapshot from the JSON schema cache on every request.

    Raises ``CacheError`` when the file is missing or invalid.
    """

    cache_path: Path

    async def get_schema(self) -> SchemaSnapshot:
        cached = await asyncio.to_thread(load_schema_cache, self.cache_path)
        return cached.snapshot
