import json

import pytest

from query_copilot.schema.cache import (
    CACHE_FORMAT_VERSION,
    CacheError,
    load_schema_cache,
    save_schema_cache,
)
from query_copilot.schema.provider import CachedSchemaProvider


def test_saved_cache_loads_back(tmp_path, players_snapshot):
    path = tmp_path / "nested" / "schema.json"

    saved = save_schema_cache(path, players_snapshot)
    loaded = load_schema_cache(path)

    assert loaded.snapshot == players_snapshot
    assert loaded.cache_format_version == CACHE_FORMAT_VERSION
    assert loaded.generated_at == saved.generated_at
    assert loaded.snapshot.find_table("deposits").foreign_keys[0].ref_fqn == "public.Players"


def test_missing_cache_file(tmp_path):
    with pytest.raises(CacheError, match="does not exist"):
        load_schema_cache(tmp_path / "absent.json")


def test_invalid_cache_file(tmp_path):
    path = tmp_path / "schema.json"
    path.write_text('{"snapshot": {}}', encoding="utf-8")

    with pytest.raises(CacheError, match="invalid"):
        load_schema_cache(path)


def test_unsupported_cache_version(tmp_path, players_snapshot):
    path = tmp_path / "schema.json"
    save_schema_cache(path, players_snapshot)
    payload = json.loads(path.read_text(encoding="utf-8"))
    payload["cache_format_version"] = "0.1"
    path.write_text(json.dumps(payload), encoding="utf-8")

    with pytest.raises(CacheError, match="Unsupported"):
        load_schema_cache(path)


@pytest.mark.asyncio
async def test_cached_provider_reads_snapshot(schema_cache_file, players_snapshot):
    snapshot = await CachedSchemaProvider(schema_cache_file).get_schema()

    assert snapshot.table_count == 2
    assert snapshot == players_snapshot
