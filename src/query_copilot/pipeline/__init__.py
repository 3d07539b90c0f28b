"""Query pipeline components and the default processor factory."""

from __future__ import annotations

from query_copilot.config import Settings
from query_copilot.llm import CompletionClient, create_completion_client
from query_copilot.pipeline.cache import InMemoryQueryCache, QueryCache, cache_key
from query_copilot.pipeline.classifier import QueryClassifier
from query_copilot.pipeline.collaborators import (
    SchemaContextResolver,
    SchemaProvider,
    SecurityValidator,
    SemanticAnalyzer,
)
from query_copilot.pipeline.correction import (
    MAX_CORRECTION_DEPTH,
    CorrectionOutcome,
    SelfCorrector,
)
from query_copilot.pipeline.decomposer import QueryDecomposer
from query_copilot.pipeline.generator import CandidateGenerator, GenerationError
from query_copilot.pipeline.processor import QueryProcessor
from query_copilot.pipeline.semantic import HeuristicSemanticAnalyzer
from query_copilot.pipeline.validator import LayeredValidator
from query_copilot.schema.provider import CachedSchemaProvider
from query_copilot.schema.retrieval import LexicalSchemaResolver


def create_validator(settings: Settings) -> LayeredValidator:
    return LayeredValidator(
        validity_threshold=settings.validity_threshold,
        correction_floor=settings.correction_floor,
        large_tables=settings.large_tables,
        dialect=settings.sql_dialect,
    )


def create_query_processor(
    settings: Settings,
    *,
    client: CompletionClient | None = None,
    schema_provider: SchemaProvider | None = None,
    cache: QueryCache | None = None,
) -> QueryProcessor:
    """Wire the default collaborators for current settings.

    The completion client defaults to the OpenAI adapter and the schema
    provider to the JSON schema cache at ``SCHEMA_CACHE_PATH``.
    """
    if client is None:
        client = create_completion_client(settings)
    if schema_provider is None:
        schema_provider = CachedSchemaProvider(settings.schema_cache_path)
    if cache is None:
        cache = InMemoryQueryCache(
            max_entries=settings.cache_max_entries,
            ttl_seconds=settings.cache_ttl_seconds,
        )

    validator = create_validator(settings)
    return QueryProcessor(
        analyzer=HeuristicSemanticAnalyzer(),
        resolver=LexicalSchemaResolver(),
        schema_provider=schema_provider,
        generator=CandidateGenerator(
            client,
            max_candidates=settings.max_candidates,
            dialect=settings.sql_dialect,
        ),
        validator=validator,
        corrector=SelfCorrector(client, validator, dialect=settings.sql_dialect),
        cache=cache,
    )


__all__ = [
    "MAX_CORRECTION_DEPTH",
    "CandidateGenerator",
    "CorrectionOutcome",
    "GenerationError",
    "HeuristicSemanticAnalyzer",
    "InMemoryQueryCache",
    "LayeredValidator",
    "QueryCache",
    "QueryClassifier",
    "QueryDecomposer",
    "QueryProcessor",
    "SchemaContextResolver",
    "SchemaProvider",
    "SecurityValidator",
    "SelfCorrector",
    "SemanticAnalyzer",
    "cache_key",
    "create_query_processor",
    "create_validator",
]
