"""Top-level orchestration from a natural-language question to validated SQL."""

from __future__ import annotations

import logging
import time

from query_copilot.models.analysis import SchemaContext
from query_copilot.models.decomposition import QueryDecomposition
from query_copilot.models.query import (
    FALLBACK_CONFIDENCE,
    FALLBACK_SQL,
    ErrorKind,
    OptimizedQuery,
    ProcessedQuery,
)
from query_copilot.models.validation import SelfCorrectionAttempt, ValidationResult
from query_copilot.pipeline.cache import QueryCache, cache_key
from query_copilot.pipeline.classifier import QueryClassifier
from query_copilot.pipeline.collaborators import (
    SchemaContextResolver,
    SchemaProvider,
    SemanticAnalyzer,
)
from query_copilot.pipeline.correction import CorrectionOutcome, SelfCorrector
from query_copilot.pipeline.decomposer import QueryDecomposer
from query_copilot.pipeline.generator import CandidateGenerator, GenerationError
from query_copilot.pipeline.validator import LayeredValidator
from query_copilot.schema.models import SchemaSnapshot

logger = logging.getLogger(__name__)


def build_explanation(
    optimized: OptimizedQuery,
    confidence: float,
    correction: SelfCorrectionAttempt | None = None,
) -> str:
    lines = [f"Selected query based on: {optimized.explanation}"]
    if correction is not None and correction.was_successful:
        lines.append(
            f"Revised after validation: {correction.explanation or correction.correction_reason}"
        )
    lines.append(f"Confidence Score: {confidence:.2f}")
    return "\n".join(lines)


class QueryProcessor:
    """Run one question through analysis, generation, validation and correction.

    ``process_query`` never raises apart from ``asyncio.CancelledError``;
    failures come back as a degraded ``ProcessedQuery`` whose ``error_kind``
    names what went wrong.
    """

    def __init__(
        self,
        analyzer: SemanticAnalyzer,
        resolver: SchemaContextResolver,
        schema_provider: SchemaProvider,
        generator: CandidateGenerator,
        validator: LayeredValidator,
        corrector: SelfCorrector,
        classifier: QueryClassifier | None = None,
        decomposer: QueryDecomposer | None = None,
        cache: QueryCache | None = None,
    ) -> None:
        self._analyzer = analyzer
        self._resolver = resolver
        self._schema_provider = schema_provider
        self._generator = generator
        self._validator = validator
        self._corrector = corrector
        self._classifier = classifier or QueryClassifier()
        self._decomposer = decomposer or QueryDecomposer()
        self._cache = cache

    async def process_query(self, nl_query: str, user_id: str | None = None) -> ProcessedQuery:
        started = time.perf_counter()
        key = cache_key(nl_query or "")
        cached = await self._cache_get(key)
        if cached is not None:
            logger.info("Returning cached result for user %s", user_id or "-")
            return cached

        try:
            processed = await self._run(nl_query, user_id)
        except GenerationError as exc:
            logger.error("SQL generation failed: %s", exc, exc_info=True)
            return self._degraded(
                ErrorKind.GENERATION_FAILURE,
                f"Unable to generate SQL for this question: {exc}",
            )
        except Exception as exc:
            logger.error("Query processing failed: %s", exc, exc_info=True)
            return self._degraded(
                ErrorKind.PIPELINE_FAILURE,
                f"Query processing failed: {exc}",
            )

        # Only clean, valid results are reused.
        if processed.error_kind is None:
            await self._cache_set(key, processed)
        logger.info(
            "Processed query for user %s in %.2fs (confidence %.2f, error_kind=%s)",
            user_id or "-",
            time.perf_counter() - started,
            processed.confidence,
            processed.error_kind.value if processed.error_kind else "none",
        )
        return processed

    async def validate_sql(
        self,
        sql: str,
        original_query: str,
        context: SchemaContext | None = None,
        user_id: str | None = None,
        *,
        self_correct: bool = True,
    ) -> ValidationResult:
        """Validate caller-supplied SQL, correcting it once when that is allowed."""
        schema = await self._load_schema_for_validation()
        result = await self._validator.validate(
            sql, original_query, context, user_id, schema=schema
        )
        if self_correct and result.can_self_correct:
            outcome = await self._corrector.correct(
                result, context, schema=schema, user_id=user_id
            )
            result = outcome.result
        return result

    async def _run(self, nl_query: str, user_id: str | None) -> ProcessedQuery:
        analysis = await self._analyzer.analyze(nl_query)
        schema = await self._schema_provider.get_schema()
        context = await self._resolver.resolve(nl_query, schema)
        logger.debug(
            "Resolved %d relevant table(s): %s",
            len(context.relevant_tables),
            ", ".join(context.table_names) or "(none)",
        )

        classification = self._classifier.classify(nl_query, context)
        decomposition = self._decomposer.decompose(nl_query, context, classification)
        optimized = await self._generator.generate(analysis, context, decomposition)

        validation = await self._validator.validate(
            optimized.sql, nl_query, context, user_id, schema=schema
        )
        outcome = CorrectionOutcome(result=validation)
        if validation.can_self_correct:
            outcome = await self._corrector.correct(
                validation, context, schema=schema, user_id=user_id
            )
        final = outcome.result

        confidence = optimized.confidence_score
        if not final.is_valid:
            confidence = round(min(confidence, final.overall_score), 4)

        return ProcessedQuery(
            sql=final.sql,
            explanation=build_explanation(optimized, confidence, outcome.attempt),
            confidence=confidence,
            alternative_queries=tuple(item.sql for item in optimized.alternatives),
            semantic_entities=analysis.entities,
            classification=classification,
            used_schema=context,
            decomposition=decomposition,
            validation=final,
            correction=outcome.attempt,
            warnings=self._warnings(final, decomposition),
            error_kind=self._error_kind(final, decomposition),
        )

    async def _cache_get(self, key: str) -> ProcessedQuery | None:
        if self._cache is None:
            return None
        try:
            return await self._cache.get(key)
        except Exception as exc:
            logger.warning("Query cache lookup failed; processing uncached: %s", exc)
            return None

    async def _cache_set(self, key: str, processed: ProcessedQuery) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(key, processed)
        except Exception as exc:
            logger.warning("Query cache store failed; result not cached: %s", exc)

    async def _load_schema_for_validation(self) -> SchemaSnapshot | None:
        try:
            return await self._schema_provider.get_schema()
        except Exception as exc:
            logger.warning("Schema unavailable for validation; checking names only: %s", exc)
            return None

    @staticmethod
    def _warnings(
        validation: ValidationResult, decomposition: QueryDecomposition
    ) -> tuple[str, ...]:
        items = list(validation.warnings)
        if validation.is_self_corrected:
            items.append("Query was self-corrected after validation.")
        for stage in validation.degraded_stages:
            items.append(f"Validation stage '{stage}' was unavailable; a fallback result was used.")
        if decomposition.is_fallback:
            items.append("Query decomposition failed; the question was treated as one step.")
        if not validation.is_valid:
            items.extend(validation.issues)
        return tuple(dict.fromkeys(items))

    @staticmethod
    def _error_kind(
        validation: ValidationResult, decomposition: QueryDecomposition
    ) -> ErrorKind | None:
        if not validation.is_valid:
            return ErrorKind.TERMINAL_INVALID_SQL
        if validation.degraded_stages:
            return ErrorKind.VALIDATION_SUBSYSTEM_FAILURE
        if decomposition.is_fallback:
            return ErrorKind.DECOMPOSITION_FAILURE
        return None

    @staticmethod
    def _degraded(error_kind: ErrorKind, explanation: str) -> ProcessedQuery:
        return ProcessedQuery(
            sql=FALLBACK_SQL,
            explanation=explanation,
            confidence=FALLBACK_CONFIDENCE,
            warnings=(explanation,),
            error_kind=error_kind,
        )
