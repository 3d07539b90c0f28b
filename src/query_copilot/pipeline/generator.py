"""Candidate SQL generation and heuristic selection."""

from __future__ import annotations

import logging
import re
from dataclasses import replace

from query_copilot.llm.base import CompletionClient, CompletionOptions
from query_copilot.models.analysis import QueryIntent, SchemaContext, SemanticAnalysis
from query_copilot.models.decomposition import QueryDecomposition
from query_copilot.models.query import OptimizedQuery, SqlCandidate
from query_copilot.prompts.sql_generation import (
    PromptBuildError,
    PromptBundle,
    PromptVariant,
    build_candidate_prompt,
    parse_sql_response,
)
from query_copilot.sql.extract import code_only, normalize_sql
from query_copilot.sql.parser import SQLParseError, parse_sql
from query_copilot.sql.rules import DESTRUCTIVE_KEYWORDS, SELECT_STAR, WHERE_CLAUSE

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 3
SIMPLIFY_ENTITY_THRESHOLD = 5

_AGGREGATE_CALL = re.compile(r"\b(?:COUNT|SUM|AVG|MIN|MAX)\s*\(", re.IGNORECASE)
_GROUP_BY = re.compile(r"\bGROUP\s+BY\b", re.IGNORECASE)
_ORDER_BY = re.compile(r"\bORDER\s+BY\b", re.IGNORECASE)
_SELECT = re.compile(r"\bSELECT\b", re.IGNORECASE)
_JOIN = re.compile(r"\bJOIN\b", re.IGNORECASE)

INTENT_CLAUSES: dict[QueryIntent, tuple[re.Pattern[str], ...]] = {
    QueryIntent.AGGREGATION: (_AGGREGATE_CALL,),
    QueryIntent.TREND: (_GROUP_BY, _ORDER_BY),
    QueryIntent.COMPARISON: (_ORDER_BY,),
    QueryIntent.FILTERING: (WHERE_CLAUSE,),
}


class GenerationError(RuntimeError):
    """Raised when no usable primary SQL candidate could be generated."""


def score_candidate(
    candidate: SqlCandidate, intent: QueryIntent, dialect: str = "postgres"
) -> float:
    """Heuristic quality in [0, 1], averaged with the model's own confidence."""
    code = code_only(candidate.sql)
    if DESTRUCTIVE_KEYWORDS.search(code):
        return 0.0

    score = 0.5
    required = INTENT_CLAUSES.get(intent, ())
    if required and all(pattern.search(code) for pattern in required):
        score += 0.2
    if WHERE_CLAUSE.search(code):
        score += 0.1
    if not SELECT_STAR.search(code):
        score += 0.1
    try:
        parse_sql(candidate.sql, dialect=dialect)
    except SQLParseError:
        pass
    else:
        score += 0.1
    if len(_SELECT.findall(code)) > 3 or len(_JOIN.findall(code)) > 4:
        score -= 0.1

    score = min(1.0, max(0.0, score))
    if candidate.confidence is not None:
        score = (score + candidate.confidence) / 2
    return round(min(1.0, max(0.0, score)), 4)


class CandidateGenerator:
    """Ask the completion client for candidates and keep the best one.

    The primary candidate must succeed; variant candidates are best effort.
    """

    def __init__(
        self,
        client: CompletionClient,
        *,
        max_candidates: int = 3,
        dialect: str = "postgres",
    ) -> None:
        self._client = client
        self._max_candidates = max(1, max_candidates)
        self._dialect = dialect

    async def generate(
        self,
        analysis: SemanticAnalysis,
        context: SchemaContext,
        decomposition: QueryDecomposition | None = None,
    ) -> OptimizedQuery:
        try:
            primary_bundle, *variant_bundles = self._plan(analysis, context, decomposition)
        except PromptBuildError as exc:
            raise GenerationError(str(exc)) from exc

        candidates = [await self._request(primary_bundle)]
        for bundle in variant_bundles:
            try:
                candidates.append(await self._request(bundle))
            except GenerationError as exc:
                logger.warning("Skipping %s candidate: %s", bundle.variant.value, exc)

        unique: list[SqlCandidate] = []
        seen: set[str] = set()
        for candidate in candidates:
            key = normalize_sql(candidate.sql)
            if key not in seen:
                seen.add(key)
                unique.append(candidate)

        ranked = sorted(
            (
                (score_candidate(candidate, analysis.intent, self._dialect), index, candidate)
                for index, candidate in enumerate(unique)
            ),
            key=lambda item: (-item[0], item[1]),
        )
        best_score, _, best = ranked[0]
        alternatives = tuple(
            replace(candidate, confidence=score)
            for score, _, candidate in ranked[1 : MAX_ALTERNATIVES + 1]
        )
        logger.info(
            "Selected %s candidate (score %.2f) from %d unique candidate(s)",
            best.source,
            best_score,
            len(unique),
        )
        return OptimizedQuery(
            candidate=replace(best, confidence=best_score),
            confidence_score=best_score,
            alternatives=alternatives,
        )

    def _plan(
        self,
        analysis: SemanticAnalysis,
        context: SchemaContext,
        decomposition: QueryDecomposition | None,
    ) -> list[PromptBundle]:
        variants = [PromptVariant.PRIMARY]
        if analysis.intent is QueryIntent.AGGREGATION:
            variants.append(PromptVariant.AGGREGATION)
        elif analysis.intent is QueryIntent.TREND:
            variants.append(PromptVariant.TREND)
        if len(analysis.entities) > SIMPLIFY_ENTITY_THRESHOLD:
            variants.append(PromptVariant.SIMPLIFIED)
        return [
            build_candidate_prompt(
                analysis,
                context,
                decomposition,
                variant=variant,
                dialect=self._dialect,
            )
            for variant in variants[: self._max_candidates]
        ]

    async def _request(self, bundle: PromptBundle) -> SqlCandidate:
        options = CompletionOptions(
            system_prompt=bundle.system_prompt,
            temperature=0.1 if bundle.variant is PromptVariant.PRIMARY else 0.3,
        )
        try:
            text = await self._client.complete(bundle.user_prompt, options)
        except Exception as exc:
            raise GenerationError(
                f"{bundle.variant.value} candidate request failed: {exc}"
            ) from exc

        payload = parse_sql_response(text)
        if payload is None:
            raise GenerationError(
                f"{bundle.variant.value} candidate response contained no SQL."
            )
        return SqlCandidate(
            sql=payload.sql,
            explanation=payload.explanation or f"Generated {bundle.variant.value} query.",
            confidence=payload.confidence,
            source=bundle.variant.value,
        )
