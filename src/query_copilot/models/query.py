"""Candidate, optimized and final processed query types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from query_copilot.models.analysis import Entity, SchemaContext
from query_copilot.models.classification import QueryClassification
from query_copilot.models.decomposition import QueryDecomposition
from query_copilot.models.validation import SelfCorrectionAttempt, ValidationResult

FALLBACK_SQL = "SELECT 'Error processing query' AS Message"
FALLBACK_CONFIDENCE = 0.1


class ErrorKind(str, Enum):
    GENERATION_FAILURE = "generation_failure"
    VALIDATION_SUBSYSTEM_FAILURE = "validation_subsystem_failure"
    TERMINAL_INVALID_SQL = "terminal_invalid_sql"
    DECOMPOSITION_FAILURE = "decomposition_failure"
    PIPELINE_FAILURE = "pipeline_failure"


@dataclass(frozen=True)
class SqlCandidate:
    sql: str
    explanation: str = ""
    confidence: float | None = None
    source: str = "primary"


@dataclass(frozen=True)
class OptimizedQuery:
    """Selected candidate with its heuristic score and runners-up."""

    candidate: SqlCandidate
    confidence_score: float
    alternatives: tuple[SqlCandidate, ...] = ()

    @property
    def sql(self) -> str:
        return self.candidate.sql

    @property
    def explanation(self) -> str:
        return self.candidate.explanation


@dataclass(frozen=True)
class ProcessedQuery:
    """Final output of one ``process_query`` call."""

    sql: str
    explanation: str
    confidence: float
    alternative_queries: tuple[str, ...] = ()
    semantic_entities: tuple[Entity, ...] = ()
    classification: QueryClassification | None = None
    used_schema: SchemaContext | None = None
    decomposition: QueryDecomposition | None = None
    validation: ValidationResult | None = None
    correction: SelfCorrectionAttempt | None = None
    warnings: tuple[str, ...] = ()
    error_kind: ErrorKind | None = None

    @property
    def is_degraded(self) -> bool:
        return self.error_kind in (
            ErrorKind.GENERATION_FAILURE,
            ErrorKind.PIPELINE_FAILURE,
        )
