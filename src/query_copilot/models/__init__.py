"""Domain types shared across the query pipeline."""

from query_copilot.models.analysis import (
    ColumnRef,
    Entity,
    EntityType,
    QueryIntent,
    RelevantTable,
    SchemaContext,
    SemanticAnalysis,
)
from query_copilot.models.classification import (
    QueryCategory,
    QueryClassification,
    QueryComplexity,
)
from query_copilot.models.decomposition import (
    QueryComponent,
    QueryComponentType,
    QueryDecomposition,
)
from query_copilot.models.query import (
    FALLBACK_CONFIDENCE,
    FALLBACK_SQL,
    ErrorKind,
    OptimizedQuery,
    ProcessedQuery,
    SqlCandidate,
)
from query_copilot.models.validation import (
    BusinessLogicResult,
    ColumnValidation,
    JoinValidation,
    SchemaComplianceResult,
    SecurityResult,
    SelfCorrectionAttempt,
    SemanticAlignmentResult,
    TableValidation,
    ValidationResult,
    ValidationStage,
    ValidationVerdict,
)

__all__ = [
    "BusinessLogicResult",
    "ColumnRef",
    "ColumnValidation",
    "Entity",
    "EntityType",
    "ErrorKind",
    "FALLBACK_CONFIDENCE",
    "FALLBACK_SQL",
    "JoinValidation",
    "OptimizedQuery",
    "ProcessedQuery",
    "QueryCategory",
    "QueryClassification",
    "QueryComplexity",
    "QueryComponent",
    "QueryComponentType",
    "QueryDecomposition",
    "QueryIntent",
    "RelevantTable",
    "SchemaComplianceResult",
    "SchemaContext",
    "SecurityResult",
    "SelfCorrectionAttempt",
    "SemanticAlignmentResult",
    "SemanticAnalysis",
    "SqlCandidate",
    "TableValidation",
    "ValidationResult",
    "ValidationStage",
    "ValidationVerdict",
]
