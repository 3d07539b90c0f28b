"""Query classification result types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class QueryCategory(str, Enum):
    UNKNOWN = "unknown"
    LOOKUP = "lookup"
    AGGREGATION = "aggregation"
    TREND = "trend"
    COMPARISON = "comparison"


class QueryComplexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class QueryClassification:
    """Category, complexity tier and join estimate for an NL query."""

    category: QueryCategory
    complexity: QueryComplexity
    required_joins: int = 0
    confidence_score: float = 0.0
    predicted_tables: tuple[str, ...] = ()
    complexity_score: int = 0
