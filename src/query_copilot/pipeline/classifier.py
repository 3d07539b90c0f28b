"""Deterministic keyword classifier for natural-language queries."""

from __future__ import annotations

import re

from query_copilot.models.analysis import SchemaContext
from query_copilot.models.classification import (
    QueryCategory,
    QueryClassification,
    QueryComplexity,
)
from query_copilot.schema.retrieval import identifier_tokens, tokenize


def _vocabulary(*phrases: str) -> re.Pattern[str]:
    return re.compile(
        r"\b(?:" + "|".join(re.escape(phrase) for phrase in phrases) + r")\b",
        re.IGNORECASE,
    )


AGGREGATION_WORDS = _vocabulary(
    "count", "sum", "avg", "average", "mean", "total", "max", "maximum",
    "min", "minimum", "how many",
)
TREND_WORDS = _vocabulary(
    "trend", "trends", "over time", "growth", "change", "progression",
    "monthly", "weekly", "daily", "yearly",
)
COMPARISON_WORDS = _vocabulary("compare", "compared", "comparison", "versus", "vs", "difference", "against")
RANKING_WORDS = _vocabulary("top", "bottom", "highest", "lowest", "best", "worst", "rank", "ranking")
GROUPING_WORDS = _vocabulary("by", "per", "group", "grouped", "breakdown", "each")
TIME_WINDOW_WORDS = _vocabulary(
    "last", "past", "since", "between", "before", "after", "during", "recent", "ago",
)
CONNECTIVE_WORDS = _vocabulary("and", "or")
JOIN_PHRASES = _vocabulary(
    "join", "joined", "along with", "together with", "combined with",
    "with their", "with its", "across",
)
NESTED_PHRASES = _vocabulary(
    "that have", "who have", "which have", "who never", "that never",
    "than average", "than the average", "not in", "excluding those",
)

LOW_MAX_POINTS = 3
MEDIUM_MAX_POINTS = 6


class QueryClassifier:
    """Pure, total classifier: never raises and never calls out.

    Complexity is a point score: 3 per required join, 2 each for ranking,
    aggregation and trend/comparison vocabulary, 1 for grouping, 1 for a
    time window, 1 per ``and``/``or`` and 3 for nested-question phrasing.
    """

    def classify(
        self, query: str, schema_context: SchemaContext | None = None
    ) -> QueryClassification:
        text = (query or "").strip()
        if not text:
            return QueryClassification(
                category=QueryCategory.UNKNOWN,
                complexity=QueryComplexity.MEDIUM,
                required_joins=0,
                confidence_score=0.0,
            )

        category = self._category(text)
        predicted_tables = self._referenced_tables(text, schema_context)
        required_joins = max(
            len(predicted_tables) - 1,
            len(JOIN_PHRASES.findall(text)),
            0,
        )
        points = self._complexity_points(text, required_joins)
        if points <= LOW_MAX_POINTS:
            complexity = QueryComplexity.LOW
        elif points <= MEDIUM_MAX_POINTS:
            complexity = QueryComplexity.MEDIUM
        else:
            complexity = QueryComplexity.HIGH

        confidence = 0.5
        if category is not QueryCategory.LOOKUP:
            confidence += 0.2
        if predicted_tables:
            confidence += 0.2
        if len(text.split()) > 3:
            confidence += 0.05

        return QueryClassification(
            category=category,
            complexity=complexity,
            required_joins=required_joins,
            confidence_score=round(min(confidence, 1.0), 4),
            predicted_tables=predicted_tables,
            complexity_score=points,
        )

    @staticmethod
    def _category(text: str) -> QueryCategory:
        if AGGREGATION_WORDS.search(text):
            return QueryCategory.AGGREGATION
        if TREND_WORDS.search(text):
            return QueryCategory.TREND
        if COMPARISON_WORDS.search(text):
            return QueryCategory.COMPARISON
        return QueryCategory.LOOKUP

    @staticmethod
    def _referenced_tables(
        text: str, schema_context: SchemaContext | None
    ) -> tuple[str, ...]:
        if schema_context is None or schema_context.is_empty:
            return ()
        words = tokenize(text)
        matched = []
        for table in schema_context.relevant_tables:
            name_tokens = identifier_tokens(table.name)
            if name_tokens and name_tokens <= words:
                matched.append(table.name)
        return tuple(matched)

    @staticmethod
    def _complexity_points(text: str, required_joins: int) -> int:
        points = 3 * required_joins
        if RANKING_WORDS.search(text):
            points += 2
        if AGGREGATION_WORDS.search(text):
            points += 2
        if TREND_WORDS.search(text) or COMPARISON_WORDS.search(text):
            points += 2
        if GROUPING_WORDS.search(text):
            points += 1
        if TIME_WINDOW_WORDS.search(text):
            points += 1
        points += len(CONNECTIVE_WORDS.findall(text))
        if NESTED_PHRASES.search(text):
            points += 3
        return points
