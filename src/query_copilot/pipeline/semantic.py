"""Keyword and pattern based semantic analyzer."""

from __future__ import annotations

import logging
import re

from query_copilot.models.analysis import (
    Entity,
    EntityType,
    QueryIntent,
    SemanticAnalysis,
)

logger = logging.getLogger(__name__)

ENTITY_PATTERNS: dict[EntityType, tuple[str, ...]] = {
    EntityType.AGGREGATION: ("sum", "count", "average", "avg", "total", "max", "min", "group"),
    EntityType.DATE_RANGE: (
        "last", "past", "recent", "since", "until", "between",
        "month", "year", "day", "week", "today", "yesterday",
    ),
    EntityType.CONDITION: ("where", "filter", "only", "exclude", "include", "greater", "less", "equal"),
    EntityType.SORT: ("top", "bottom", "highest", "lowest", "best", "worst", "order", "sort"),
    EntityType.LIMIT: ("top", "first", "last", "limit", "maximum", "minimum"),
}

# Evaluated in order; the first matching rule wins.
INTENT_RULES: tuple[tuple[QueryIntent, tuple[str, ...]], ...] = (
    (QueryIntent.AGGREGATION, ("sum", "total", "count", "average", "avg", "group", "how many")),
    (QueryIntent.TREND, ("trend", "over time", "growth", "change", "monthly", "yearly", "weekly", "daily")),
    (QueryIntent.COMPARISON, ("compare", "vs", "versus", "top", "best", "highest", "lowest", "worst")),
    (QueryIntent.FILTERING, ("where", "filter", "only", "specific", "between")),
)

STOP_WORDS = frozenset(
    "the and or but in on at to for of with by is are was were be been have has had "
    "do does did will would could should may might can a an this that these those "
    "me my show give list get find what which who".split()
)

_NUMBER = re.compile(r"\b\d+(?:\.\d+)?\b")
_DATES = (
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d{1,2}-\d{1,2}-\d{4}\b"),
)
_WORD = re.compile(r"[a-z0-9_]+")


def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(phrase)}\b", re.IGNORECASE)


def extract_entities(query: str) -> tuple[Entity, ...]:
    entities: list[Entity] = []
    for entity_type, words in ENTITY_PATTERNS.items():
        for word in words:
            for match in _phrase_pattern(word).finditer(query):
                entities.append(Entity(match.group(), entity_type, match.start(), match.end()))

    date_spans: list[tuple[int, int]] = []
    for pattern in _DATES:
        for match in pattern.finditer(query):
            date_spans.append(match.span())
            entities.append(Entity(match.group(), EntityType.DATE_RANGE, *match.span()))

    for match in _NUMBER.finditer(query):
        if any(start <= match.start() < end for start, end in date_spans):
            continue
        entities.append(Entity(match.group(), EntityType.NUMBER, *match.span()))

    entities.sort(key=lambda item: (item.start, item.type.value))
    return tuple(entities)


def classify_intent(query: str) -> QueryIntent:
    for intent, phrases in INTENT_RULES:
        if any(_phrase_pattern(phrase).search(query) for phrase in phrases):
            return intent
    return QueryIntent.GENERAL


def extract_keywords(query: str) -> tuple[str, ...]:
    words = _WORD.findall(query.lower())
    keywords = [word for word in words if len(word) > 2 and word not in STOP_WORDS]
    return tuple(dict.fromkeys(keywords))


def score_confidence(
    entities: tuple[Entity, ...], intent: QueryIntent, keywords: tuple[str, ...]
) -> float:
    score = 0.5
    score += min(0.3, 0.05 * len(entities))
    if intent is not QueryIntent.GENERAL:
        score += 0.2
    score += min(0.2, 0.02 * len(keywords))
    return round(min(1.0, score), 4)


class HeuristicSemanticAnalyzer:
    """Default semantic analyzer; deterministic and never raises on input."""

    async def analyze(self, text: str) -> SemanticAnalysis:
        query = (text or "").strip()
        if not query:
            return SemanticAnalysis(query="", confidence=0.0)

        entities = extract_entities(query)
        intent = classify_intent(query)
        keywords = extract_keywords(query)
        analysis = SemanticAnalysis(
            query=query,
            entities=entities,
            intent=intent,
            confidence=score_confidence(entities, intent, keywords),
            keywords=keywords,
        )
        logger.debug(
            "Semantic analysis: intent=%s entities=%d confidence=%.2f",
            intent.value,
            len(entities),
            analysis.confidence,
        )
        return analysis
