import pytest

from query_copilot.models.analysis import EntityType, QueryIntent
from query_copilot.pipeline.semantic import (
    HeuristicSemanticAnalyzer,
    classify_intent,
    extract_entities,
    extract_keywords,
)


def test_dates_are_not_counted_as_numbers():
    entities = extract_entities("Total deposits by month since 2024-01-01")

    assert ("2024-01-01", EntityType.DATE_RANGE) in [(e.text, e.type) for e in entities]
    assert not [e for e in entities if e.type is EntityType.NUMBER]
    assert [e.start for e in entities] == sorted(e.start for e in entities)


@pytest.mark.parametrize(
    ("query", "intent"),
    [
        ("Total deposits by month", QueryIntent.AGGREGATION),
        ("Deposit growth over time", QueryIntent.TREND),
        ("Top 10 players", QueryIntent.COMPARISON),
        ("Players with status only blocked", QueryIntent.FILTERING),
        ("Show players", QueryIntent.GENERAL),
    ],
)
def test_first_matching_intent_wins(query, intent):
    assert classify_intent(query) is intent


def test_keywords_skip_stop_words():
    assert extract_keywords("Show me the top players and the top games") == (
        "top",
        "players",
        "games",
    )


@pytest.mark.asyncio
async def test_analyzer_scores_confidence():
    analysis = await HeuristicSemanticAnalyzer().analyze("Top 10 players")

    # top is both a sort and a limit entity, plus the number
    assert len(analysis.entities) == 3
    assert analysis.intent is QueryIntent.COMPARISON
    assert analysis.keywords == ("top", "players")
    # 0.5 + 3 * 0.05 + 0.2 + 2 * 0.02
    assert analysis.confidence == pytest.approx(0.89)


@pytest.mark.asyncio
async def test_analyzer_handles_empty_input():
    analysis = await HeuristicSemanticAnalyzer().analyze("   ")

    assert analysis.entities == ()
    assert analysis.intent is QueryIntent.GENERAL
    assert analysis.confidence == 0.0
