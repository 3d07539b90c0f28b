import json

import pytest

from query_copilot.llm.base import LLMError
from query_copilot.models.analysis import Entity, EntityType, QueryIntent, SemanticAnalysis
from query_copilot.models.query import SqlCandidate
from query_copilot.pipeline.generator import CandidateGenerator, GenerationError, score_candidate


def _analysis(query, intent=QueryIntent.GENERAL, entities=()):
    return SemanticAnalysis(query=query, intent=intent, confidence=0.7, entities=entities)


@pytest.mark.asyncio
async def test_single_candidate_is_scored_with_model_confidence(make_client, players_context):
    client = make_client(
        json.dumps(
            {
                "sql": "SELECT PlayerID, Status FROM Players WHERE Status = 'blocked';",
                "explanation": "Blocked players.",
                "confidence": 0.8,
            }
        )
    )

    optimized = await CandidateGenerator(client).generate(
        _analysis("Show blocked players", QueryIntent.FILTERING), players_context
    )

    assert optimized.sql == "SELECT PlayerID, Status FROM Players WHERE Status = 'blocked'"
    assert optimized.explanation == "Blocked players."
    # heuristic 1.0 averaged with the model's 0.8
    assert optimized.confidence_score == pytest.approx(0.9)
    assert optimized.alternatives == ()
    assert len(client.calls) == 1
    prompt = client.prompts[0]
    assert "Show blocked players" in prompt
    assert "- Players: PlayerID (integer), Status (text), CreatedAt (timestamp)" in prompt


@pytest.mark.asyncio
async def test_aggregation_variant_can_win(make_client, players_deposits_context):
    client = make_client(
        "SELECT * FROM Deposits",
        "```sql\nSELECT COUNT(PlayerID) FROM Deposits\n```",
    )

    optimized = await CandidateGenerator(client).generate(
        _analysis("How many deposits", QueryIntent.AGGREGATION), players_deposits_context
    )

    assert optimized.sql == "SELECT COUNT(PlayerID) FROM Deposits"
    assert optimized.candidate.source == "aggregation"
    assert optimized.confidence_score == pytest.approx(0.9)
    assert [item.sql for item in optimized.alternatives] == ["SELECT * FROM Deposits"]
    assert optimized.alternatives[0].confidence == pytest.approx(0.6)


@pytest.mark.asyncio
async def test_variant_failure_is_skipped(make_client, players_context):
    client = make_client("SELECT COUNT(PlayerID) FROM Players", LLMError("timeout"))

    optimized = await CandidateGenerator(client).generate(
        _analysis("Count players", QueryIntent.AGGREGATION), players_context
    )

    assert optimized.sql == "SELECT COUNT(PlayerID) FROM Players"
    assert optimized.alternatives == ()
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_duplicate_candidates_are_dropped(make_client, players_context):
    client = make_client(
        "SELECT COUNT(PlayerID) FROM Players",
        "select count(PlayerID)\n  from players;",
    )

    optimized = await CandidateGenerator(client).generate(
        _analysis("Count players", QueryIntent.AGGREGATION), players_context
    )

    assert optimized.alternatives == ()


@pytest.mark.asyncio
async def test_max_candidates_limits_requests(make_client, players_context):
    client = make_client("SELECT COUNT(PlayerID) FROM Players")
    entities = tuple(Entity(str(n), EntityType.NUMBER, n, n + 1) for n in range(6))

    await CandidateGenerator(client, max_candidates=1).generate(
        _analysis("Count players", QueryIntent.AGGREGATION, entities), players_context
    )

    assert len(client.calls) == 1


@pytest.mark.parametrize("response", [LLMError("unavailable"), "", "I cannot help with that."])
@pytest.mark.asyncio
async def test_primary_failure_raises(make_client, players_context, response):
    generator = CandidateGenerator(make_client(response))

    with pytest.raises(GenerationError):
        await generator.generate(_analysis("Show blocked players"), players_context)


@pytest.mark.asyncio
async def test_empty_question_raises(make_client, players_context):
    client = make_client()

    with pytest.raises(GenerationError):
        await CandidateGenerator(client).generate(_analysis("   "), players_context)
    assert client.calls == []


def test_destructive_candidate_scores_zero():
    assert score_candidate(SqlCandidate(sql="DELETE FROM players"), QueryIntent.GENERAL) == 0.0


def test_score_rewards_intent_clauses():
    trend = SqlCandidate(
        sql="SELECT DATE_TRUNC('month', CreatedAt) AS m, SUM(Amount) FROM Deposits "
        "GROUP BY m ORDER BY m"
    )

    assert score_candidate(trend, QueryIntent.TREND) > score_candidate(trend, QueryIntent.FILTERING)


def test_unparseable_candidate_only_loses_the_parse_bonus():
    broken = SqlCandidate(sql="SELECT PlayerID FROM Players WHERE Status = 'blocked")
    fixed = SqlCandidate(sql="SELECT PlayerID FROM Players WHERE Status = 'blocked'")

    assert score_candidate(broken, QueryIntent.GENERAL) == pytest.approx(0.7)
    assert score_candidate(fixed, QueryIntent.GENERAL) == pytest.approx(0.8)


@pytest.mark.asyncio
async def test_unparseable_variant_keeps_the_primary(make_client, players_deposits_context):
    broken = "SELECT COUNT(PlayerID) FROM Deposits WHERE Amount > '100"
    client = make_client(
        "SELECT COUNT(PlayerID) FROM Deposits",
        json.dumps({"sql": broken}),
    )

    optimized = await CandidateGenerator(client).generate(
        _analysis("How many deposits", QueryIntent.AGGREGATION), players_deposits_context
    )

    assert optimized.sql == "SELECT COUNT(PlayerID) FROM Deposits"
    assert [item.sql for item in optimized.alternatives] == [broken]
