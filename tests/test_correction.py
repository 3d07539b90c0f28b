import json

import pytest

from query_copilot.llm.base import LLMError
from query_copilot.pipeline.correction import CORRECTION_REASON, SelfCorrector
from query_copilot.pipeline.validator import LayeredValidator


def _payload(sql, explanation="Corrected query.", confidence=0.8):
    return json.dumps({"sql": sql, "explanation": explanation, "confidence": confidence})


@pytest.mark.asyncio
async def test_accepts_strictly_better_correction(make_client, make_result, scripted_validator):
    original = make_result("SELECT amount FROM revenu", 0.5)
    improved = make_result("SELECT amount FROM revenue", 0.65)
    client = make_client(_payload("SELECT amount FROM revenue"))
    validator = scripted_validator([improved])

    outcome = await SelfCorrector(client, validator).correct(original)

    assert outcome.corrected
    assert outcome.result.is_self_corrected
    assert outcome.result.original_sql == "SELECT amount FROM revenu"
    assert outcome.result.sql == "SELECT amount FROM revenue"
    assert outcome.result.overall_score == pytest.approx(0.65)
    assert outcome.result.correction_reason == CORRECTION_REASON
    assert outcome.attempt.improvement_score == pytest.approx(0.15)
    assert len(client.calls) == 1
    assert validator.calls == ["SELECT amount FROM revenue"]


@pytest.mark.parametrize("revised_score", [0.45, 0.5])
@pytest.mark.asyncio
async def test_rejects_correction_that_does_not_improve(
    make_client, make_result, scripted_validator, revised_score
):
    original = make_result("SELECT amount FROM revenu", 0.5)
    client = make_client(_payload("SELECT total FROM revenu"))
    validator = scripted_validator([make_result("SELECT total FROM revenu", revised_score)])

    outcome = await SelfCorrector(client, validator).correct(original)

    assert outcome.result is original
    assert not outcome.corrected
    assert not outcome.attempt.was_successful
    assert outcome.result.overall_score >= original.overall_score


@pytest.mark.parametrize("score", [0.7, 0.3])
@pytest.mark.asyncio
async def test_only_correctable_results_are_attempted(
    make_client, make_result, scripted_validator, score
):
    client = make_client()
    result = make_result("SELECT amount FROM revenue", score)

    outcome = await SelfCorrector(client, scripted_validator([])).correct(result)

    assert outcome.result is result
    assert outcome.attempt is None
    assert client.calls == []


@pytest.mark.asyncio
async def test_depth_bound_stops_recursion(make_client, make_result, scripted_validator):
    client = make_client(_payload("SELECT amount FROM revenue"))
    result = make_result("SELECT amount FROM revenu", 0.5)

    outcome = await SelfCorrector(client, scripted_validator([])).correct(result, depth=1)

    assert outcome.result is result
    assert client.calls == []


@pytest.mark.asyncio
async def test_llm_failure_keeps_original(make_client, make_result, scripted_validator):
    validator = scripted_validator([])
    result = make_result("SELECT amount FROM revenu", 0.5)

    outcome = await SelfCorrector(make_client(LLMError("rate limited")), validator).correct(result)

    assert outcome.result is result
    assert not outcome.attempt.was_successful
    assert validator.calls == []


@pytest.mark.asyncio
async def test_unchanged_sql_is_not_revalidated(make_client, make_result, scripted_validator):
    validator = scripted_validator([])
    result = make_result("SELECT amount FROM revenu", 0.5)
    client = make_client(_payload("select   amount from revenu;"))

    outcome = await SelfCorrector(client, validator).correct(result)

    assert outcome.result is result
    assert validator.calls == []


@pytest.mark.asyncio
async def test_correction_against_real_validator(make_client, players_snapshot, players_context):
    validator = LayeredValidator()
    original = await validator.validate(
        "SELECT Status FROM Gamers", "Show blocked players", players_context, schema=players_snapshot
    )
    assert original.overall_score == pytest.approx(0.5)
    assert original.can_self_correct

    client = make_client(_payload("SELECT Status FROM Players"))
    outcome = await SelfCorrector(client, validator).correct(
        original, players_context, schema=players_snapshot
    )

    assert outcome.result.is_valid
    assert outcome.result.overall_score == pytest.approx(0.7)
    assert outcome.result.original_sql == "SELECT Status FROM Gamers"
    prompt = client.prompts[0]
    assert "Schema compliance: Table 'Gamers' is not present in the schema." in prompt
    assert "SELECT Status FROM Gamers" in prompt
