import pytest

from query_copilot.llm.base import CompletionOptions, LLMError
from query_copilot.llm.openai_adapter import OpenAIClient, _TransientError


def _reply(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def client():
    return OpenAIClient(api_key="sk-test", model="gpt-4o-mini", backoff_seconds=0)


@pytest.mark.asyncio
async def test_request_body_carries_prompt_and_options(client, monkeypatch):
    bodies = []

    def fake_post(self, body):
        bodies.append(body)
        return _reply('{"sql": "SELECT 1"}')

    monkeypatch.setattr(OpenAIClient, "_post", fake_post)

    text = await client.complete(
        "Count players", CompletionOptions(system_prompt="Be precise.", temperature=0.3)
    )

    assert text == '{"sql": "SELECT 1"}'
    body = bodies[0]
    assert body["model"] == "gpt-4o-mini"
    assert body["temperature"] == 0.3
    assert body["messages"] == [
        {"role": "system", "content": "Be precise."},
        {"role": "user", "content": "Count players"},
    ]
    assert body["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_transient_failures_are_retried(client, monkeypatch):
    attempts = []

    def flaky_post(self, body):
        attempts.append(body)
        if len(attempts) < 3:
            raise _TransientError("HTTP 429: slow down")
        return _reply("SELECT 1")

    monkeypatch.setattr(OpenAIClient, "_post", flaky_post)

    assert await client.complete("Count players") == "SELECT 1"
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_retries_are_bounded(client, monkeypatch):
    def failing_post(self, body):
        raise _TransientError("HTTP 503: unavailable")

    monkeypatch.setattr(OpenAIClient, "_post", failing_post)

    with pytest.raises(LLMError, match="after 3 attempts"):
        await client.complete("Count players")


@pytest.mark.asyncio
async def test_permanent_failures_are_not_retried(client, monkeypatch):
    attempts = []

    def rejected_post(self, body):
        attempts.append(body)
        raise LLMError("OpenAI request failed with HTTP 401: bad key")

    monkeypatch.setattr(OpenAIClient, "_post", rejected_post)

    with pytest.raises(LLMError, match="401"):
        await client.complete("Count players")
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_null_content_is_an_empty_answer(client, monkeypatch):
    monkeypatch.setattr(OpenAIClient, "_post", lambda self, body: _reply(None))

    assert await client.complete("Count players") == ""


@pytest.mark.asyncio
async def test_missing_choices_is_an_error(client, monkeypatch):
    monkeypatch.setattr(OpenAIClient, "_post", lambda self, body: {"choices": []})

    with pytest.raises(LLMError, match="missing choices"):
        await client.complete("Count players")
