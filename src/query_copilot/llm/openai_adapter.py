"""OpenAI implementation of the completion client."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from urllib import error, request

from query_copilot.llm.base import CompletionClient, CompletionOptions, LLMError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}


class _TransientError(LLMError):
    pass


@dataclass(frozen=True)
class OpenAIClient(CompletionClient):
    """Chat Completions client with bounded retry for transient failures."""

    api_key: str
    model: str
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: float = 60
    max_attempts: int = 3
    backoff_seconds: float = 1.0

    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> str:
        opts = options or CompletionOptions()
        body = self._request_body(prompt, opts)

        for attempt in range(1, self.max_attempts + 1):
            try:
                payload = await asyncio.to_thread(self._post, body)
            except _TransientError as exc:
                if attempt == self.max_attempts:
                    raise LLMError(
                        f"OpenAI request failed after {attempt} attempts: {exc}"
                    ) from exc
                delay = self.backoff_seconds * 2 ** (attempt - 1)
                logger.warning(
                    "OpenAI attempt %d/%d failed (%s); retrying in %.1fs",
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
                continue
            return self._extract_message_content(payload)

        raise LLMError("OpenAI request was not attempted.")

    def _request_body(self, prompt: str, opts: CompletionOptions) -> dict[str, object]:
        messages = []
        if opts.system_prompt:
            messages.append({"role": "system", "content": opts.system_prompt})
        messages.append({"role": "user", "content": prompt})
        body: dict[str, object] = {
            "model": self.model,
            "temperature": opts.temperature,
            "max_tokens": opts.max_tokens,
            "messages": messages,
        }
        if opts.json_mode:
            body["response_format"] = {"type": "json_object"}
        return body

    def _post(self, body: dict[str, object]) -> dict[str, object]:
        endpoint = self.base_url.rstrip("/") + "/chat/completions"
        req = request.Request(
            endpoint,
            method="POST",
            data=json.dumps(body).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        try:
            with request.urlopen(req, timeout=self.timeout_seconds) as response:
                return json.loads(response.read().decode("utf-8"))
        except error.HTTPError as exc:
            details = exc.read().decode("utf-8", errors="replace")
            message = f"HTTP {exc.code}: {details[:500]}"
            if exc.code in _RETRYABLE_STATUS:
                raise _TransientError(message) from exc
            raise LLMError(f"OpenAI request failed with {message}") from exc
        except error.URLError as exc:
            raise _TransientError(str(exc.reason)) from exc
        except TimeoutError as exc:
            raise _TransientError("request timed out") from exc
        except json.JSONDecodeError as exc:
            raise LLMError("OpenAI response was not valid JSON.") from exc

    @staticmethod
    def _extract_message_content(payload: dict[str, object]) -> str:
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            raise LLMError("OpenAI response is missing choices.")

        first = choices[0]
        if not isinstance(first, dict):
            raise LLMError("OpenAI response has invalid choice format.")

        message = first.get("message")
        if not isinstance(message, dict):
            raise LLMError("OpenAI response is missing message content.")

        content = message.get("content")
        if content is None:
            return ""
        if not isinstance(content, str):
            raise LLMError("OpenAI message content is not text.")
        return content
