from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import httpx
import openai

from modlens_core.capabilities import CONNECT_TIMEOUT, get_capabilities
from modlens_core.providers.base import (
    API_ERROR,
    CONNECTION_ERROR,
    INCOMPLETE_RESPONSE,
    INVALID_RESPONSE,
    INVALID_RESPONSE_FORMAT,
    JSON_INSTRUCTION,
    TEXT_MODE_NOTE,
    BaseClassifier,
    ClassifierError,
    RawOutput,
)

logger = logging.getLogger(__name__)

CONNECTION_TEST_TIMEOUT = 30.0


@dataclass
class ConnectionStatus:
    ok: bool
    response_time: float | None = None
    code: str | None = None
    message: str = ""
    details: Any = None


def _status_error_message(e: openai.APIStatusError) -> str:
    """Prefer the API's own error message over the SDK's generic one."""
    body = e.body
    if isinstance(body, dict):
        inner = body.get("error") if isinstance(body.get("error"), dict) else body
        message = inner.get("message")
        if message:
            return str(message)
    return f"API returned HTTP code {e.status_code}"


@contextmanager
def _api_errors():
    """Translate SDK exceptions into ClassifierError codes."""
    try:
        yield
    except openai.APITimeoutError as e:
        raise ClassifierError(CONNECTION_ERROR, "Connection error: request timed out") from e
    except openai.APIConnectionError as e:
        raise ClassifierError(CONNECTION_ERROR, f"Connection error: {e}") from e
    except openai.APIStatusError as e:
        raise ClassifierError(API_ERROR, _status_error_message(e), details=e.body) from e


class OpenAIClassifier(BaseClassifier):
    """Classifier backed by the OpenAI API.

    Reasoning-capable models go through the responses endpoint with an
    effort level; everything else uses chat completions with the output-size
    parameter, temperature and JSON mode its capability descriptor allows.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-5-mini",
        *,
        base_url: str | None = None,
        max_tokens: int = 800,
        temperature: float = 0.1,
        reasoning_effort: str = "low",
        max_retries: int | None = None,
    ):
        if not api_key:
            raise ValueError("An OpenAI API key is required.")
        super().__init__(
            model,
            max_tokens=max_tokens,
            temperature=temperature,
            reasoning_effort=reasoning_effort,
            max_retries=max_retries,
        )
        self.capabilities = get_capabilities(model)
        # Retries happen in _call_with_retry, not inside the SDK.
        self.client = openai.OpenAI(
            api_key=api_key,
            base_url=base_url,
            max_retries=0,
            timeout=httpx.Timeout(self.capabilities.timeout, connect=CONNECT_TIMEOUT),
        )

    def test_connection(self) -> ConnectionStatus:
        """List models as a cheap authenticated health check."""
        start = time.monotonic()
        try:
            with _api_errors():
                self.client.with_options(timeout=CONNECTION_TEST_TIMEOUT).models.list()
        except ClassifierError as e:
            return ConnectionStatus(ok=False, code=e.code, message=e.message, details=e.details)
        return ConnectionStatus(ok=True, response_time=round(time.monotonic() - start, 3))

    def _call_api(self, system_prompt: str, user_prompt: str) -> RawOutput:
        if self.capabilities.reasoning:
            return self._call_responses(system_prompt, user_prompt)
        return self._call_chat(system_prompt, user_prompt)

    def _call_chat(self, system_prompt: str, user_prompt: str) -> RawOutput:
        caps = self.capabilities
        temperature = caps.temperature_for(self.temperature)
        params: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": f"{system_prompt} {JSON_INSTRUCTION}"},
                {"role": "user", "content": user_prompt},
            ],
            caps.token_param: self.max_tokens,
            "temperature": temperature,
        }
        if caps.json_mode:
            params["response_format"] = {"type": "json_object"}

        notes = []
        if temperature != self.temperature:
            notes.append(f"Temperature automatically set to {temperature} (model requirement)")
        if not caps.json_mode:
            notes.append(TEXT_MODE_NOTE)

        logger.debug("Chat completions request: %s", json.dumps(params))
        with _api_errors():
            response = self.client.chat.completions.create(**params)
        data = response.model_dump()
        logger.debug("Chat completions response: %s", json.dumps(data, default=str))

        choices = data.get("choices") or []
        if not choices:
            raise ClassifierError(INVALID_RESPONSE, "Invalid API response format", details=data)
        choice = choices[0]
        content = (choice.get("message") or {}).get("content")

        if choice.get("finish_reason") == "length" or (content is not None and not content.strip()):
            raise ClassifierError(
                INCOMPLETE_RESPONSE,
                "AI moderation could not complete: response was incomplete (token limit hit or empty response). "
                "Adjust max tokens or model.",
                details=data,
            )
        if content is None:
            raise ClassifierError(INVALID_RESPONSE, "Invalid API response format", details=data)

        return RawOutput(
            text=content,
            tokens_used=(data.get("usage") or {}).get("total_tokens"),
            parameters_used={
                "temperature": temperature,
                "max_tokens": self.max_tokens,
                "token_param": caps.token_param,
                "json_format": caps.json_mode,
                "endpoint": "chat/completions",
            },
            parameter_notes=notes,
        )

    def _call_responses(self, system_prompt: str, user_prompt: str) -> RawOutput:
        params: dict[str, Any] = {
            "model": self.model,
            "input": [
                {
                    "type": "message",
                    "role": "user",
                    "content": f"{system_prompt}\n\n{user_prompt}\n\n{JSON_INSTRUCTION}",
                }
            ],
            "reasoning": {"effort": self.reasoning_effort},
        }

        logger.debug("Responses request: %s", json.dumps(params))
        with _api_errors():
            response = self.client.responses.create(**params)
        data = response.model_dump()
        logger.debug("Responses response: %s", json.dumps(data, default=str))

        if data.get("status") == "incomplete":
            raise ClassifierError(
                INCOMPLETE_RESPONSE,
                "AI moderation could not complete: response was truncated",
                details=data.get("incomplete_details") or data,
            )

        output = data.get("output")
        if not isinstance(output, list) or not output:
            raise ClassifierError(
                INCOMPLETE_RESPONSE,
                "AI moderation could not complete: response was empty",
                details=data,
            )

        text = "".join(
            block.get("text") or ""
            for item in output
            if item.get("type") == "message"
            for block in item.get("content") or []
            if block.get("type") == "output_text"
        )
        if not text.strip():
            raise ClassifierError(
                INVALID_RESPONSE_FORMAT,
                "AI moderation could not complete: no text output found",
                details=output,
            )

        return RawOutput(
            text=text,
            tokens_used=(data.get("usage") or {}).get("total_tokens"),
            parameters_used={
                "endpoint": "responses",
                "reasoning_effort": self.reasoning_effort,
            },
        )
