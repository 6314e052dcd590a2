"""OpenAI (GPT-4o, o3) model adapter."""

from __future__ import annotations

import logging
from typing import Any

import openai

from prompthub.config import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, MODEL_TIMEOUT_SECONDS, OPENAI_API_KEY
from prompthub.errors import ErrorCode, PromptHubError
from prompthub.models import TokenUsage
from prompthub.providers.base import ModelAdapter, ModelExecutionRequest, ModelExecutionResponse

logger = logging.getLogger(__name__)


class OpenAIAdapter(ModelAdapter):
    provider_name = "openai"
    capabilities = ("text-generation", "conversation", "function-calling")

    def __init__(self, model: str = "gpt-4o-mini", api_key: str | None = None):
        super().__init__(model, {"temperature": DEFAULT_TEMPERATURE, "max_tokens": DEFAULT_MAX_TOKENS})
        self.api_key = api_key if api_key is not None else OPENAI_API_KEY
        self.client = openai.AsyncOpenAI(api_key=self.api_key, timeout=MODEL_TIMEOUT_SECONDS)

    async def execute(self, request: ModelExecutionRequest) -> ModelExecutionResponse:
        if not self.api_key:
            raise PromptHubError(ErrorCode.VALIDATION_ERROR, "API key required for openai")

        settings = self.prepare_settings(request.settings)
        kwargs: dict[str, Any] = {
            "model": settings.pop("model", self.model),
            "messages": self._format_messages(self.sanitize_prompt(request.prompt), settings.pop("system", None)),
            "max_tokens": settings.pop("max_tokens", DEFAULT_MAX_TOKENS),
            "temperature": settings.pop("temperature", DEFAULT_TEMPERATURE),
        }
        for key in ("top_p", "frequency_penalty", "presence_penalty", "stop"):
            if key in settings:
                kwargs[key] = settings[key]

        try:
            raw = await self.client.chat.completions.create(**kwargs)
        except openai.APIConnectionError as e:
            logger.error(f"OpenAI connection error: {e}")
            raise self.network_error(str(e)) from e
        except openai.APIStatusError as e:
            logger.error(f"OpenAI API error: {e}")
            raise self.error_for_status(e.status_code, e.message) from e
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise PromptHubError(ErrorCode.EXECUTION_FAILED, f"OpenAI execution failed: {e}") from e

        return self._parse_response(raw)

    async def validate(self) -> bool:
        return bool(self.api_key)

    def _format_messages(self, prompt: str, system: str | None = None) -> list[dict]:
        formatted = []
        if system:
            formatted.append({"role": "system", "content": system})
        formatted.append({"role": "user", "content": prompt})
        return formatted

    def _parse_response(self, raw: Any) -> ModelExecutionResponse:
        choice = raw.choices[0]
        usage = None
        if raw.usage:
            usage = TokenUsage(raw.usage.prompt_tokens, raw.usage.completion_tokens, raw.usage.total_tokens)
        return ModelExecutionResponse(
            content=choice.message.content or "",
            token_usage=usage,
            finish_reason=choice.finish_reason,
            metadata={"model": raw.model, "id": raw.id},
        )
