"""Anthropic (Claude) model adapter."""

from __future__ import annotations

import logging
from typing import Any

import anthropic

from prompthub.config import ANTHROPIC_API_KEY, DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, MODEL_TIMEOUT_SECONDS
from prompthub.errors import ErrorCode, PromptHubError
from prompthub.models import TokenUsage
from prompthub.providers.base import ModelAdapter, ModelExecutionRequest, ModelExecutionResponse

logger = logging.getLogger(__name__)


class AnthropicAdapter(ModelAdapter):
    provider_name = "anthropic"
    capabilities = ("text-generation", "conversation", "analysis")

    def __init__(self, model: str = "claude-sonnet-4-5", api_key: str | None = None):
        super().__init__(model, {"temperature": DEFAULT_TEMPERATURE, "max_tokens": DEFAULT_MAX_TOKENS})
        self.api_key = api_key if api_key is not None else ANTHROPIC_API_KEY
        self.client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=MODEL_TIMEOUT_SECONDS)

    async def execute(self, request: ModelExecutionRequest) -> ModelExecutionResponse:
        if not self.api_key:
            raise PromptHubError(ErrorCode.VALIDATION_ERROR, "API key required for anthropic")

        settings = self.prepare_settings(request.settings)
        kwargs: dict[str, Any] = {
            "model": settings.pop("model", self.model),
            "messages": [{"role": "user", "content": self.sanitize_prompt(request.prompt)}],
            "max_tokens": settings.pop("max_tokens", DEFAULT_MAX_TOKENS),
            "temperature": settings.pop("temperature", DEFAULT_TEMPERATURE),
        }
        system = settings.pop("system", None)
        if system:
            kwargs["system"] = system
        for key in ("top_p", "top_k", "stop_sequences"):
            if key in settings:
                kwargs[key] = settings[key]

        try:
            raw = await self.client.messages.create(**kwargs)
        except anthropic.APIConnectionError as e:
            logger.error(f"Anthropic connection error: {e}")
            raise self.network_error(str(e)) from e
        except anthropic.APIStatusError as e:
            logger.error(f"Anthropic API error: {e}")
            raise self.error_for_status(e.status_code, e.message) from e
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise PromptHubError(ErrorCode.EXECUTION_FAILED, f"Anthropic execution failed: {e}") from e

        return self._parse_response(raw)

    async def validate(self) -> bool:
        return bool(self.api_key)

    def _parse_response(self, raw: Any) -> ModelExecutionResponse:
        text_parts = [block.text for block in raw.content if block.type == "text"]
        return ModelExecutionResponse(
            content="\n".join(text_parts),
            token_usage=TokenUsage(raw.usage.input_tokens, raw.usage.output_tokens),
            finish_reason=raw.stop_reason,
            metadata={"model": raw.model, "id": raw.id},
        )
