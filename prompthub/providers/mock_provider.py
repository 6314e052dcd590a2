"""Deterministic in-process adapters for local runs and tests."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable

from prompthub.models import TokenUsage
from prompthub.providers.base import ModelAdapter, ModelExecutionRequest, ModelExecutionResponse

logger = logging.getLogger(__name__)


class MockAdapter(ModelAdapter):
    """Echoes the rendered prompt back. No network, no randomness."""

    provider_name = "mock"
    capabilities = ("text-generation", "conversation")

    def __init__(self, model: str = "mock-model"):
        super().__init__(model, {"temperature": 0.7, "max_tokens": 1000})
        self.calls: list[ModelExecutionRequest] = []

    async def execute(self, request: ModelExecutionRequest) -> ModelExecutionResponse:
        self.calls.append(request)
        prompt = self.sanitize_prompt(request.prompt)
        content = f"Mock response for prompt: {prompt}"
        return ModelExecutionResponse(
            content=content,
            token_usage=TokenUsage(self.estimate_tokens(prompt), self.estimate_tokens(content)),
            finish_reason="stop",
            metadata={"model": self.model},
        )

    async def validate(self) -> bool:
        return True


class ScriptedAdapter(ModelAdapter):
    """Replays queued responses in order.

    Each queued item is either a string (returned as content), an exception
    (raised), or a callable taking the request and returning either of those.
    When the queue runs dry the fallback is used.
    """

    provider_name = "scripted"

    def __init__(self, responses: list | None = None, fallback: str = "ok", model: str = "scripted-model"):
        super().__init__(model)
        self._queue: deque = deque(responses or [])
        self.fallback = fallback
        self.calls: list[ModelExecutionRequest] = []

    def push(self, response: str | BaseException | Callable):
        self._queue.append(response)

    async def execute(self, request: ModelExecutionRequest) -> ModelExecutionResponse:
        self.calls.append(request)
        item = self._queue.popleft() if self._queue else self.fallback
        if callable(item) and not isinstance(item, BaseException):
            item = item(request)
        if isinstance(item, BaseException):
            raise item
        return ModelExecutionResponse(
            content=str(item),
            token_usage=TokenUsage(self.estimate_tokens(request.prompt), self.estimate_tokens(str(item))),
            finish_reason="stop",
        )

    async def validate(self) -> bool:
        return True
