"""Base model adapter — the capability interface every provider implements."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from prompthub.errors import ErrorCode, PromptHubError
from prompthub.models import ExecutionContext, TokenUsage

logger = logging.getLogger(__name__)


@dataclass
class ModelExecutionRequest:
    prompt: str
    inputs: dict[str, Any] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)
    context: ExecutionContext | None = None


@dataclass
class ModelExecutionResponse:
    content: str
    token_usage: TokenUsage | None = None
    finish_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class ModelAdapter(ABC):
    """Executes rendered prompts against one model provider."""

    provider_name: str = "base"
    capabilities: tuple[str, ...] = ("text-generation",)

    def __init__(self, model: str, default_settings: dict[str, Any] | None = None):
        self.model = model
        self.default_settings = dict(default_settings or {})

    @abstractmethod
    async def execute(self, request: ModelExecutionRequest) -> ModelExecutionResponse:
        """Call the model. Failures are raised as PromptHubError with a classified code."""

    @abstractmethod
    async def validate(self) -> bool:
        """Whether the adapter is configured well enough to accept calls."""

    def describe(self) -> dict:
        return {
            "name": self.model,
            "provider": self.provider_name,
            "capabilities": list(self.capabilities),
        }

    def prepare_settings(
        self,
        prompt_settings: dict[str, Any] | None = None,
        context_settings: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Adapter defaults, then prompt settings, then per-call settings."""
        return {**self.default_settings, **(prompt_settings or {}), **(context_settings or {})}

    def estimate_tokens(self, text: str) -> int:
        # Rough estimate: 4 chars per token
        return math.ceil(len(text) / 4)

    def sanitize_prompt(self, prompt: str) -> str:
        return prompt.replace("\x00", "").strip()

    def error_for_status(self, status: int | None, message: str) -> PromptHubError:
        """Map an HTTP status from the provider into the error taxonomy."""
        name = self.provider_name
        if status in (401, 403):
            return PromptHubError(ErrorCode.ACCESS_DENIED, f"Authentication failed for {name}: {message}")
        if status == 429:
            return PromptHubError(ErrorCode.RATE_LIMIT_EXCEEDED, f"Rate limit exceeded for {name}: {message}")
        if status is not None and status >= 500:
            return PromptHubError(ErrorCode.NETWORK_ERROR, f"Server error from {name}: {message}")
        return PromptHubError(ErrorCode.EXECUTION_FAILED, f"API error from {name}: {message}", {"status": status})

    def network_error(self, message: str) -> PromptHubError:
        return PromptHubError(ErrorCode.NETWORK_ERROR, f"Network error connecting to {self.provider_name}: {message}")
