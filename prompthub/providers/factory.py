"""Provider table — resolve a model string to a ModelAdapter instance."""

from __future__ import annotations

import logging
from typing import Callable

from prompthub.config import DEFAULT_MODELS
from prompthub.errors import ErrorCode, PromptHubError
from prompthub.providers.base import ModelAdapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[str], ModelAdapter]


def parse_model_string(model: str) -> tuple[str, str | None]:
    """Parse 'provider/model-name' into (provider, model). A bare provider name yields no model."""
    if "/" in model:
        provider, model_name = model.split("/", 1)
        return provider.lower(), model_name or None
    lowered = model.lower()
    if lowered.startswith("claude"):
        return "anthropic", model
    if lowered.startswith(("gpt", "o1", "o3")):
        return "openai", model
    return lowered, None


class AdapterRegistry:
    """Adapters registered by provider name, created lazily and cached per model."""

    def __init__(self):
        self._factories: dict[str, AdapterFactory] = {}
        self._instances: dict[str, ModelAdapter] = {}

    def register(self, provider: str, factory: AdapterFactory):
        self._factories[provider.lower()] = factory

    def register_instance(self, provider: str, adapter: ModelAdapter):
        """Register a ready-made adapter; every model string for this provider resolves to it."""
        self._factories[provider.lower()] = lambda _model: adapter
        self._instances = {k: v for k, v in self._instances.items() if not k.startswith(f"{provider.lower()}/")}

    def names(self) -> list[str]:
        return list(self._factories.keys())

    def get(self, model: str) -> ModelAdapter:
        provider, model_name = parse_model_string(model)
        factory = self._factories.get(provider)
        if factory is None:
            raise PromptHubError(
                ErrorCode.VALIDATION_ERROR,
                f"Unknown model provider: {provider}",
                {"available": self.names()},
            )
        model_name = model_name or DEFAULT_MODELS.get(provider, "default")
        key = f"{provider}/{model_name}"
        adapter = self._instances.get(key)
        if adapter is None:
            adapter = self._instances.setdefault(key, factory(model_name))
            logger.debug(f"Created adapter for {key}")
        return adapter

    def describe(self) -> list[dict]:
        return [{"provider": name} for name in self.names()]


def create_default_registry() -> AdapterRegistry:
    """Registry with the built-in providers: openai, anthropic and mock."""
    registry = AdapterRegistry()

    def _openai(model: str) -> ModelAdapter:
        from prompthub.providers.openai_provider import OpenAIAdapter
        return OpenAIAdapter(model=model)

    def _anthropic(model: str) -> ModelAdapter:
        from prompthub.providers.anthropic_provider import AnthropicAdapter
        return AnthropicAdapter(model=model)

    def _mock(model: str) -> ModelAdapter:
        from prompthub.providers.mock_provider import MockAdapter
        return MockAdapter(model=model)

    registry.register("openai", _openai)
    registry.register("anthropic", _anthropic)
    registry.register("mock", _mock)
    return registry
