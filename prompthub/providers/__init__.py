"""Model adapter layer — provider-agnostic model execution."""

from prompthub.providers.base import ModelAdapter, ModelExecutionRequest, ModelExecutionResponse
from prompthub.providers.factory import AdapterRegistry, create_default_registry, parse_model_string

__all__ = [
    "AdapterRegistry",
    "ModelAdapter",
    "ModelExecutionRequest",
    "ModelExecutionResponse",
    "create_default_registry",
    "parse_model_string",
]
