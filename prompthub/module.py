"""PromptModule — one executable prompt: validation, access, render, model call, signature."""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import replace
from typing import Any

from prompthub.access import AccessEvaluator
from prompthub.config import DEFAULT_PROVIDER
from prompthub.errors import ErrorCode, PromptHubError, error_from_exception
from prompthub.models import (
    AccessPolicy, ExecutionContext, ModuleResponse, PromptDefinition,
    PromptMetadata, ValidationResult, generate_id, now_ms,
)
from prompthub.providers.base import ModelExecutionRequest
from prompthub.providers.factory import AdapterRegistry, create_default_registry
from prompthub.signature import sign_execution
from prompthub.template import TemplateEngine, TemplateRenderer
from prompthub.validation import prepare_inputs, validate_inputs

logger = logging.getLogger(__name__)


class PromptModule:
    """A loaded prompt plus its live metadata (execution count, last run)."""

    def __init__(
        self,
        definition: PromptDefinition,
        metadata: PromptMetadata,
        adapters: AdapterRegistry | None = None,
        renderer: TemplateRenderer | None = None,
        access: AccessEvaluator | None = None,
        default_provider: str = DEFAULT_PROVIDER,
    ):
        self.definition = definition
        self._metadata = metadata
        self.adapters = adapters or create_default_registry()
        self.renderer = renderer or TemplateEngine()
        self.access = access or AccessEvaluator()
        self.default_provider = default_provider

        self._lock = threading.Lock()
        self._execution_count = metadata.execution_count
        self._last_execution_time: int | None = None

    @property
    def execution_count(self) -> int:
        return self._execution_count

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_definition(self) -> PromptDefinition:
        return self.definition

    def get_metadata(self) -> PromptMetadata:
        with self._lock:
            return replace(
                self._metadata,
                execution_count=self._execution_count,
                updated_at=self._last_execution_time or self._metadata.updated_at,
            )

    def get_royalty_info(self) -> dict[str, int]:
        return dict(self._metadata.royalty_config)

    def get_access_control(self) -> AccessPolicy:
        return self._metadata.access_policy

    def update_metadata(self, changes: dict[str, Any], caller: str):
        """Apply metadata changes. Only the prompt author may do this."""
        if caller != self._metadata.author:
            raise PromptHubError(ErrorCode.ACCESS_DENIED, "Only the prompt author can update metadata")
        with self._lock:
            self._metadata = replace(self._metadata, **changes, updated_at=now_ms())

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_input(self, inputs: dict[str, Any]) -> ValidationResult:
        return validate_inputs(inputs, self.definition.inputs)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, inputs: dict[str, Any], context: ExecutionContext) -> ModuleResponse:
        """Run the full pipeline. Always returns a ModuleResponse, never raises."""
        started = time.monotonic()
        start_ms = now_ms()
        execution_id = generate_id()
        base_meta: dict[str, Any] = {
            "executionId": execution_id,
            "promptId": self.definition.id,
            "version": self.definition.version,
            "timestamp": start_ms,
        }

        try:
            context_errors = context.validation_errors()
            if context_errors:
                raise PromptHubError(ErrorCode.VALIDATION_ERROR, "Invalid execution context", context_errors)

            if not isinstance(inputs, dict):
                raise PromptHubError(ErrorCode.INVALID_INPUT, "Input validation failed", ["inputs must be an object"])
            validation = self.validate_input(inputs)
            if not validation.valid:
                raise PromptHubError(ErrorCode.INVALID_INPUT, "Input validation failed", validation.errors)
            for warning in validation.warnings:
                logger.debug(f"[{self.definition.id}] {warning}")

            await self.access.require_access(self._metadata.access_policy, context.caller, self._metadata.author)

            execution_inputs = prepare_inputs(inputs, self.definition.inputs)
            dependencies = self._resolve_dependencies(context)
            rendered = self.renderer.render(self.definition.template, execution_inputs, dependencies)

            provider = self._select_provider(context)
            adapter = self.adapters.get(provider)
            response = await adapter.execute(ModelExecutionRequest(
                prompt=rendered,
                inputs=execution_inputs,
                settings=self._model_settings(context),
                context=context,
            ))
            output = self._build_output(response.content, rendered, response.finish_reason)

            signature = sign_execution(
                execution_id,
                self.definition.id,
                self.definition.version,
                inputs,
                output,
                context.caller,
                context.timestamp,
            )
            self._record_success()
            execution_time = self._elapsed_ms(started)
            logger.info(f"Executed {self.definition.id}@{self.definition.version} via {provider} in {execution_time}ms")
            return ModuleResponse(
                success=True,
                output=output,
                metadata={**base_meta, "executionTime": execution_time, "modelProvider": adapter.provider_name},
                execution_time=execution_time,
                signature=signature,
                token_usage=response.token_usage,
            )
        except Exception as e:
            error = error_from_exception(e)
            if not isinstance(e, PromptHubError):
                logger.error(f"Unexpected failure executing {self.definition.id}: {e}", exc_info=True)
            else:
                logger.warning(f"Execution of {self.definition.id} failed: {error.code.value} {error.message}")
            return ModuleResponse.failure(error, base_meta, self._elapsed_ms(started))

    # -- helpers --------------------------------------------------------

    def _resolve_dependencies(self, context: ExecutionContext) -> dict[str, Any]:
        """Look up declared dependencies among prior outputs. Missing ones are simply absent."""
        resolved: dict[str, Any] = {}
        previous = context.previous_outputs or {}
        if not self.definition.dependencies or not previous:
            return resolved

        for dep in self.definition.dependencies:
            result = previous.get(dep)
            if result is None:
                # DAG results are keyed by node id; fall back to matching the prompt id
                result = next(
                    (r for r in previous.values()
                     if isinstance(r, ModuleResponse) and r.metadata.get("promptId") == dep),
                    None,
                )
            if result is None:
                continue
            if isinstance(result, ModuleResponse):
                if not result.success:
                    continue
                result = result.output
            resolved[dep] = _dependency_value(result)
        return resolved

    def _select_provider(self, context: ExecutionContext) -> str:
        return (
            context.model_provider
            or self.definition.execution_settings.get("provider")
            or (self.definition.models[0] if self.definition.models else None)
            or self.default_provider
        )

    def _model_settings(self, context: ExecutionContext) -> dict[str, Any]:
        settings = {k: v for k, v in self.definition.execution_settings.items() if k != "provider"}
        settings.update(context.settings or {})
        return settings

    def _build_output(self, content: str, rendered: str, finish_reason: str | None) -> Any:
        if self.definition.output_schema.type == "object":
            parsed = _parse_json_object(content)
            if parsed is not None:
                return parsed
        return {"content": content, "renderedPrompt": rendered, "finishReason": finish_reason}

    def _record_success(self):
        with self._lock:
            self._execution_count += 1
            self._last_execution_time = now_ms()

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)


def _dependency_value(output: Any) -> Any:
    if isinstance(output, dict) and isinstance(output.get("content"), str):
        return output["content"]
    return output


def _parse_json_object(content: str) -> dict | None:
    text = content.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1]) if lines[-1].startswith("```") else "\n".join(lines[1:])
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None
