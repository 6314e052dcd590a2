"""PromptRouter — resolves prompts from the vault, executes them singly or as a DAG."""

from __future__ import annotations

import logging
import time
from typing import Any

from prompthub.access import AccessEvaluator, HoldingChecker
from prompthub.config import DEFAULT_PROVIDER, MAX_DAG_NODES
from prompthub.dag import DAGExecutor
from prompthub.errors import ErrorCode, PromptHubError, error_from_exception
from prompthub.events import EventBus
from prompthub.models import (
    DAGDefinition, DAGExecutionResult, ExecutionContext, ModuleResponse,
    PromptMetadata, SearchQuery, ValidationResult, generate_id, now_ms,
)
from prompthub.module import PromptModule
from prompthub.providers.factory import AdapterRegistry, create_default_registry
from prompthub.search import SearchIndex
from prompthub.signature import hash_value
from prompthub.template import TemplateEngine, TemplateRenderer
from prompthub.vault import LATEST, PromptVault

logger = logging.getLogger(__name__)


def cache_key(prompt_id: str, version: str | None = None) -> str:
    return f"{prompt_id}@{version or LATEST}"


class ModuleCache:
    """Loaded modules keyed by id@version, with `latest` kept as an alias to a concrete key."""

    def __init__(self):
        self._modules: dict[str, PromptModule] = {}
        self._aliases: dict[str, str] = {}

    def get(self, key: str) -> PromptModule | None:
        return self._modules.get(self._aliases.get(key, key))

    def put(self, key: str, module: PromptModule, alias: str | None = None) -> PromptModule:
        """Store unless already present; concurrent loaders converge on the first instance."""
        if alias and alias != key:
            self._aliases[alias] = key
        return self._modules.setdefault(key, module)

    def clear(self):
        self._modules.clear()
        self._aliases.clear()

    def __contains__(self, key: str) -> bool:
        return self._aliases.get(key, key) in self._modules

    def __len__(self) -> int:
        return len(self._modules)


class PromptRouter:
    """Entry point for discovery and execution against one vault."""

    def __init__(
        self,
        vault: PromptVault,
        adapters: AdapterRegistry | None = None,
        renderer: TemplateRenderer | None = None,
        holdings: HoldingChecker | None = None,
        event_bus: EventBus | None = None,
        default_provider: str = DEFAULT_PROVIDER,
        max_dag_nodes: int = MAX_DAG_NODES,
    ):
        self.vault = vault
        self.adapters = adapters or create_default_registry()
        self.renderer = renderer or TemplateEngine()
        self.access = AccessEvaluator(holdings)
        self.event_bus = event_bus or EventBus()
        self.default_provider = default_provider
        self.cache = ModuleCache()
        self.search_index = SearchIndex()
        self.dag_executor = DAGExecutor(self._run_node, self.event_bus, max_dag_nodes)

    async def initialize(self):
        """Build the search index from the vault."""
        try:
            prompts = await self.vault.list_prompts()
        except Exception as e:
            raise PromptHubError(ErrorCode.EXECUTION_FAILED, "Failed to initialize prompt router", str(e)) from e
        self.search_index.rebuild(self._with_live_metadata(prompts))
        logger.info(f"Router initialized with {len(self.search_index)} prompts")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def get_module(self, prompt_id: str, version: str | None = None) -> PromptModule:
        key = cache_key(prompt_id, version)
        module = self.cache.get(key)
        if module is not None:
            return module

        try:
            record = await self.vault.get_prompt(prompt_id, version)
        except PromptHubError:
            raise
        except Exception as e:
            raise PromptHubError(ErrorCode.BLOCKCHAIN_ERROR, f"Failed to get prompt: {prompt_id}", str(e)) from e
        if record is None:
            suffix = f"@{version}" if version else ""
            raise PromptHubError(ErrorCode.PROMPT_NOT_FOUND, f"Prompt not found: {prompt_id}{suffix}")

        module = PromptModule(
            record.definition,
            record.metadata,
            adapters=self.adapters,
            renderer=self.renderer,
            access=self.access,
            default_provider=self.default_provider,
        )
        return self.cache.put(cache_key(prompt_id, record.definition.version), module, alias=key)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_prompt(
        self,
        prompt_id: str,
        inputs: dict[str, Any],
        context: ExecutionContext,
        version: str | None = None,
    ) -> ModuleResponse:
        """Execute one prompt. Never raises; failures come back as structured responses."""
        started = time.monotonic()
        try:
            module = await self.get_module(prompt_id, version)
        except Exception as e:
            error = error_from_exception(e)
            logger.warning(f"Cannot load {prompt_id}: {error.message}")
            self.event_bus.emit_simple("prompt.failed", prompt_id, code=error.code.value, message=error.message)
            meta = {
                "executionId": generate_id(),
                "promptId": prompt_id,
                "version": version or LATEST,
                "timestamp": now_ms(),
            }
            return ModuleResponse.failure(error, meta, int((time.monotonic() - started) * 1000))

        result = await module.execute(inputs, context)

        if result.success:
            await self._record_execution(prompt_id, inputs, result)
            self.event_bus.emit_simple(
                "prompt.executed",
                prompt_id,
                execution_id=result.metadata.get("executionId"),
                caller=context.caller,
                execution_time=result.execution_time,
            )
        else:
            error = result.error or {}
            self.event_bus.emit_simple(
                "prompt.failed", prompt_id, code=error.get("code"), message=error.get("message")
            )
        return result

    async def execute_dag(
        self,
        dag: DAGDefinition | dict,
        root_inputs: dict[str, Any] | None = None,
        context: ExecutionContext | None = None,
    ) -> DAGExecutionResult:
        started = time.monotonic()
        if isinstance(dag, dict):
            try:
                dag = DAGDefinition.from_dict(dag)
            except Exception as e:
                error = error_from_exception(e)
                return DAGExecutionResult(
                    success=False,
                    total_execution_time=int((time.monotonic() - started) * 1000),
                    error={"nodeId": "validation", "error": error.to_dict()},
                )
        return await self.dag_executor.execute(dag, root_inputs or {}, context)

    async def _run_node(
        self, prompt_id: str, inputs: dict[str, Any], context: ExecutionContext, version: str | None
    ) -> ModuleResponse:
        return await self.execute_prompt(prompt_id, inputs, context, version)

    async def _record_execution(self, prompt_id: str, inputs: dict[str, Any], result: ModuleResponse):
        try:
            await self.vault.record_execution(
                prompt_id,
                result.metadata["executionId"],
                hash_value(inputs),
                hash_value(result.output),
                result.success,
                result.execution_time,
            )
        except Exception as e:
            logger.warning(f"Failed to record execution of {prompt_id}: {e}")

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def search_prompts(self, query: SearchQuery) -> list[PromptMetadata]:
        try:
            prompts = await self.vault.list_prompts(author=query.author)
        except Exception as e:
            raise PromptHubError(ErrorCode.EXECUTION_FAILED, "Failed to search prompts", str(e)) from e
        self.search_index.rebuild(self._with_live_metadata(prompts))
        return self.search_index.search(query)

    async def resolve_prompt(self, query: SearchQuery) -> PromptMetadata | None:
        """Best match for a query, or None."""
        results = await self.search_prompts(SearchQuery(
            text=query.text, tags=query.tags, author=query.author, limit=1, offset=0,
        ))
        return results[0] if results else None

    async def get_prompt_info(self, prompt_id: str, version: str | None = None) -> dict[str, Any]:
        module = await self.get_module(prompt_id, version)
        return {
            "metadata": module.get_metadata().to_dict(),
            "definition": module.get_definition().to_dict(),
            "royaltyInfo": module.get_royalty_info(),
            "accessControl": module.get_access_control().to_dict(),
        }

    async def validate_prompt_input(
        self, prompt_id: str, inputs: dict[str, Any], version: str | None = None
    ) -> ValidationResult:
        module = await self.get_module(prompt_id, version)
        return module.validate_input(inputs)

    def _with_live_metadata(self, prompts: list[PromptMetadata]) -> list[PromptMetadata]:
        """Swap in cached modules' metadata so execution counts are current."""
        live = []
        for p in prompts:
            module = self.cache.get(cache_key(p.id, p.version))
            live.append(module.get_metadata() if module else p)
        return live
