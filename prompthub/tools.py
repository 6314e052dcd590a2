"""Tool surface — the five operations exposed to external agents, plus vault resources.

Every call returns a ToolResult; nothing raises past `ToolRegistry.dispatch`.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from prompthub.errors import ErrorCode, PromptHubError, error_from_exception
from prompthub.models import ExecutionContext, SearchQuery, ToolDef

if TYPE_CHECKING:
    from prompthub.router import PromptRouter

logger = logging.getLogger(__name__)

ToolImpl = Callable[..., Awaitable[Any]]

DEFAULT_CALLER = "mcp-client"

# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------

EXECUTE_PROMPT = ToolDef(
    name="execute_prompt",
    description="Execute a prompt from the PromptHub vault",
    parameters={
        "type": "object",
        "properties": {
            "promptId": {"type": "string", "description": "The ID of the prompt to execute"},
            "version": {"type": "string", "description": "Specific version of the prompt (optional)"},
            "inputs": {"type": "object", "description": "Input parameters for the prompt"},
            "modelProvider": {"type": "string", "description": "Preferred AI model provider (optional)"},
            "caller": {"type": "string", "description": "Caller identity (optional)"},
        },
        "required": ["promptId", "inputs"],
    },
)

SEARCH_PROMPTS = ToolDef(
    name="search_prompts",
    description="Search for prompts in the PromptHub vault",
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query for prompts"},
            "tags": {"type": "array", "items": {"type": "string"}, "description": "Filter by tags"},
            "author": {"type": "string", "description": "Filter by author"},
            "limit": {"type": "number", "description": "Maximum number of results", "default": 10},
        },
        "required": ["query"],
    },
)

GET_PROMPT_INFO = ToolDef(
    name="get_prompt_info",
    description="Get detailed information about a specific prompt",
    parameters={
        "type": "object",
        "properties": {
            "promptId": {"type": "string", "description": "The ID of the prompt"},
            "version": {"type": "string", "description": "Specific version (optional)"},
        },
        "required": ["promptId"],
    },
)

VALIDATE_PROMPT_INPUT = ToolDef(
    name="validate_prompt_input",
    description="Validate input parameters against a prompt schema",
    parameters={
        "type": "object",
        "properties": {
            "promptId": {"type": "string", "description": "The ID of the prompt"},
            "version": {"type": "string", "description": "Specific version (optional)"},
            "inputs": {"type": "object", "description": "Input parameters to validate"},
        },
        "required": ["promptId", "inputs"],
    },
)

COMPOSE_PROMPT_DAG = ToolDef(
    name="compose_prompt_dag",
    description="Execute a composed DAG of multiple prompts",
    parameters={
        "type": "object",
        "properties": {
            "dag": {"type": "object", "description": "DAG definition with nodes and edges"},
            "rootInputs": {"type": "object", "description": "Initial inputs for the DAG"},
            "caller": {"type": "string", "description": "Caller identity (optional)"},
            "modelProvider": {"type": "string", "description": "Preferred AI model provider (optional)"},
        },
        "required": ["dag", "rootInputs"],
    },
)

ALL_TOOLS = [EXECUTE_PROMPT, SEARCH_PROMPTS, GET_PROMPT_INFO, VALIDATE_PROMPT_INPUT, COMPOSE_PROMPT_DAG]

RESOURCES = [
    {
        "uri": "prompthub://vault/prompts",
        "name": "PromptHub Vault",
        "description": "Access to all prompts in the PromptHub vault",
        "mimeType": "application/json",
    },
    {
        "uri": "prompthub://vault/metadata",
        "name": "Vault Metadata",
        "description": "Metadata about the PromptHub vault",
        "mimeType": "application/json",
    },
]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


def tool_result(payload: Any, is_error: bool = False) -> dict:
    result: dict[str, Any] = {"content": [{"type": "text", "text": json.dumps(payload, indent=2, default=str)}]}
    if is_error:
        result["isError"] = True
    return result


def error_result(error: PromptHubError) -> dict:
    return tool_result({"error": error.to_dict()}, is_error=True)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """Registry of tool definitions and their implementations."""

    def __init__(self):
        self._tools: dict[str, ToolDef] = {}
        self._impls: dict[str, ToolImpl] = {}

    def register(self, tool_def: ToolDef, impl: ToolImpl):
        self._tools[tool_def.name] = tool_def
        self._impls[tool_def.name] = impl

    def get_def(self, name: str) -> ToolDef | None:
        return self._tools.get(name)

    def list_tools(self) -> list[ToolDef]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools.keys())

    async def dispatch(self, name: str, args: dict[str, Any] | None) -> dict:
        """Execute a tool call and return a ToolResult dict."""
        tool_def = self._tools.get(name)
        impl = self._impls.get(name)
        if tool_def is None or impl is None:
            return error_result(PromptHubError(ErrorCode.INVALID_INPUT, f"Unknown tool: {name}"))

        args = args or {}
        if not isinstance(args, dict):
            return error_result(PromptHubError(ErrorCode.INVALID_INPUT, "Tool arguments must be an object"))
        missing = [k for k in tool_def.parameters.get("required", []) if k not in args]
        if missing:
            return error_result(PromptHubError(
                ErrorCode.INVALID_INPUT, f"Missing required arguments for {name}", missing,
            ))

        try:
            return await impl(**args)
        except PromptHubError as e:
            logger.info(f"Tool '{name}' returned {e.code.value}: {e.message}")
            return error_result(e)
        except Exception as e:
            logger.error(f"Tool '{name}' failed: {e}", exc_info=True)
            return error_result(error_from_exception(e))


def _require_object(name: str, value: Any) -> dict:
    if not isinstance(value, dict):
        raise PromptHubError(ErrorCode.INVALID_INPUT, f"'{name}' must be an object")
    return value


def create_default_registry(router: "PromptRouter") -> ToolRegistry:
    """Wire the five PromptHub tools to a router."""
    registry = ToolRegistry()

    async def execute_prompt(promptId: str, inputs: dict, version: str | None = None,
                             modelProvider: str | None = None, caller: str | None = None, **_: Any) -> dict:
        context = ExecutionContext(caller=caller or DEFAULT_CALLER, model_provider=modelProvider)
        result = await router.execute_prompt(promptId, _require_object("inputs", inputs), context, version)
        return tool_result(result.to_dict(), is_error=not result.success)

    async def search_prompts(query: str, tags: list[str] | None = None, author: str | None = None,
                             limit: int = 10, offset: int = 0, **_: Any) -> dict:
        results = await router.search_prompts(
            SearchQuery(text=query, tags=tags, author=author, limit=int(limit or 10), offset=int(offset or 0))
        )
        return tool_result([p.to_dict() for p in results])

    async def get_prompt_info(promptId: str, version: str | None = None, **_: Any) -> dict:
        return tool_result(await router.get_prompt_info(promptId, version))

    async def validate_prompt_input(promptId: str, inputs: dict, version: str | None = None, **_: Any) -> dict:
        validation = await router.validate_prompt_input(promptId, _require_object("inputs", inputs), version)
        return tool_result(validation.to_dict())

    async def compose_prompt_dag(dag: dict, rootInputs: dict, caller: str | None = None,
                                 modelProvider: str | None = None, **_: Any) -> dict:
        context = ExecutionContext(caller=caller or DEFAULT_CALLER, model_provider=modelProvider)
        result = await router.execute_dag(dag, _require_object("rootInputs", rootInputs), context)
        return tool_result(result.to_dict(), is_error=not result.success)

    registry.register(EXECUTE_PROMPT, execute_prompt)
    registry.register(SEARCH_PROMPTS, search_prompts)
    registry.register(GET_PROMPT_INFO, get_prompt_info)
    registry.register(VALIDATE_PROMPT_INPUT, validate_prompt_input)
    registry.register(COMPOSE_PROMPT_DAG, compose_prompt_dag)
    return registry


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


def list_resources() -> list[dict]:
    return [dict(r) for r in RESOURCES]


async def read_resource(router: "PromptRouter", uri: str) -> dict:
    if uri == "prompthub://vault/prompts":
        prompts = await router.vault.list_prompts()
        payload: Any = [p.to_dict() for p in router._with_live_metadata(prompts)]
    elif uri == "prompthub://vault/metadata":
        payload = await router.vault.get_vault_metadata()
    else:
        raise PromptHubError(ErrorCode.PROMPT_NOT_FOUND, f"Resource not found: {uri}")
    return {"contents": [{"uri": uri, "mimeType": "application/json", "text": json.dumps(payload, indent=2)}]}
