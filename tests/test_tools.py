"""Test tool registry, definitions and resources."""

import asyncio
import json

import pytest

from prompthub.errors import PromptHubError
from prompthub.models import ToolDef
from prompthub.router import PromptRouter
from prompthub.tools import ALL_TOOLS, ToolRegistry, create_default_registry, list_resources, read_resource
from prompthub.vault import InMemoryVault


def make_router():
    vault = InMemoryVault(name="test-vault")
    vault.register({
        "id": "summarize", "version": "1.0.0", "name": "Summarize", "description": "Summarize text",
        "template": "Summarize: {{text}}", "tags": ["text"],
        "inputs": {"text": {"type": "string", "required": True, "minLength": 1}},
    })
    return PromptRouter(vault, default_provider="mock")


def call(registry, name, args):
    result = asyncio.run(registry.dispatch(name, args))
    return result, json.loads(result["content"][0]["text"])


def test_all_tools_defined():
    names = [t.name for t in ALL_TOOLS]
    assert names == [
        "execute_prompt", "search_prompts", "get_prompt_info", "validate_prompt_input", "compose_prompt_dag",
    ]
    for tool in ALL_TOOLS:
        assert tool.parameters["type"] == "object"
        assert tool.parameters["required"]


def test_registry_creation():
    registry = create_default_registry(make_router())
    assert len(registry.names()) == 5
    assert registry.get_def("execute_prompt").parameters["required"] == ["promptId", "inputs"]
    assert registry.get_def("nonexistent") is None
    assert registry.list_tools()[0].to_dict()["inputSchema"]["type"] == "object"


def test_unknown_tool():
    result, payload = call(ToolRegistry(), "nope", {})
    assert result["isError"]
    assert payload["error"]["code"] == "INVALID_INPUT"


def test_missing_required_arguments():
    registry = create_default_registry(make_router())
    result, payload = call(registry, "execute_prompt", {"promptId": "summarize"})
    assert result["isError"]
    assert payload["error"]["code"] == "INVALID_INPUT"
    assert payload["error"]["details"] == ["inputs"]


def test_dispatch_never_raises():
    registry = ToolRegistry()

    async def broken(**kwargs):
        raise KeyError("boom")

    registry.register(ToolDef(name="broken", description="", parameters={"type": "object"}), broken)
    result, payload = call(registry, "broken", {})
    assert result["isError"]
    assert payload["error"]["code"] == "EXECUTION_FAILED"


def test_execute_prompt_tool():
    registry = create_default_registry(make_router())
    result, payload = call(registry, "execute_prompt", {"promptId": "summarize", "inputs": {"text": "hello"}})
    assert "isError" not in result
    assert payload["success"]
    assert "hello" in payload["output"]["content"]
    assert payload["signature"]


def test_execute_prompt_tool_failure_is_flagged():
    registry = create_default_registry(make_router())
    result, payload = call(registry, "execute_prompt", {"promptId": "summarize", "inputs": {"text": ""}})
    assert result["isError"]
    assert payload["metadata"]["error"]["code"] == "INVALID_INPUT"


def test_inputs_must_be_an_object():
    registry = create_default_registry(make_router())
    result, payload = call(registry, "validate_prompt_input", {"promptId": "summarize", "inputs": "text"})
    assert result["isError"]
    assert payload["error"]["code"] == "INVALID_INPUT"


def test_search_prompts_tool():
    registry = create_default_registry(make_router())
    _, payload = call(registry, "search_prompts", {"query": "summ", "tags": ["text"]})
    assert [p["id"] for p in payload] == ["summarize"]


def test_get_prompt_info_tool_not_found():
    registry = create_default_registry(make_router())
    result, payload = call(registry, "get_prompt_info", {"promptId": "ghost"})
    assert result["isError"]
    assert payload["error"]["code"] == "PROMPT_NOT_FOUND"


def test_validate_prompt_input_tool():
    registry = create_default_registry(make_router())
    _, payload = call(registry, "validate_prompt_input", {"promptId": "summarize", "inputs": {}})
    assert payload == {"valid": False, "errors": ["Required parameter 'text' is missing"], "warnings": []}


def test_compose_prompt_dag_tool():
    registry = create_default_registry(make_router())
    dag = {"nodes": [{"id": "a", "promptId": "summarize"}, {"id": "b", "promptId": "summarize", "dependencies": ["a"]}]}
    result, payload = call(registry, "compose_prompt_dag", {"dag": dag, "rootInputs": {"text": "hello"}})
    assert "isError" not in result
    assert payload["success"]
    assert payload["executionOrder"] == ["a", "b"]


def test_compose_prompt_dag_tool_cycle():
    registry = create_default_registry(make_router())
    dag = {"nodes": [{"id": "a", "promptId": "summarize", "dependencies": ["a"]}]}
    result, payload = call(registry, "compose_prompt_dag", {"dag": dag, "rootInputs": {}})
    assert result["isError"]
    assert payload["error"]["nodeId"] == "validation"


def test_resources():
    uris = [r["uri"] for r in list_resources()]
    assert uris == ["prompthub://vault/prompts", "prompthub://vault/metadata"]

    router = make_router()
    prompts = asyncio.run(read_resource(router, "prompthub://vault/prompts"))
    assert json.loads(prompts["contents"][0]["text"])[0]["id"] == "summarize"

    meta = asyncio.run(read_resource(router, "prompthub://vault/metadata"))
    assert json.loads(meta["contents"][0]["text"])["name"] == "test-vault"

    with pytest.raises(PromptHubError):
        asyncio.run(read_resource(router, "prompthub://nope"))
