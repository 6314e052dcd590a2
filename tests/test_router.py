"""Test the prompt router."""

import asyncio

import pytest

from prompthub.errors import ErrorCode, PromptHubError
from prompthub.events import EventBus
from prompthub.models import ExecutionContext, SearchQuery
from prompthub.providers.factory import create_default_registry
from prompthub.providers.mock_provider import ScriptedAdapter
from prompthub.router import PromptRouter, cache_key
from prompthub.vault import InMemoryVault


def make_router(adapter=None, event_bus=None):
    vault = InMemoryVault()
    vault.register({
        "id": "summarize", "version": "1.0.0", "name": "Summarize", "description": "Summarize text",
        "author": "alice", "template": "Summarize: {{text}}", "tags": ["text"],
        "inputs": {"text": {"type": "string", "required": True}},
    })
    vault.register({
        "id": "summarize", "version": "2.0.0", "name": "Summarize", "description": "Summarize text better",
        "author": "alice", "template": "Summarize v2: {{text}}", "tags": ["text"],
        "inputs": {"text": {"type": "string", "required": True}},
    })
    vault.register(
        {"id": "secret", "version": "1", "name": "Secret", "author": "alice", "template": "shh"},
        {"accessPolicy": {"type": "private"}},
    )
    adapters = create_default_registry()
    if adapter is not None:
        adapters.register_instance("mock", adapter)
    return PromptRouter(vault, adapters=adapters, event_bus=event_bus, default_provider="mock")


def ctx(caller="bob"):
    return ExecutionContext(caller=caller)


def test_cache_key():
    assert cache_key("p") == "p@latest"
    assert cache_key("p", "1.0") == "p@1.0"


def test_execute_latest_and_pinned_version():
    router = make_router(ScriptedAdapter([lambda r: r.prompt, lambda r: r.prompt]))
    latest = asyncio.run(router.execute_prompt("summarize", {"text": "hi"}, ctx()))
    pinned = asyncio.run(router.execute_prompt("summarize", {"text": "hi"}, ctx(), version="1.0.0"))
    assert latest.output["content"] == "Summarize v2: hi"
    assert latest.metadata["version"] == "2.0.0"
    assert pinned.output["content"] == "Summarize: hi"


def test_prompt_not_found_is_a_response():
    router = make_router()
    result = asyncio.run(router.execute_prompt("missing", {}, ctx()))
    assert not result.success
    assert result.error["code"] == "PROMPT_NOT_FOUND"
    assert result.error["message"] == "Prompt not found: missing"


def test_get_module_not_found_raises():
    router = make_router()
    with pytest.raises(PromptHubError) as exc:
        asyncio.run(router.get_module("summarize", "9.9.9"))
    assert exc.value.code == ErrorCode.PROMPT_NOT_FOUND
    assert exc.value.message == "Prompt not found: summarize@9.9.9"


def test_vault_failure_is_blockchain_error():
    class BrokenVault(InMemoryVault):
        async def get_prompt(self, prompt_id, version=None):
            raise ConnectionError("rpc down")

    router = PromptRouter(BrokenVault())
    with pytest.raises(PromptHubError) as exc:
        asyncio.run(router.get_module("p"))
    assert exc.value.code == ErrorCode.BLOCKCHAIN_ERROR


def test_module_cache_converges():
    router = make_router()

    async def load_many():
        return await asyncio.gather(*[router.get_module("summarize") for _ in range(10)])

    modules = asyncio.run(load_many())
    assert all(m is modules[0] for m in modules)
    assert len(router.cache) == 1


def test_successful_executions_are_recorded():
    router = make_router()
    asyncio.run(router.execute_prompt("summarize", {"text": "hi"}, ctx()))
    asyncio.run(router.execute_prompt("summarize", {}, ctx()))

    executions = router.vault.executions
    assert len(executions) == 1
    assert executions[0].prompt_id == "summarize"
    assert executions[0].success
    assert len(executions[0].input_hash) == 64


def test_recording_failure_does_not_fail_execution():
    class ReadOnlyVault(InMemoryVault):
        async def record_execution(self, *args):
            raise OSError("read only")

    vault = ReadOnlyVault()
    vault.register({"id": "p", "version": "1", "template": "hi"})
    router = PromptRouter(vault, default_provider="mock")
    result = asyncio.run(router.execute_prompt("p", {}, ctx()))
    assert result.success


def test_events_for_success_and_failure():
    bus = EventBus()
    router = make_router(event_bus=bus)
    asyncio.run(router.execute_prompt("summarize", {"text": "hi"}, ctx()))
    asyncio.run(router.execute_prompt("secret", {}, ctx()))
    events = bus.recent()
    assert [e.type for e in events] == ["prompt.executed", "prompt.failed"]
    assert events[1].data["code"] == "ACCESS_DENIED"


def test_search_reflects_live_execution_counts():
    router = make_router()
    asyncio.run(router.initialize())
    assert len(router.search_index) == 2

    asyncio.run(router.execute_prompt("summarize", {"text": "hi"}, ctx()))
    results = asyncio.run(router.search_prompts(SearchQuery(text="summarize")))
    assert [p.id for p in results] == ["summarize"]
    assert results[0].execution_count == 1
    assert results[0].version == "2.0.0"


def test_pinned_and_unpinned_runs_share_one_count():
    router = make_router()
    asyncio.run(router.execute_prompt("summarize", {"text": "hi"}, ctx()))
    asyncio.run(router.execute_prompt("summarize", {"text": "hi"}, ctx(), version="2.0.0"))

    assert router.cache.get(cache_key("summarize")) is router.cache.get(cache_key("summarize", "2.0.0"))
    info = asyncio.run(router.get_prompt_info("summarize"))
    assert info["metadata"]["executionCount"] == 2
    pinned_info = asyncio.run(router.get_prompt_info("summarize", "2.0.0"))
    assert pinned_info["metadata"]["executionCount"] == 2
    results = asyncio.run(router.search_prompts(SearchQuery(text="summarize")))
    assert results[0].execution_count == 2


def test_resolve_prompt():
    router = make_router()
    assert asyncio.run(router.resolve_prompt(SearchQuery(text="secret"))).id == "secret"
    assert asyncio.run(router.resolve_prompt(SearchQuery(text="nothing like this"))) is None


def test_get_prompt_info():
    router = make_router()
    info = asyncio.run(router.get_prompt_info("secret"))
    assert info["definition"]["template"] == "shh"
    assert info["accessControl"] == {"type": "private"}
    assert info["royaltyInfo"] == {}
    assert info["metadata"]["id"] == "secret"


def test_validate_prompt_input():
    router = make_router()
    result = asyncio.run(router.validate_prompt_input("summarize", {"text": 1, "x": 2}))
    assert not result.valid
    assert result.errors == ["Parameter 'text' must be a string"]
    assert result.warnings == ["Unexpected parameter 'x' will be ignored"]
