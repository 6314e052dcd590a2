"""Prompt vault — the storage boundary that supplies prompt definitions and metadata."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from prompthub.errors import ErrorCode, PromptHubError
from prompthub.models import PromptDefinition, PromptMetadata, now_ms

logger = logging.getLogger(__name__)

LATEST = "latest"


@dataclass
class PromptRecord:
    definition: PromptDefinition
    metadata: PromptMetadata


@dataclass
class ExecutionRecord:
    prompt_id: str
    execution_id: str
    input_hash: str
    output_hash: str
    success: bool
    execution_time: int
    recorded_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        return {
            "promptId": self.prompt_id,
            "executionId": self.execution_id,
            "inputHash": self.input_hash,
            "outputHash": self.output_hash,
            "success": self.success,
            "executionTime": self.execution_time,
            "recordedAt": self.recorded_at,
        }


class PromptVault(Protocol):
    """What the core needs from prompt storage."""

    async def get_prompt(self, prompt_id: str, version: str | None = None) -> PromptRecord | None: ...

    async def list_prompts(
        self, author: str | None = None, limit: int | None = None, offset: int = 0
    ) -> list[PromptMetadata]: ...

    async def record_execution(
        self,
        prompt_id: str,
        execution_id: str,
        input_hash: str,
        output_hash: str,
        success: bool,
        execution_time: int,
    ) -> None: ...

    async def get_vault_metadata(self) -> dict[str, Any]: ...


class InMemoryVault:
    """Deterministic in-process vault. Keeps every registered version."""

    def __init__(self, records: list[PromptRecord] | None = None, name: str = "in-memory"):
        self.name = name
        self._versions: dict[str, dict[str, PromptRecord]] = {}
        self._latest: dict[str, str] = {}
        self.executions: list[ExecutionRecord] = []
        for record in records or []:
            self.add(record)

    def add(self, record: PromptRecord):
        pid = record.definition.id
        self._versions.setdefault(pid, {})[record.definition.version] = record
        self._latest[pid] = record.definition.version

    def register(self, definition: PromptDefinition | dict, metadata: PromptMetadata | dict | None = None) -> PromptRecord:
        """Register a prompt. Metadata fields not given are derived from the definition."""
        if isinstance(definition, dict):
            definition = PromptDefinition.from_dict(definition)
        if metadata is None:
            metadata = PromptMetadata.from_definition(definition)
        elif isinstance(metadata, dict):
            metadata = PromptMetadata.from_dict({**PromptMetadata.from_definition(definition).to_dict(), **metadata})
        record = PromptRecord(definition=definition, metadata=metadata)
        self.add(record)
        logger.debug(f"Registered prompt {definition.id}@{definition.version}")
        return record

    @classmethod
    def from_file(cls, path: str | Path) -> InMemoryVault:
        """Load `{"prompts": [{"definition": {...}, "metadata": {...}}]}` from a JSON file."""
        path = Path(path)
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise PromptHubError(ErrorCode.BLOCKCHAIN_ERROR, f"Failed to load prompts from {path}", str(e)) from e

        vault = cls(name=path.name)
        for entry in data.get("prompts", []):
            if "definition" in entry:
                vault.register(entry["definition"], entry.get("metadata"))
            else:
                vault.register(entry)
        logger.info(f"Loaded {len(vault._versions)} prompts from {path}")
        return vault

    async def get_prompt(self, prompt_id: str, version: str | None = None) -> PromptRecord | None:
        versions = self._versions.get(prompt_id)
        if not versions:
            return None
        if version is None or version == LATEST:
            version = self._latest[prompt_id]
        return versions.get(version)

    async def list_prompts(
        self, author: str | None = None, limit: int | None = None, offset: int = 0
    ) -> list[PromptMetadata]:
        prompts = [self._versions[pid][v].metadata for pid, v in self._latest.items()]
        if author:
            prompts = [p for p in prompts if p.author == author]
        prompts = prompts[offset:]
        return prompts[:limit] if limit is not None else prompts

    async def record_execution(
        self,
        prompt_id: str,
        execution_id: str,
        input_hash: str,
        output_hash: str,
        success: bool,
        execution_time: int,
    ) -> None:
        self.executions.append(
            ExecutionRecord(prompt_id, execution_id, input_hash, output_hash, success, execution_time)
        )

    async def get_vault_metadata(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "totalPrompts": len(self._versions),
            "totalVersions": sum(len(v) for v in self._versions.values()),
            "totalExecutions": len(self.executions),
        }
