"""Core data structures for PromptHub."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from prompthub.errors import ErrorCode, PromptHubError


def generate_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


class _Missing:
    """Sentinel for a parameter default that was never declared."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def _invalid(message: str, details: Any = None) -> PromptHubError:
    return PromptHubError(ErrorCode.VALIDATION_ERROR, message, details)


def _drop_empty(d: dict) -> dict:
    return {k: v for k, v in d.items() if v is not None and v is not MISSING}


# ---------------------------------------------------------------------------
# Prompt definitions
# ---------------------------------------------------------------------------

PARAMETER_TYPES = ("string", "number", "boolean", "array", "object")


@dataclass
class ParameterSpec:
    """Contract for one input parameter."""

    type: str
    required: bool = False
    default: Any = MISSING
    description: str | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    enum: list[Any] | None = None
    minimum: float | None = None
    maximum: float | None = None
    items: ParameterSpec | None = None
    min_items: int | None = None
    max_items: int | None = None
    properties: dict[str, ParameterSpec] | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    @classmethod
    def from_dict(cls, data: dict, name: str = "") -> ParameterSpec:
        if not isinstance(data, dict):
            raise _invalid(f"Parameter '{name}' spec must be an object")
        ptype = data.get("type")
        if ptype not in PARAMETER_TYPES:
            raise _invalid(f"Parameter '{name}' has unsupported type: {ptype!r}")
        required = data.get("required", False)
        if not isinstance(required, bool):
            raise _invalid(f"Parameter '{name}' has non-boolean required flag: {required!r}")
        default = data["default"] if "default" in data else MISSING
        if required and default is not MISSING:
            raise _invalid(f"Parameter '{name}' is required and must not declare a default")

        items = data.get("items")
        properties = data.get("properties")
        return cls(
            type=ptype,
            required=required,
            default=default,
            description=data.get("description"),
            min_length=data.get("minLength"),
            max_length=data.get("maxLength"),
            pattern=data.get("pattern"),
            enum=data.get("enum"),
            minimum=data.get("minimum"),
            maximum=data.get("maximum"),
            items=cls.from_dict(items, f"{name}[]") if items is not None else None,
            min_items=data.get("minItems"),
            max_items=data.get("maxItems"),
            properties=(
                {k: cls.from_dict(v, f"{name}.{k}") for k, v in properties.items()}
                if properties is not None else None
            ),
        )

    def to_dict(self) -> dict:
        return _drop_empty({
            "type": self.type,
            "required": self.required,
            "default": self.default,
            "description": self.description,
            "minLength": self.min_length,
            "maxLength": self.max_length,
            "pattern": self.pattern,
            "enum": self.enum,
            "minimum": self.minimum,
            "maximum": self.maximum,
            "items": self.items.to_dict() if self.items else None,
            "minItems": self.min_items,
            "maxItems": self.max_items,
            "properties": (
                {k: v.to_dict() for k, v in self.properties.items()} if self.properties is not None else None
            ),
        })


@dataclass
class OutputSchema:
    """Declared shape of a prompt's output. Advisory only."""

    type: str = "object"
    properties: dict[str, Any] | None = None
    required: list[str] | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> OutputSchema:
        data = data or {}
        return cls(
            type=data.get("type", "object"),
            properties=data.get("properties"),
            required=data.get("required"),
        )

    def to_dict(self) -> dict:
        return _drop_empty({"type": self.type, "properties": self.properties, "required": self.required})


@dataclass(frozen=True)
class PromptDefinition:
    """Immutable description of a prompt as stored in the vault."""

    id: str
    version: str
    template: str
    inputs: dict[str, ParameterSpec] = field(default_factory=dict)
    name: str = ""
    description: str = ""
    author: str = ""
    license: str = ""
    output_schema: OutputSchema = field(default_factory=OutputSchema)
    dependencies: list[str] = field(default_factory=list)
    execution_settings: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    models: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> PromptDefinition:
        if not isinstance(data, dict):
            raise _invalid("Invalid prompt definition")
        for key in ("id", "version", "template"):
            if not isinstance(data.get(key), str) or not data[key]:
                raise _invalid("Invalid prompt definition", [f"'{key}' must be a non-empty string"])
        inputs = data.get("inputs") or {}
        if not isinstance(inputs, dict):
            raise _invalid("Invalid prompt definition", ["'inputs' must be an object"])
        return cls(
            id=data["id"],
            version=data["version"],
            template=data["template"],
            inputs={k: ParameterSpec.from_dict(v, k) for k, v in inputs.items()},
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            author=data.get("author", ""),
            license=data.get("license", ""),
            output_schema=OutputSchema.from_dict(data.get("output_schema", data.get("outputSchema"))),
            dependencies=list(data.get("dependencies") or []),
            execution_settings=dict(data.get("execution_settings", data.get("executionSettings")) or {}),
            tags=list(data.get("tags") or []),
            models=list(data.get("models") or []),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "author": self.author,
            "license": self.license,
            "inputs": {k: v.to_dict() for k, v in self.inputs.items()},
            "template": self.template,
            "output_schema": self.output_schema.to_dict(),
            "dependencies": list(self.dependencies),
            "execution_settings": dict(self.execution_settings),
            "tags": list(self.tags),
            "models": list(self.models),
        }


# ---------------------------------------------------------------------------
# Access & metadata
# ---------------------------------------------------------------------------


class AccessType(str, Enum):
    """Access policy kinds."""
    PUBLIC = "public"
    PRIVATE = "private"
    TOKEN_GATED = "token_gated"
    NFT_GATED = "nft_gated"
    CUSTOM = "custom"


@dataclass
class AccessPolicy:
    type: AccessType = AccessType.PUBLIC
    token_address: str | None = None
    minimum_balance: float | None = None
    whitelist: list[str] | None = None
    max_usage_per_day: int | None = None  # declared only; rate limiting happens elsewhere
    expiration_date: int | None = None  # epoch millis

    @classmethod
    def from_dict(cls, data: dict | None) -> AccessPolicy:
        data = data or {}
        try:
            ptype = AccessType(data.get("type", "public"))
        except ValueError:
            raise _invalid(f"Unknown access policy type: {data.get('type')!r}")
        balance = data.get("minimumBalance")
        return cls(
            type=ptype,
            token_address=data.get("tokenAddress"),
            minimum_balance=float(balance) if balance is not None else None,
            whitelist=list(data["whitelist"]) if data.get("whitelist") is not None else None,
            max_usage_per_day=data.get("maxUsagePerDay"),
            expiration_date=data.get("expirationDate"),
        )

    def to_dict(self) -> dict:
        return _drop_empty({
            "type": self.type.value,
            "tokenAddress": self.token_address,
            "minimumBalance": self.minimum_balance,
            "whitelist": self.whitelist,
            "maxUsagePerDay": self.max_usage_per_day,
            "expirationDate": self.expiration_date,
        })


@dataclass
class PromptMetadata:
    id: str
    name: str = ""
    description: str = ""
    version: str = ""
    author: str = ""
    license: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    execution_count: int = 0
    average_rating: float | None = None
    access_policy: AccessPolicy = field(default_factory=AccessPolicy)
    royalty_config: dict[str, int] = field(default_factory=dict)  # basis points, informational

    @classmethod
    def from_dict(cls, data: dict) -> PromptMetadata:
        if not isinstance(data, dict) or not data.get("id"):
            raise _invalid("Invalid prompt metadata")
        now = now_ms()
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description", ""),
            version=data.get("version", ""),
            author=data.get("author", ""),
            license=data.get("license", ""),
            tags=list(data.get("tags") or []),
            created_at=data.get("createdAt", now),
            updated_at=data.get("updatedAt", now),
            execution_count=data.get("executionCount", 0),
            average_rating=data.get("averageRating"),
            access_policy=AccessPolicy.from_dict(data.get("accessPolicy")),
            royalty_config=dict(data.get("royaltyConfig") or {}),
        )

    @classmethod
    def from_definition(cls, definition: PromptDefinition, **overrides: Any) -> PromptMetadata:
        """Derive metadata from a definition when the vault stores none."""
        values: dict[str, Any] = {
            "id": definition.id,
            "name": definition.name,
            "description": definition.description,
            "version": definition.version,
            "author": definition.author,
            "license": definition.license,
            "tags": list(definition.tags),
        }
        values.update(overrides)
        return cls(**values)

    def to_dict(self) -> dict:
        return _drop_empty({
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "author": self.author,
            "license": self.license,
            "tags": list(self.tags),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "executionCount": self.execution_count,
            "averageRating": self.average_rating,
            "accessPolicy": self.access_policy.to_dict(),
            "royaltyConfig": dict(self.royalty_config),
        })


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


@dataclass
class ExecutionContext:
    """Per-invocation envelope threaded through a pipeline run."""

    caller: str
    timestamp: int = field(default_factory=now_ms)
    request_id: str = field(default_factory=generate_id)
    model_provider: str | None = None
    previous_outputs: dict[str, Any] | None = None
    settings: dict[str, Any] | None = None

    def validation_errors(self) -> list[str]:
        errors = []
        if not isinstance(self.caller, str) or not self.caller:
            errors.append("caller must be a non-empty string")
        if not isinstance(self.request_id, str) or not self.request_id:
            errors.append("requestId must be a non-empty string")
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, (int, float)):
            errors.append("timestamp must be a number")
        return errors


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self):
        if not self.total_tokens:
            self.total_tokens = self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> dict:
        return {
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
        }


@dataclass
class ModuleResponse:
    """Outcome of one pipeline run, success or structured failure."""

    success: bool
    output: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)
    execution_time: int = 0
    signature: str | None = None
    token_usage: TokenUsage | None = None

    @property
    def error(self) -> dict | None:
        return self.metadata.get("error")

    @classmethod
    def failure(cls, error: PromptHubError, metadata: dict[str, Any], execution_time: int) -> ModuleResponse:
        return cls(
            success=False,
            output=None,
            metadata={**metadata, "executionTime": execution_time, "error": error.to_dict()},
            execution_time=execution_time,
        )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "success": self.success,
            "output": self.output,
            "metadata": self.metadata,
            "executionTime": self.execution_time,
        }
        if self.signature:
            d["signature"] = self.signature
        if self.token_usage:
            d["tokenUsage"] = self.token_usage.to_dict()
        return d


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


# ---------------------------------------------------------------------------
# DAG
# ---------------------------------------------------------------------------


@dataclass
class DAGNode:
    """One prompt invocation within a composed workflow."""

    id: str
    prompt_id: str
    version: str | None = None
    inputs: dict[str, Any] = field(default_factory=dict)
    dependencies: list[str] = field(default_factory=list)  # IDs of prerequisite nodes

    @classmethod
    def from_dict(cls, data: dict) -> DAGNode:
        if not isinstance(data, dict):
            raise _invalid("DAG node must be an object")
        node_id = data.get("id")
        prompt_id = data.get("promptId", data.get("prompt_id"))
        if not node_id or not prompt_id:
            raise _invalid("DAG node requires 'id' and 'promptId'", data)
        return cls(
            id=node_id,
            prompt_id=prompt_id,
            version=data.get("version"),
            inputs=dict(data.get("inputs") or {}),
            dependencies=list(data.get("dependencies") or []),
        )

    def to_dict(self) -> dict:
        return _drop_empty({
            "id": self.id,
            "promptId": self.prompt_id,
            "version": self.version,
            "inputs": self.inputs,
            "dependencies": self.dependencies,
        })


@dataclass
class DAGEdge:
    """Informational edge. node.dependencies is the authoritative graph."""

    from_node: str
    to_node: str
    output_key: str | None = None
    input_key: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> DAGEdge:
        return cls(
            from_node=data.get("from", ""),
            to_node=data.get("to", ""),
            output_key=data.get("outputKey"),
            input_key=data.get("inputKey"),
        )

    def to_dict(self) -> dict:
        return _drop_empty({
            "from": self.from_node,
            "to": self.to_node,
            "outputKey": self.output_key,
            "inputKey": self.input_key,
        })


@dataclass
class DAGDefinition:
    id: str
    nodes: list[DAGNode] = field(default_factory=list)
    edges: list[DAGEdge] = field(default_factory=list)
    name: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> DAGDefinition:
        if not isinstance(data, dict):
            raise _invalid("DAG definition must be an object")
        nodes = data.get("nodes")
        if not isinstance(nodes, list):
            raise _invalid("DAG definition requires a 'nodes' list")
        return cls(
            id=data.get("id") or generate_id(),
            nodes=[DAGNode.from_dict(n) for n in nodes],
            edges=[DAGEdge.from_dict(e) for e in data.get("edges") or []],
            name=data.get("name", ""),
            description=data.get("description", ""),
        )


@dataclass
class DAGExecutionResult:
    success: bool
    results: dict[str, ModuleResponse] = field(default_factory=dict)
    execution_order: list[str] = field(default_factory=list)
    total_execution_time: int = 0
    error: dict[str, Any] | None = None  # {"nodeId": ..., "error": {...}}

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "success": self.success,
            "results": {k: v.to_dict() for k, v in self.results.items()},
            "executionOrder": list(self.execution_order),
            "totalExecutionTime": self.total_execution_time,
        }
        if self.error is not None:
            d["error"] = self.error
        return d


# ---------------------------------------------------------------------------
# Search & tools
# ---------------------------------------------------------------------------


@dataclass
class SearchQuery:
    text: str = ""
    tags: list[str] | None = None
    author: str | None = None
    limit: int = 10
    offset: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> SearchQuery:
        return cls(
            text=data.get("query", data.get("text", "")) or "",
            tags=data.get("tags"),
            author=data.get("author"),
            limit=data.get("limit") or 10,
            offset=data.get("offset") or 0,
        )


@dataclass
class ToolDef:
    """Canonical tool definition exposed at the boundary."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema

    def to_dict(self) -> dict:
        return {"name": self.name, "description": self.description, "inputSchema": self.parameters}


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass
class Event:
    type: str
    subject_id: str  # prompt id or DAG id
    ts: float = field(default_factory=time.time)
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type, "subject_id": self.subject_id, "ts": self.ts, "data": self.data}
