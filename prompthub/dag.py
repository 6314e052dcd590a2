"""DAG executor — validates, orders and runs composed prompt workflows."""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable

from prompthub.config import MAX_DAG_NODES
from prompthub.errors import ErrorCode, PromptHubError, error_from_exception
from prompthub.events import EventBus
from prompthub.models import (
    DAGDefinition, DAGExecutionResult, DAGNode, ExecutionContext, ModuleResponse,
    generate_id, now_ms,
)

logger = logging.getLogger(__name__)

VALIDATION_NODE_ID = "validation"
DAG_CALLER = "dag-executor"

# (prompt_id, inputs, context, version) -> response
NodeRunner = Callable[[str, dict[str, Any], ExecutionContext, "str | None"], Awaitable[ModuleResponse]]


def validate_dag(dag: DAGDefinition, max_nodes: int = MAX_DAG_NODES):
    """Reject oversized graphs, duplicate ids, dangling dependencies and cycles."""
    if len(dag.nodes) > max_nodes:
        raise PromptHubError(
            ErrorCode.VALIDATION_ERROR,
            f"DAG has {len(dag.nodes)} nodes; the maximum is {max_nodes}",
        )

    seen: set[str] = set()
    duplicates = []
    for node in dag.nodes:
        if node.id in seen:
            duplicates.append(node.id)
        seen.add(node.id)
    if duplicates:
        raise PromptHubError(ErrorCode.VALIDATION_ERROR, "DAG contains duplicate node IDs", duplicates)

    for node in dag.nodes:
        for dep in node.dependencies:
            if dep not in seen:
                raise PromptHubError(
                    ErrorCode.VALIDATION_ERROR,
                    f"Node {node.id} depends on non-existent node {dep}",
                )

    topological_sort(dag)


def topological_sort(dag: DAGDefinition) -> list[DAGNode]:
    """Depth-first order: every node follows all of its dependencies.

    Independent nodes keep their relative order from the node list.
    Raises VALIDATION_ERROR when a node is revisited while still in progress.
    """
    node_map = {n.id: n for n in dag.nodes}
    visited: set[str] = set()
    in_progress: set[str] = set()
    order: list[DAGNode] = []

    def visit(node_id: str, path: list[str]):
        if node_id in in_progress:
            cycle = path[path.index(node_id):] + [node_id]
            raise PromptHubError(ErrorCode.VALIDATION_ERROR, "DAG contains cycles", cycle)
        if node_id in visited:
            return
        in_progress.add(node_id)
        for dep in node_map[node_id].dependencies:
            visit(dep, path + [node_id])
        in_progress.discard(node_id)
        visited.add(node_id)
        order.append(node_map[node_id])

    for node in dag.nodes:
        if node.id not in visited:
            visit(node.id, [])
    return order


def prepare_node_inputs(
    node: DAGNode,
    root_inputs: dict[str, Any],
    results: dict[str, ModuleResponse],
) -> dict[str, Any]:
    """Literal inputs, then object outputs of successful dependencies, then root inputs."""
    inputs = dict(node.inputs)
    for dep in node.dependencies:
        result = results.get(dep)
        if result is not None and result.success and isinstance(result.output, dict):
            inputs.update(result.output)
    inputs.update(root_inputs or {})
    return inputs


class DAGExecutor:
    """Runs the nodes of a DAG one at a time in topological order, stopping at the first failure."""

    def __init__(self, run_node: NodeRunner, event_bus: EventBus | None = None, max_nodes: int = MAX_DAG_NODES):
        self._run_node = run_node
        self._event_bus = event_bus
        self.max_nodes = max_nodes

    def _emit(self, type: str, dag_id: str, **data: Any):
        if self._event_bus:
            self._event_bus.emit_simple(type, dag_id, **data)

    async def execute(
        self,
        dag: DAGDefinition,
        root_inputs: dict[str, Any] | None = None,
        context: ExecutionContext | None = None,
    ) -> DAGExecutionResult:
        """Execute the DAG. Never raises; partial results survive a failure."""
        started = time.monotonic()
        results: dict[str, ModuleResponse] = {}
        execution_order: list[str] = []
        root_inputs = root_inputs or {}

        def elapsed() -> int:
            return int((time.monotonic() - started) * 1000)

        def failed(node_id: str, error: dict) -> DAGExecutionResult:
            self._emit("dag.failed", dag.id, node_id=node_id, error=error)
            return DAGExecutionResult(
                success=False,
                results=results,
                execution_order=execution_order,
                total_execution_time=elapsed(),
                error={"nodeId": node_id, "error": error},
            )

        try:
            validate_dag(dag, self.max_nodes)
            ordered = topological_sort(dag)
        except Exception as e:
            err = error_from_exception(e)
            logger.warning(f"DAG {dag.id} rejected: {err.message}")
            return failed(VALIDATION_NODE_ID, err.to_dict())

        logger.info(f"Executing DAG {dag.id}: {[n.id for n in ordered]}")
        self._emit("dag.started", dag.id, order=[n.id for n in ordered])

        for node in ordered:
            try:
                node_inputs = prepare_node_inputs(node, root_inputs, results)
                node_context = ExecutionContext(
                    caller=context.caller if context is not None else DAG_CALLER,
                    timestamp=now_ms(),
                    request_id=generate_id(),
                    model_provider=context.model_provider if context else None,
                    previous_outputs=dict(results),
                    settings=context.settings if context else None,
                )
                result = await self._run_node(node.prompt_id, node_inputs, node_context, node.version)
            except Exception as e:
                err = error_from_exception(e)
                logger.error(f"DAG {dag.id} node {node.id} raised: {err.message}", exc_info=True)
                results[node.id] = ModuleResponse.failure(err, {"promptId": node.prompt_id}, elapsed())
                execution_order.append(node.id)
                return failed(node.id, err.to_dict())

            results[node.id] = result
            execution_order.append(node.id)

            if not result.success:
                logger.warning(f"DAG {dag.id} stopped at node {node.id}")
                self._emit("dag.node.failed", dag.id, node_id=node.id, error=result.error)
                return failed(node.id, result.error or {})

            self._emit("dag.node.completed", dag.id, node_id=node.id, execution_time=result.execution_time)

        total = elapsed()
        logger.info(f"DAG {dag.id} completed in {total}ms")
        self._emit("dag.completed", dag.id, execution_order=execution_order, total_execution_time=total)
        return DAGExecutionResult(
            success=True,
            results=results,
            execution_order=execution_order,
            total_execution_time=total,
        )
