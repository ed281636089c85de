"""Execution Engine for workflow processing."""

import asyncio
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from ..models.core import (
    BranchSkipPolicy,
    ErrorEntry,
    ErrorType,
    ExecutionReport,
    LogEntry,
    LogStatus,
    NodeStatus,
    WorkflowEdge,
    WorkflowNode,
)
from .action_registry import ActionRegistry
from .exceptions import CycleError, GraphValidationError
from .graph import ExecutionGraph
from .logging import get_logger, logging_context
from .scheduler import topological_order

logger = get_logger(__name__)

CONDITION_KIND = "condition"
SCHEDULE_KIND = "schedule"
CONDITION_ACTION = "evaluate"
TIMEOUT_RESULT = {"success": False, "error": "timeout"}

NodeLike = Union[WorkflowNode, Dict[str, Any]]
EdgeLike = Union[WorkflowEdge, Dict[str, Any]]


class ExecutionContext:
    """Accumulated results, logs and errors of a single run."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        self.results: Dict[str, Any] = {}
        self.logs: List[LogEntry] = []
        self.errors: List[ErrorEntry] = []
        self._started = time.perf_counter()

    def log(
        self,
        node: WorkflowNode,
        status: LogStatus,
        result: Any = None,
        error: Optional[str] = None
    ) -> None:
        self.logs.append(LogEntry(
            node_id=node.id,
            node_kind=node.kind,
            status=status,
            result=result,
            error=error
        ))

    def record_error(self, error: ErrorEntry) -> None:
        self.errors.append(error)

    def input_for(self, predecessors: List[str]) -> Any:
        """Input of a node: nothing, its single upstream result, or a map by upstream id."""
        if not predecessors:
            return {}
        if len(predecessors) == 1:
            return self._result_or_empty(predecessors[0])
        return {node_id: self._result_or_empty(node_id) for node_id in predecessors}

    def _result_or_empty(self, node_id: str) -> Any:
        result = self.results.get(node_id)
        return {} if result is None else result

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000

    def report(self, execution_order: List[str]) -> ExecutionReport:
        return ExecutionReport(
            success=not self.errors,
            logs=list(self.logs),
            results=dict(self.results),
            execution_order=execution_order,
            execution_time_ms=round(self.elapsed_ms(), 3),
            errors=list(self.errors)
        )


class ExecutionEngine:
    """Runs workflow graphs node by node in dependency order.

    The engine holds configuration only. Every call to ``run`` allocates its
    own ExecutionContext, so one instance can serve concurrent runs.
    """

    def __init__(
        self,
        action_registry: ActionRegistry,
        node_timeout: Optional[float] = None,
        branch_skip_policy: BranchSkipPolicy = BranchSkipPolicy.TRANSITIVE,
        strict_edges: bool = False
    ):
        """Initialize the execution engine.

        Args:
            action_registry: Registry resolving node handlers
            node_timeout: Seconds a handler may take before it is reported as timed out
            branch_skip_policy: What to do after a condition evaluates false
            strict_edges: Fail runs whose edges reference unknown nodes
        """
        self.action_registry = action_registry
        self.node_timeout = node_timeout if node_timeout and node_timeout > 0 else None
        self.branch_skip_policy = BranchSkipPolicy(branch_skip_policy)
        self.strict_edges = strict_edges

        logger.info(
            f"ExecutionEngine initialized with node_timeout={self.node_timeout}, "
            f"branch_skip_policy={self.branch_skip_policy.value}"
        )

    async def run(
        self,
        nodes: Iterable[NodeLike],
        edges: Iterable[EdgeLike],
        run_id: Optional[str] = None
    ) -> ExecutionReport:
        """
        Execute a workflow graph.

        Args:
            nodes: Workflow nodes (models or canvas dicts); statuses are updated in place
            edges: Workflow edges (models or dicts with source/target)
            run_id: Optional identifier used to tag log records

        Returns:
            ExecutionReport: Logs, per-node results, order, duration and errors
        """
        run_id = run_id or str(uuid.uuid4())
        context = ExecutionContext(run_id)

        with logging_context(run_id=run_id):
            workflow_nodes = [self._coerce_node(node) for node in nodes]
            workflow_edges = [self._coerce_edge(edge) for edge in edges]
            logger.info(f"Starting workflow run {run_id} with {len(workflow_nodes)} nodes")

            try:
                graph = ExecutionGraph.build(workflow_nodes, workflow_edges, strict=self.strict_edges)
                order = topological_order(graph)
            except GraphValidationError as e:
                logger.warning(f"Workflow run {run_id} rejected: {e.message}")
                context.record_error(ErrorEntry(
                    type=ErrorType.CYCLE if isinstance(e, CycleError) else ErrorType.INVALID_GRAPH,
                    node_id=e.node_id,
                    node_kind=self._kind_of(workflow_nodes, e.node_id),
                    message=e.message
                ))
                return context.report(execution_order=[])

            await self._execute_nodes(order, graph, context)

            report = context.report(execution_order=[node.id for node in order])
            logger.info(
                f"Workflow run {run_id} finished: success={report.success}, "
                f"errors={len(report.errors)}, time={report.execution_time_ms:.1f}ms"
            )
            return report

    async def _execute_nodes(
        self,
        order: List[WorkflowNode],
        graph: ExecutionGraph,
        context: ExecutionContext
    ) -> None:
        skipped: Set[str] = set()

        for position, node in enumerate(order):
            if node.id in skipped:
                continue

            node.status = NodeStatus.RUNNING
            context.log(node, LogStatus.RUNNING)

            try:
                input_data = context.input_for(graph.predecessors[node.id])
                result = await self._execute_node(node, input_data)
                context.results[node.id] = result

                if node.kind == CONDITION_KIND and not self._apply_condition(node, result, input_data, context):
                    downstream = graph.descendants(node.id)
                    node.status = NodeStatus.SKIPPED_BRANCH

                    if self.branch_skip_policy is BranchSkipPolicy.HALT:
                        skip_count = 0
                        for upcoming in order[position + 1:]:
                            if upcoming.id not in downstream:
                                break
                            skip_count += 1
                        self._log_skipped_branch(node, skip_count, context)
                        logger.info(f"Condition {node.id} is false, halting run")
                        break

                    skipped.update(downstream)
                    self._log_skipped_branch(node, len(downstream), context)
                    continue

                node.status = NodeStatus.SUCCESS
                context.log(node, LogStatus.SUCCESS, result=result)
                logger.debug(f"Successfully executed node {node.id}")

            except Exception as e:
                message = str(e) or type(e).__name__
                critical = bool(getattr(e, "critical", False))
                logger.error(f"Node {node.id} ({node.kind}) execution failed: {message}")

                node.status = NodeStatus.ERROR
                context.log(node, LogStatus.ERROR, error=message)
                context.record_error(ErrorEntry(
                    type=ErrorType.NODE_ERROR,
                    node_id=node.id,
                    node_kind=node.kind,
                    message=message,
                    critical=critical
                ))

                if critical:
                    logger.error(f"Critical error at node {node.id}, aborting remaining schedule")
                    break

    async def _execute_node(self, node: WorkflowNode, input_data: Any) -> Any:
        action = self.resolve_action(node)
        handler = self.action_registry.resolve(node.kind, action)
        payload = {**node.config, "input": input_data}

        logger.debug(f"Executing node {node.id} with handler {node.kind}.{action}")

        if self.node_timeout is None:
            return await handler(payload)

        try:
            return await asyncio.wait_for(handler(payload), timeout=self.node_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Node {node.id} timed out after {self.node_timeout} seconds")
            return dict(TIMEOUT_RESULT)

    def _apply_condition(
        self,
        node: WorkflowNode,
        result: Any,
        input_data: Any,
        context: ExecutionContext
    ) -> bool:
        """Replace a passing condition's result with the data it lets through."""
        passed = isinstance(result, dict) and result.get("result") is True
        if not passed:
            return False

        filtered = result.get("filteredEmails")
        if isinstance(filtered, list):
            context.results[node.id] = {"emails": filtered, "success": True}
        else:
            context.results[node.id] = input_data
        return True

    @staticmethod
    def _log_skipped_branch(node: WorkflowNode, count: int, context: ExecutionContext) -> None:
        context.log(
            node,
            LogStatus.SKIPPED_BRANCH,
            error=f"Condition false, skipped {count} connected nodes"
        )

    @staticmethod
    def resolve_action(node: WorkflowNode) -> str:
        """Action used to look up a node's handler."""
        if node.kind == CONDITION_KIND:
            return CONDITION_ACTION
        if node.kind == SCHEDULE_KIND:
            return node.config.get("scheduleType") or node.action
        return node.config.get("action") or node.action

    @staticmethod
    def _coerce_node(node: NodeLike) -> WorkflowNode:
        if isinstance(node, WorkflowNode):
            return node
        return WorkflowNode.from_canvas(node)

    @staticmethod
    def _coerce_edge(edge: EdgeLike) -> WorkflowEdge:
        if isinstance(edge, WorkflowEdge):
            return edge
        return WorkflowEdge.model_validate(edge)

    @staticmethod
    def _kind_of(nodes: List[WorkflowNode], node_id: Optional[str]) -> Optional[str]:
        for node in nodes:
            if node.id == node_id:
                return node.kind
        return None
