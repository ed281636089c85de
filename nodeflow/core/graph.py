"""Execution graph construction from node and edge lists."""

from typing import Dict, Iterable, List, Set

from ..models.core import WorkflowEdge, WorkflowNode
from .exceptions import GraphValidationError
from .logging import get_logger

logger = get_logger(__name__)

# Edges whose source or target is not among the given nodes are dropped
# without error, so partially wired graphs from the canvas still run.
DANGLING_EDGE_POLICY = "ignore"


class ExecutionGraph:
    """Predecessor and successor ids of every node, in edge insertion order."""

    def __init__(self):
        self.nodes: Dict[str, WorkflowNode] = {}
        self.predecessors: Dict[str, List[str]] = {}
        self.successors: Dict[str, List[str]] = {}
        self.dropped_edges: List[WorkflowEdge] = []

    @classmethod
    def build(
        cls,
        nodes: Iterable[WorkflowNode],
        edges: Iterable[WorkflowEdge],
        strict: bool = False
    ) -> "ExecutionGraph":
        """
        Build the dependency graph for one run.

        Args:
            nodes: Workflow nodes; ids must be unique
            edges: Workflow edges
            strict: Raise instead of dropping edges with unknown endpoints

        Returns:
            ExecutionGraph: The derived graph

        Raises:
            GraphValidationError: On duplicate node ids, or dangling edges in strict mode
        """
        graph = cls()

        for node in nodes:
            if node.id in graph.nodes:
                raise GraphValidationError(f"Duplicate node id: {node.id}", node_id=node.id)
            graph.nodes[node.id] = node
            graph.predecessors[node.id] = []
            graph.successors[node.id] = []

        for edge in edges:
            source, target = edge.source_node_id, edge.target_node_id
            if source not in graph.nodes or target not in graph.nodes:
                if strict:
                    raise GraphValidationError(
                        f"Edge {edge.id or '?'} references unknown node: {source} -> {target}"
                    )
                logger.debug(f"Dropping dangling edge {edge.id or '?'}: {source} -> {target}")
                graph.dropped_edges.append(edge)
                continue

            if target not in graph.successors[source]:
                graph.successors[source].append(target)
            if source not in graph.predecessors[target]:
                graph.predecessors[target].append(source)

        logger.debug(
            f"Built execution graph: {len(graph.nodes)} nodes, "
            f"{sum(len(s) for s in graph.successors.values())} edges, "
            f"{len(graph.dropped_edges)} dropped"
        )
        return graph

    def descendants(self, node_id: str) -> Set[str]:
        """Every node reachable from ``node_id`` through successor edges."""
        reachable: Set[str] = set()
        stack = list(reversed(self.successors.get(node_id, [])))
        while stack:
            current = stack.pop()
            if current in reachable:
                continue
            reachable.add(current)
            stack.extend(reversed(self.successors.get(current, [])))
        return reachable
