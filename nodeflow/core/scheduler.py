"""Topological scheduling of an execution graph."""

from enum import Enum
from typing import Dict, List, Tuple

from ..models.core import WorkflowNode
from .exceptions import CycleError
from .graph import ExecutionGraph


class VisitState(Enum):
    UNVISITED = 0
    VISITING = 1
    DONE = 2


def topological_order(graph: ExecutionGraph) -> List[WorkflowNode]:
    """
    Order nodes so every dependency comes before its dependents.

    Depth-first post-order over predecessors, using an explicit stack.
    Roots are taken in node order and predecessors in edge insertion
    order, so a fixed graph always yields the same order.

    Args:
        graph: The execution graph to schedule

    Returns:
        List[WorkflowNode]: Every node exactly once

    Raises:
        CycleError: With the id of a node found on a cycle
    """
    state: Dict[str, VisitState] = {node_id: VisitState.UNVISITED for node_id in graph.nodes}
    order: List[WorkflowNode] = []

    for root in graph.nodes:
        if state[root] is not VisitState.UNVISITED:
            continue

        state[root] = VisitState.VISITING
        # (node id, index of the next predecessor to visit)
        stack: List[Tuple[str, int]] = [(root, 0)]

        while stack:
            node_id, index = stack[-1]
            predecessors = graph.predecessors[node_id]

            if index < len(predecessors):
                stack[-1] = (node_id, index + 1)
                dependency = predecessors[index]
                if state[dependency] is VisitState.VISITING:
                    raise CycleError(dependency)
                if state[dependency] is VisitState.UNVISITED:
                    state[dependency] = VisitState.VISITING
                    stack.append((dependency, 0))
                continue

            stack.pop()
            state[node_id] = VisitState.DONE
            order.append(graph.nodes[node_id])

    return order
