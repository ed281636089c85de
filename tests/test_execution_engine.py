"""Tests for the execution engine."""

import asyncio

import pytest

from nodeflow.core.execution_engine import TIMEOUT_RESULT, ExecutionContext, ExecutionEngine
from nodeflow.models.core import (
    BranchSkipPolicy,
    ErrorType,
    LogStatus,
    NodeStatus,
    WorkflowEdge,
    WorkflowNode,
)

INVOICE_CONDITION = {
    "conditions": [{"field": "subject", "operator": "contains", "value": "invoice"}],
    "operator": "AND"
}
REFUND_CONDITION = {
    "conditions": [{"field": "subject", "operator": "contains", "value": "refund"}],
    "operator": "AND"
}


def node(node_id, kind="echo", action="default", **config):
    return WorkflowNode(id=node_id, kind=kind, action=action, config=config)


def edge(source, target):
    return WorkflowEdge(id=f"{source}-{target}", source=source, target=target)


def mail_workflow(condition, *extra_nodes):
    nodes = [
        node("g", "gmail", "read"),
        node("c", "condition", **condition),
        node("w", "webhook", "POST"),
        *extra_nodes
    ]
    return nodes, [edge("g", "c"), edge("c", "w")]


def statuses(report, node_id):
    return [log.status for log in report.logs if log.node_id == node_id]


class TestExecutionContext:
    """Test cases for the per-run accumulator."""

    def test_input_shapes(self):
        context = ExecutionContext("run-1")
        context.results = {"a": {"x": 1}, "b": [1, 2]}

        assert context.input_for([]) == {}
        assert context.input_for(["a"]) == {"x": 1}
        assert context.input_for(["a", "b"]) == {"a": {"x": 1}, "b": [1, 2]}

    def test_missing_upstream_result_is_empty(self):
        context = ExecutionContext("run-1")

        assert context.input_for(["gone"]) == {}
        assert context.input_for(["gone", "also"]) == {"gone": {}, "also": {}}

    def test_report_success_follows_errors(self):
        context = ExecutionContext("run-1")
        assert context.report([]).success is True


class TestExecutionEngine:
    """Test cases for ExecutionEngine.run."""

    @pytest.mark.asyncio
    async def test_condition_passes_filtered_emails_downstream(self, engine, calls):
        nodes, edges = mail_workflow(INVOICE_CONDITION)

        report = await engine.run(nodes, edges)

        assert report.success is True
        assert report.execution_order == ["g", "c", "w"]
        expected = {
            "emails": [{"id": "m1", "subject": "Invoice 42", "from": "billing@example.com"}],
            "success": True
        }
        assert report.results["c"] == expected
        assert report.results["w"]["input"] == expected
        assert calls[-1]["input"] == expected
        assert statuses(report, "w") == [LogStatus.RUNNING, LogStatus.SUCCESS]
        assert [n.status for n in nodes] == [NodeStatus.SUCCESS] * 3

    @pytest.mark.asyncio
    async def test_false_condition_skips_downstream(self, engine):
        nodes, edges = mail_workflow(REFUND_CONDITION)

        report = await engine.run(nodes, edges)

        assert "w" not in report.results
        assert statuses(report, "w") == []
        skipped = [log for log in report.logs if log.status == LogStatus.SKIPPED_BRANCH]
        assert len(skipped) == 1
        assert skipped[0].node_id == "c"
        assert skipped[0].error == "Condition false, skipped 1 connected nodes"
        assert LogStatus.SUCCESS not in statuses(report, "c")
        assert nodes[1].status == NodeStatus.SKIPPED_BRANCH
        assert nodes[2].status == NodeStatus.IDLE
        assert report.success is True

    @pytest.mark.asyncio
    async def test_transitive_skip_keeps_unrelated_nodes(self, engine):
        nodes, edges = mail_workflow(REFUND_CONDITION, node("x", "const", value="independent"))

        report = await engine.run(nodes, edges)

        assert report.execution_order == ["g", "c", "w", "x"]
        assert report.results["x"] == "independent"
        assert "w" not in report.results

    @pytest.mark.asyncio
    async def test_transitive_skip_reaches_non_adjacent_nodes(self, engine):
        nodes = [
            node("g", "gmail", "read"),
            node("c", "condition", **REFUND_CONDITION),
            node("x", "const", value=1),
            node("w", "webhook", "POST"),
            node("z", "echo"),
        ]
        edges = [edge("g", "c"), edge("c", "w"), edge("w", "z")]

        report = await engine.run(nodes, edges)

        assert report.execution_order.index("x") < report.execution_order.index("w")
        assert set(report.results) == {"g", "c", "x"}
        skipped = [log for log in report.logs if log.status == LogStatus.SKIPPED_BRANCH]
        assert skipped[0].error == "Condition false, skipped 2 connected nodes"

    @pytest.mark.asyncio
    async def test_halt_policy_stops_the_run(self, registry):
        engine = ExecutionEngine(registry, branch_skip_policy=BranchSkipPolicy.HALT)
        nodes, edges = mail_workflow(REFUND_CONDITION, node("x", "const", value="independent"))

        report = await engine.run(nodes, edges)

        assert set(report.results) == {"g", "c"}
        skipped = [log for log in report.logs if log.status == LogStatus.SKIPPED_BRANCH]
        assert skipped[0].error == "Condition false, skipped 1 connected nodes"
        assert report.execution_order == ["g", "c", "w", "x"]

    @pytest.mark.asyncio
    async def test_condition_without_emails_passes_input_through(self, engine):
        nodes = [
            node("s", "const", value={"score": 7}),
            node("c", "condition", conditions=[{"field": "score", "operator": "greater_than", "value": 5}]),
            node("w", "webhook", "POST"),
        ]

        report = await engine.run(nodes, [edge("s", "c"), edge("c", "w")])

        assert report.results["c"] == {"score": 7}
        assert report.results["w"]["input"] == {"score": 7}

    @pytest.mark.asyncio
    async def test_root_node_receives_empty_input(self, engine, calls):
        await engine.run([node("a")], [])

        assert calls[0]["input"] == {}

    @pytest.mark.asyncio
    async def test_multiple_predecessors_receive_a_map(self, engine):
        nodes = [node("a", "const", value={"n": 1}), node("b", "const", value=[2]), node("c")]

        report = await engine.run(nodes, [edge("a", "c"), edge("b", "c")])

        assert report.results["c"]["input"] == {"a": {"n": 1}, "b": [2]}

    @pytest.mark.asyncio
    async def test_config_is_merged_into_payload(self, engine, calls):
        await engine.run([node("a", tag="blue")], [])

        assert calls[0] == {"tag": "blue", "input": {}}

    @pytest.mark.asyncio
    async def test_handler_error_is_recorded_and_run_continues(self, engine):
        nodes = [node("a", "boom"), node("b")]

        report = await engine.run(nodes, [edge("a", "b")])

        assert report.success is False
        assert len(report.errors) == 1
        error = report.errors[0]
        assert error.type == ErrorType.NODE_ERROR
        assert error.node_id == "a"
        assert error.node_kind == "boom"
        assert error.message == "boom"
        assert error.critical is False
        assert statuses(report, "a") == [LogStatus.RUNNING, LogStatus.ERROR]
        assert report.results["b"]["input"] == {}
        assert nodes[0].status == NodeStatus.ERROR

    @pytest.mark.asyncio
    async def test_critical_error_aborts_remaining_nodes(self, engine):
        nodes = [node("a", "fatal"), node("b"), node("c", "const", value=1)]

        report = await engine.run(nodes, [edge("a", "b")])

        assert report.errors[0].critical is True
        assert report.results == {}
        assert [log.node_id for log in report.logs] == ["a", "a"]

    @pytest.mark.asyncio
    async def test_unknown_handler_is_a_node_error(self, engine):
        report = await engine.run([node("x", "fax"), node("y", "const", value=1)], [])

        assert report.errors[0].message == "No handler found for node type: fax (action: default)"
        assert report.results == {"y": 1}

    @pytest.mark.asyncio
    async def test_cycle_produces_a_single_error(self, engine, calls):
        nodes = [node("a"), node("b")]

        report = await engine.run(nodes, [edge("a", "b"), edge("b", "a")])

        assert report.success is False
        assert report.execution_order == []
        assert report.logs == []
        assert len(report.errors) == 1
        assert report.errors[0].type == ErrorType.CYCLE
        assert report.errors[0].message.startswith("Circular dependency detected")
        assert calls == []

    @pytest.mark.asyncio
    async def test_duplicate_ids_produce_invalid_graph_error(self, engine):
        report = await engine.run([node("a"), node("a")], [])

        assert report.errors[0].type == ErrorType.INVALID_GRAPH
        assert report.errors[0].node_id == "a"
        assert report.execution_order == []

    @pytest.mark.asyncio
    async def test_dangling_edges_ignored_unless_strict(self, registry):
        edges = [edge("a", "ghost")]

        lenient = await ExecutionEngine(registry).run([node("a")], edges)
        strict = await ExecutionEngine(registry, strict_edges=True).run([node("a")], edges)

        assert lenient.success is True
        assert strict.errors[0].type == ErrorType.INVALID_GRAPH

    @pytest.mark.asyncio
    async def test_node_timeout(self, registry):
        engine = ExecutionEngine(registry, node_timeout=0.05)

        report = await engine.run([node("s", "slow", delay=1)], [])

        assert report.results["s"] == TIMEOUT_RESULT

    @pytest.mark.asyncio
    async def test_canvas_payloads_are_accepted(self, engine):
        nodes = [
            {"id": "a", "type": "custom", "data": {"nodeType": "const", "config": {"value": {"n": 1}}}},
            {"id": "b", "type": "echo", "data": {"config": {}}},
        ]
        edges = [{"id": "e1", "source": "a", "target": "b", "sourceHandle": None}]

        report = await engine.run(nodes, edges)

        assert report.execution_order == ["a", "b"]
        assert report.results["b"]["input"] == {"n": 1}

    @pytest.mark.asyncio
    async def test_runs_are_repeatable(self, engine):
        first = await engine.run(*mail_workflow(INVOICE_CONDITION))
        second = await engine.run(*mail_workflow(INVOICE_CONDITION))

        assert first.results == second.results
        assert first.execution_order == second.execution_order
        assert [log.status for log in first.logs] == [log.status for log in second.logs]

    @pytest.mark.asyncio
    async def test_concurrent_runs_do_not_share_state(self, engine):
        def workflow(value):
            return [node("a", "const", value={"v": value}), node("b")], [edge("a", "b")]

        reports = await asyncio.gather(*(engine.run(*workflow(i)) for i in range(5)))

        for i, report in enumerate(reports):
            assert report.results["b"]["input"] == {"v": i}
            assert len(report.logs) == 4

    @pytest.mark.asyncio
    async def test_report_serializes_with_camel_case_keys(self, engine):
        report = await engine.run([node("a", "boom")], [])

        body = report.to_response()

        assert set(body) == {"success", "logs", "results", "executionOrder", "executionTimeMs", "errors"}
        assert body["logs"][0]["nodeId"] == "a"
        assert body["errors"][0]["type"] == "node_error"


class TestResolveAction:
    """Test cases for action lookup on nodes."""

    def test_condition_always_evaluates(self):
        condition = WorkflowNode(id="c", kind="condition", action="other", config={"action": "x"})
        assert ExecutionEngine.resolve_action(condition) == "evaluate"

    def test_schedule_uses_schedule_type(self):
        assert ExecutionEngine.resolve_action(node("s", "schedule", scheduleType="cron")) == "cron"
        assert ExecutionEngine.resolve_action(node("s", "schedule")) == "default"

    def test_other_kinds_use_config_action(self):
        configured = WorkflowNode(id="g", kind="gmail", action="read", config={"action": "send"})
        assert ExecutionEngine.resolve_action(configured) == "send"
        assert ExecutionEngine.resolve_action(node("g", "gmail", "read")) == "read"
        assert ExecutionEngine.resolve_action(node("g", "gmail")) == "default"
