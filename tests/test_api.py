"""Tests for the HTTP API."""

import base64
import hashlib
import hmac
import json

import httpx
import pytest
from fastapi.testclient import TestClient
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from nodeflow.config import AppConfig, get_testing_config
from nodeflow.core.ai_service import AIService
from nodeflow.factory import create_app


def canvas_node(node_id, kind, **config):
    return {"id": node_id, "type": kind, "data": {"nodeType": kind, "config": config}}


def canvas_edge(source, target):
    return {"id": f"{source}-{target}", "source": source, "target": target}


TRIGGER_SCHEDULE_WORKFLOW = {
    "nodes": [
        canvas_node("t", "trigger"),
        canvas_node("s", "schedule", scheduleType="delay", delay=1, delayUnit="seconds"),
    ],
    "edges": [canvas_edge("t", "s")]
}


@pytest.fixture
def outbound():
    """Requests sent by webhook nodes."""
    return []


@pytest.fixture
def client(outbound):
    def respond(request):
        outbound.append(request)
        return httpx.Response(200, json={"received": True})

    app = create_app(get_testing_config(), http_transport=httpx.MockTransport(respond))
    with TestClient(app) as client:
        yield client


def register(client, workflow_id, nodes, edges, **extra):
    body = {"workflowId": workflow_id, "nodes": nodes, "edges": edges, **extra}
    return client.post("/api/v1/webhooks", json=body)


class TestExecuteEndpoint:
    """Test cases for workflow execution over HTTP."""

    def test_missing_nodes_or_edges(self, client):
        response = client.post("/api/v1/workflow/execute", json={"nodes": []})

        assert response.status_code == 400
        assert response.json()["detail"] == {"error": "InvalidRequest", "message": "Missing nodes or edges"}

    def test_malformed_node(self, client):
        response = client.post("/api/v1/workflow/execute", json={"nodes": [{"id": "a"}], "edges": []})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "InvalidWorkflow"

    def test_execute_trigger_then_schedule(self, client):
        response = client.post("/api/v1/workflow/execute", json=TRIGGER_SCHEDULE_WORKFLOW)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["executionOrder"] == ["t", "s"]
        assert body["results"]["t"]["triggerType"] == "manual"
        assert body["results"]["s"]["delayMs"] == 1000
        assert [r["nodeId"] for r in body["nodeResults"]] == ["t", "s"]
        assert body["runId"]
        assert body["errors"] == []

    def test_execute_alias(self, client):
        response = client.post("/api/v1/execute", json=TRIGGER_SCHEDULE_WORKFLOW)

        assert response.status_code == 200
        assert response.json()["executionOrder"] == ["t", "s"]

    def test_cycle_reports_failure(self, client):
        response = client.post("/api/v1/workflow/execute", json={
            "nodes": [canvas_node("a", "trigger"), canvas_node("b", "trigger")],
            "edges": [canvas_edge("a", "b"), canvas_edge("b", "a")]
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["executionOrder"] == []
        assert len(body["errors"]) == 1
        assert body["errors"][0]["type"] == "cycle"

    def test_unknown_kind_is_a_node_error(self, client):
        response = client.post("/api/v1/workflow/execute", json={
            "nodes": [canvas_node("f", "fax")],
            "edges": []
        })

        body = response.json()
        assert body["success"] is False
        assert body["errors"][0]["nodeId"] == "f"
        assert body["errors"][0]["type"] == "node_error"

    def test_list_nodes(self, client):
        response = client.get("/api/v1/nodes")

        kinds = {node["type"] for node in response.json()["nodes"]}
        assert {"gmail", "webhook", "condition", "schedule", "llm", "trigger"} <= kinds


class TestRunHistory:
    """Test cases for stored runs."""

    def test_stored_run_can_be_fetched(self, client):
        run_id = client.post("/api/v1/workflow/execute", json=TRIGGER_SCHEDULE_WORKFLOW).json()["runId"]

        response = client.get(f"/api/v1/runs/{run_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["runId"] == run_id
        assert body["executionOrder"] == ["t", "s"]
        assert body["results"]["s"]["delayMs"] == 1000

    def test_list_runs(self, client):
        first = client.post("/api/v1/workflow/execute", json=TRIGGER_SCHEDULE_WORKFLOW).json()["runId"]
        second = client.post("/api/v1/execute", json=TRIGGER_SCHEDULE_WORKFLOW).json()["runId"]

        runs = client.get("/api/v1/runs").json()

        assert {run["runId"] for run in runs} == {first, second}
        assert all(run["nodeCount"] == 2 for run in runs)
        assert all(run["success"] for run in runs)

    def test_list_runs_limit_is_validated(self, client):
        assert client.get("/api/v1/runs", params={"limit": 0}).status_code == 422

    def test_unknown_run(self, client):
        response = client.get("/api/v1/runs/nope")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "RunNotFound"

    def test_history_disabled(self):
        with TestClient(create_app(AppConfig())) as client:
            body = client.post("/api/v1/workflow/execute", json=TRIGGER_SCHEDULE_WORKFLOW).json()
            response = client.get("/api/v1/runs")

        assert "runId" not in body
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "RunHistoryDisabled"


class TestWebhookEndpoints:
    """Test cases for webhook registration and firing."""

    NOTIFY_NODES = [
        canvas_node("t", "trigger"),
        canvas_node(
            "w", "webhook",
            method="POST",
            url="https://hooks.example.com/notify",
            body={"event": "{{webhookData.body.event}}"}
        ),
    ]
    NOTIFY_EDGES = [canvas_edge("t", "w")]

    def test_register_and_describe(self, client):
        response = register(client, "wf1", self.NOTIFY_NODES, self.NOTIFY_EDGES)

        assert response.status_code == 201
        body = response.json()
        assert body["workflowId"] == "wf1"
        assert body["webhookUrl"] == "http://testserver/api/v1/webhook/wf1"
        assert body["enabled"] is True
        assert body["hasSecret"] is False

        assert client.get("/api/v1/webhooks/wf1/url").json()["webhookUrl"] == body["webhookUrl"]
        listing = client.get("/api/v1/webhooks").json()
        assert listing["total"] == 1
        assert listing["endpoints"][0]["workflowId"] == "wf1"

    def test_register_rejects_cycles(self, client):
        response = register(
            client, "loop",
            [canvas_node("a", "trigger"), canvas_node("b", "trigger")],
            [canvas_edge("a", "b"), canvas_edge("b", "a")]
        )

        assert response.status_code == 400

    def test_unknown_webhook_url(self, client):
        response = client.get("/api/v1/webhooks/ghost/url")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "WebhookNotFound"

    def test_fire_passes_request_to_trigger(self, client, outbound):
        register(client, "wf1", self.NOTIFY_NODES, self.NOTIFY_EDGES)

        response = client.post("/api/v1/webhook/wf1?source=ci", json={"event": "push"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["workflowId"] == "wf1"
        assert body["runId"] == body["result"]["runId"]

        trigger = body["result"]["results"]["t"]
        assert trigger["triggerType"] == "webhook"
        assert trigger["webhookData"]["method"] == "POST"
        assert trigger["webhookData"]["body"] == {"event": "push"}
        assert trigger["webhookData"]["query"] == {"source": "ci"}

        assert len(outbound) == 1
        assert str(outbound[0].url) == "https://hooks.example.com/notify"
        assert json.loads(outbound[0].content) == {"event": "push"}

    def test_fire_adds_trigger_when_workflow_has_none(self, client):
        register(client, "bare", [canvas_node("s", "schedule", scheduleType="delay", delay=3, delayUnit="seconds")], [])

        body = client.get("/api/v1/webhook/bare").json()

        order = body["result"]["executionOrder"]
        assert len(order) == 2
        assert order[0].startswith("webhook_trigger_")
        assert order[1] == "s"
        assert body["result"]["results"][order[0]]["webhookData"]["method"] == "GET"

    def test_fire_unknown_workflow(self, client):
        assert client.post("/api/v1/webhook/ghost", json={}).status_code == 404

    def test_fire_disabled_workflow(self, client):
        register(client, "off", self.NOTIFY_NODES, self.NOTIFY_EDGES, enabled=False)

        assert client.post("/api/v1/webhook/off", json={}).status_code == 404

    def test_secret_requires_signature(self, client):
        register(client, "signed", self.NOTIFY_NODES, self.NOTIFY_EDGES, secret="s3cret")

        response = client.post("/api/v1/webhook/signed", json={"event": "push"})

        assert response.status_code == 401
        assert response.json()["detail"]["message"] == "Invalid webhook signature or authorization"

    def test_hmac_signature_over_raw_body(self, client):
        register(client, "signed", self.NOTIFY_NODES, self.NOTIFY_EDGES, secret="s3cret")
        content = b'{"event": "push"}'
        digest = hmac.new(b"s3cret", content, hashlib.sha256).hexdigest()

        response = client.post(
            "/api/v1/webhook/signed",
            content=content,
            headers={"Content-Type": "application/json", "X-Webhook-Signature": f"sha256={digest}"}
        )

        assert response.status_code == 200
        assert response.json()["result"]["results"]["t"]["webhookData"]["body"] == {"event": "push"}

    def test_wrong_signature_is_rejected(self, client):
        register(client, "signed", self.NOTIFY_NODES, self.NOTIFY_EDGES, secret="s3cret")

        response = client.post(
            "/api/v1/webhook/signed",
            content=b"{}",
            headers={"X-Hub-Signature": "sha256=deadbeef"}
        )

        assert response.status_code == 401

    @pytest.mark.parametrize("authorization", [
        "Bearer s3cret",
        "Basic " + base64.b64encode(b"hook:s3cret").decode(),
        "s3cret",
    ])
    def test_authorization_header(self, client, authorization):
        register(client, "signed", self.NOTIFY_NODES, self.NOTIFY_EDGES, secret="s3cret")

        response = client.put("/api/v1/webhook/signed", json={}, headers={"Authorization": authorization})

        assert response.status_code == 200

    def test_delete(self, client):
        register(client, "wf1", self.NOTIFY_NODES, self.NOTIFY_EDGES)

        response = client.delete("/api/v1/webhooks/wf1")

        assert response.status_code == 200
        assert response.json()["workflowId"] == "wf1"
        assert client.delete("/api/v1/webhooks/wf1").status_code == 404
        assert client.post("/api/v1/webhook/wf1", json={}).status_code == 404


class TestServiceEndpoints:
    """Test cases for health and request tracing."""

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["runHistory"] is True

    def test_root(self, client):
        assert "version" in client.get("/").json()

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_request_id_is_generated(self, client):
        assert client.get("/health").headers.get("X-Request-ID")


class TestLLMEndpoints:
    """Test cases for the built-in text-processing endpoints."""

    @pytest.fixture
    def llm_client(self):
        service = AIService("sk-test", chat_model_factory=lambda model: FakeListChatModel(responses=["Short."]))
        app = create_app(get_testing_config(), ai_service=service)
        with TestClient(app) as client:
            yield client

    def test_process(self, llm_client):
        response = llm_client.post("/api/llm/process", json={"action": "summarize", "input": "x" * 250})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["result"] == "Short."
        assert body["service"] == "openai"
        assert body["model"] == "gpt-3.5-turbo"
        assert body["input"] == "x" * 200 + "..."
        assert body["timestamp"]

    def test_process_requires_action_and_input(self, llm_client):
        response = llm_client.post("/api/llm/process", json={"action": "summarize"})

        assert response.status_code == 400
        assert response.json()["detail"] == {"error": "InvalidRequest", "message": "Action and input are required"}

    def test_process_unsupported_action(self, llm_client):
        response = llm_client.post("/api/llm/process", json={"action": "rhyme", "input": "text"})

        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "Unsupported LLM action: rhyme"

    def test_process_unconfigured_service(self, client):
        response = client.post("/api/llm/process", json={"action": "summarize", "input": "text", "service": "openai"})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "ServiceNotConfigured"

    def test_process_failure(self, client):
        response = client.post("/api/llm/process", json={"action": "summarize", "input": "text"})

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "LLMProcessingError"

    def test_capabilities(self, llm_client):
        body = llm_client.get("/api/llm/capabilities").json()

        assert body["enabled_services"] == ["openai"]
        assert set(body["capabilities"]) == {"summarize", "reply", "extract", "translate"}
        assert "Spanish" in body["supported_languages"]

    def test_status(self, client):
        body = client.get("/api/llm/status").json()

        assert body["services"] == {"openai": False}
        assert body["enabled_services"] == []

    def test_llm_node_uses_builtin_service(self, llm_client):
        workflow = {
            "nodes": [canvas_node("t", "trigger"), canvas_node("l", "llm", action="summarize", emails=[{"subject": "Quarterly report"}])],
            "edges": [canvas_edge("t", "l")]
        }

        body = llm_client.post("/api/v1/workflow/execute", json=workflow).json()

        assert body["results"]["l"]["result"] == "Short."
