"""Tests for error to status code mapping."""

import pytest

from nodeflow.core.exceptions import (
    ConfigurationError,
    CycleError,
    HandlerError,
    StorageError,
    UnknownHandlerError,
    WebhookError,
    create_error_response,
)
from nodeflow.core.middleware import status_code_for_error


class TestStatusCodeForError:
    """Test cases for status_code_for_error."""

    @pytest.mark.parametrize("error, expected", [
        (WebhookError("Invalid signature", status_code=401), 401),
        (WebhookError("Workflow is disabled", status_code=403), 403),
        (WebhookError("Bad payload"), 400),
        (CycleError("a"), 400),
        (UnknownHandlerError("mystery", "default"), 400),
        (StorageError("Run not found: r1"), 404),
        (StorageError("Database is locked"), 500),
        (ConfigurationError("Missing database URL"), 500),
        (HandlerError("boom"), 500),
    ])
    def test_status_codes(self, error, expected):
        assert status_code_for_error(error) == expected

    def test_error_response_body(self):
        error = WebhookError("Invalid signature", status_code=401, workflow_id="wf1")

        body = create_error_response(error)

        assert body["error"] == "WebhookError"
        assert body["message"] == "Invalid signature"
        assert body["details"]["category"] == "security"
        assert body["context"] == {"workflow_id": "wf1"}
