"""Middleware for error handling and request logging."""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .exceptions import (
    ActionRegistryError,
    ConfigurationError,
    GraphValidationError,
    StorageError,
    WebhookError,
    WorkflowEngineError,
    create_error_response,
)
from .logging import get_logger, logging_context


logger = get_logger(__name__)


def status_code_for_error(error: WorkflowEngineError) -> int:
    """Determine the HTTP status code for a workflow engine error."""
    if isinstance(error, WebhookError):
        return error.status_code
    if isinstance(error, GraphValidationError):
        return 400
    if isinstance(error, ActionRegistryError):
        return 400
    if isinstance(error, StorageError):
        if "not found" in error.message.lower():
            return 404
        return 500
    if isinstance(error, ConfigurationError):
        return 500
    return 500


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an ID and turns escaped errors into JSON bodies."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.time()

        with logging_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown"
        ):
            try:
                logger.info(f"Request started: {request.method} {request.url.path}")

                response = await call_next(request)

                duration = time.time() - start_time
                logger.info(
                    f"Request completed: {request.method} {request.url.path} - "
                    f"Status: {response.status_code} - Duration: {duration:.3f}s"
                )

                response.headers["X-Request-ID"] = request_id
                return response

            except WorkflowEngineError as e:
                duration = time.time() - start_time
                logger.warning(
                    f"Workflow engine error: {request.method} {request.url.path} - "
                    f"Error: {e.error_code} - Duration: {duration:.3f}s",
                    extra={"extra_fields": {"error_details": e.to_dict()}}
                )

                return JSONResponse(
                    status_code=status_code_for_error(e),
                    content=create_error_response(e),
                    headers={"X-Request-ID": request_id}
                )

            except Exception as e:
                duration = time.time() - start_time
                logger.error(
                    f"Unexpected error: {request.method} {request.url.path} - "
                    f"Error: {str(e)} - Duration: {duration:.3f}s",
                    exc_info=True
                )

                return JSONResponse(
                    status_code=500,
                    content={
                        "error": "InternalServerError",
                        "message": "An unexpected error occurred",
                        "details": {
                            "error_type": type(e).__name__,
                            "timestamp": datetime.now(timezone.utc).isoformat()
                        },
                        "request_id": request_id
                    },
                    headers={"X-Request-ID": request_id}
                )
