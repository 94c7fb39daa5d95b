"""FastAPI exception handlers.

Webhook senders get short plain-text bodies; the read API gets ErrorResponse JSON.
"""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from bountytriage.errors.exceptions import (
    AuthenticationError,
    BountyTriageError,
    QueueUnavailableError,
)
from bountytriage.models.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)

WEBHOOK_PATH_PREFIX = "/api/webhooks"


def _is_webhook(request: Request) -> bool:
    return request.url.path.startswith(WEBHOOK_PATH_PREFIX)


def _error_response(request: Request, status_code: int, code: str, message: str, details=None):
    if _is_webhook(request):
        return PlainTextResponse(message, status_code=status_code)

    trace_id = getattr(request.state, "trace_id", "unknown")
    error_response = ErrorResponse(
        error=ErrorDetail(
            code=code,
            message=message,
            details=details,
            trace_id=trace_id,
            timestamp=datetime.now(timezone.utc),
        ),
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app."""

    @app.exception_handler(BountyTriageError)
    async def triage_error_handler(request: Request, exc: BountyTriageError):
        if isinstance(exc, AuthenticationError):
            logger.warning(
                "webhook_authentication_failed",
                extra={
                    "path": request.url.path,
                    "delivery_id": request.headers.get("X-GitHub-Delivery"),
                    "reason": exc.message,
                },
            )
        elif isinstance(exc, QueueUnavailableError):
            logger.error("Queue store unavailable while handling %s: %s", request.url.path, exc.message)
        return _error_response(request, exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error processing %s %s", request.method, request.url.path)
        message = "Error processing webhook" if _is_webhook(request) else "Internal server error"
        return _error_response(request, 500, "INTERNAL_ERROR", message)
