from __future__ import annotations

import logging
import traceback
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    default_message = "Internal Server Error"
    http_status = 500
    retryable = False

    def __init__(self, message: str | None = None, details: str | None = None) -> None:
        self.message = (message or self.default_message).strip()
        self.details = (details or "").strip() or None
        super().__init__(self.message)

    def to_payload(self, include_details: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if include_details and self.details:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    default_message = "Missing required fields"
    http_status = 400


class InvalidProduct(ValidationError):
    default_message = "Missing product details or price"


class NotFoundError(AppError):
    default_message = "Not found"
    http_status = 404


class ConflictError(AppError):
    default_message = "Conflict"
    http_status = 409


class SequenceConflictError(ConflictError):
    default_message = "Custom id already allocated"
    retryable = True


class WorkflowStateError(ConflictError):
    default_message = "Transition not allowed in the current state"


class TransientInfraError(AppError):
    default_message = "Database temporarily unavailable"
    http_status = 500
    retryable = True


class QueryTimeoutError(TransientInfraError):
    default_message = "Database query timed out"


class DownstreamServiceError(AppError):
    default_message = "Downstream service failure"
    http_status = 500


def register_error_handlers(app: FastAPI) -> None:
    def _include_details() -> bool:
        config = getattr(app.state, "config", None)
        return not (config is not None and config.is_production)

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error(
                "request failed",
                extra={"path": request.url.path, "method": request.method, "error": exc.message},
                exc_info=exc,
            )
        return JSONResponse(status_code=exc.http_status, content=exc.to_payload(_include_details()))

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) or "body" for err in exc.errors()})
        payload: Dict[str, Any] = {"error": f"Invalid request: {', '.join(fields)}"}
        if _include_details():
            payload["details"] = str(exc.errors())
        return JSONResponse(status_code=400, content=payload)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled error", extra={"path": request.url.path, "method": request.method})
        payload: Dict[str, Any] = {"error": "Internal Server Error"}
        if _include_details():
            payload["details"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(status_code=500, content=payload)
