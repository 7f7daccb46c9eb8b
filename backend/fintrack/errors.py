import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette import status

from .logging_config import current_request_id
from .services.limit_errors import LimitValidationError

logger = logging.getLogger(__name__)


def limit_validation_error_handler(request: Request, exc: LimitValidationError) -> JSONResponse:
    # Missing preferences and unknown periods are caller-side data problems, never retried.
    logger.warning("limit validation rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": exc.code, "detail": str(exc), "request_id": current_request_id()},
    )


def server_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "detail": "An unexpected error occurred."},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LimitValidationError, limit_validation_error_handler)
    app.add_exception_handler(Exception, server_error_handler)
