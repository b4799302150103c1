"""Error Handlers — maps saga errors raised inside requests to HTTP responses.

Invariants:
    - Every error body is the BookSwapError envelope: {"error": {code, message, ...}}
    - ResourceNotFoundError -> 404, logged at INFO (a client asking for a
      missing exchange is not a fault)
    - EventBusError -> 503 with Retry-After; the exchange row may already be
      committed and will be closed by the reconciliation sweep
    - Request body / path validation -> 400 listing the offending fields
    - Anything else -> 500 without internal details
    - correlation_key from the error context is logged and echoed in the body

Design Decisions:
    - Handlers registered per exception class: Starlette resolves by MRO, so the
      specific handlers win over the BookSwapError fallback
    - Log level follows ErrorSeverity
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from bookswap.core.errors import (
    BookSwapError, ErrorCategory, ErrorSeverity, EventBusError,
    ResourceNotFoundError,
)

logger = logging.getLogger(__name__)

BROKER_RETRY_AFTER_SECONDS = 5

_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ResourceNotFoundError, _exchange_not_found)
    app.add_exception_handler(EventBusError, _broker_unavailable)
    app.add_exception_handler(BookSwapError, _saga_error)
    app.add_exception_handler(RequestValidationError, _invalid_request)
    app.add_exception_handler(Exception, _unexpected_error)


def _log_extra(request: Request, exc: BookSwapError) -> dict:
    return {
        "error_code": exc.code,
        "correlation_key": exc.context.correlation_key,
        "path": request.url.path,
    }


async def _exchange_not_found(
    request: Request, exc: ResourceNotFoundError,
) -> JSONResponse:
    logger.info(exc.message, extra=_log_extra(request, exc))
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def _broker_unavailable(
    request: Request, exc: EventBusError,
) -> JSONResponse:
    logger.error(
        f"Validation requests not published: {exc.message}",
        extra={**_log_extra(request, exc), "stream": exc.stream},
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=exc.to_response(),
        headers={"Retry-After": str(BROKER_RETRY_AFTER_SECONDS)},
    )


async def _saga_error(request: Request, exc: BookSwapError) -> JSONResponse:
    logger.log(
        _LOG_LEVELS.get(exc.severity, logging.ERROR),
        exc.message,
        extra=_log_extra(request, exc),
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def _invalid_request(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    fields = [
        {
            "field": ".".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    logger.warning(
        f"Rejected request on {request.url.path}: "
        f"{', '.join(f['field'] for f in fields)}",
    )
    body = _envelope(
        "VALIDATION_ERROR", "Invalid request data",
        ErrorCategory.VALIDATION, ErrorSeverity.ERROR,
    )
    body["error"]["details"] = fields
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.url.path}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope(
            "INTERNAL_ERROR", "An unexpected error occurred",
            ErrorCategory.INTERNAL, ErrorSeverity.CRITICAL,
        ),
    )


def _envelope(
    code: str, message: str,
    category: ErrorCategory, severity: ErrorSeverity,
) -> dict:
    return {
        "error": {
            "code": code,
            "message": message,
            "category": category.value,
            "severity": severity.value,
        },
    }
