"""Map domain errors onto HTTP responses with an ``{"error": ...}`` body."""

from typing import cast

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from seasonboard.core.exceptions import (
    CacheMiss,
    Canceled,
    ErrorSeverity,
    NothingToBackup,
    SeasonboardError,
    StorageReadError,
    get_error_severity,
    is_transient_error,
)
from seasonboard.core.logging.logger import get_logger

logger = get_logger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def status_for(exc: SeasonboardError) -> int:
    if isinstance(exc, CacheMiss):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, NothingToBackup):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, Canceled):
        return status.HTTP_408_REQUEST_TIMEOUT
    if isinstance(exc, StorageReadError) and exc.details.get("missing"):
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def seasonboard_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    exc = cast(SeasonboardError, exc)
    status_code = status_for(exc)

    severity = get_error_severity(exc)
    log = logger.error if severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL) else logger.info
    log(
        "Request failed",
        extra={
            "path": request.url.path,
            "status_code": status_code,
            "error": exc.message,
            "error_type": type(exc).__name__,
            "error_code": exc.error_code,
            "retryable": is_transient_error(exc),
        },
    )
    return _error(status_code, exc.message)


def http_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    exc = cast(HTTPException, exc)
    return _error(exc.status_code, str(exc.detail))


def validation_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    exc = cast(RequestValidationError, exc)
    messages = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return _error(status.HTTP_400_BAD_REQUEST, messages or "Invalid request")


def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error",
        extra={"path": request.url.path, "error": str(exc), "error_type": type(exc).__name__},
        exc_info=exc,
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
