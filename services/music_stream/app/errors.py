"""Service errors and the JSON handlers that render them."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.common.logging import get_logger

logger = get_logger(__name__)


class ServiceError(Exception):
    """Base error rendered to clients as ``{"error": message}``."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message

    def headers(self) -> dict[str, str]:
        return {}


class AuthenticationRequired(ServiceError):
    """Credential missing or rejected.

    ``reason`` keeps the internal cause for logs and metrics only; clients
    always see the same message.
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Authentication required"

    def __init__(self, reason: str) -> None:
        super().__init__()
        self.reason = reason


class ResourceNotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class MalformedRequest(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request body"


class RangeNotSatisfiable(ServiceError):
    status_code = status.HTTP_416_RANGE_NOT_SATISFIABLE
    message = "Requested range not satisfiable"

    def __init__(self, total_length: int) -> None:
        super().__init__()
        self.total_length = total_length

    def headers(self) -> dict[str, str]:
        return {"Content-Range": f"bytes */{self.total_length}"}


class InternalFailure(ServiceError):
    pass


def error_response(exc: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=exc.headers(),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Render service, validation and unexpected errors as JSON."""

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(exc.__cause__ or exc),
            )
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info("request_rejected", path=request.url.path, errors=len(exc.errors()))
        return error_response(MalformedRequest())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request_crashed", method=request.method, path=request.url.path)
        return error_response(InternalFailure())
