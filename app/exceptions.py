"""
API error kinds and their HTTP rendering.

Every error leaves the service as the ``{"message": ..., "data": null}``
envelope. Failures of secondary reference updates are not represented here:
they are recorded in ``SyncReport`` and logged, never raised to the caller.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.utils.logger import setup_logger

logger = setup_logger("exceptions")


class ApiError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    """Missing required field or malformed query parameter."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid query parameters"


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(ApiError):
    """A uniqueness constraint was violated (duplicate user email)."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "User with this email already exists"


class StoreError(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Database operation failed"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"message": message, "data": None}
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(
                f"{request.method} {request.url.path} rejected "
                f"({exc.status_code}): {exc.message}"
            )
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ):
        logger.info(
            f"{request.method} {request.url.path} has an invalid request: {exc.errors()}"
        )
        locations = [tuple(error.get("loc", ()))[:1] for error in exc.errors()]
        if ("query",) in locations:
            message = ValidationError.default_message
        else:
            message = "Invalid request body"
        return error_response(status.HTTP_400_BAD_REQUEST, message)
