"""
Exception handling for the hydropad API.

This module defines custom exceptions and exception handlers for the FastAPI
application. It maps data-acquisition failures to structured JSON responses
with appropriate HTTP status codes and error codes, so the client always
receives a human-readable message rather than a stack trace.
"""

from enum import Enum

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from hydropad.api.models import ErrorResponse
from hydropad.core.delineate import DelineationError
from hydropad.core.rainfall import RainfallError, SelectionError
from hydropad.fetch.exceptions import UpstreamError


class APIErrorCode(str, Enum):
    """Error codes for API responses."""

    INVALID_COORDINATES = "INVALID_COORDINATES"
    INVALID_SELECTION = "INVALID_SELECTION"
    DELINEATION_FAILED = "DELINEATION_FAILED"
    RAINFALL_UNAVAILABLE = "RAINFALL_UNAVAILABLE"
    UPSTREAM_SHAPE = "UPSTREAM_SHAPE"
    NO_WATERSHED = "NO_WATERSHED"


class APIException(Exception):
    """Custom exception for API errors with structured response."""

    def __init__(
        self,
        error_code: APIErrorCode,
        message: str,
        http_status: int = 500,
    ) -> None:
        """
        Initialize API exception.

        Args:
            error_code: Error code enum value
            message: Human-readable error message
            http_status: HTTP status code to return
        """
        self.error_code = error_code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


def error_code_for(exc: Exception) -> APIErrorCode:
    """Error code a failure is reported with."""
    if isinstance(exc, APIException):
        return exc.error_code
    if isinstance(exc, RainfallError):
        return APIErrorCode.RAINFALL_UNAVAILABLE
    if isinstance(exc, DelineationError):
        return APIErrorCode.DELINEATION_FAILED
    if isinstance(exc, UpstreamError):
        return APIErrorCode.UPSTREAM_SHAPE
    if isinstance(exc, SelectionError):
        return APIErrorCode.INVALID_SELECTION
    if isinstance(exc, ValueError):
        return APIErrorCode.INVALID_COORDINATES
    return APIErrorCode.DELINEATION_FAILED


def _error_response(error_code: APIErrorCode, message: str, http_status: int) -> JSONResponse:
    error_response = ErrorResponse(
        status="error",
        error_code=error_code.value,
        error_message=message,
    )
    return JSONResponse(status_code=http_status, content=error_response.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers on the FastAPI app.

    This function registers handlers for:
    - Pydantic RequestValidationError (validation failures)
    - APIException (custom API errors)
    - DelineationError (every delineation tier failed)
    - RainfallError (every rainfall source failed)
    - UpstreamError (an upstream service failed outside a fallback chain)

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """
        Handle Pydantic validation errors.

        Maps validation failures to 400 Bad Request with INVALID_COORDINATES error code.
        """
        error_details = "; ".join([f"{err['loc'][-1]}: {err['msg']}" for err in exc.errors()])
        return _error_response(APIErrorCode.INVALID_COORDINATES, f"Validation error: {error_details}", 400)

    @app.exception_handler(APIException)
    async def api_exception_handler(
        request: Request,
        exc: APIException,
    ) -> JSONResponse:
        """Uses the error_code, message, and http_status from the exception."""
        return _error_response(exc.error_code, exc.message, exc.http_status)

    @app.exception_handler(DelineationError)
    async def delineation_exception_handler(
        request: Request,
        exc: DelineationError,
    ) -> JSONResponse:
        """Maps cascade exhaustion to 502 DELINEATION_FAILED."""
        return _error_response(APIErrorCode.DELINEATION_FAILED, str(exc), 502)

    @app.exception_handler(RainfallError)
    async def rainfall_exception_handler(
        request: Request,
        exc: RainfallError,
    ) -> JSONResponse:
        """Maps rainfall exhaustion to 502 RAINFALL_UNAVAILABLE."""
        return _error_response(APIErrorCode.RAINFALL_UNAVAILABLE, str(exc), 502)

    @app.exception_handler(UpstreamError)
    async def upstream_exception_handler(
        request: Request,
        exc: UpstreamError,
    ) -> JSONResponse:
        """Maps an unrecovered upstream failure to 502 UPSTREAM_SHAPE."""
        return _error_response(APIErrorCode.UPSTREAM_SHAPE, str(exc), 502)
