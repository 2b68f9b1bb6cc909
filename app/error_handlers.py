"""
FastAPI exception handlers for the Social Publish API.

This module provides centralized exception handling that:
- Maps SocialPublishError subclasses to their status and error body
- Answers request validation failures with 400 and per-field details
- Reports unexpected exceptions to Sentry

All error responses follow the format:
{
    "success": false,
    "error": "Human-readable message",
    "error_code": "MACHINE_READABLE_CODE",
    "module": "twitter",      # When known
    "details": {},            # Optional additional context
    "responses": []           # Composite errors only
}
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.middleware.logging import get_request_id_from_request
from socialpublish.config import get_settings
from socialpublish.exceptions import ErrorCode, SocialPublishError

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 10


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Format pydantic validation errors as `{field, message}` pairs.

    Args:
        errors: List of pydantic error dictionaries.

    Returns:
        List of formatted errors, at most MAX_REPORTED_ERRORS long.
    """
    formatted = []
    for error in errors:
        loc = error.get("loc", [])
        field_parts = [str(p) for p in loc if p != "body"]
        field = ".".join(field_parts) if field_parts else "request"

        error_type = error.get("type", "")
        msg = error.get("msg", "Invalid value")
        if error_type == "missing":
            msg = f"Field '{field}' is required"
        elif error_type == "string_type":
            msg = f"Field '{field}' must be a string"
        elif error_type == "bool_type":
            msg = f"Field '{field}' must be a boolean"

        formatted.append({"field": field, "message": msg})

    return formatted[:MAX_REPORTED_ERRORS]


def create_error_response(
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Create a standardized error response.

    Args:
        status_code: HTTP status code.
        error: Human-readable error message.
        error_code: Machine-readable error code.
        details: Optional additional details.
        headers: Optional response headers.

    Returns:
        JSONResponse with consistent error format.
    """
    content: Dict[str, Any] = {
        "success": False,
        "error": error,
        "error_code": error_code,
    }
    if details:
        content["details"] = details

    return JSONResponse(status_code=status_code, content=content, headers=headers)


def report_to_sentry(
    exc: Exception,
    request: Optional[Request] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """
    Report an exception to Sentry with request context.

    Returns:
        Sentry event ID if reported, None otherwise.
    """
    try:
        client = sentry_sdk.get_client()
        if not client.is_active():
            return None

        with sentry_sdk.new_scope() as scope:
            if request is not None:
                scope.set_context("request", {
                    "method": request.method,
                    "path": request.url.path,
                })
                request_id = get_request_id_from_request(request)
                if request_id:
                    scope.set_tag("request_id", request_id)

            if extra_context:
                scope.set_context("extra", extra_context)

            return sentry_sdk.capture_exception(exc)

    except Exception as e:
        logger.warning(f"Failed to report exception to Sentry: {e}")
        return None


# =============================================================================
# Exception Handlers
# =============================================================================

async def social_publish_exception_handler(
    request: Request,
    exc: SocialPublishError,
) -> JSONResponse:
    """Answer with the error's own status and body."""
    log_message = f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}"
    if exc.status >= 500:
        logger.error(log_message)
        cause = getattr(exc, "cause", None)
        report_to_sentry(cause or exc, request, extra_context={"module": exc.module})
    else:
        logger.warning(log_message)

    return JSONResponse(status_code=exc.status, content=exc.to_dict())


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Answer malformed request bodies and parameters with 400."""
    errors = format_validation_errors(exc.errors())

    logger.warning(
        f"Validation error on {request.method} {request.url.path}: "
        f"{len(errors)} error(s)"
    )

    if len(errors) == 1:
        error_message = errors[0]["message"]
    else:
        error_message = f"Validation failed with {len(errors)} error(s)"

    return create_error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        error=error_message,
        error_code=ErrorCode.VALIDATION_ERROR.value,
        details={"errors": errors},
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Wrap HTTPException in the standard error envelope."""
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    error_code = ErrorCode.VALIDATION_ERROR if exc.status_code < 500 else ErrorCode.INTERNAL_ERROR

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {detail}")
    else:
        logger.warning(f"HTTP {exc.status_code}: {detail}")

    return create_error_response(
        status_code=exc.status_code,
        error=detail,
        error_code=error_code.value,
        headers=exc.headers,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Handle any unhandled exceptions.

    Logs the traceback, reports to Sentry and answers with a generic
    message plus a short reference for support.
    """
    error_reference = str(uuid.uuid4())[:8]

    logger.error(
        f"Unhandled exception [ref:{error_reference}] on "
        f"{request.method} {request.url.path}: {exc}",
        exc_info=True,
    )

    event_id = report_to_sentry(
        exc,
        request,
        extra_context={"error_reference": error_reference},
    )

    details: Dict[str, Any] = {"error_reference": error_reference}
    if get_settings().is_production:
        error = "An unexpected error occurred. Please try again later."
    else:
        error = f"Internal server error: {type(exc).__name__}"
        if event_id:
            details["sentry_event_id"] = event_id

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error=error,
        error_code=ErrorCode.INTERNAL_ERROR.value,
        details=details,
    )


# =============================================================================
# Handler Registration
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance.
    """
    app.add_exception_handler(SocialPublishError, social_publish_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.info("Exception handlers registered successfully")
