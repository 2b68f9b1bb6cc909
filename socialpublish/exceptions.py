"""
Exception classes for Social Publish.

Every failure that reaches an API response is one of three kinds, each
carrying the HTTP status to answer with and the module it came from:

Exception Hierarchy:
    SocialPublishError (base)
    ├── ValidationError (400 by default; 401, 404 and 503 are also used)
    ├── RequestError (status of the failed downstream call)
    ├── CaughtException (500)
    └── CompositeError (worst status of a multi-target broadcast)
"""

import json
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

import httpx
from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Machine-readable identifiers included in every error response."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    REQUEST_ERROR = "REQUEST_ERROR"
    CAUGHT_EXCEPTION = "CAUGHT_EXCEPTION"
    COMPOSITE_ERROR = "COMPOSITE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ResponseBody(BaseModel):
    """Captured body of a failed downstream response."""

    as_string: str
    as_json: Optional[Any] = None

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ResponseBody":
        text = response.text
        try:
            parsed = json.loads(text) if text else None
        except ValueError:
            parsed = None
        return cls(as_string=text, as_json=parsed)


class SocialPublishError(Exception):
    """
    Base class for all errors returned to API clients.

    Attributes:
        message: Human-readable error message.
        status: HTTP status code to answer with.
        module: Platform or subsystem that produced the error.
        error_code: Machine-readable error code.
    """

    default_status: int = 500
    default_error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status: Optional[int] = None,
        module: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
    ):
        self.message = message or self.default_message
        self.status = status or self.default_status
        self.module = module
        self.error_code = error_code or self.default_error_code
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.status

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the error to a JSON-serializable response body.

        Returns:
            Dictionary with error information.
        """
        response: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "error_code": self.error_code.value,
        }
        if self.module:
            response["module"] = self.module
        return response

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"status={self.status}, "
            f"module={self.module!r})"
        )


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(SocialPublishError):
    """
    Raised when a request cannot be served as given.

    Use this for:
    - Invalid post content or upload
    - Missing OAuth authorization (401)
    - Missing or unreadable files (404)
    - Integrations without credentials (503)
    """

    default_status = 400
    default_error_code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid request data"


# =============================================================================
# Downstream Request Errors
# =============================================================================


class RequestError(SocialPublishError):
    """
    Raised when a platform answered with an unexpected status.

    The downstream status is kept as the response status and the body is
    captured for diagnostics.
    """

    default_status = 502
    default_error_code = ErrorCode.REQUEST_ERROR
    default_message = "Downstream request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        status: Optional[int] = None,
        module: Optional[str] = None,
        body: Optional[ResponseBody] = None,
    ):
        super().__init__(message=message, status=status, module=module)
        self.body = body

    @classmethod
    def from_response(
        cls,
        response: httpx.Response,
        message: str,
        module: Optional[str] = None,
    ) -> "RequestError":
        """
        Build an error from a failed httpx response.

        Args:
            response: The downstream response.
            message: Description of the step that failed.
            module: Platform that made the call.

        Returns:
            RequestError carrying the downstream status and body.
        """
        return cls(
            message=message,
            status=response.status_code,
            module=module,
            body=ResponseBody.from_response(response),
        )

    def to_dict(self) -> Dict[str, Any]:
        response = super().to_dict()
        if self.body is not None:
            response["details"] = {
                "body": self.body.as_json if self.body.as_json is not None else self.body.as_string,
            }
        return response


# =============================================================================
# Unexpected Exceptions
# =============================================================================


class CaughtException(SocialPublishError):
    """Wraps an unexpected exception raised while talking to a platform."""

    default_status = 500
    default_error_code = ErrorCode.CAUGHT_EXCEPTION
    default_message = "Unexpected error"

    def __init__(
        self,
        message: Optional[str] = None,
        module: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message=message, status=500, module=module)
        self.cause = cause


# =============================================================================
# Composite Errors
# =============================================================================


class CompositeErrorResponse(BaseModel):
    """Outcome of one target inside a failed broadcast."""

    type: Literal["success", "error"]
    module: Optional[str] = None
    status: Optional[int] = None
    error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None


class CompositeError(SocialPublishError):
    """
    Raised by a broadcast when at least one target failed.

    Attributes:
        responses: Per-target outcomes, in target order.
    """

    default_status = 500
    default_error_code = ErrorCode.COMPOSITE_ERROR
    default_message = "Failed to create post"

    def __init__(
        self,
        message: Optional[str] = None,
        status: Optional[int] = None,
        responses: Optional[List[CompositeErrorResponse]] = None,
    ):
        super().__init__(message=message, status=status, module="publish")
        self.responses = responses or []

    @property
    def failed_modules(self) -> List[str]:
        return [
            response.module or "unknown"
            for response in self.responses
            if response.type == "error"
        ]

    def to_dict(self) -> Dict[str, Any]:
        response = super().to_dict()
        response["responses"] = [
            item.model_dump(exclude_none=True) for item in self.responses
        ]
        return response
