"""
Custom HTTP exceptions with error codes.

Extends FastAPI's HTTPException with standardized error codes
for consistent API error responses.

Example:
    from common.utils import NotFoundException

    @app.get("/surveys/{id}")
    async def get_survey(id: str):
        survey = await surveys.find_one({"_id": ObjectId(id)})
        if not survey:
            raise NotFoundException("Survey not found", code="SURVEY_NOT_FOUND")
        return survey
"""

from typing import Optional, Any, Dict

from fastapi import HTTPException

from common.utils.outcomes import ErrorKind, Outcome


class APIException(HTTPException):
    """
    Base API exception with error code support.

    Provides consistent error response format across the API.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Create an API exception.

        Args:
            status_code: HTTP status code
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error details
            headers: Optional response headers
        """
        detail: Dict[str, Any] = {"message": message}

        if code:
            detail["code"] = code

        if details is not None:
            detail["details"] = details

        super().__init__(
            status_code=status_code,
            detail=detail,
            headers=headers,
        )


class BadRequestException(APIException):
    """400 Bad Request - Invalid input or malformed request."""

    def __init__(
        self,
        message: str = "Bad request",
        code: str = "BAD_REQUEST",
        details: Optional[Any] = None,
    ):
        super().__init__(400, message, code, details)


class UnauthorizedException(APIException):
    """401 Unauthorized - Missing or invalid authentication."""

    def __init__(
        self,
        message: str = "Unauthorized",
        code: str = "UNAUTHORIZED",
        details: Optional[Any] = None,
    ):
        super().__init__(401, message, code, details, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenException(APIException):
    """403 Forbidden - Valid auth but insufficient permissions."""

    def __init__(
        self,
        message: str = "Forbidden",
        code: str = "FORBIDDEN",
        details: Optional[Any] = None,
    ):
        super().__init__(403, message, code, details)


class NotFoundException(APIException):
    """404 Not Found - Resource doesn't exist."""

    def __init__(
        self,
        message: str = "Not found",
        code: str = "NOT_FOUND",
        details: Optional[Any] = None,
    ):
        super().__init__(404, message, code, details)


class ConflictException(APIException):
    """409 Conflict - Resource already exists or state conflict."""

    def __init__(
        self,
        message: str = "Conflict",
        code: str = "CONFLICT",
        details: Optional[Any] = None,
    ):
        super().__init__(409, message, code, details)


class InternalServerException(APIException):
    """500 Internal Server Error - Unexpected server error."""

    def __init__(
        self,
        message: str = "Internal server error",
        code: str = "INTERNAL_ERROR",
        details: Optional[Any] = None,
    ):
        super().__init__(500, message, code, details)


# Funds errors surface as 409 like other state conflicts
_KIND_TO_EXCEPTION = {
    ErrorKind.VALIDATION: BadRequestException,
    ErrorKind.CONFLICT: ConflictException,
    ErrorKind.NOT_FOUND: NotFoundException,
    ErrorKind.FUNDS: ConflictException,
}


def raise_for_outcome(outcome: Outcome) -> Any:
    """
    Return the outcome's value, or raise the HTTP exception matching its error.

    Args:
        outcome: Result returned by a domain service

    Returns:
        The success value

    Raises:
        APIException: Subclass selected by the error kind
    """
    if outcome.ok:
        return outcome.value

    error = outcome.error
    exception_class = _KIND_TO_EXCEPTION[error.kind]
    raise exception_class(message=error.message, code=error.code, details=error.details)
