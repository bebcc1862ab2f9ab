"""
Utilities module - Common helpers for API responses, exceptions, outcomes and time.
"""

from common.utils.responses import success_response, error_response, paginated_response
from common.utils.exceptions import (
    APIException,
    BadRequestException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ConflictException,
    InternalServerException,
    raise_for_outcome,
)
from common.utils.outcomes import Outcome, DomainError, ErrorKind
from common.utils.clock import Clock, FixedClock

__all__ = [
    "success_response",
    "error_response",
    "paginated_response",
    "APIException",
    "BadRequestException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ConflictException",
    "InternalServerException",
    "raise_for_outcome",
    "Outcome",
    "DomainError",
    "ErrorKind",
    "Clock",
    "FixedClock",
]
