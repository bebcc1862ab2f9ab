"""
Common library for reusable infrastructure components.

- database: Async MongoDB connection with Motor
- auth: Pluggable token verification (JWT)
- events: In-process event bus
- utils: Standard responses, exceptions, outcomes, clock
- config: Base settings class
"""

from common.database import MongoDB
from common.auth import AuthProvider, JWTAuth, create_auth_dependency
from common.events import EventBus
from common.utils import (
    success_response,
    error_response,
    APIException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    Outcome,
    Clock,
)
from common.config import BaseAppSettings

__all__ = [
    # Database
    "MongoDB",
    # Auth
    "AuthProvider",
    "JWTAuth",
    "create_auth_dependency",
    # Events
    "EventBus",
    # Utils
    "success_response",
    "error_response",
    "APIException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "Outcome",
    "Clock",
]
