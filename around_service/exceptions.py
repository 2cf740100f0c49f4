"""
Exception types surfaced on the synchronous request path
"""
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


class AroundException(Exception):
    """Base error carrying the HTTP status it maps to"""

    status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthorizationError(AroundException):
    """Missing or invalid credential context"""

    status = status.HTTP_400_BAD_REQUEST
    code = "authorization_error"


class ValidationError(AroundException):
    """Malformed input or empty required field"""

    status = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class AuthenticationFailed(AroundException):
    """Unknown username or wrong password"""

    status = status.HTTP_403_FORBIDDEN
    code = "authentication_failed"


class RegistrationFailed(AroundException):
    """Duplicate username, empty field or unreachable credential store"""

    status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "registration_failed"


class CollaboratorUnavailable(AroundException):
    """A backing store could not be reached or rejected the call"""

    status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "collaborator_unavailable"

    def __init__(self, collaborator: str, message: str):
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator


async def around_exception_handler(request: Request, exc: AroundException):
    logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status,
        content={"code": exc.code, "message": exc.message},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"{request.method} {request.url.path} rejected: malformed request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"code": ValidationError.code, "message": "Malformed request", "errors": jsonable_encoder(exc.errors())},
    )
