"""
Signup and login routes
"""
import logging

from fastapi import APIRouter, Depends

from ...config import settings
from ...exceptions import AuthenticationFailed, RegistrationFailed
from ...schemas import ErrorResponse, UserCredentials, TokenResponse, MessageResponse
from ...application.services import CredentialService
from ..dependencies import get_credential_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


@router.post(
    "/signup",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def signup(
    user_data: UserCredentials,
    credential_service: CredentialService = Depends(get_credential_service)
):
    """
    Register a new user

    - **username**: Unique, non-empty username
    - **password**: Non-empty password
    """
    logger.info("Received one signup request")

    if not await credential_service.register(user_data.username, user_data.password):
        raise RegistrationFailed("Failed to add a new user")

    return MessageResponse(message="User added successfully.")


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def login(
    credentials: UserCredentials,
    credential_service: CredentialService = Depends(get_credential_service)
):
    """
    Login with username and password

    Returns a bearer token valid for 24 hours.
    """
    logger.info("Received one login request")

    token = await credential_service.login(credentials.username, credentials.password)
    if token is None:
        raise AuthenticationFailed("Invalid password or username")

    return TokenResponse(
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_HOURS * 3600
    )
