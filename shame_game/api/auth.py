"""API authentication using bearer session tokens"""
import logging
from typing import Optional
from fastapi import Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from shame_game.exceptions import AuthenticationError
from shame_game.models import User
from shame_game.services.container import ServiceContainer, get_container

logger = logging.getLogger(__name__)

# auto_error=False so a missing header surfaces as AuthenticationError (401)
security = HTTPBearer(auto_error=False)


async def get_session_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> str:
    """
    Extract the bearer token from the Authorization header

    Raises:
        AuthenticationError: If the header is missing
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token", operation="authenticate")
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_session_token),
    container: ServiceContainer = Depends(get_container)
) -> User:
    """
    Resolve the bearer token to the signed-in user

    Raises:
        AuthenticationError: If the token is unknown or expired
    """
    user = await container.auth_service.authenticate(token)
    logger.debug(f"Authenticated {user.id} with token {token[:6]}...")
    return user
