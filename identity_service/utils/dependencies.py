"""
FastAPI Dependencies
Database connections and authentication dependencies
"""

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional, Annotated
import logging

from identity_service.utils.database import get_database_connection, IdentityDatabase
from identity_service.utils.redis_session import RedisSessionManager
from identity_service.utils.supabase_client import supabase_client
from identity_service.utils.responses import api_error

logger = logging.getLogger(__name__)

# auto_error disabled so missing credentials render through the error envelope
security = HTTPBearer(auto_error=False)


async def get_database():
    """Database connection dependency"""
    async with get_database_connection() as db:
        yield db


def _authentication_error(message: str):
    return api_error(
        status.HTTP_401_UNAUTHORIZED,
        "AUTHENTICATION_REQUIRED",
        message,
        headers={"WWW-Authenticate": "Bearer"}
    )


def _public_user(profile: dict) -> dict:
    return {
        'id': str(profile['id']),
        'email': profile['email'],
        'email_verified': profile.get('email_verified', False)
    }


async def get_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """Bearer token of the dashboard session"""
    if credentials is None or not credentials.credentials:
        raise _authentication_error("Authentication required")
    return credentials.credentials


async def get_current_user(
    request: Request,
    token: str = Depends(get_access_token)
) -> dict:
    """
    Get current authenticated user from session token

    Redis login sessions are checked first; when Supabase is configured a
    Supabase access token is accepted too and mapped to the profile with
    the same id.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    try:
        user_id = None

        session = await RedisSessionManager.get_session(token)
        if session and session.get('is_active'):
            user_id = session['user_id']
        elif supabase_client.is_available():
            verified = await supabase_client.verify_token(token)
            if verified.get('success'):
                user_id = verified['user_id']

        if user_id:
            profile = await IdentityDatabase.get_profile_by_id(user_id)
            if profile and profile['is_active']:
                request.state.user_id = str(profile['id'])
                return _public_user(profile)

        raise _authentication_error("Invalid or expired token")

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Token verification error: {e}")
        raise _authentication_error("Authentication failed")


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[dict, Depends(get_current_user)]
AccessToken = Annotated[str, Depends(get_access_token)]
