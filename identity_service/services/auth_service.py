"""
Authentication Service
Account registration, login and logout
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict
import logging

from asyncpg.exceptions import UniqueViolationError

from shared.schemas.user import UserCreateSchema
from shared.schemas.identity import PERMANENT_CONTEXT_NAME
from shared.utils import security
from identity_service.config import get_app_config
from identity_service.utils.database import IdentityDatabase
from identity_service.utils.redis_session import RedisSessionManager

logger = logging.getLogger(__name__)


class AuthService:
    """User authentication service"""

    @staticmethod
    async def hash_password(password: str) -> str:
        """Hash password using bcrypt in thread pool to avoid blocking"""
        return await asyncio.to_thread(security.hash_password, password)

    @staticmethod
    async def verify_password(password: str, hashed_password: str) -> bool:
        """Verify password against hash in thread pool to avoid blocking"""
        return await asyncio.to_thread(security.verify_password, password, hashed_password)

    @staticmethod
    async def register_user(user_data: UserCreateSchema) -> Dict:
        """
        Register a new user

        Creates the profile together with the permanent Public context,
        which starts out complete (name, given_name and family_name).

        Args:
            user_data: Registration data

        Returns:
            dict: Registration result with user info
        """
        if await IdentityDatabase.get_profile_by_email(user_data.email):
            return {
                'success': False,
                'error_code': 'EMAIL_EXISTS',
                'error': 'An account with this email already exists'
            }

        password_hash = await AuthService.hash_password(user_data.password)

        try:
            created = await IdentityDatabase.create_account(
                email=user_data.email,
                password_hash=password_hash,
                given_name=user_data.given_name,
                family_name=user_data.family_name,
                context_name=PERMANENT_CONTEXT_NAME
            )
        except UniqueViolationError:
            return {
                'success': False,
                'error_code': 'EMAIL_EXISTS',
                'error': 'An account with this email already exists'
            }

        logger.info(f"User registered successfully: {user_data.email}")
        return {
            'success': True,
            'user': {
                'id': created['profile_id'],
                'email': user_data.email,
                'email_verified': False
            },
            'permanent_context_id': created['context_id']
        }

    @staticmethod
    async def authenticate_user(email: str, password: str, remember_me: bool = False) -> Dict:
        """
        Authenticate user and open a login session

        Args:
            email: User email
            password: User password
            remember_me: Extended session flag

        Returns:
            dict: Authentication result with tokens
        """
        profile = await IdentityDatabase.get_profile_by_email(email)
        if not profile or not await AuthService.verify_password(password, profile['password_hash']):
            return {
                'success': False,
                'error': 'Invalid email or password'
            }

        if not profile['is_active']:
            return {
                'success': False,
                'error': 'Account is deactivated'
            }

        config = get_app_config()
        days = config.remember_me_session_days if remember_me else config.login_session_days
        expires_at = datetime.now(timezone.utc) + timedelta(days=days)
        access_token = security.generate_access_token()

        created = await RedisSessionManager.create_session(
            str(profile['id']),
            access_token,
            expires_at,
            {'email': profile['email']}
        )
        if not created:
            raise RuntimeError("Failed to create login session")

        return {
            'success': True,
            'user': {
                'id': str(profile['id']),
                'email': profile['email'],
                'email_verified': profile['email_verified']
            },
            'tokens': {
                'access_token': access_token,
                'token_type': 'bearer',
                'expires_at': expires_at.isoformat()
            }
        }

    @staticmethod
    async def logout_user(user_id: str, access_token: str) -> Dict:
        """Invalidate the login session"""
        deleted = await RedisSessionManager.delete_session(access_token)
        logger.info(f"User {user_id} logged out (session removed: {deleted})")
        return {'success': True}
