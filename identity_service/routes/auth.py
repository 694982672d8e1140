"""
Authentication Routes
User registration, login and logout
"""

from fastapi import APIRouter, HTTPException, Request, status
import logging

from shared.schemas.user import UserCreateSchema, UserLoginSchema
from identity_service.services.auth_service import AuthService
from identity_service.utils.dependencies import CurrentUser, AccessToken
from identity_service.utils.responses import api_error, service_error, success_response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=dict, status_code=status.HTTP_201_CREATED)
async def register_user(user_data: UserCreateSchema, request: Request):
    """
    Register new user

    Creates the profile with a complete permanent Public context
    """
    try:
        result = await AuthService.register_user(user_data)

        if not result['success']:
            raise service_error(result)

        logger.info(f"User registered successfully: {user_data.email}")
        return success_response({
            "user": result['user'],
            "permanent_context_id": result['permanent_context_id']
        }, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"User registration error: {e}")
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Registration failed")


@router.post("/login", response_model=dict)
async def login_user(login_data: UserLoginSchema, request: Request):
    """User login, returns a bearer access token"""
    try:
        result = await AuthService.authenticate_user(
            login_data.email,
            login_data.password,
            login_data.remember_me
        )

        if not result['success']:
            raise api_error(status.HTTP_401_UNAUTHORIZED, "INVALID_CREDENTIALS", result['error'])

        logger.info(f"User logged in successfully: {login_data.email}")
        return success_response({"user": result['user'], "tokens": result['tokens']}, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"User login error: {e}")
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Login failed")


@router.post("/logout", response_model=dict)
async def logout_user(current_user: CurrentUser, token: AccessToken, request: Request):
    """Invalidate the current login session"""
    try:
        await AuthService.logout_user(current_user['id'], token)
        return success_response({"message": "Logout successful"}, request)

    except Exception as e:
        logger.error(f"User logout error: {e}")
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Logout failed")


@router.get("/me", response_model=dict)
async def get_me(current_user: CurrentUser, request: Request):
    """Current authenticated user"""
    return success_response({"user": current_user}, request)
