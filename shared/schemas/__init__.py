"""
Shared data schemas for TrueNamePath

This package contains the request schemas of the identity service.
"""

from .user import UserCreateSchema, UserLoginSchema
from .identity import (
    OIDCProperty,
    REQUIRED_OIDC_PROPERTIES,
    PERMANENT_CONTEXT_NAME,
    AssignmentCreateSchema,
    AssignmentDeleteSchema,
)
from .oauth import AuthorizeRequestSchema, RevokeRequestSchema, AppContextUpdateSchema

__all__ = [
    "UserCreateSchema",
    "UserLoginSchema",
    "OIDCProperty",
    "REQUIRED_OIDC_PROPERTIES",
    "PERMANENT_CONTEXT_NAME",
    "AssignmentCreateSchema",
    "AssignmentDeleteSchema",
    "AuthorizeRequestSchema",
    "RevokeRequestSchema",
    "AppContextUpdateSchema",
]

__version__ = "1.0.0"
