"""
OAuth data schemas for TrueNamePath

Request bodies for the authorize / revoke / app-assignment endpoints.
"""

from typing import Optional
from uuid import UUID
from urllib.parse import urlparse
from pydantic import BaseModel, Field, field_validator


class AuthorizeRequestSchema(BaseModel):
    """Schema for POST /api/oauth/authorize"""
    client_id: str = Field(..., pattern=r'^tnp_[a-f0-9]{16}$')
    context_id: UUID
    return_url: str = Field(..., min_length=1, max_length=2048)
    state: Optional[str] = Field(None, max_length=255)

    @field_validator('return_url')
    @classmethod
    def validate_return_url(cls, v):
        """Return URL must be an absolute http(s) URL"""
        parsed = urlparse(v)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError('return_url must be an absolute http(s) URL')
        return v


class RevokeRequestSchema(BaseModel):
    """Schema for POST /api/oauth/revoke"""
    client_id: str = Field(..., pattern=r'^tnp_[a-f0-9]{16}$')
    remove_assignment: bool = True


class AppContextUpdateSchema(BaseModel):
    """Schema for moving a connected app to another context"""
    context_id: UUID
