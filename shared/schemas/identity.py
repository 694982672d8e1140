"""
Identity data schemas for TrueNamePath

Names, contexts and the OIDC property assignments that link them.
"""

from uuid import UUID
from enum import Enum
from pydantic import BaseModel


class OIDCProperty(str, Enum):
    """OIDC claim names a context can map to a name variant"""
    GIVEN_NAME = "given_name"
    FAMILY_NAME = "family_name"
    NAME = "name"
    NICKNAME = "nickname"
    DISPLAY_NAME = "display_name"
    PREFERRED_USERNAME = "preferred_username"
    MIDDLE_NAME = "middle_name"


# Properties every complete context (and always the permanent one) must carry
REQUIRED_OIDC_PROPERTIES = (
    OIDCProperty.NAME.value,
    OIDCProperty.GIVEN_NAME.value,
    OIDCProperty.FAMILY_NAME.value,
)

PERMANENT_CONTEXT_NAME = "Public"


class AssignmentCreateSchema(BaseModel):
    """Schema for creating or replacing an OIDC assignment"""
    context_id: UUID
    name_id: UUID
    oidc_property: OIDCProperty


class AssignmentDeleteSchema(BaseModel):
    """Schema for removing an OIDC assignment"""
    context_id: UUID
    oidc_property: OIDCProperty

