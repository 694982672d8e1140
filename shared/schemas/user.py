"""
User data schemas for TrueNamePath

Pydantic models for account registration and login.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from shared.utils.security import validate_password_strength


class UserCreateSchema(BaseModel):
    """Schema for creating a new user"""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    given_name: str = Field(..., min_length=1, max_length=100)
    family_name: str = Field(..., min_length=1, max_length=100)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format"""
        return v.lower()

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        """Validate password strength"""
        result = validate_password_strength(v)
        if not result["valid"]:
            raise ValueError(result["errors"][0])

        return v

    @field_validator('given_name', 'family_name')
    @classmethod
    def strip_names(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Name cannot be blank')
        return v

    @model_validator(mode="after")
    def check_full_name_length(self):
        """The "given family" variant must fit a 100 character name"""
        if len(self.given_name) + len(self.family_name) > 99:
            raise ValueError("Given and family name together must not exceed 99 characters")
        return self


class UserLoginSchema(BaseModel):
    """Schema for user login"""
    email: EmailStr
    password: str = Field(..., min_length=1)
    remember_me: bool = False

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format"""
        return v.lower()

