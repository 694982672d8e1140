"""
Security utilities for TrueNamePath

Provides password hashing and OAuth identifier/token generation.
"""

import re
import secrets
import logging
from typing import Optional, Dict, Any
import bcrypt

logger = logging.getLogger(__name__)

# Identifier formats
TOKEN_PREFIX = "tnp_"
CLIENT_ID_PATTERN = re.compile(r'^tnp_[a-f0-9]{16}$')
SESSION_TOKEN_PATTERN = re.compile(r'^tnp_[a-f0-9]{32}$')


def generate_client_id() -> str:
    """
    Generate an OAuth client identifier

    Returns:
        "tnp_" followed by 16 lowercase hex characters
    """
    return f"{TOKEN_PREFIX}{secrets.token_hex(8)}"


def generate_session_token() -> str:
    """
    Generate an OAuth session (bearer) token

    Returns:
        "tnp_" followed by 32 lowercase hex characters
    """
    return f"{TOKEN_PREFIX}{secrets.token_hex(16)}"


def is_valid_client_id(client_id: Optional[str]) -> bool:
    return bool(client_id) and CLIENT_ID_PATTERN.match(client_id) is not None


def is_valid_session_token(token: Optional[str]) -> bool:
    return bool(token) and SESSION_TOKEN_PATTERN.match(token) is not None


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt

    Args:
        password: Plain text password

    Returns:
        Hashed password
    """
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, hashed_password: str) -> bool:
    """
    Verify password against hash

    Args:
        password: Plain text password
        hashed_password: Hashed password

    Returns:
        True if password matches, False otherwise
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError as e:
        logger.error(f"Failed to verify password: {e}")
        return False


def generate_access_token() -> str:
    """Generate a dashboard session token"""
    return secrets.token_urlsafe(32)


def validate_password_strength(password: str) -> Dict[str, Any]:
    """
    Validate password strength

    Args:
        password: Password to validate

    Returns:
        Dictionary with validation results
    """
    result = {
        "valid": True,
        "errors": [],
        "score": 0
    }

    checks = [
        (len(password) >= 8, "Password must be at least 8 characters long"),
        (any(c.isupper() for c in password), "Password must contain at least one uppercase letter"),
        (any(c.islower() for c in password), "Password must contain at least one lowercase letter"),
        (any(c.isdigit() for c in password), "Password must contain at least one digit"),
    ]

    for passed, message in checks:
        if passed:
            result["score"] += 1
        else:
            result["errors"].append(message)
            result["valid"] = False

    return result
