"""
Shared utilities for TrueNamePath

This package contains common utilities used by the identity service.
"""

from .logger import setup_logging, get_audit_logger, performance_timer
from .security import (
    generate_client_id,
    generate_session_token,
    hash_password,
    verify_password,
)

__all__ = [
    "setup_logging",
    "get_audit_logger",
    "performance_timer",
    "generate_client_id",
    "generate_session_token",
    "hash_password",
    "verify_password",
]

__version__ = "1.0.0"
