"""
TrueNamePath OAuth client library

Lets an application obtain context-aware OIDC claims from TrueNamePath.
"""

from .client import TrueNameOAuthClient, OAuthConfig
from .storage import StorageAdapter, MemoryStorageAdapter, FileStorageAdapter, OAuthStorage
from .cache import OAuthCache, generate_cache_key, clear_oauth_cache
from .auth_utils import (
    generate_state_token,
    validate_state_token,
    parse_callback_params,
    is_authenticated,
    get_auth_state,
    build_auth_url,
)
from .api_client import fetch_client_info, resolve_oidc_claims

__all__ = [
    "TrueNameOAuthClient",
    "OAuthConfig",
    "StorageAdapter",
    "MemoryStorageAdapter",
    "FileStorageAdapter",
    "OAuthStorage",
    "OAuthCache",
    "generate_cache_key",
    "clear_oauth_cache",
    "generate_state_token",
    "validate_state_token",
    "parse_callback_params",
    "is_authenticated",
    "get_auth_state",
    "build_auth_url",
    "fetch_client_info",
    "resolve_oidc_claims",
]

__version__ = "1.0.0"
