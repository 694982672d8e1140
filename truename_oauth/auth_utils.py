"""
OAuth flow helpers: state tokens, callback parsing and auth state
"""

import hmac
import uuid
from typing import Dict, Optional, Any
from urllib.parse import parse_qs, urlencode, urlsplit

from truename_oauth.storage import OAuthStorage


def generate_state_token() -> str:
    return str(uuid.uuid4())


def validate_state_token(stored: Optional[str], received: Optional[str]) -> bool:
    """Constant-time comparison; missing values never match"""
    if not stored or not received:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), received.encode("utf-8"))


def parse_callback_params(url_or_query: str) -> Dict[str, Optional[str]]:
    """
    Extract token and state from a callback URL or query string

    Accepts a full URL, '?token=...&state=...' or 'token=...&state=...'.
    """
    query = url_or_query or ""
    if "://" in query:
        query = urlsplit(query).query
    query = query.lstrip("?")

    params = parse_qs(query, keep_blank_values=False)
    return {
        "token": params.get("token", [None])[0],
        "state": params.get("state", [None])[0],
    }


def is_authenticated(storage: OAuthStorage) -> bool:
    return bool(storage.get_token()) and storage.get_user_data() is not None


def get_auth_state(storage: OAuthStorage) -> Dict[str, Any]:
    token = storage.get_token()
    user_data = storage.get_user_data()
    return {
        "is_authenticated": bool(token) and user_data is not None,
        "token": token,
        "user_data": user_data,
        # Tokens carry no client-visible expiry
        "expires_at": None,
    }


def build_auth_url(api_base_url: str, app_name: str, return_url: str, state: str) -> str:
    query = urlencode({
        "app_name": app_name,
        "return_url": return_url,
        "state": state,
    })
    return f"{api_base_url.rstrip('/')}/auth/oauth-authorize?{query}"
