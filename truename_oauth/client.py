"""
TrueNamePath OAuth Client
Integration class for applications consuming context-aware identities

Lifecycle mirrors the service's other HTTP clients:
    - Call start() at startup (or use ``async with``)
    - Call stop() at shutdown
    - If not started, a per-request client is used
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import httpx

from truename_oauth import api_client
from truename_oauth.auth_utils import (
    build_auth_url,
    generate_state_token,
    get_auth_state,
    is_authenticated,
    parse_callback_params,
    validate_state_token,
)
from truename_oauth.cache import OAuthCache, generate_cache_key
from truename_oauth.storage import MemoryStorageAdapter, OAuthStorage, StorageAdapter

logger = logging.getLogger(__name__)


@dataclass
class OAuthConfig:
    """Client configuration"""
    app_name: str
    api_base_url: str
    callback_url: str
    origin: Optional[str] = None

    def get_origin(self) -> str:
        """Origin sent when registering; defaults to the callback URL's origin"""
        if self.origin:
            return self.origin
        parts = urlsplit(self.callback_url)
        return f"{parts.scheme}://{parts.netloc}"


class TrueNameOAuthClient:
    """OAuth flow, claim resolution and local persistence for one application"""

    # Connection pool settings
    MAX_CONNECTIONS = 20
    MAX_KEEPALIVE = 5
    KEEPALIVE_EXPIRY = 5.0

    # Timeout settings
    CONNECT_TIMEOUT = 5.0
    READ_TIMEOUT = 10.0
    WRITE_TIMEOUT = 5.0
    POOL_TIMEOUT = 10.0

    def __init__(
        self,
        config: OAuthConfig,
        storage_adapter: Optional[StorageAdapter] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional[OAuthCache] = None
    ):
        self.config = config
        adapter = storage_adapter or MemoryStorageAdapter()
        self.storage = OAuthStorage(adapter, config.app_name)
        self.cache = cache or OAuthCache(adapter)
        self._client: Optional[httpx.AsyncClient] = http_client
        self._owns_client = False
        self._client_info: Optional[Dict[str, Any]] = None

    async def start(self):
        """Initialize the shared HTTP client"""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            limits=httpx.Limits(
                max_connections=self.MAX_CONNECTIONS,
                max_keepalive_connections=self.MAX_KEEPALIVE,
                keepalive_expiry=self.KEEPALIVE_EXPIRY
            ),
            timeout=httpx.Timeout(
                connect=self.CONNECT_TIMEOUT,
                read=self.READ_TIMEOUT,
                write=self.WRITE_TIMEOUT,
                pool=self.POOL_TIMEOUT
            )
        )
        self._owns_client = True
        logger.info(f"TrueNameOAuthClient started for app {self.config.app_name}")

    async def stop(self):
        """Close the HTTP client if this instance created it"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            logger.info("TrueNameOAuthClient stopped")
        if self._owns_client:
            self._client = None
            self._owns_client = False

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    async def _call(self, func, *args) -> Dict[str, Any]:
        if self._client is not None:
            return await func(self._client, *args)
        async with httpx.AsyncClient(timeout=self.READ_TIMEOUT) as client:
            return await func(client, *args)

    async def get_client_info(self) -> Dict[str, Any]:
        """Registered client info, fetched once per instance"""
        if self._client_info:
            return {"success": True, "data": self._client_info}

        result = await self._call(
            api_client.fetch_client_info,
            self.config.api_base_url,
            self.config.app_name,
            self.config.get_origin()
        )
        if result.get("success") and result.get("data"):
            self._client_info = result["data"]
        return result

    async def initiate_auth_flow(self) -> Dict[str, Any]:
        """
        Start the authorization flow

        Stores a fresh state token and returns the URL the user must be
        sent to.
        """
        client_result = await self.get_client_info()
        if not client_result.get("success"):
            return {
                "success": False,
                "error": "client_info_failed",
                "message": client_result.get("message") or "Failed to get client information",
            }

        state = generate_state_token()
        self.storage.store_state(state)

        auth_url = build_auth_url(
            self.config.api_base_url,
            self.config.app_name,
            self.config.callback_url,
            state
        )
        return {"success": True, "data": {"auth_url": auth_url, "state": state}}

    async def handle_callback(self, url_params: str) -> Dict[str, Any]:
        """Validate the callback and resolve the returned token"""
        params = parse_callback_params(url_params)
        token, state = params["token"], params["state"]

        if not token:
            return {"success": False, "error": "missing_token", "message": "No token in callback"}

        if not state:
            return {"success": False, "error": "missing_state", "message": "No state in callback"}

        if not validate_state_token(self.storage.get_state(), state):
            return {"success": False, "error": "invalid_state", "message": "Invalid state token"}

        return await self.resolve_token(token)

    async def resolve_token(self, token: str) -> Dict[str, Any]:
        result = await self._call(api_client.resolve_oidc_claims, self.config.api_base_url, token)
        if result.get("success") and result.get("data"):
            self.storage.store_token(token)
            self.storage.store_user_data(result["data"])
            self.cache.set(generate_cache_key(token), {"data": result["data"]})
        return result

    async def refresh_user_data(self) -> Dict[str, Any]:
        """Re-resolve claims for the stored token"""
        token = self.storage.get_token()
        if not token:
            return {"success": False, "error": "no_token", "message": "No stored token"}

        result = await self._call(api_client.resolve_oidc_claims, self.config.api_base_url, token)
        if result.get("success") and result.get("data"):
            self.storage.store_user_data(result["data"])
            self.cache.set(generate_cache_key(token), {"data": result["data"]})
        return result

    async def fetch_claims(self, token: Optional[str] = None, revalidate: bool = False) -> Dict[str, Any]:
        """
        Claims for a token, served from the cache when present

        Args:
            token: Token to resolve; the stored token when omitted
            revalidate: Skip the cache and fetch from the server
        """
        token = token or self.storage.get_token()
        if not token:
            return {"success": False, "error": "no_token", "message": "No stored token"}

        key = generate_cache_key(token)
        cached = self.cache.get(key)
        if cached and cached.get("data") and not revalidate:
            return {"success": True, "data": cached["data"]}

        result = await self._call(api_client.resolve_oidc_claims, self.config.api_base_url, token)
        if result.get("success") and result.get("data"):
            self.cache.set(key, {"data": result["data"]})
        elif result.get("error") == "invalid_token":
            self.cache.delete(key)
        return result

    def is_authenticated(self) -> bool:
        return is_authenticated(self.storage)

    def get_auth_state(self) -> Dict[str, Any]:
        return get_auth_state(self.storage)

    def logout(self) -> None:
        token = self.storage.get_token()
        if token:
            self.cache.delete(generate_cache_key(token))
        self.storage.clear_all()
        self._client_info = None
