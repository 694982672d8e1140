"""
TrueNamePath API calls used by the OAuth client

Every call returns {"success": True, "data": ...} or
{"success": False, "error": <code>, "message": <text>}; nothing raises.
"""

import logging
from typing import Any, Callable, Dict

import httpx

logger = logging.getLogger(__name__)


def _network_error(error: Exception) -> Dict[str, Any]:
    return {
        "success": False,
        "error": "network_error",
        "message": str(error) or "Network request failed",
    }


def _http_error(response: httpx.Response, error_type: str) -> Dict[str, Any]:
    return {
        "success": False,
        "error": error_type,
        "message": f"HTTP {response.status_code}: {response.reason_phrase}",
    }


def _parse_api_response(response: httpx.Response, extract: Callable[[dict], Any]) -> Dict[str, Any]:
    try:
        result = response.json()
    except ValueError as e:
        return {"success": False, "error": "invalid_response", "message": f"Invalid JSON response: {e}"}

    if isinstance(result, dict) and result.get("success") is True:
        try:
            return {"success": True, "data": extract(result)}
        except (KeyError, TypeError):
            return {"success": False, "error": "invalid_response", "message": "Unexpected response shape"}

    error = result.get("error") if isinstance(result, dict) else None
    error = error if isinstance(error, dict) else {}
    return {
        "success": False,
        "error": error.get("code") or "unknown_error",
        "message": error.get("message") or (result.get("message") if isinstance(result, dict) else None)
        or "API request failed",
    }


async def fetch_client_info(
    http_client: httpx.AsyncClient,
    api_base_url: str,
    app_name: str,
    origin: str
) -> Dict[str, Any]:
    """Look up (or register) this application's client on the server"""
    try:
        response = await http_client.get(
            f"{api_base_url.rstrip('/')}/api/oauth/apps/{app_name}",
            headers={"Content-Type": "application/json", "Origin": origin},
        )
    except httpx.HTTPError as e:
        logger.warning(f"Client info request failed: {e}")
        return _network_error(e)

    if response.is_error:
        return _http_error(response, "failed_to_fetch_client_info")

    return _parse_api_response(response, lambda r: r["data"]["client"])


async def resolve_oidc_claims(
    http_client: httpx.AsyncClient,
    api_base_url: str,
    token: str
) -> Dict[str, Any]:
    """Exchange a session token for OIDC claims"""
    try:
        response = await http_client.post(
            f"{api_base_url.rstrip('/')}/api/oauth/resolve",
            headers={"Content-Type": "application/json", "Authorization": f"Bearer {token}"},
        )
    except httpx.HTTPError as e:
        logger.warning(f"Claim resolution request failed: {e}")
        return _network_error(e)

    if response.is_error:
        error_type = "invalid_token" if response.status_code == 401 else "resolution_failed"
        return _http_error(response, error_type)

    return _parse_api_response(response, lambda r: r["data"]["claims"])
