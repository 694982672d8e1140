"""
OAuth Claims Cache
Dictionary-backed cache of resolved claims, synced to storage on every write
"""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

from truename_oauth.storage import StorageAdapter

logger = logging.getLogger(__name__)

CACHE_STORAGE_KEY = "swr-oauth-cache"
TOKEN_KEY_PREFIX = "oauth-token-"
STORED_TOKEN_KEY = "stored-oauth-token"
TOKEN_KEY_SUFFIX_LENGTH = 8


def generate_cache_key(token: str) -> str:
    """Cache key for a token: its last 8 characters"""
    return f"{TOKEN_KEY_PREFIX}{token[-TOKEN_KEY_SUFFIX_LENGTH:]}"


def is_oauth_cache_key(key: Any) -> bool:
    return isinstance(key, str) and (
        key.startswith(TOKEN_KEY_PREFIX) or key == STORED_TOKEN_KEY
    )


def _is_cache_state(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    return all(
        value.get(flag) is None or isinstance(value.get(flag), bool)
        for flag in ("isValidating", "isLoading")
    )


def _is_valid_entry(entry: Any) -> bool:
    """Persisted entries are [key, state] pairs with well-formed keys"""
    if not isinstance(entry, (list, tuple)) or len(entry) != 2:
        return False
    key, state = entry
    if not isinstance(key, str):
        return False
    if key != STORED_TOKEN_KEY and not (
        key.startswith(TOKEN_KEY_PREFIX)
        and len(key) == len(TOKEN_KEY_PREFIX) + TOKEN_KEY_SUFFIX_LENGTH
    ):
        return False
    return _is_cache_state(state)


class OAuthCache:
    """
    Claims cache persisted under a single storage key

    On construction the persisted OAuth entries are loaded (malformed ones
    are dropped, unreadable data is removed). Every set and delete writes
    the OAuth entries back immediately; other keys stay in memory only.
    """

    def __init__(self, storage: StorageAdapter):
        self.storage = storage
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._load()

    def _load(self) -> None:
        stored = self.storage.get_item(CACHE_STORAGE_KEY)
        if not stored:
            return
        try:
            parsed = json.loads(stored)
            if not isinstance(parsed, list):
                raise ValueError("cache payload is not a list")
        except (ValueError, TypeError) as e:
            logger.warning(f"Discarding unreadable OAuth cache: {e}")
            self.storage.remove_item(CACHE_STORAGE_KEY)
            return

        for entry in parsed:
            if _is_valid_entry(entry):
                self._entries[entry[0]] = entry[1]

    def _save(self) -> None:
        oauth_entries: List[list] = [
            [key, value] for key, value in self._entries.items() if is_oauth_cache_key(key)
        ]
        try:
            self.storage.set_item(CACHE_STORAGE_KEY, json.dumps(oauth_entries))
        except (TypeError, ValueError) as e:
            logger.warning(f"Failed to persist OAuth cache: {e}")

    def keys(self) -> Iterator[str]:
        return iter(list(self._entries.keys()))

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self._entries.get(key)

    def set(self, key: str, value: Dict[str, Any]) -> None:
        self._entries[key] = value
        self._save()

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)
        self._save()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def clear_oauth_cache(storage: StorageAdapter) -> None:
    """Remove the persisted cache"""
    storage.remove_item(CACHE_STORAGE_KEY)
