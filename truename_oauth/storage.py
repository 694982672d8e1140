"""
OAuth Storage
Persists the OAuth token, claims and CSRF state of one application
"""

import json
import time
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Any

logger = logging.getLogger(__name__)


class StorageAdapter:
    """
    Key/value string store

    Adapters never raise to their callers: reads fail as None, writes and
    removals fail silently (logged).
    """

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryStorageAdapter(StorageAdapter):
    """In-process storage, mainly for servers and tests"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()


class FileStorageAdapter(StorageAdapter):
    """Storage backed by a single JSON object on disk"""

    def __init__(self, path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable OAuth storage file {self.path}: {e}")
            return {}

    def _write(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f)
            tmp_path.replace(self.path)
        except OSError as e:
            logger.warning(f"Failed to write OAuth storage file {self.path}: {e}")

    def get_item(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)

    def clear(self) -> None:
        with self._lock:
            self._write({})


class OAuthStorage:
    """Namespaced OAuth values for one application"""

    def __init__(self, storage: StorageAdapter, app_name: str):
        self.storage = storage
        self.key_prefix = f"truename_oauth_{app_name}"

    def _key(self, suffix: str) -> str:
        return f"{self.key_prefix}_{suffix}"

    def store_token(self, token: str) -> None:
        """Store the token and the time (epoch ms) it was stored"""
        self.storage.set_item(self._key("token"), token)
        self.storage.set_item(self._key("expires"), str(int(time.time() * 1000)))

    def get_token(self) -> Optional[str]:
        return self.storage.get_item(self._key("token"))

    def store_user_data(self, user_data: Dict[str, Any]) -> None:
        self.storage.set_item(self._key("user"), json.dumps(user_data))

    def get_user_data(self) -> Optional[Dict[str, Any]]:
        data = self.storage.get_item(self._key("user"))
        if not data:
            return None
        try:
            return json.loads(data)
        except (json.JSONDecodeError, TypeError):
            return None

    def store_state(self, state: str) -> None:
        self.storage.set_item(self._key("state"), state)

    def get_state(self) -> Optional[str]:
        return self.storage.get_item(self._key("state"))

    def clear_all(self) -> None:
        """Remove this application's keys only"""
        for suffix in ("token", "user", "state", "expires"):
            self.storage.remove_item(self._key(suffix))
