"""Credential pool — per-provider API keys with round-robin rotation.

The pool file is plain JSON shaped like::

    {"mistral": ["key-1", "key-2"], "groq": ["key-3"]}

It is reloaded when its mtime changes, so keys added from the settings
UI take effect without a restart. The rotation cursor is private and
shared by every caller in the process; it only moves through
next_key(), under a lock.
"""

import json
import os
import threading

from podmeta.logging.audit import get_audit_logger


def mask_key(key: str) -> str:
    """Loggable form of an API key."""
    if len(key) > 12:
        return f"{key[:6]}...{key[-4:]}"
    return "***"


class CredentialPool:
    """Ordered API keys per provider plus a rotation cursor."""

    def __init__(self, keys: dict[str, list[str]] | None = None, path: str | None = None):
        self._path = path
        self._keys: dict[str, list[str]] = {}
        self._cursors: dict[str, int] = {}
        self._last_mtime: float = 0.0
        self._lock = threading.Lock()
        if keys:
            self._keys = _clean(keys)
        if path:
            self._load()

    def _load(self) -> None:
        """Load keys from the JSON file if it changed since the last read."""
        try:
            mtime = os.path.getmtime(self._path)
        except OSError:
            return

        if mtime == self._last_mtime:
            return

        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError):
            # Half-written or corrupt file: keep the last good keys
            get_audit_logger().warning(
                "Key pool unreadable",
                extra={"audit_data": {"path": self._path}},
                exc_info=True,
            )
            return

        self._keys = _clean(data if isinstance(data, dict) else {})
        self._last_mtime = mtime

    def reload(self) -> None:
        if self._path:
            with self._lock:
                self._load()

    def keys_for(self, provider: str) -> list[str]:
        with self._lock:
            return list(self._keys.get(provider, []))

    def has_keys(self, provider: str) -> bool:
        with self._lock:
            return bool(self._keys.get(provider))

    def providers(self) -> list[str]:
        with self._lock:
            return [p for p, keys in self._keys.items() if keys]

    def next_key(self, provider: str) -> str | None:
        """Return the key under the cursor for `provider` and advance it.

        Returns None when the provider has no keys. The cursor is taken
        modulo the pool size so it wraps indefinitely.
        """
        with self._lock:
            keys = self._keys.get(provider)
            if not keys:
                return None
            cursor = self._cursors.get(provider, 0)
            self._cursors[provider] = cursor + 1
            return keys[cursor % len(keys)]

    def add_key(self, provider: str, key: str) -> None:
        key = key.strip()
        if not key:
            return
        with self._lock:
            keys = self._keys.setdefault(provider, [])
            if key not in keys:
                keys.append(key)
            self._save()

    def remove_key(self, provider: str, key: str) -> bool:
        with self._lock:
            keys = self._keys.get(provider, [])
            if key not in keys:
                return False
            keys.remove(key)
            self._save()
            return True

    def _save(self) -> None:
        """Write the pool back to its file. Caller holds the lock."""
        if not self._path:
            return
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(self._keys, f, indent=2)
        self._last_mtime = os.path.getmtime(self._path)


def _clean(raw: dict) -> dict[str, list[str]]:
    """Keep string keys only, stripped, de-duplicated in order."""
    cleaned: dict[str, list[str]] = {}
    for provider, keys in raw.items():
        if not isinstance(keys, list):
            continue
        seen: list[str] = []
        for key in keys:
            if isinstance(key, str) and key.strip() and key.strip() not in seen:
                seen.append(key.strip())
        cleaned[str(provider).lower()] = seen
    return cleaned
