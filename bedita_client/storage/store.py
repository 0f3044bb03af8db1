"""Credential store abstraction + in-memory and JSON file implementations."""

import json
import os
import tempfile
from abc import ABC, abstractmethod

ACCESS_TOKEN_KEY = "tokens.jwt"
REFRESH_TOKEN_KEY = "tokens.renew"
USER_KEY = "user"


class CredentialStore(ABC):
    """Key-value store for tokens and cached session data.

    Each store is bound to a namespace (the client name) so several
    clients can share one backing file without clobbering each other.
    """

    def __init__(self, namespace: str):
        self.namespace = namespace

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> "CredentialStore":
        """Delete ``key`` if present. Returns the store for chaining."""
        ...

    def clear_tokens(self) -> "CredentialStore":
        self.remove(ACCESS_TOKEN_KEY)
        self.remove(REFRESH_TOKEN_KEY)
        return self

    def clear_session(self) -> None:
        """Wipe tokens and the cached user."""
        self.clear_tokens().remove(USER_KEY)

    @property
    def access_token(self) -> str | None:
        return self.get(ACCESS_TOKEN_KEY)

    @access_token.setter
    def access_token(self, value: str | None) -> None:
        if value is None:
            self.remove(ACCESS_TOKEN_KEY)
        else:
            self.set(ACCESS_TOKEN_KEY, value)

    @property
    def refresh_token(self) -> str | None:
        return self.get(REFRESH_TOKEN_KEY)

    @refresh_token.setter
    def refresh_token(self, value: str | None) -> None:
        if value is None:
            self.remove(REFRESH_TOKEN_KEY)
        else:
            self.set(REFRESH_TOKEN_KEY, value)


class MemoryCredentialStore(CredentialStore):
    """Process-local store, owned by a single client instance."""

    def __init__(self, namespace: str):
        super().__init__(namespace)
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> CredentialStore:
        self._values.pop(key, None)
        return self


class JSONFileCredentialStore(CredentialStore):
    """File-backed store. Reloads on mtime change.

    File layout: ``{"<namespace>": {"<key>": "<value>", ...}, ...}``.
    """

    def __init__(self, path: str, namespace: str):
        super().__init__(namespace)
        self._path = path
        self._data: dict[str, dict[str, str]] = {}
        self._last_mtime: float = 0.0
        self._load()

    def _load(self) -> None:
        try:
            mtime = os.path.getmtime(self._path)
        except OSError:
            self._data = {}
            return

        if mtime == self._last_mtime:
            return

        with open(self._path, encoding="utf-8") as f:
            self._data = json.load(f)
        self._last_mtime = mtime

    def _save(self) -> None:
        directory = os.path.dirname(os.path.abspath(self._path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f)
            os.replace(tmp_path, self._path)
        except BaseException:
            os.unlink(tmp_path)
            raise
        self._last_mtime = os.path.getmtime(self._path)

    def _values(self) -> dict[str, str]:
        self._load()  # pick up writes from other processes
        return self._data.setdefault(self.namespace, {})

    def get(self, key: str) -> str | None:
        return self._values().get(key)

    def set(self, key: str, value: str) -> None:
        self._values()[key] = value
        self._save()

    def remove(self, key: str) -> CredentialStore:
        values = self._values()
        if key in values:
            del values[key]
            self._save()
        return self
