"""Factory for credential store backends."""

from bedita_client.config.settings import Settings
from bedita_client.storage.store import CredentialStore, JSONFileCredentialStore, MemoryCredentialStore


def get_credential_store(settings: Settings, namespace: str) -> CredentialStore:
    """Build a fresh store for ``namespace``. Stores are never shared between clients."""
    backend = settings.credential_store_backend

    if backend == "memory":
        return MemoryCredentialStore(namespace)

    if backend == "json":
        return JSONFileCredentialStore(settings.credential_store_path, namespace)

    raise ValueError(f"Unknown credential store backend: {backend}")
