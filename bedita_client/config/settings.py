"""Client settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # BEdita API endpoint
    bedita_base_url: str = "http://localhost:8090"
    bedita_api_key: str = ""
    bedita_client_name: str = "bedita"  # namespaces stored credentials

    # Transport
    request_timeout: float = 30.0
    connect_timeout: float = 10.0

    # Credential store
    credential_store_backend: str = "memory"  # "memory" | "json"
    credential_store_path: str = "credentials.json"

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
