"""Build a fully wired client from environment settings."""

import httpx

from bedita_client.client.api_client import BEditaApiClient
from bedita_client.client.models import ClientConfig
from bedita_client.config.settings import Settings, get_settings
from bedita_client.storage.factory import get_credential_store


def create_client(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BEditaApiClient:
    settings = settings or get_settings()
    config = ClientConfig.from_settings(settings)
    return BEditaApiClient(
        config,
        storage=get_credential_store(settings, config.name),
        transport=transport,
        timeout=httpx.Timeout(settings.request_timeout, connect=settings.connect_timeout),
    )
