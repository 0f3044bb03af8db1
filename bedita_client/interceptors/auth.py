"""Injects the stored access token as a bearer credential."""

from bedita_client.client.models import RequestConfig
from bedita_client.interceptors.base import RequestInterceptor


class AuthInterceptor(RequestInterceptor):
    key = "auth"

    async def on_request(self, config: RequestConfig) -> RequestConfig:
        # An explicit Authorization header (e.g. the renewal call) wins
        if config.get_header("Authorization") is not None:
            return config

        token = self.client.get_storage_service().access_token
        if token:
            config.headers["Authorization"] = f"Bearer {token}"
        return config
