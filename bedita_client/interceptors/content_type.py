"""Normalizes request body encoding and its Content-Type header."""

import json

from bedita_client.client.models import RequestConfig
from bedita_client.interceptors.base import RequestInterceptor

JSON_CONTENT_TYPE = "application/json"


class ContentTypeInterceptor(RequestInterceptor):
    key = "content-type"

    async def on_request(self, config: RequestConfig) -> RequestConfig:
        if config.data is None or config.content is not None:
            return config

        if config.get_header("Content-Type") is None:
            config.headers["Content-Type"] = JSON_CONTENT_TYPE

        if isinstance(config.data, (str, bytes)):
            config.content = config.data
        else:
            config.content = json.dumps(config.data)
        return config
