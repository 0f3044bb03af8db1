"""Abstract bases for request and response interceptors."""

from abc import ABC, abstractmethod
from enum import Enum

from bedita_client.client.models import ApiResponse, RequestConfig


class InterceptorKind(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"


class RequestInterceptor(ABC):
    """Transforms an outgoing request before it reaches the transport.

    ``key`` identifies the interceptor's logical type: registering two
    instances with the same key installs only the first one.
    """

    key: str = ""
    kind = InterceptorKind.REQUEST

    def __init__(self, client):
        self.client = client

    @abstractmethod
    async def on_request(self, config: RequestConfig) -> RequestConfig:
        ...

    async def on_request_error(self, error: Exception) -> RequestConfig:
        """Recover from a failure raised by an earlier request interceptor."""
        raise error


class ResponseInterceptor(ABC):
    """Transforms an incoming response, or recovers from a failed call.

    Interceptors run in registration order. Each one receives either the
    current response (``on_response``) or the current error (``on_error``);
    what it returns or raises is handed to the next one.
    """

    key: str = ""
    kind = InterceptorKind.RESPONSE

    def __init__(self, client):
        self.client = client

    @abstractmethod
    async def on_response(self, response: ApiResponse) -> ApiResponse:
        ...

    async def on_error(self, error: Exception) -> ApiResponse:
        raise error
