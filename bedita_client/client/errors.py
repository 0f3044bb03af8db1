"""Exception hierarchy raised by the API client."""

from bedita_client.client.models import ApiResponse


class BEditaClientError(Exception):
    """Base class for every error raised by the client."""


class ApiResponseError(BEditaClientError):
    """The API answered with a non-2xx status."""

    def __init__(self, response: ApiResponse):
        self.response = response
        self.status_code = response.status_code
        method = response.request.method if response.request else "?"
        url = response.request.url if response.request else "?"
        super().__init__(f"{method} {url} failed with status {response.status_code}")


class AuthenticationFailure(ApiResponseError):
    """The API rejected the request credentials (HTTP 401)."""


class MalformedAuthResponse(BEditaClientError):
    """Auth response is missing the access or renewal token."""

    def __init__(self, message: str = "Auth response is missing jwt/renew tokens"):
        super().__init__(message)


class MissingRefreshToken(BEditaClientError):
    """Token renewal was requested with no refresh token stored."""

    def __init__(self, message: str = "Missing refresh token"):
        super().__init__(message)


class TransportError(BEditaClientError):
    """The request never produced an HTTP response."""


class TransportTimeout(TransportError):
    """The API did not answer in time."""
