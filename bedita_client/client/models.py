"""Client configuration and request/response models."""

from dataclasses import dataclass, field
from typing import Any

from bedita_client.config.settings import Settings

DEFAULT_CLIENT_NAME = "bedita"


@dataclass(frozen=True)
class ClientConfig:
    base_url: str
    api_key: str = ""
    name: str = DEFAULT_CLIENT_NAME  # namespace for stored credentials

    def __post_init__(self):
        if not self.name:
            object.__setattr__(self, "name", DEFAULT_CLIENT_NAME)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClientConfig":
        return cls(
            base_url=settings.bedita_base_url,
            api_key=settings.bedita_api_key,
            name=settings.bedita_client_name,
        )


@dataclass
class RequestConfig:
    method: str = "GET"
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] | None = None
    data: Any = None  # JSON-serializable payload (or str)
    content: str | bytes | None = None  # encoded body, set by ContentTypeInterceptor
    timeout: float | None = None

    # Per-call interceptors, attached only for the duration of one request()
    request_interceptors: list = field(default_factory=list)
    response_interceptors: list = field(default_factory=list)

    # Internal flags for the refresh-and-retry policy
    auth_retry: bool = False  # already replayed once after renewal
    token_renewal: bool = False  # this call is the renewal itself

    def get_header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def drop_header(self, name: str) -> None:
        lowered = name.lower()
        for key in [k for k in self.headers if k.lower() == lowered]:
            del self.headers[key]


@dataclass
class ApiResponse:
    status_code: int
    body: Any  # decoded JSON document, None for empty/non-JSON payloads
    headers: dict[str, str] = field(default_factory=dict)
    text: str = ""
    request: RequestConfig | None = None
    formatted_data: Any = None  # set by formatting interceptors
