"""BEdita API client: interceptor pipeline, auth session and CRUD helpers."""

import asyncio
import dataclasses
import json
import logging
from typing import Any

import httpx

from bedita_client.client.errors import (
    ApiResponseError,
    AuthenticationFailure,
    MalformedAuthResponse,
    MissingRefreshToken,
    TransportError,
    TransportTimeout,
)
from bedita_client.client.models import ApiResponse, ClientConfig, RequestConfig
from bedita_client.interceptors.auth import AuthInterceptor
from bedita_client.interceptors.base import InterceptorKind, RequestInterceptor, ResponseInterceptor
from bedita_client.interceptors.content_type import ContentTypeInterceptor
from bedita_client.interceptors.format_user import FormatUserInterceptor
from bedita_client.interceptors.refresh_auth import RefreshAuthInterceptor
from bedita_client.interceptors.registry import InterceptorHandle, InterceptorRegistry
from bedita_client.logging.audit import RequestTimer, audit, generate_request_id, request_id_var
from bedita_client.storage.store import USER_KEY, CredentialStore, MemoryCredentialStore

JSONAPI_CONTENT_TYPE = "application/vnd.api+json"
AUTH_PATH = "/auth"
USER_PATH = "/auth/user"


class BEditaApiClient:
    """Async client for a BEdita API instance.

    Every call goes through ``request()``, which runs the registered
    request interceptors, sends the request with httpx and unwinds the
    response interceptors. Auth, content-type and refresh-and-retry
    interceptors are installed at construction and stay for the client's
    lifetime.
    """

    def __init__(
        self,
        config: ClientConfig,
        storage: CredentialStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: httpx.Timeout | None = None,
    ):
        self._config = config
        self._storage = storage or MemoryCredentialStore(config.name)
        self._transport = transport
        self._timeout = timeout or httpx.Timeout(30.0, connect=10.0)
        self._client: httpx.AsyncClient | None = None
        self._registry = InterceptorRegistry()
        self._renewal: asyncio.Task | None = None

        self._add_default_interceptors()

    def _add_default_interceptors(self) -> None:
        self.add_interceptor(AuthInterceptor(self))
        self.add_interceptor(ContentTypeInterceptor(self))
        self.add_interceptor(RefreshAuthInterceptor(self))

    def _default_headers(self) -> dict:
        headers = {"Accept": JSONAPI_CONTENT_TYPE}
        if self._config.api_key:
            headers["X-Api-Key"] = self._config.api_key
        return headers

    def get_http_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                headers=self._default_headers(),
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def get_config(self, key: str | None = None) -> Any:
        """Return the client config, or a single field of it."""
        if key:
            return getattr(self._config, key)
        return self._config

    def get_storage_service(self) -> CredentialStore:
        return self._storage

    @property
    def registry(self) -> InterceptorRegistry:
        return self._registry

    def add_interceptor(self, interceptor: RequestInterceptor | ResponseInterceptor) -> InterceptorHandle:
        return self._registry.add(interceptor)

    def remove_interceptor(self, handle: InterceptorHandle) -> bool:
        return self._registry.remove(handle)

    # --- Request pipeline ---

    async def request(self, config: RequestConfig) -> ApiResponse:
        """Run one call through the interceptor pipeline.

        Per-call interceptors are registered as transient entries for the
        duration of the call: they run only in this call's chains, never in
        concurrent calls, renewals or replays. Only handles created here are
        removed afterwards, on every exit path, before the result or the
        error reaches the caller.
        """
        rid_token = None
        if not request_id_var.get():
            rid_token = request_id_var.set(generate_request_id())

        owned: list[InterceptorHandle] = []
        try:
            call_handles: set[InterceptorHandle] = set()
            for interceptor in [*config.request_interceptors, *config.response_interceptors]:
                handle = self._registry.handle_for(interceptor)
                if handle is None:
                    handle = self._registry.add(interceptor, transient=True)
                    owned.append(handle)
                call_handles.add(handle)

            config = dataclasses.replace(
                config,
                headers=dict(config.headers),
                request_interceptors=[],
                response_interceptors=[],
            )
            # Snapshot before the first suspension point
            request_chain = self._registry.snapshot(InterceptorKind.REQUEST, include=call_handles)
            response_chain = self._registry.snapshot(InterceptorKind.RESPONSE, include=call_handles)

            return await self._dispatch(config, request_chain, response_chain)
        finally:
            for handle in owned:
                self._registry.remove(handle)
            if rid_token is not None:
                request_id_var.reset(rid_token)

    async def _dispatch(
        self,
        config: RequestConfig,
        request_chain: list[RequestInterceptor],
        response_chain: list[ResponseInterceptor],
    ) -> ApiResponse:
        error: Exception | None = None
        response: ApiResponse | None = None

        for interceptor in request_chain:
            try:
                if error is None:
                    config = await interceptor.on_request(config)
                else:
                    config = await interceptor.on_request_error(error)
                    error = None
            except Exception as exc:
                error = exc

        if error is None:
            try:
                response = await self._send(config)
            except Exception as exc:
                error = exc

        for interceptor in response_chain:
            try:
                if error is None:
                    response = await interceptor.on_response(response)
                else:
                    response = await interceptor.on_error(error)
                    error = None
            except Exception as exc:
                error = exc

        if error is not None:
            raise error
        return response

    async def _send(self, config: RequestConfig) -> ApiResponse:
        client = self.get_http_client()
        method = config.method.upper()

        kwargs: dict[str, Any] = {"headers": config.headers, "params": config.params}
        if config.content is not None:
            kwargs["content"] = config.content
        elif config.data is not None:
            kwargs["json"] = config.data
        if config.timeout is not None:
            kwargs["timeout"] = config.timeout

        request = client.build_request(method, config.url, **kwargs)
        try:
            with RequestTimer() as timer:
                raw = await client.send(request)
        except httpx.TimeoutException as e:
            audit("API request timed out", level=logging.WARNING, method=method, url=config.url)
            raise TransportTimeout(f"{method} {config.url} timed out") from e
        except httpx.HTTPError as e:
            audit("API request failed", level=logging.WARNING, method=method, url=config.url, error=str(e))
            raise TransportError(f"{method} {config.url} failed: {e}") from e

        response = self._to_api_response(raw, config)
        audit(
            "API request",
            method=method,
            url=config.url,
            status_code=raw.status_code,
            latency_ms=timer.elapsed_ms,
            auth_retry=config.auth_retry,
        )

        if raw.status_code == 401:
            raise AuthenticationFailure(response)
        if not raw.is_success:
            raise ApiResponseError(response)
        return response

    @staticmethod
    def _to_api_response(raw: httpx.Response, config: RequestConfig) -> ApiResponse:
        body = None
        if raw.content:
            try:
                body = raw.json()
            except ValueError:
                body = None
        return ApiResponse(
            status_code=raw.status_code,
            body=body,
            headers=dict(raw.headers),
            text=raw.text,
            request=config,
        )

    # --- Method shortcuts ---

    async def get(self, url: str, config: RequestConfig | None = None) -> ApiResponse:
        return await self.request(dataclasses.replace(config or RequestConfig(), method="GET", url=url))

    async def post(self, url: str, data: Any = None, config: RequestConfig | None = None) -> ApiResponse:
        return await self.request(
            dataclasses.replace(config or RequestConfig(), method="POST", url=url, data=data)
        )

    async def patch(self, url: str, data: Any = None, config: RequestConfig | None = None) -> ApiResponse:
        return await self.request(
            dataclasses.replace(config or RequestConfig(), method="PATCH", url=url, data=data)
        )

    async def delete(self, url: str, data: Any = None, config: RequestConfig | None = None) -> ApiResponse:
        return await self.request(
            dataclasses.replace(config or RequestConfig(), method="DELETE", url=url, data=data)
        )

    async def save(self, resource_type: str, data: dict) -> ApiResponse:
        """Create or update a resource.

        With an ``id`` in ``data`` the resource is PATCHed at
        ``{type}/{id}``, otherwise it is POSTed to ``{type}``.
        """
        if not resource_type:
            raise ValueError("Missing required type")

        attributes = dict(data or {})
        resource_id = attributes.pop("id", None)
        resource: dict[str, Any] = {"type": resource_type}
        if resource_id:
            resource["id"] = resource_id
        resource["attributes"] = attributes
        body = {"data": resource}

        if resource_id:
            return await self.patch(f"{resource_type}/{resource_id}", body)
        return await self.post(resource_type, body)

    # --- Auth session ---

    @staticmethod
    def _extract_tokens(response: ApiResponse) -> tuple[str, str]:
        body = response.body if isinstance(response.body, dict) else {}
        meta = body.get("meta") or {}
        jwt, renew = meta.get("jwt"), meta.get("renew")
        if not jwt or not renew:
            raise MalformedAuthResponse()
        return jwt, renew

    async def authenticate(self, username: str, password: str) -> ApiResponse:
        """Log in and store the access/refresh token pair."""
        self._storage.clear_session()
        response = await self.post(AUTH_PATH, {"username": username, "password": password})
        jwt, renew = self._extract_tokens(response)

        self._storage.access_token = jwt
        self._storage.refresh_token = renew
        audit("Authenticated", username=username)
        return response

    async def renew_tokens(self) -> ApiResponse:
        """Renew the token pair. Concurrent callers share one renewal."""
        if self._renewal is None:
            self._renewal = asyncio.ensure_future(self._renew_tokens())
            self._renewal.add_done_callback(self._clear_renewal)
        return await asyncio.shield(self._renewal)

    def _clear_renewal(self, task: asyncio.Task) -> None:
        if self._renewal is task:
            self._renewal = None
        if not task.cancelled():
            task.exception()  # retrieved even if every waiter was cancelled

    async def _renew_tokens(self) -> ApiResponse:
        refresh_token = self._storage.refresh_token
        if not refresh_token:
            raise MissingRefreshToken()

        config = RequestConfig(
            headers={"Authorization": f"Bearer {refresh_token}"},
            token_renewal=True,
        )
        try:
            response = await self.post(AUTH_PATH, None, config)
            jwt, renew = self._extract_tokens(response)
        except Exception:
            self._storage.clear_session()
            audit("Token renewal failed, session cleared", level=logging.WARNING, exc_info=True)
            raise

        self._storage.access_token = jwt
        self._storage.refresh_token = renew
        audit("Tokens renewed")
        return response

    async def get_user_auth(self) -> ApiResponse:
        """Fetch the authenticated user and cache its flattened form."""
        response = await self.get(
            USER_PATH,
            RequestConfig(response_interceptors=[FormatUserInterceptor(self)]),
        )
        self._storage.set(USER_KEY, json.dumps(response.formatted_data))
        return response

    def get_user(self) -> dict | None:
        """Cached user from the last ``get_user_auth()``, if any."""
        raw = self._storage.get(USER_KEY)
        return json.loads(raw) if raw else None

    def logout(self) -> None:
        self._storage.clear_session()
        audit("Logged out")

    # --- Lifecycle ---

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BEditaApiClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()
