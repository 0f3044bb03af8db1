"""Renews tokens and replays the request when the API answers 401."""

import dataclasses

from bedita_client.client.errors import AuthenticationFailure
from bedita_client.client.models import ApiResponse, RequestConfig
from bedita_client.interceptors.base import ResponseInterceptor
from bedita_client.logging.audit import audit


class RefreshAuthInterceptor(ResponseInterceptor):
    """Refresh-and-retry policy.

    On an ``AuthenticationFailure`` for a request that is neither the
    renewal call nor already a replay:

    - no refresh token stored: the original failure is re-raised;
    - the stored access token changed since the request was sent: another
      call already renewed, so only the replay happens;
    - otherwise the client's single-flight ``renew_tokens()`` runs. If it
      fails the credentials are already wiped and its error propagates.

    The request is then replayed exactly once with the current token.
    """

    key = "refresh-auth"

    async def on_response(self, response: ApiResponse) -> ApiResponse:
        return response

    async def on_error(self, error: Exception) -> ApiResponse:
        if not isinstance(error, AuthenticationFailure):
            raise error

        failed: RequestConfig | None = error.response.request
        if failed is None or failed.token_renewal or failed.auth_retry:
            raise error

        storage = self.client.get_storage_service()
        if not storage.refresh_token:
            raise error

        sent_with = failed.get_header("Authorization")
        current = storage.access_token
        if not current or sent_with == f"Bearer {current}":
            audit("Access token rejected, renewing", method=failed.method, url=failed.url)
            try:
                await self.client.renew_tokens()
            except Exception as renewal_error:
                # Renewal already wiped the session; surface its failure
                raise renewal_error from error
        else:
            audit("Access token already renewed, replaying", method=failed.method, url=failed.url)

        replay = dataclasses.replace(
            failed,
            headers=dict(failed.headers),
            content=failed.content if failed.data is None else None,
            auth_retry=True,
            request_interceptors=[],
            response_interceptors=[],
        )
        replay.drop_header("Authorization")
        return await self.client.request(replay)
