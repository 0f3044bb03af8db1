"""Flattens the authenticated user document into ``formatted_data``.

Input is the JSON:API document returned by ``GET /auth/user``::

    {"data": {"id": "1", "type": "users", "attributes": {...},
              "relationships": {"roles": {"data": [{"id": "1", "type": "roles"}]}}},
     "included": [{"id": "1", "type": "roles", "attributes": {"name": "admin"}}]}

Output::

    {"id": "1", "type": "users", <attributes...>, "roles": ["admin"]}
"""

from bedita_client.client.models import ApiResponse
from bedita_client.interceptors.base import ResponseInterceptor


class FormatUserInterceptor(ResponseInterceptor):
    key = "format-user"

    async def on_response(self, response: ApiResponse) -> ApiResponse:
        body = response.body if isinstance(response.body, dict) else {}
        resource = body.get("data")
        if not isinstance(resource, dict):
            return response

        user = {"id": resource.get("id"), "type": resource.get("type")}
        user.update(resource.get("attributes") or {})
        user["roles"] = self._role_names(resource, body.get("included") or [])
        response.formatted_data = user
        return response

    @staticmethod
    def _role_names(resource: dict, included: list) -> list[str]:
        names = [
            (item.get("attributes") or {}).get("name")
            for item in included
            if item.get("type") == "roles"
        ]
        if names:
            return [name for name in names if name]

        # Nothing included: fall back to the relationship linkage ids
        relationships = resource.get("relationships") or {}
        linkage = (relationships.get("roles") or {}).get("data") or []
        return [str(item.get("id")) for item in linkage if item.get("id") is not None]
