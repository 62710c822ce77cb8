from __future__ import annotations

from typing import Any

import httpx

from converge.clients.base import ApiClient

DEFAULT_USER_AGENT = "converge-example-platform/0.1.0"


class ExamplePlatformApi(ApiClient):
    """Example Platform REST API client.

    The base URL comes from ``api_url`` or, when omitted, from settings
    (``CONVERGE_API_URL`` / ``API_URL``).
    """

    def __init__(
        self,
        api_url: str | None = None,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            api_url,
            timeout=timeout,
            max_retries=max_retries,
            transport=transport,
        )
        self._user_agent = user_agent

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["User-Agent"] = self._user_agent
        return headers

    @staticmethod
    def users_path(org_id: str) -> str:
        return f"/org/{org_id}/users"

    @staticmethod
    def user_path(org_id: str, user_id: str) -> str:
        return f"/org/{org_id}/user/{user_id}"

    async def get_user(self, org_id: str, user_id: str) -> httpx.Response:
        return await self.get(self.user_path(org_id, user_id))

    async def create_user(self, org_id: str, body: dict[str, Any]) -> httpx.Response:
        return await self.post(self.users_path(org_id), body)

    async def update_user(self, org_id: str, user_id: str, body: dict[str, Any]) -> httpx.Response:
        return await self.patch(self.user_path(org_id, user_id), body)

    async def delete_user(self, org_id: str, user_id: str) -> httpx.Response:
        return await self.delete(self.user_path(org_id, user_id))
