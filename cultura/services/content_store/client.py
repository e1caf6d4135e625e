from typing import Any

from cultura.core.base_client import BaseClient
from cultura.core.version import __version__


class ContentStoreClient(BaseClient):
    """
    Client for the internal API of the CRUD backend (users, content, interactions).
    """

    def __init__(self, base_url: str, api_key: str | None = None, timeout: float = 5.0, max_retries: int = 2):
        headers = {
            "User-Agent": f"CulturaRecommender/{__version__}",
            "Accept": "application/json",
        }
        if api_key:
            headers["X-Internal-Api-Key"] = api_key
        super().__init__(base_url=base_url, timeout=timeout, max_retries=max_retries, headers=headers)

    async def get(self, url: str, params: dict[str, Any] | None = None, **kwargs) -> Any:
        """GET that unwraps the backend's `{"success": ..., "data": ...}` envelope."""
        payload = await super().get(url, params=params, **kwargs)
        return self._unwrap(payload)

    async def post(self, url: str, json: Any = None, **kwargs) -> Any:
        payload = await super().post(url, json=json, **kwargs)
        return self._unwrap(payload)

    @staticmethod
    def _unwrap(payload: Any) -> Any:
        if isinstance(payload, dict) and "data" in payload and "success" in payload:
            return payload["data"]
        return payload
