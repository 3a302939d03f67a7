"""HTTP client for the Apify actor API."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..config import ApifyConfig
from ..errors import ExternalTaskFailed, MissingCredential

logger = logging.getLogger(__name__)


class ApifyClient:
    """Starts actor runs and fetches their dataset items.

    Holds no state besides the token and connection settings; every call is
    a single request.
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: str = "https://api.apify.com/v2",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: ApifyConfig) -> "ApifyClient":
        return cls(
            api_token=config.api_token,
            base_url=config.base_url,
            timeout=config.timeout,
        )

    def _headers(self) -> dict[str, str]:
        if not self.api_token:
            raise MissingCredential("APIFY_API_TOKEN not configured")
        return {"Authorization": f"Bearer {self.api_token}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = self._headers()
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.request(method, path, headers=headers, **kwargs)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise ExternalTaskFailed(
                    f"Apify error: {exc.response.status_code} {exc.response.reason_phrase}"
                ) from exc
            except httpx.HTTPError as exc:
                raise ExternalTaskFailed(f"Apify request failed: {exc}") from exc
        try:
            return response.json()
        except ValueError as exc:
            raise ExternalTaskFailed("Apify returned a non-JSON response") from exc

    async def start(self, actor_id: str, run_input: dict[str, Any]) -> str:
        """Start an actor run and return the remote run id."""
        data = await self._request("POST", f"/acts/{actor_id}/runs", json=run_input)
        run_id = (data.get("data") or {}).get("id") if isinstance(data, dict) else None
        if not run_id:
            raise ExternalTaskFailed("Failed to start Apify actor run - no run ID returned")
        logger.info(f"Started Apify actor {actor_id} as run {run_id}")
        return run_id

    async def fetch_result(self, run_id: str) -> list[Any]:
        """Return the run's dataset items (empty while the run is in progress)."""
        items = await self._request("GET", f"/actor-runs/{run_id}/dataset/items")
        if not isinstance(items, list):
            raise ExternalTaskFailed(f"Unexpected dataset payload for run {run_id}")
        return items
