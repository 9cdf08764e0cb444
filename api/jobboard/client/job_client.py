from __future__ import annotations

from typing import Any

import httpx

from jobboard.services.filtering import FilterConfig, filter_listings


class JobBoardClient:
    """HTTP client for the listings API; filtering runs locally."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def list_listings(self) -> list[dict[str, Any]]:
        async with self._client() as client:
            response = await client.get(f"{self.base_url}/jobs")
            response.raise_for_status()
            return response.json()

    async def search_listings(self, config: FilterConfig) -> list[dict[str, Any]]:
        listings = await self.list_listings()
        return [dict(listing) for listing in filter_listings(listings, config)]

    async def get_listing(self, listing_id: str) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.get(f"{self.base_url}/jobs/{listing_id}")
            response.raise_for_status()
            return response.json()

    async def create_listing(self, payload: dict[str, Any]) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.post(f"{self.base_url}/jobs", json=payload)
            response.raise_for_status()
            return response.json()

    async def update_listing(self, listing_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.put(f"{self.base_url}/jobs/{listing_id}", json=patch)
            response.raise_for_status()
            return response.json()

    async def delete_listing(self, listing_id: str) -> None:
        async with self._client() as client:
            response = await client.delete(f"{self.base_url}/jobs/{listing_id}")
            response.raise_for_status()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport)
