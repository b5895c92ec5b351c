"""
Cloud API client.

Thin aiohttp wrapper for the two cloud endpoints the hub talks to: the
unified sync download and the analytics collection upload. Calls are never
retried here; the next scheduled sync is the retry.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from edge_hub.core.config import settings
from edge_hub.services.sync.errors import CloudAPIError, TransientNetworkError

logger = logging.getLogger(__name__)


class CloudClient:
    """Async client for the cloud sync and analytics endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        hub_id: Optional[str] = None,
        fetch_timeout: Optional[float] = None,
        upload_timeout: Optional[float] = None
    ):
        self.base_url = (base_url or settings.CLOUD_API_URL).rstrip('/')
        self.hub_id = hub_id or settings.HUB_ID
        self.fetch_timeout = fetch_timeout or settings.SYNC_FETCH_TIMEOUT_SECONDS
        self.upload_timeout = upload_timeout or settings.ANALYTICS_UPLOAD_TIMEOUT_SECONDS
        self._http_session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """Async context manager entry."""
        self._http_session = aiohttp.ClientSession(
            headers={
                'User-Agent': f'Edge-Hub/{self.hub_id}',
                'Accept': 'application/json',
            }
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._http_session:
            await self._http_session.close()
            self._http_session = None

    @property
    def sync_url(self) -> str:
        return f"{self.base_url}/edge-hubs/{self.hub_id}/sync-all"

    @property
    def analytics_url(self) -> str:
        return f"{self.base_url}/analytics/hubs/{self.hub_id}/collect"

    async def fetch_sync_payload(self, since: Optional[str] = None) -> Dict[str, Any]:
        """
        Download the unified sync payload.

        Args:
            since: ISO-8601 timestamp for an incremental fetch; None for a full fetch

        Returns:
            The decoded JSON object

        Raises:
            TransientNetworkError: On timeout or connection failure
            CloudAPIError: On a non-2xx status or a body that is not a JSON object
        """
        params = {'since': since} if since else None
        logger.info(f"Fetching sync data from: {self.sync_url}" + (f" (since {since})" if since else ""))

        body = await self._request('GET', self.sync_url, self.fetch_timeout, params=params)
        if not isinstance(body, dict):
            raise CloudAPIError(
                "Invalid response format - expected object with content, devices, and students"
            )
        return body

    async def push_analytics(self, analytics_data: List[Dict[str, Any]]) -> Any:
        """Upload a batch of analytics events in one request."""
        return await self._request(
            'POST',
            self.analytics_url,
            self.upload_timeout,
            json={'analyticsData': analytics_data}
        )

    async def _request(self, method: str, url: str, timeout: float, **kwargs) -> Any:
        if not self._http_session:
            raise RuntimeError("HTTP session not initialized")

        try:
            async with self._http_session.request(
                method,
                url,
                timeout=aiohttp.ClientTimeout(total=timeout),
                **kwargs
            ) as response:
                if response.status < 200 or response.status >= 300:
                    raise CloudAPIError(
                        f"{method} {url} failed: HTTP {response.status} - {response.reason}",
                        status=response.status
                    )
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise CloudAPIError(f"Malformed JSON from {url}: {e}", status=response.status)

        except asyncio.TimeoutError:
            raise TransientNetworkError(f"{method} {url} timed out after {timeout}s")
        except aiohttp.ClientError as e:
            raise TransientNetworkError(f"{method} {url} failed: {e}")
