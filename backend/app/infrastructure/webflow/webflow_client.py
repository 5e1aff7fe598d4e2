"""Webflow Data API v2 client — implements the ContentSource interface.

Reads sites, CMS collections and collection items with an owner's access
token. Throttling (HTTP 429) surfaces as ContentSourceThrottledError so the
RateLimiter can back off; every other failure is a ContentSourceError.
"""

import logging
from datetime import datetime
from typing import Any

import httpx

from app.application.interfaces.content_source import ContentSource, ContentSourceFactory
from app.domain.entities.source_connection import SourceConnection
from app.domain.entities.source_item import ItemPage, Site, SourceCollection, SourceItem
from app.domain.exceptions import ContentSourceError, ContentSourceThrottledError

logger = logging.getLogger(__name__)

_PROVIDER = "webflow"


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class WebflowClient(ContentSource):
    """Infrastructure adapter — one owner's view of the Webflow CMS."""

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://api.webflow.com/v2",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http_client = http_client

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            try:
                response = await client.get(
                    f"{self._base_url}{path}", headers=self._get_headers(), params=params
                )
            except httpx.HTTPError as exc:
                raise ContentSourceError(_PROVIDER, 503, f"Request to {path} failed: {exc}") from exc

            if response.status_code == 429:
                raise ContentSourceThrottledError(
                    _PROVIDER,
                    retry_after=_parse_retry_after(response.headers.get("retry-after")),
                )
            if response.status_code != 200:
                self._raise_source_error(response)
            return response.json()

        finally:
            if should_close:
                await client.aclose()

    async def authenticated_sites(self) -> list[Site]:
        data = await self._get_json("/sites")
        return [
            Site(
                id=site["id"],
                name=site.get("displayName") or site.get("name") or "",
                short_name=site.get("shortName") or "",
            )
            for site in data.get("sites", [])
        ]

    async def list_collections(self, site_id: str) -> list[SourceCollection]:
        data = await self._get_json(f"/sites/{site_id}/collections")
        return [
            SourceCollection(
                id=collection["id"],
                name=collection.get("displayName") or collection.get("name") or "",
                slug=collection.get("slug") or "",
                site_id=site_id,
            )
            for collection in data.get("collections", [])
        ]

    async def list_items(
        self, collection_id: str, *, limit: int = 25, offset: int = 0
    ) -> ItemPage:
        data = await self._get_json(
            f"/collections/{collection_id}/items",
            params={"limit": limit, "offset": offset},
        )
        items = [
            SourceItem(
                id=item["id"],
                fields=dict(item.get("fieldData") or {}),
                last_published=_parse_timestamp(item.get("lastPublished")),
            )
            for item in data.get("items", [])
        ]

        pagination = data.get("pagination") or {}
        total = pagination.get("total")
        if isinstance(total, int):
            has_more = offset + len(items) < total
        else:
            has_more = len(items) == limit
        logger.debug(
            "Collection %s: %d items at offset %d (total=%s)", collection_id, len(items), offset, total
        )
        return ItemPage(items=items, has_more=has_more, offset=offset, total=total)

    def _raise_source_error(self, response: httpx.Response) -> None:
        """Raise ContentSourceError from a non-200 httpx Response."""
        try:
            data = response.json()
            message = data.get("message") or data.get("msg") or response.text
        except Exception:
            message = response.text[:500]

        raise ContentSourceError(
            provider=_PROVIDER,
            status_code=response.status_code,
            message=message,
        )


class WebflowClientFactory(ContentSourceFactory):
    """Builds a WebflowClient for an owner's stored connection."""

    def __init__(
        self,
        base_url: str = "https://api.webflow.com/v2",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url
        self._timeout = timeout
        self._http_client = http_client

    def for_connection(self, connection: SourceConnection) -> WebflowClient:
        return WebflowClient(
            access_token=connection.bearer_token,
            base_url=self._base_url,
            timeout=self._timeout,
            http_client=self._http_client,
        )
