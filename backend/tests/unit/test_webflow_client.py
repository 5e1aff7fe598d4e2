"""Unit tests for the WebflowClient content source adapter."""

import httpx
import pytest

from app.domain.entities import SourceConnection
from app.domain.exceptions import ContentSourceError, ContentSourceThrottledError
from app.infrastructure.webflow.webflow_client import WebflowClient, WebflowClientFactory


def _client(handler) -> WebflowClient:
    return WebflowClient(
        access_token="wf-token",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_authenticated_sites():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v2/sites"
        assert request.headers["Authorization"] == "Bearer wf-token"
        return httpx.Response(200, json={"sites": [{"id": "s1", "displayName": "Main", "shortName": "main"}]})

    sites = await _client(handler).authenticated_sites()

    assert [(s.id, s.name, s.short_name) for s in sites] == [("s1", "Main", "main")]


@pytest.mark.asyncio
async def test_list_collections_sets_site_id():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v2/sites/s1/collections"
        return httpx.Response(200, json={"collections": [{"id": "c1", "displayName": "Blog", "slug": "blog"}]})

    collections = await _client(handler).list_collections("s1")

    assert [(c.id, c.name, c.slug, c.site_id) for c in collections] == [("c1", "Blog", "blog", "s1")]


@pytest.mark.asyncio
async def test_list_items_pages_with_total():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v2/collections/c1/items"
        assert request.url.params["limit"] == "2"
        assert request.url.params["offset"] == "2"
        return httpx.Response(200, json={
            "items": [
                {"id": "i3", "fieldData": {"name": "Third", "body": "<p>x</p>"},
                 "lastPublished": "2024-05-01T10:00:00.000Z"},
            ],
            "pagination": {"limit": 2, "offset": 2, "total": 3},
        })

    page = await _client(handler).list_items("c1", limit=2, offset=2)

    assert page.has_more is False
    assert page.total == 3
    assert page.items[0].name == "Third"
    assert page.items[0].last_published.year == 2024


@pytest.mark.asyncio
async def test_list_items_without_total_uses_full_page():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"items": [{"id": "a", "fieldData": {}}, {"id": "b", "fieldData": {}}]})

    page = await _client(handler).list_items("c1", limit=2, offset=0)

    assert page.has_more is True
    assert page.total is None


@pytest.mark.asyncio
async def test_throttling_raises_with_retry_after():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"Retry-After": "30"}, json={"message": "Too many requests"})

    with pytest.raises(ContentSourceThrottledError) as exc_info:
        await _client(handler).authenticated_sites()

    assert exc_info.value.retry_after == 30.0
    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_error_response_raises_content_source_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "Invalid token"})

    with pytest.raises(ContentSourceError) as exc_info:
        await _client(handler).authenticated_sites()

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Invalid token"


@pytest.mark.asyncio
async def test_network_error_maps_to_503():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ContentSourceError) as exc_info:
        await _client(handler).list_collections("s1")

    assert exc_info.value.status_code == 503


def test_factory_strips_bearer_prefix():
    factory = WebflowClientFactory(base_url="https://example.test/v2")
    client = factory.for_connection(SourceConnection(owner_id="o", access_token="Bearer abc"))
    assert client._get_headers()["Authorization"] == "Bearer abc"
