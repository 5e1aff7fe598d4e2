"""API tests for the content and embeddings controllers with stubbed services."""

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.application.services.webhook_service import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    WebhookOutcome,
    WebhookService,
    compute_signature,
)
from app.domain.entities import ContentSyncResult, SourceConnection
from app.domain.exceptions import ConnectionInvalidError
from app.infrastructure import dependencies
from app.infrastructure.database.session import get_db_session
from app.main import app
from app.presentation.api.v1 import content_controller

SECRET = "s3cret"


class StubSyncService:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.cleared: list[str] = []

    async def sync_owner_content(self, owner_id: str) -> ContentSyncResult:
        if self.error is not None:
            raise self.error
        return ContentSyncResult(success=True, sites_processed=1, items_processed=2, chunks_created=3)

    async def clear_owner_content(self, owner_id: str) -> int:
        self.cleared.append(owner_id)
        return 4


class StubWebhookService:
    is_supported = staticmethod(WebhookService.is_supported)

    def __init__(self):
        self.handled: list[tuple[str, str]] = []

    async def handle(self, event, payload) -> WebhookOutcome:
        self.handled.append((event, payload.item_id))
        return WebhookOutcome(
            event=event, item_id=payload.item_id, handled=False, message="No owner found for site"
        )


class StubConnectionRepository:
    def __init__(self):
        self.connections: dict[str, SourceConnection] = {}

    async def get_by_owner(self, owner_id: str) -> SourceConnection | None:
        return self.connections.get(owner_id)

    async def save(self, connection: SourceConnection) -> SourceConnection:
        self.connections[connection.owner_id] = connection
        return connection

    async def delete(self, owner_id: str) -> bool:
        return self.connections.pop(owner_id, None) is not None


async def _no_session():
    yield None


@pytest.fixture
def webhook_service(monkeypatch) -> StubWebhookService:
    service = StubWebhookService()
    app.dependency_overrides[dependencies.get_webhook_service] = lambda: service
    monkeypatch.setattr(
        content_controller, "get_settings", lambda: Settings(webflow_webhook_secret=SECRET)
    )
    yield service
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()


def _signed_headers(body: bytes, event: str = "collection_item_changed") -> dict[str, str]:
    return {
        EVENT_HEADER: event,
        SIGNATURE_HEADER: compute_signature(body, SECRET),
        "content-type": "application/json",
    }


# ── Sync ──


@pytest.mark.asyncio
async def test_sync_requires_owner_header(client: AsyncClient):
    app.dependency_overrides[dependencies.get_content_sync_service] = lambda: StubSyncService()

    response = await client.post("/api/v1/content/sync", json={})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_sync_returns_result(client: AsyncClient):
    stub = StubSyncService()
    app.dependency_overrides[dependencies.get_content_sync_service] = lambda: stub

    response = await client.post(
        "/api/v1/content/sync", json={"clear_first": True}, headers={"X-Owner-Id": "owner-1"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["cleared_documents"] == 4
    assert data["result"]["success"] is True
    assert data["result"]["chunks_created"] == 3
    assert stub.cleared == ["owner-1"]


@pytest.mark.asyncio
async def test_sync_with_invalid_connection_is_400(client: AsyncClient):
    stub = StubSyncService(error=ConnectionInvalidError("owner-1", "no content source connection found"))
    app.dependency_overrides[dependencies.get_content_sync_service] = lambda: stub

    response = await client.post("/api/v1/content/sync", json={}, headers={"X-Owner-Id": "owner-1"})

    assert response.status_code == 400
    assert "no content source connection found" in response.json()["detail"]


@pytest.mark.asyncio
async def test_clear_action(client: AsyncClient):
    app.dependency_overrides[dependencies.get_content_sync_service] = lambda: StubSyncService()

    response = await client.post(
        "/api/v1/content/sync", json={"action": "clear"}, headers={"X-Owner-Id": "owner-1"}
    )

    assert response.status_code == 200
    assert response.json()["cleared_documents"] == 4
    assert response.json()["result"] is None


# ── Connection ──


@pytest.fixture
def connections() -> StubConnectionRepository:
    repository = StubConnectionRepository()
    app.dependency_overrides[dependencies.get_source_connection_repository] = lambda: repository
    yield repository
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_store_and_read_connection(client: AsyncClient, connections: StubConnectionRepository):
    headers = {"X-Owner-Id": "owner-1"}
    response = await client.put(
        "/api/v1/content/connection",
        json={"access_token": "tok", "scope": "cms:read", "expires_at": "2099-01-01T00:00:00+00:00"},
        headers=headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["owner_id"] == "owner-1"
    assert data["scope"] == "cms:read"
    assert data["is_expired"] is False
    assert "access_token" not in data
    assert connections.connections["owner-1"].access_token == "tok"

    read = await client.get("/api/v1/content/connection", headers=headers)
    assert read.status_code == 200
    assert read.json()["expires_at"] == "2099-01-01T00:00:00+00:00"


@pytest.mark.asyncio
async def test_expired_connection_is_flagged(client: AsyncClient, connections: StubConnectionRepository):
    response = await client.put(
        "/api/v1/content/connection",
        json={"access_token": "tok", "expires_at": "2000-01-01T00:00:00+00:00"},
        headers={"X-Owner-Id": "owner-1"},
    )

    assert response.status_code == 200
    assert response.json()["is_expired"] is True


@pytest.mark.asyncio
async def test_timestamp_without_offset_is_stored_as_utc(
    client: AsyncClient, connections: StubConnectionRepository
):
    response = await client.put(
        "/api/v1/content/connection",
        json={"access_token": "tok", "expires_at": "2030-01-01T00:00:00"},
        headers={"X-Owner-Id": "owner-1"},
    )

    assert response.status_code == 200
    assert response.json()["expires_at"] == "2030-01-01T00:00:00+00:00"
    assert response.json()["is_expired"] is False


@pytest.mark.asyncio
async def test_malformed_expiry_is_422(client: AsyncClient, connections: StubConnectionRepository):
    response = await client.put(
        "/api/v1/content/connection",
        json={"access_token": "tok", "expires_at": "next tuesday"},
        headers={"X-Owner-Id": "owner-1"},
    )

    assert response.status_code == 422
    assert connections.connections == {}


@pytest.mark.asyncio
async def test_missing_connection_is_404(client: AsyncClient, connections: StubConnectionRepository):
    headers = {"X-Owner-Id": "owner-1"}

    assert (await client.get("/api/v1/content/connection", headers=headers)).status_code == 404
    assert (await client.delete("/api/v1/content/connection", headers=headers)).status_code == 404


@pytest.mark.asyncio
async def test_delete_connection(client: AsyncClient, connections: StubConnectionRepository):
    connections.connections["owner-1"] = SourceConnection(owner_id="owner-1", access_token="tok")

    response = await client.delete("/api/v1/content/connection", headers={"X-Owner-Id": "owner-1"})

    assert response.status_code == 204
    assert connections.connections == {}


# ── Webhook ──


@pytest.mark.asyncio
async def test_webhook_rejects_unsupported_event(client: AsyncClient, webhook_service: StubWebhookService):
    body = b"{}"
    response = await client.post(
        "/api/v1/content/webhook", content=body, headers=_signed_headers(body, event="site_publish")
    )

    assert response.status_code == 400
    assert webhook_service.handled == []


@pytest.mark.asyncio
async def test_webhook_rejects_bad_signature(client: AsyncClient, webhook_service: StubWebhookService):
    body = json.dumps({"_id": "item-1", "site": "site-1"}).encode()
    headers = _signed_headers(body)
    headers[SIGNATURE_HEADER] = "0" * 64

    response = await client.post("/api/v1/content/webhook", content=body, headers=headers)

    assert response.status_code == 401
    assert webhook_service.handled == []


@pytest.mark.asyncio
async def test_webhook_rejects_invalid_json(client: AsyncClient, webhook_service: StubWebhookService):
    body = b"not json"
    response = await client.post("/api/v1/content/webhook", content=body, headers=_signed_headers(body))

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_webhook_for_unknown_site_is_acknowledged(
    client: AsyncClient, webhook_service: StubWebhookService
):
    body = json.dumps({"_id": "item-1", "site": "site-1", "name": "Post"}).encode()

    response = await client.post("/api/v1/content/webhook", content=body, headers=_signed_headers(body))

    assert response.status_code == 200
    assert response.json()["message"] == "No owner found for site"
    assert webhook_service.handled == [("collection_item_changed", "item-1")]


@pytest.mark.asyncio
async def test_webhook_info(client: AsyncClient, webhook_service: StubWebhookService):
    response = await client.get("/api/v1/content/webhook")

    assert response.status_code == 200
    data = response.json()
    assert data["signature_verification"] is True
    assert "collection_item_deleted" in data["supported_events"]


# ── Embeddings ──


@pytest.mark.asyncio
async def test_embeddings_without_api_key_is_configuration_error(client: AsyncClient, monkeypatch):
    app.dependency_overrides[get_db_session] = _no_session
    monkeypatch.setattr(dependencies, "get_settings", lambda: Settings(openai_api_key=""))

    response = await client.get("/api/v1/embeddings/generate")

    assert response.status_code == 500
    assert "OPENAI_API_KEY" in response.json()["error"]
