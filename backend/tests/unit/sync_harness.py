"""A ContentSyncService wired to in-memory fakes over a small Webflow-like tree."""

from app.application.services import (
    BatchEmbeddingService,
    ContentSyncService,
    OwnerLockRegistry,
    RateLimiter,
    TextChunker,
)
from app.domain.entities import Site, SourceCollection, SourceConnection, SourceItem

from fakes import (
    FakeContentRepository,
    FakeContentSource,
    FakeContentSourceFactory,
    FakeEmbeddingProvider,
    FakeSourceConnectionRepository,
    FakeSyncOperationRepository,
    SleepRecorder,
    WordCounter,
)

OWNER = "owner-1"
SITE = Site(id="site-1", name="Marketing site")
COLLECTIONS = [
    SourceCollection(id="col-a", name="Collection A"),
    SourceCollection(id="col-b", name="Collection B"),
    SourceCollection(id="col-c", name="Collection C"),
]


def make_item(item_id: str, body: str | None = None) -> SourceItem:
    return SourceItem(
        id=item_id,
        fields={
            "name": f"Post {item_id}",
            "slug": item_id,
            "body": body or f"<p>This is the body of {item_id}, long enough to keep.</p>",
        },
    )


def make_items() -> dict[str, list[SourceItem]]:
    return {
        "col-a": [make_item("a-1"), make_item("a-2"), make_item("a-3")],
        "col-b": [make_item("b-1")],
        "col-c": [make_item("c-1")],
    }


class SyncHarness:
    """Builds a ContentSyncService over fakes and exposes them for assertions."""

    def __init__(
        self,
        *,
        connected: bool = True,
        connection: SourceConnection | None = None,
        source: FakeContentSource | None = None,
        content_repo: FakeContentRepository | None = None,
        embedding_provider: FakeEmbeddingProvider | None = None,
    ):
        self.content_repo = content_repo or FakeContentRepository()
        self.operations = FakeSyncOperationRepository()
        if connection is None and connected:
            connection = SourceConnection(owner_id=OWNER, access_token="token-123")
        self.connections = FakeSourceConnectionRepository(*([connection] if connection else []))
        self.source = source or FakeContentSource([SITE], {SITE.id: COLLECTIONS}, make_items())
        self.factory = FakeContentSourceFactory(self.source)
        self.sleep = SleepRecorder()
        limiter = RateLimiter(1000, 60.0, sleep=self.sleep)

        embedding_service = None
        if embedding_provider is not None:
            embedding_service = BatchEmbeddingService(
                embedding_provider,
                limiter,
                content_repository=self.content_repo,
                operation_repository=self.operations,
                sleep=self.sleep,
            )

        self.service = ContentSyncService(
            connection_repository=self.connections,
            content_repository=self.content_repo,
            operation_repository=self.operations,
            source_factory=self.factory,
            rate_limiter=limiter,
            chunker=TextChunker(WordCounter(), max_tokens=50, min_chunk_tokens=1),
            embedding_service=embedding_service,
            lock_registry=OwnerLockRegistry(),
            page_size=2,
            sleep=self.sleep,
        )

    def stored_item_ids(self) -> list[str]:
        return sorted(d.source_item_id for d in self.content_repo.documents.values())

