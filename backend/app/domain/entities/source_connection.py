"""Domain entity for an owner's stored content source credentials."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


def as_utc(value: datetime) -> datetime:
    """Treat a naive timestamp as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class SourceConnection:
    """Access token for one owner's Webflow account.

    Webflow issues long-lived tokens without refresh tokens, so an expired
    connection requires the owner to re-authorize.
    """

    owner_id: str
    access_token: str
    scope: str = ""
    expires_at: datetime | None = None
    id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) >= as_utc(self.expires_at)

    @property
    def bearer_token(self) -> str:
        """The token without a stray ``Bearer `` prefix."""
        token = self.access_token.strip()
        if token.startswith("Bearer "):
            return token[len("Bearer "):]
        return token
