"""
Models for Bookmarkify bookmark management.

This module defines the in-memory Bookmark entity, the helpers that derive
its tag list and favicon address, and the SQLAlchemy table the sqlite
storage backend keeps its collections in.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional, List, Iterable, Union
from urllib.parse import urlsplit

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from bookmarkify.constants import DEFAULT_CATEGORY, FAVICON_SERVICE, FAVICON_SIZE


@dataclass
class Bookmark:
    """
    A saved link with its metadata.

    Attributes:
        id: Unique identifier, assigned at creation and never changed
        title: Display title (never empty once admitted by the store)
        url: The bookmarked address, stored as entered
        category: Name of the category it was filed under
        tags: Ordered tag list, duplicates allowed
        description: Free-form notes
        favorite: Whether the bookmark is marked as a favorite
        created_at: Creation timestamp (UTC)
        favicon_url: Lookup address for the site's icon, if one could be derived
    """
    id: int
    title: str
    url: str
    category: str = DEFAULT_CATEGORY
    tags: List[str] = field(default_factory=list)
    description: str = ""
    favorite: bool = False
    created_at: Optional[datetime] = None
    favicon_url: Optional[str] = None

    def copy(self) -> "Bookmark":
        """Return a detached copy that shares no mutable state with this one."""
        return replace(self, tags=list(self.tags))

    def __repr__(self):
        return f"<Bookmark(id={self.id}, title='{self.title[:50]}', url='{self.url[:50]}')>"


def parse_tags(text: Union[str, Iterable[str], None]) -> List[str]:
    """
    Turn comma-separated tag text into a tag list.

    Pieces are trimmed and blanks dropped; order and duplicates are kept.
    An already split sequence goes through the same trimming.

    >>> parse_tags(" python, ,web ,python")
    ['python', 'web', 'python']
    """
    if text is None:
        return []
    pieces = text.split(",") if isinstance(text, str) else text
    return [p.strip() for p in pieces if p and p.strip()]


def derive_favicon(url: str, service: str = FAVICON_SERVICE, size: int = FAVICON_SIZE) -> Optional[str]:
    """
    Build the favicon lookup address for a bookmark URL.

    Only the host is used. URLs without a scheme or host (e.g. "go.dev")
    yield None; nothing is fetched here.

    Args:
        url: Bookmark URL
        service: Lookup template with {host} and {size} placeholders
        size: Icon size in pixels

    Returns:
        Lookup URL or None
    """
    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
    except (ValueError, AttributeError):
        return None
    if not parts.scheme or not host:
        return None
    return service.format(host=host, size=size)


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class StoredBlob(Base):
    """
    One persisted collection, keyed by name.

    The sqlite backend stores each collection (bookmarks, categories) as a
    single serialized blob so load/save stay whole-collection operations.
    """
    __tablename__ = 'stored_blobs'

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now
    )

    def __repr__(self):
        return f"<StoredBlob(key='{self.key}', size={len(self.value or '')})>"
