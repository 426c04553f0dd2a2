"""
Bookmark store for Bookmarkify.

The store owns the bookmark and category collections, checks the invariants
on every mutation and persists the affected collection before returning.
A mutation is built on a new list, saved, and only then adopted, so a
failed save leaves the in-memory state exactly as it was.
"""
import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from bookmarkify import query
from bookmarkify import snapshot
from bookmarkify.config import BookmarkifyConfig, get_config
from bookmarkify.constants import (
    ALL_CATEGORIES,
    BOOKMARKS_KEY,
    CATEGORIES_KEY,
    DEFAULT_CATEGORY,
)
from bookmarkify.errors import (
    DuplicateError,
    FormatError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from bookmarkify.models import Bookmark, derive_favicon, parse_tags, utc_now
from bookmarkify.storage import StorageAdapter, open_storage

logger = logging.getLogger(__name__)

# Fields update() accepts; id, created_at and favorite have their own rules
PATCHABLE_FIELDS = ("title", "url", "category", "tags", "description")


class BookmarkStore:
    """
    In-memory bookmark and category collections backed by a storage adapter.

    Accessors hand out copies; the only way to change state is through the
    mutation methods.
    """

    def __init__(
        self,
        storage: Optional[StorageAdapter] = None,
        config: Optional[BookmarkifyConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Create a store and load any persisted state.

        Args:
            storage: Persistence adapter. Built from config if not provided.
            config: Configuration (global config if not provided)
            clock: Returns the current UTC time; injectable for tests
        """
        self.config = config or get_config()
        self.storage = storage if storage is not None else open_storage(self.config)
        self._clock = clock or utc_now

        self._bookmarks: List[Bookmark] = self._load_bookmarks()
        self._categories: List[str] = self._load_categories()

    def _load_bookmarks(self) -> List[Bookmark]:
        blob = self.storage.load(BOOKMARKS_KEY)
        if blob is None:
            return []
        try:
            bookmarks = snapshot.decode_bookmarks(blob)
        except FormatError as e:
            logger.warning(f"Stored bookmarks are unreadable, starting empty: {e}")
            return []
        logger.debug(f"Loaded {len(bookmarks)} bookmarks")
        return bookmarks

    def _load_categories(self) -> List[str]:
        blob = self.storage.load(CATEGORIES_KEY)
        if blob is None:
            return list(self.config.default_categories)
        try:
            return snapshot.decode_categories(blob)
        except FormatError as e:
            logger.warning(f"Stored categories are unreadable, using defaults: {e}")
            return list(self.config.default_categories)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def bookmarks(self) -> List[Bookmark]:
        """Copy of the bookmark collection, in insertion order."""
        return [b.copy() for b in self._bookmarks]

    @property
    def categories(self) -> List[str]:
        """Copy of the ordered category names."""
        return list(self._categories)

    def get(self, id: int) -> Optional[Bookmark]:
        """
        Get a bookmark by ID.

        Returns:
            Copy of the bookmark, or None if there is no such id
        """
        for b in self._bookmarks:
            if b.id == id:
                return b.copy()
        return None

    def view(
        self,
        search_term: str = "",
        selected_category: str = ALL_CATEGORIES,
        favorites_only: bool = False,
    ) -> List[Bookmark]:
        """Filtered bookmarks for display. See query.view()."""
        return query.view(self.bookmarks, search_term, selected_category, favorites_only)

    def stats(self) -> query.CollectionStats:
        """Counts of bookmarks, favorites and categories."""
        return query.stats(self.bookmarks, self.categories)

    # ------------------------------------------------------------------
    # Bookmark mutations
    # ------------------------------------------------------------------

    def add(
        self,
        title: Optional[str],
        url: Optional[str],
        category: Optional[str] = None,
        tags: Optional[str] = "",
        description: Optional[str] = "",
    ) -> Bookmark:
        """
        Add a bookmark.

        Args:
            title: Display title (required)
            url: Address (required)
            category: Existing category name; the default category if not given
            tags: Comma-separated tag text
            description: Optional notes

        Returns:
            The created bookmark

        Raises:
            ValidationError: empty title/url or unknown category
            StorageError: the collection could not be saved
        """
        title, url = self._require_title_url(title, url)
        now = self._clock()
        bookmark = Bookmark(
            id=self._next_id(now),
            title=title,
            url=url,
            category=self._resolve_category(category),
            tags=parse_tags(tags),
            description=description or "",
            favorite=False,
            created_at=now,
            favicon_url=self._favicon(url),
        )

        self._commit_bookmarks(self._bookmarks + [bookmark])
        logger.debug(f"Added bookmark {bookmark.id}: {bookmark.url}")
        return bookmark.copy()

    def update(self, id: int, **updates) -> Bookmark:
        """
        Update a bookmark in place.

        Args:
            id: Bookmark ID
            **updates: Any of title, url, category, tags (comma-separated
                text), description. Omitted fields keep their values.

        Returns:
            The updated bookmark

        Raises:
            NotFoundError: no bookmark has this id
            ValidationError: empty title/url, unknown field or category
            StorageError: the collection could not be saved
        """
        unknown = sorted(set(updates) - set(PATCHABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(unknown)}")

        index = self._index(id)
        current = self._bookmarks[index]

        title, url = self._require_title_url(
            updates.get("title", current.title),
            updates.get("url", current.url),
        )

        # Only a changed category is checked, so dangling ones stay editable
        category = updates.get("category", current.category)
        if category != current.category:
            category = self._resolve_category(category)

        tags = parse_tags(updates["tags"]) if "tags" in updates else list(current.tags)

        updated = replace(
            current,
            title=title,
            url=url,
            category=category,
            tags=tags,
            description=updates.get("description", current.description) or "",
            favicon_url=self._favicon(url),
        )

        new_bookmarks = list(self._bookmarks)
        new_bookmarks[index] = updated
        self._commit_bookmarks(new_bookmarks)
        logger.debug(f"Updated bookmark {id}: {sorted(updates)}")
        return updated.copy()

    def remove(self, id: int) -> None:
        """
        Delete a bookmark.

        Raises:
            NotFoundError: no bookmark has this id
            StorageError: the collection could not be saved
        """
        index = self._index(id)
        self._commit_bookmarks(self._bookmarks[:index] + self._bookmarks[index + 1:])
        logger.debug(f"Removed bookmark {id}")

    def toggle_favorite(self, id: int) -> Bookmark:
        """
        Flip a bookmark's favorite flag.

        Raises:
            NotFoundError: no bookmark has this id
            StorageError: the collection could not be saved
        """
        index = self._index(id)
        current = self._bookmarks[index]
        updated = replace(current, favorite=not current.favorite)

        new_bookmarks = list(self._bookmarks)
        new_bookmarks[index] = updated
        self._commit_bookmarks(new_bookmarks)
        logger.debug(f"Bookmark {id} favorite={updated.favorite}")
        return updated.copy()

    # ------------------------------------------------------------------
    # Category mutations
    # ------------------------------------------------------------------

    def add_category(self, name: Optional[str]) -> None:
        """
        Append a category.

        Raises:
            ValidationError: empty or reserved name
            DuplicateError: a category with this exact name exists
            StorageError: the collection could not be saved
        """
        name = self._check_category_name(name)
        if name in self._categories:
            raise DuplicateError(f"Category already exists: {name}")

        self._commit_categories(self._categories + [name])
        logger.debug(f"Added category {name!r}")

    def remove_category(self, name: str) -> bool:
        """
        Remove a category.

        Bookmarks filed under it keep the name; they are not reassigned.
        The default category (and "General") is never removed. The name is
        trimmed before lookup.

        Returns:
            True if a category was removed, False for the default category
            or a name that is not present
        """
        name = (name or "").strip()
        if name in (self.config.default_category, DEFAULT_CATEGORY):
            logger.debug(f"Refusing to remove default category {name!r}")
            return False
        if name not in self._categories:
            return False

        self._commit_categories([c for c in self._categories if c != name])
        logger.debug(f"Removed category {name!r}")
        return True

    # ------------------------------------------------------------------
    # Whole-state operations
    # ------------------------------------------------------------------

    def replace_all(self, bookmarks: Iterable[Bookmark], categories: Iterable[str]) -> None:
        """
        Adopt new collections wholesale (no merge).

        Both collections are saved before either is adopted. If the second
        save fails the first is rolled back on a best-effort basis.

        Raises:
            ValidationError: duplicate ids or empty title/url in bookmarks,
                or an empty, reserved or duplicate category name
            StorageError: the collections could not be saved
        """
        new_bookmarks = [b.copy() for b in bookmarks]
        new_categories = list(categories)

        ids = [b.id for b in new_bookmarks]
        if len(set(ids)) != len(ids):
            raise ValidationError("Bookmark ids must be unique")
        for b in new_bookmarks:
            self._require_title_url(b.title, b.url)
        for name in new_categories:
            if self._check_category_name(name) != name:
                raise ValidationError(f"Category name has surrounding whitespace: {name!r}")
        if len(set(new_categories)) != len(new_categories):
            raise ValidationError("Category names must be unique")

        previous = snapshot.encode_bookmarks(self._bookmarks)
        self.storage.save(BOOKMARKS_KEY, snapshot.encode_bookmarks(new_bookmarks))
        try:
            self.storage.save(CATEGORIES_KEY, snapshot.encode_categories(new_categories))
        except StorageError:
            try:
                self.storage.save(BOOKMARKS_KEY, previous)
            except StorageError as e:
                logger.error(f"Could not restore previous bookmarks after failed save: {e}")
            raise

        self._bookmarks = new_bookmarks
        self._categories = new_categories
        logger.info(f"Replaced state: {len(new_bookmarks)} bookmarks, {len(new_categories)} categories")

    def export_snapshot(self, pretty: Optional[bool] = None) -> str:
        """Serialize the current state as a snapshot blob."""
        if pretty is None:
            pretty = self.config.export_pretty
        return snapshot.export_snapshot(self._bookmarks, self._categories, pretty=pretty)

    def import_snapshot(self, blob: str) -> snapshot.Snapshot:
        """
        Replace the current state with a snapshot's contents.

        The blob is fully decoded before anything changes.

        Raises:
            FormatError: the blob is not a valid snapshot (state unchanged)
            StorageError: the new state could not be saved (state unchanged)
        """
        decoded = snapshot.import_snapshot(blob)
        self.replace_all(decoded.bookmarks, decoded.categories)
        return decoded

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _commit_bookmarks(self, new_bookmarks: List[Bookmark]) -> None:
        self.storage.save(BOOKMARKS_KEY, snapshot.encode_bookmarks(new_bookmarks))
        self._bookmarks = new_bookmarks

    def _commit_categories(self, new_categories: List[str]) -> None:
        self.storage.save(CATEGORIES_KEY, snapshot.encode_categories(new_categories))
        self._categories = new_categories

    def _index(self, id: int) -> int:
        for i, b in enumerate(self._bookmarks):
            if b.id == id:
                return i
        raise NotFoundError(f"Bookmark not found: {id}")

    def _next_id(self, now: datetime) -> int:
        """Millisecond timestamp, bumped past the largest id in use."""
        candidate = int(now.timestamp() * 1000)
        if self._bookmarks:
            candidate = max(candidate, max(b.id for b in self._bookmarks) + 1)
        return candidate

    @staticmethod
    def _check_category_name(name: Optional[str]) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Category name is required")
        name = name.strip()
        if name == ALL_CATEGORIES:
            raise ValidationError(f"'{ALL_CATEGORIES}' is reserved and cannot be a category")
        return name

    @staticmethod
    def _require_title_url(title: Optional[str], url: Optional[str]) -> Tuple[str, str]:
        title = (title or "").strip()
        url = (url or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if not url:
            raise ValidationError("URL is required")
        return title, url

    def _resolve_category(self, category: Optional[str]) -> str:
        if not category:
            if self.config.default_category in self._categories:
                return self.config.default_category
            if self._categories:
                return self._categories[0]
            raise ValidationError("No categories defined; add one first")
        if category not in self._categories:
            raise ValidationError(f"Unknown category: {category}")
        return category

    def _favicon(self, url: str) -> Optional[str]:
        return derive_favicon(url, self.config.favicon_service, self.config.favicon_size)

    def __repr__(self):
        return f"<BookmarkStore(bookmarks={len(self._bookmarks)}, categories={len(self._categories)}, storage={self.storage!r})>"


# Global store instance
_store: Optional[BookmarkStore] = None


def get_store(storage: Optional[StorageAdapter] = None, reload: bool = False) -> BookmarkStore:
    """
    Get the global store instance.

    Args:
        storage: Storage adapter to use (forces a new store)
        reload: Force a new store built from the current config

    Returns:
        BookmarkStore instance
    """
    global _store
    if _store is None or reload or storage is not None:
        _store = BookmarkStore(storage)
    return _store
