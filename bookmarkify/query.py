"""
Derived views over a bookmark collection.

Everything here is a pure function of its arguments: callers pass the
collections in and get new lists back, nothing reads or writes store state.
"""
from dataclasses import dataclass
from typing import List, Sequence

from bookmarkify.constants import ALL_CATEGORIES
from bookmarkify.models import Bookmark


@dataclass(frozen=True)
class CollectionStats:
    """Counts shown in the settings/statistics view."""
    total_bookmarks: int
    favorite_bookmarks: int
    categories: int


def matches_search(bookmark: Bookmark, search_term: str) -> bool:
    """
    Case-insensitive substring match on title, url and tags.

    The term is used as typed (not trimmed); an empty term matches everything.
    The description is not searched.
    """
    if not search_term:
        return True
    needle = search_term.lower()
    return (
        needle in bookmark.title.lower()
        or needle in bookmark.url.lower()
        or any(needle in tag.lower() for tag in bookmark.tags)
    )


def matches(
    bookmark: Bookmark,
    search_term: str = "",
    selected_category: str = ALL_CATEGORIES,
    favorites_only: bool = False,
) -> bool:
    """True when the bookmark passes the search, category and favorites filters."""
    if not matches_search(bookmark, search_term):
        return False
    if selected_category != ALL_CATEGORIES and bookmark.category != selected_category:
        return False
    if favorites_only and not bookmark.favorite:
        return False
    return True


def view(
    bookmarks: Sequence[Bookmark],
    search_term: str = "",
    selected_category: str = ALL_CATEGORIES,
    favorites_only: bool = False,
) -> List[Bookmark]:
    """
    Filter bookmarks for display.

    Args:
        bookmarks: Bookmark collection in insertion order
        search_term: Raw search input
        selected_category: Category name, or "All" for no category filter
        favorites_only: Keep only favorites

    Returns:
        Matching bookmarks, in the collection's order
    """
    return [
        b for b in bookmarks
        if matches(b, search_term, selected_category, favorites_only)
    ]


def stats(bookmarks: Sequence[Bookmark], categories: Sequence[str]) -> CollectionStats:
    """Summary counts for a collection."""
    return CollectionStats(
        total_bookmarks=len(bookmarks),
        favorite_bookmarks=sum(1 for b in bookmarks if b.favorite),
        categories=len(categories),
    )
