"""
Snapshot export and import for Bookmarkify.

A snapshot is a JSON object with exactly two fields:

    {
      "bookmarks": [ {"id": ..., "title": ..., "url": ..., ...}, ... ],
      "categories": ["General", "Movie", ...]
    }

Bookmark records use the key names of the browser version's export files
(createdAt, favicon), so exports from either side can be imported.
The same record encoding is used by the store for its persisted collections.
"""
import json
import os
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from bookmarkify.constants import (
    ALL_CATEGORIES,
    BOOKMARKS_KEY,
    CATEGORIES_KEY,
    DEFAULT_CATEGORY,
    EXPORT_FILENAME_PATTERN,
    EXPORT_INDENT,
)
from bookmarkify.errors import FormatError
from bookmarkify.models import Bookmark

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """Decoded snapshot contents, ready for the store to adopt."""
    bookmarks: List[Bookmark] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)


def bookmark_to_record(bookmark: Bookmark) -> Dict[str, Any]:
    """Convert a bookmark to its JSON record."""
    return {
        "id": bookmark.id,
        "title": bookmark.title,
        "url": bookmark.url,
        "category": bookmark.category,
        "tags": list(bookmark.tags),
        "description": bookmark.description,
        "favorite": bookmark.favorite,
        "createdAt": bookmark.created_at.isoformat() if bookmark.created_at else None,
        "favicon": bookmark.favicon_url,
    }


def _parse_timestamp(value: Any, position: int) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise FormatError(f"Bookmark #{position}: createdAt must be a string")
    text = value.strip()
    # Browsers write a trailing Z, which older fromisoformat() rejects
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise FormatError(f"Bookmark #{position}: invalid createdAt {value!r}") from None


def _require_str(record: Dict[str, Any], key: str, position: int, default: Optional[str] = None) -> str:
    value = record.get(key, default)
    if value is None and default is not None:
        value = default
    if not isinstance(value, str):
        raise FormatError(f"Bookmark #{position}: '{key}' must be a string")
    return value


def bookmark_from_record(record: Any, position: int = 0) -> Bookmark:
    """
    Build a bookmark from a JSON record.

    Missing optional fields get their defaults. Records without a usable
    id, title or url are rejected.

    Raises:
        FormatError: if the record is malformed
    """
    if not isinstance(record, dict):
        raise FormatError(f"Bookmark #{position} is not an object")

    bookmark_id = record.get("id")
    if not isinstance(bookmark_id, int) or isinstance(bookmark_id, bool):
        raise FormatError(f"Bookmark #{position}: 'id' must be an integer")

    title = _require_str(record, "title", position)
    url = _require_str(record, "url", position)
    if not title.strip() or not url.strip():
        raise FormatError(f"Bookmark #{position}: title and url must not be empty")

    tags = record.get("tags") or []
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise FormatError(f"Bookmark #{position}: 'tags' must be a list of strings")

    favorite = record.get("favorite", False)
    if not isinstance(favorite, bool):
        raise FormatError(f"Bookmark #{position}: 'favorite' must be true or false")

    favicon = record.get("favicon", record.get("faviconUrl"))
    if favicon is not None and not isinstance(favicon, str):
        raise FormatError(f"Bookmark #{position}: 'favicon' must be a string")

    return Bookmark(
        id=bookmark_id,
        title=title,
        url=url,
        category=_require_str(record, "category", position, DEFAULT_CATEGORY),
        tags=list(tags),
        description=_require_str(record, "description", position, ""),
        favorite=favorite,
        created_at=_parse_timestamp(record.get("createdAt"), position),
        favicon_url=favicon,
    )


def _loads(blob: Union[str, bytes]) -> Any:
    try:
        return json.loads(blob)
    except (TypeError, ValueError, RecursionError) as e:
        raise FormatError(f"Not valid JSON: {e}") from None


def _check_bookmarks(data: Any) -> List[Bookmark]:
    if not isinstance(data, list):
        raise FormatError("'bookmarks' must be a list")
    bookmarks = [bookmark_from_record(item, i) for i, item in enumerate(data)]
    seen = set()
    for b in bookmarks:
        if b.id in seen:
            raise FormatError(f"Duplicate bookmark id: {b.id}")
        seen.add(b.id)
    return bookmarks


def _check_categories(data: Any) -> List[str]:
    if not isinstance(data, list):
        raise FormatError("'categories' must be a list")
    if not all(isinstance(c, str) and c.strip() for c in data):
        raise FormatError("'categories' must contain non-empty strings")
    # Same name rules as BookmarkStore.add_category
    names = [c.strip() for c in data]
    if ALL_CATEGORIES in names:
        raise FormatError(f"'{ALL_CATEGORIES}' is reserved and cannot be a category")
    if len(set(names)) != len(names):
        raise FormatError("'categories' contains duplicate names")
    return names


def encode_bookmarks(bookmarks: Sequence[Bookmark]) -> str:
    """Serialize a bookmark collection for persistence."""
    return json.dumps([bookmark_to_record(b) for b in bookmarks], ensure_ascii=False)


def decode_bookmarks(blob: Union[str, bytes]) -> List[Bookmark]:
    """Parse a persisted bookmark collection. Raises FormatError."""
    return _check_bookmarks(_loads(blob))


def encode_categories(categories: Sequence[str]) -> str:
    """Serialize a category collection for persistence."""
    return json.dumps(list(categories), ensure_ascii=False)


def decode_categories(blob: Union[str, bytes]) -> List[str]:
    """Parse a persisted category collection. Raises FormatError."""
    return _check_categories(_loads(blob))


def export_snapshot(bookmarks: Sequence[Bookmark], categories: Sequence[str], pretty: bool = True) -> str:
    """
    Serialize the full state to a snapshot blob.

    Args:
        bookmarks: Ordered bookmark collection
        categories: Ordered category names
        pretty: Indent the output

    Returns:
        JSON text with exactly the bookmarks and categories fields
    """
    data = {
        BOOKMARKS_KEY: [bookmark_to_record(b) for b in bookmarks],
        CATEGORIES_KEY: list(categories),
    }
    return json.dumps(data, indent=EXPORT_INDENT if pretty else None, ensure_ascii=False)


def import_snapshot(blob: Union[str, bytes]) -> Snapshot:
    """
    Decode a snapshot blob.

    The whole blob is validated before anything is returned, so a caller
    adopting the result never sees a partially decoded state.

    Raises:
        FormatError: if the blob is not a snapshot
    """
    data = _loads(blob)
    if not isinstance(data, dict):
        raise FormatError("Snapshot must be a JSON object")

    missing = [key for key in (BOOKMARKS_KEY, CATEGORIES_KEY) if key not in data]
    if missing:
        raise FormatError(f"Snapshot is missing required field(s): {', '.join(missing)}")

    extra = sorted(set(data) - {BOOKMARKS_KEY, CATEGORIES_KEY})
    if extra:
        logger.warning(f"Ignoring unknown snapshot field(s): {', '.join(extra)}")

    return Snapshot(
        bookmarks=_check_bookmarks(data[BOOKMARKS_KEY]),
        categories=_check_categories(data[CATEGORIES_KEY]),
    )


def export_filename(day: Optional[date] = None) -> str:
    """Default export file name, e.g. bookmarks_2024-05-01.json."""
    day = day or date.today()
    return EXPORT_FILENAME_PATTERN.format(date=day.isoformat())


def export_file(
    bookmarks: Sequence[Bookmark],
    categories: Sequence[str],
    path: Optional[Union[str, Path]] = None,
    pretty: bool = True,
) -> Path:
    """
    Write a snapshot to a file.

    Args:
        bookmarks: Ordered bookmark collection
        categories: Ordered category names
        path: Output file or directory. An existing directory, a path
            ending in a separator, or no path gets the dated default file name.
        pretty: Indent the output

    Returns:
        The path written
    """
    as_dir = isinstance(path, str) and path.endswith(("/", os.sep))
    path = Path(path) if path else Path.cwd()
    if as_dir or path.is_dir():
        path = path / export_filename()

    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        f.write(export_snapshot(bookmarks, categories, pretty=pretty))

    logger.debug(f"Exported {len(bookmarks)} bookmarks and {len(categories)} categories to {path}")
    return path


def import_file(path: Union[str, Path]) -> Snapshot:
    """Read and decode a snapshot file. Raises FormatError or OSError."""
    return import_snapshot(Path(path).read_bytes())
