"""
Bookmarkify - a personal bookmark organizer

Stores user-curated links with a category, tags, a favorite flag and a
description, filters them by search text, category and favorites, and
exports/imports the whole collection as a portable JSON snapshot.

Design Principles:
- One store object owns the collections; every mutation persists at once
- Pluggable persistence (SQLite via SQLAlchemy, JSON files, memory)
- Pure query and snapshot functions that never touch store state
- Typed errors instead of silent no-ops

Example Usage:
    >>> from bookmarkify import BookmarkStore, MemoryStorage
    >>> store = BookmarkStore(MemoryStorage())
    >>> b = store.add("Go Docs", "https://go.dev", category="Dev Tools", tags="lang, docs")
    >>> store.toggle_favorite(b.id).favorite
    True
    >>> [x.title for x in store.view(search_term="go")]
    ['Go Docs']
"""

__version__ = "0.3.0"
__author__ = "Bookmarkify Contributors"

# Core store API
from bookmarkify.store import BookmarkStore, get_store

# Configuration
from bookmarkify.config import BookmarkifyConfig, get_config, init_config

# Models
from bookmarkify.models import Bookmark, derive_favicon, parse_tags

# Storage
from bookmarkify.storage import (
    StorageAdapter,
    MemoryStorage,
    JsonFileStorage,
    SqlStorage,
    open_storage,
)

# Queries
from bookmarkify.query import view, stats, CollectionStats

# Import/Export
from bookmarkify.snapshot import (
    Snapshot,
    export_snapshot,
    import_snapshot,
    export_file,
    import_file,
    export_filename,
)

# Errors
from bookmarkify.errors import (
    BookmarkifyError,
    ValidationError,
    NotFoundError,
    DuplicateError,
    FormatError,
    StorageError,
)

__all__ = [
    # Store
    "BookmarkStore",
    "get_store",
    # Config
    "BookmarkifyConfig",
    "get_config",
    "init_config",
    # Models
    "Bookmark",
    "derive_favicon",
    "parse_tags",
    # Storage
    "StorageAdapter",
    "MemoryStorage",
    "JsonFileStorage",
    "SqlStorage",
    "open_storage",
    # Queries
    "view",
    "stats",
    "CollectionStats",
    # Import/Export
    "Snapshot",
    "export_snapshot",
    "import_snapshot",
    "export_file",
    "import_file",
    "export_filename",
    # Errors
    "BookmarkifyError",
    "ValidationError",
    "NotFoundError",
    "DuplicateError",
    "FormatError",
    "StorageError",
]
