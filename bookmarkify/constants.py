"""
Constants for Bookmarkify.

These constants are used by various modules for sensible defaults.
Many are now also available via the config system.
"""

# Persistence keys
BOOKMARKS_KEY = "bookmarks"
CATEGORIES_KEY = "categories"

# Categories
DEFAULT_CATEGORY = "General"
ALL_CATEGORIES = "All"  # Query sentinel, never stored
DEFAULT_CATEGORIES = [
    DEFAULT_CATEGORY,
    "Movie",
    "Anime",
    "Manga",
    "Educational",
    "Directory",
    "AI Tools",
    "Dev Tools",
    "Unlisted",
]

# Favicon lookup
FAVICON_SERVICE = "https://www.google.com/s2/favicons?domain={host}&sz={size}"
FAVICON_SIZE = 32

# Snapshot export
EXPORT_FILENAME_PATTERN = "bookmarks_{date}.json"
EXPORT_INDENT = 2
