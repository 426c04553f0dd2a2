import os
import json
import pytest
from datetime import datetime, timedelta, timezone

import bookmarkify.config
import bookmarkify.store
from bookmarkify.config import BookmarkifyConfig
from bookmarkify.errors import StorageError
from bookmarkify.models import Bookmark
from bookmarkify.storage import MemoryStorage
from bookmarkify.store import BookmarkStore


class FakeClock:
    """
    Deterministic clock for stores.

    Returns start, start + step, start + 2*step, ... on successive calls.
    A zero step makes every call return the same instant.
    """
    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.now = start or datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        current = self.now
        self.now = self.now + self.step
        return current


class FailingStorage(MemoryStorage):
    """Memory storage whose writes to selected keys fail."""
    def __init__(self, fail_keys=(), initial=None):
        super().__init__(initial)
        self.fail_keys = set(fail_keys)
        self.saves = []

    def save(self, key, blob):
        if key in self.fail_keys:
            raise StorageError(f"disk full while saving {key}")
        self.saves.append(key)
        super().save(key, blob)


@pytest.fixture(autouse=True)
def clean_bookmarkify_env(monkeypatch, tmp_path):
    """
    Isolate every test from real configuration and global state.

    Removes BOOKMARKIFY_ environment variables, points HOME at a temp
    directory, runs the test from tmp_path and resets the global config
    and store instances.
    """
    for key in list(os.environ.keys()):
        if key.startswith("BOOKMARKIFY_"):
            monkeypatch.delenv(key, raising=False)

    mock_home = tmp_path / "home"
    mock_home.mkdir()
    monkeypatch.setenv("HOME", str(mock_home))
    monkeypatch.chdir(tmp_path)

    monkeypatch.setattr(bookmarkify.config, "_config", None)
    monkeypatch.setattr(bookmarkify.store, "_store", None)

    return tmp_path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return FailingStorage()


@pytest.fixture
def store(storage, clock):
    """Empty store with default categories over memory storage."""
    return BookmarkStore(storage, config=BookmarkifyConfig(), clock=clock)


@pytest.fixture
def populated_store(store):
    """Store with a few bookmarks across categories."""
    go = store.add("Go Docs", "https://go.dev/doc", category="Dev Tools", tags="lang, docs")
    store.toggle_favorite(go.id)
    store.add("Anime List", "https://myanimelist.net", category="Anime")
    store.add("Python", "https://www.python.org", category="Dev Tools", tags="lang,python",
              description="Official site")
    store.add("Khan Academy", "https://www.khanacademy.org", category="Educational", tags="math")
    return store


@pytest.fixture
def query_bookmarks():
    """The two bookmarks from the filtering scenario."""
    return [
        Bookmark(id=1, title="Go Docs", url="go.dev", tags=["lang"],
                 category="Dev Tools", favorite=True),
        Bookmark(id=2, title="Anime List", url="mal.com", tags=[],
                 category="Anime", favorite=False),
    ]


@pytest.fixture
def browser_export():
    """A snapshot as written by the browser version of the app."""
    return json.dumps({
        "bookmarks": [
            {
                "id": 1714564800123,
                "title": "Go Docs",
                "url": "https://go.dev",
                "category": "Dev Tools",
                "tags": ["lang", "docs"],
                "description": "",
                "favorite": True,
                "createdAt": "2024-05-01T12:00:00.123Z",
                "favicon": "https://www.google.com/s2/favicons?domain=go.dev&sz=32"
            },
            {
                "id": 1714564900456,
                "title": "Anime List",
                "url": "mal.com",
                "category": "Anime",
                "tags": [],
                "favorite": False,
                "createdAt": "2024-05-01T12:01:40.456Z",
                "favicon": None
            }
        ],
        "categories": ["Movie", "Anime", "Manga", "Educational", "Directory",
                       "AI Tools", "Dev Tools", "Unlisted"]
    }, indent=2)


@pytest.fixture
def make_clock():
    """Build clocks with a custom start or step."""
    return FakeClock
