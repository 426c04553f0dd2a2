"""
Tests for bookmarkify/storage.py

Covers the memory, JSON file and SQL backends, backend selection from
configuration, and a store persisting through each real backend.
"""
import pytest
from unittest.mock import patch

from sqlalchemy.exc import SQLAlchemyError

from bookmarkify.config import BookmarkifyConfig
from bookmarkify.errors import StorageError
from bookmarkify.storage import JsonFileStorage, MemoryStorage, SqlStorage, open_storage
from bookmarkify.store import BookmarkStore


class TestMemoryStorage:
    """Test the in-process backend."""

    def test_missing_key(self):
        assert MemoryStorage().load("bookmarks") is None

    def test_save_and_load(self):
        storage = MemoryStorage()
        storage.save("bookmarks", "[]")
        storage.save("bookmarks", "[1]")
        assert storage.load("bookmarks") == "[1]"

    def test_initial_data_is_copied(self):
        initial = {"categories": '["General"]'}
        storage = MemoryStorage(initial)
        storage.save("categories", "[]")
        assert initial == {"categories": '["General"]'}


class TestJsonFileStorage:
    """Test the JSON file backend."""

    def test_missing_file(self, tmp_path):
        assert JsonFileStorage(tmp_path).load("bookmarks") is None

    def test_save_and_load(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        storage.save("bookmarks", '[{"title": "café"}]')
        assert (tmp_path / "bookmarks.json").read_text(encoding="utf-8") == '[{"title": "café"}]'
        assert storage.load("bookmarks") == '[{"title": "café"}]'

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        """Only the target file remains in the data directory."""
        directory = tmp_path / "data"
        storage = JsonFileStorage(directory)
        storage.save("categories", "[]")
        storage.save("categories", '["General"]')
        assert storage.load("categories") == '["General"]'
        assert sorted(p.name for p in directory.iterdir()) == ["categories.json"]

    def test_creates_directory(self, tmp_path):
        directory = tmp_path / "a" / "b"
        JsonFileStorage(directory).save("bookmarks", "[]")
        assert (directory / "bookmarks.json").exists()

    @pytest.mark.parametrize("key", ["", "../escape", "a/b", ".hidden"])
    def test_invalid_key(self, tmp_path, key):
        with pytest.raises(ValueError):
            JsonFileStorage(tmp_path).save(key, "[]")

    def test_write_failure_raises_storage_error(self, tmp_path):
        """A directory that cannot be created is a StorageError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        storage = JsonFileStorage(blocker / "data")
        with pytest.raises(StorageError):
            storage.save("bookmarks", "[]")

    def test_failed_write_keeps_old_file(self, tmp_path):
        """A failed replace keeps the old file and cleans up the temp file."""
        directory = tmp_path / "data"
        storage = JsonFileStorage(directory)
        storage.save("bookmarks", "[1]")
        with patch("bookmarkify.storage.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StorageError):
                storage.save("bookmarks", "[2]")
        assert storage.load("bookmarks") == "[1]"
        assert sorted(p.name for p in directory.iterdir()) == ["bookmarks.json"]

    def test_unreadable_file_loads_as_none(self, tmp_path):
        (tmp_path / "bookmarks.json").write_bytes(b"\xff\xfe\x00garbage")
        assert JsonFileStorage(tmp_path).load("bookmarks") is None


class TestSqlStorage:
    """Test the SQLAlchemy backend."""

    def test_file_database(self, tmp_path):
        path = tmp_path / "data" / "bookmarks.db"
        storage = SqlStorage(path=str(path))
        assert storage.load("bookmarks") is None
        storage.save("bookmarks", "[]")
        assert storage.load("bookmarks") == "[]"
        assert path.exists()

    def test_overwrite(self, tmp_path):
        storage = SqlStorage(path=str(tmp_path / "test.db"))
        storage.save("categories", '["General"]')
        storage.save("categories", '["General", "Work"]')
        assert storage.load("categories") == '["General", "Work"]'

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "test.db")
        SqlStorage(path=path).save("bookmarks", '[{"id": 1}]')
        assert SqlStorage(path=path).load("bookmarks") == '[{"id": 1}]'

    def test_in_memory_url(self):
        """An in-memory database keeps data across sessions of one instance."""
        storage = SqlStorage(url="sqlite://")
        storage.save("bookmarks", "[]")
        assert storage.load("bookmarks") == "[]"

    def test_keys_are_independent(self):
        storage = SqlStorage(url="sqlite://")
        storage.save("bookmarks", "[]")
        storage.save("categories", '["General"]')
        assert storage.load("bookmarks") == "[]"
        assert storage.load("categories") == '["General"]'

    def test_default_path_from_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BOOKMARKIFY_DATABASE", str(tmp_path / "configured.db"))
        storage = SqlStorage()
        storage.save("bookmarks", "[]")
        assert (tmp_path / "configured.db").exists()

    def test_load_error_returns_none(self):
        storage = SqlStorage(url="sqlite://")
        storage.save("bookmarks", "[]")
        with patch.object(storage, "Session", side_effect=SQLAlchemyError("boom")):
            assert storage.load("bookmarks") is None

    def test_save_error_raises_storage_error(self):
        storage = SqlStorage(url="sqlite://")
        with patch.object(storage, "Session", side_effect=SQLAlchemyError("boom")):
            with pytest.raises(StorageError, match="boom"):
                storage.save("bookmarks", "[]")


class TestOpenStorage:
    """Test backend selection."""

    def test_sqlite_default(self, tmp_path):
        config = BookmarkifyConfig(database=str(tmp_path / "db" / "bookmarkify.db"))
        storage = open_storage(config)
        assert isinstance(storage, SqlStorage)
        assert (tmp_path / "db").is_dir()

    def test_sqlite_url(self):
        storage = open_storage(BookmarkifyConfig(database_url="sqlite://"))
        assert isinstance(storage, SqlStorage)
        assert storage.url == "sqlite://"

    def test_json(self, tmp_path):
        storage = open_storage(BookmarkifyConfig(storage="json", data_dir=str(tmp_path)))
        assert isinstance(storage, JsonFileStorage)
        assert storage.directory == tmp_path

    def test_memory(self):
        assert isinstance(open_storage(BookmarkifyConfig(storage="memory")), MemoryStorage)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            open_storage(BookmarkifyConfig(storage="redis"))

    def test_uses_global_config(self, monkeypatch):
        monkeypatch.setenv("BOOKMARKIFY_STORAGE", "memory")
        assert isinstance(open_storage(), MemoryStorage)


class TestStoreOverBackends:
    """A store reopened over the same backend sees the same state."""

    @pytest.fixture(params=["json", "sqlite"])
    def config(self, request, tmp_path):
        return BookmarkifyConfig(
            storage=request.param,
            database=str(tmp_path / "bookmarkify.db"),
            data_dir=str(tmp_path / "data"),
        )

    def test_state_survives_reopen(self, config, clock):
        store = BookmarkStore(config=config, clock=clock)
        go = store.add("Go Docs", "https://go.dev", category="Dev Tools", tags="lang")
        store.toggle_favorite(go.id)
        store.add_category("Work")
        store.remove_category("Movie")

        reopened = BookmarkStore(config=config, clock=clock)
        assert reopened.bookmarks == store.bookmarks
        assert reopened.categories == store.categories
        assert reopened.get(go.id).favorite is True
