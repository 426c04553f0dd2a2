"""
Persistence adapters for Bookmarkify.

The store persists two collections (bookmarks and categories) as text blobs
under fixed keys. Adapters only move blobs in and out of durable storage;
parsing them is the store's job.

Backends:
- MemoryStorage: process-local dict, for tests and throwaway sessions
- JsonFileStorage: one <key>.json file per key in a data directory
- SqlStorage: a key/value table through SQLAlchemy (SQLite by default)
"""
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Dict, Generator, Union

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from bookmarkify.config import BookmarkifyConfig, get_config
from bookmarkify.errors import StorageError
from bookmarkify.models import Base, StoredBlob

logger = logging.getLogger(__name__)


class StorageAdapter(ABC):
    """Synchronous key/value persistence used by the store."""

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """
        Return the blob saved under key, or None.

        Read failures are logged and reported as None so the store can
        start from an empty state.
        """

    @abstractmethod
    def save(self, key: str, blob: str) -> None:
        """
        Durably store blob under key, replacing any previous value.

        Raises:
            StorageError: if the write did not happen
        """


class MemoryStorage(StorageAdapter):
    """Keeps blobs in a dict. Nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def save(self, key: str, blob: str) -> None:
        self.data[key] = blob

    def __repr__(self):
        return f"<MemoryStorage(keys={sorted(self.data)})>"


class JsonFileStorage(StorageAdapter):
    """
    Stores each key as <directory>/<key>.json.

    Writes go to a temporary file in the same directory and are moved into
    place with os.replace, so a failed write never truncates the old file.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            logger.debug(f"No existing {path} found.")
            return None
        try:
            blob = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read {path}: {e}")
            return None
        logger.debug(f"Loaded {len(blob)} bytes from {path}.")
        return blob

    def save(self, key: str, blob: str) -> None:
        path = self._path_for(key)
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.directory,
                prefix=f".{key}-", suffix=".tmp", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(blob)
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Could not save '{key}' to {path}: {e}") from e
        logger.debug(f"Saved {len(blob)} bytes to {path}.")

    def __repr__(self):
        return f"<JsonFileStorage(directory='{self.directory}')>"


class SqlStorage(StorageAdapter):
    """
    Key/value storage in a SQL database.

    Works with single database files by default; any SQLAlchemy URL is
    accepted for other engines.
    """

    def __init__(self, path: Optional[str] = None, url: Optional[str] = None, echo: Optional[bool] = None):
        """
        Initialize database connection.

        Args:
            path: Database file path (for SQLite). Uses config default if not provided.
            url: Full database URL (overrides path).
            echo: Log SQL statements. Uses config default if not provided.

        Examples:
            SqlStorage()  # Uses config default
            SqlStorage(path="bookmarks.db")  # SQLite file
            SqlStorage(url="sqlite://")  # In-memory SQLite
        """
        config = get_config()
        if echo is None:
            echo = config.database_echo

        if url:
            self.url = url
            self.path = None
        elif path:
            self.path = Path(path)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.url = f"sqlite:///{self.path}"
        else:
            self.url = config.get_database_url()
            self.path = None if config.database_url else config.get_database_path()
            if self.path:
                self.path.parent.mkdir(parents=True, exist_ok=True)

        if self.url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise each session sees an empty database
            self.engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo
            )
        elif self.url.startswith("sqlite:"):
            self.engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False},
                poolclass=NullPool,
                echo=echo
            )
            event.listen(self.engine, "connect", self._configure_sqlite)
        else:
            self.engine = create_engine(self.url, pool_pre_ping=True, echo=echo)

        self.Session = sessionmaker(bind=self.engine, autoflush=False)

        Base.metadata.create_all(self.engine)

    @staticmethod
    def _configure_sqlite(dbapi_conn, connection_record):
        """Configure SQLite for durable single-writer use."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("PRAGMA synchronous = FULL")
        cursor.close()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.

        Yields:
            SQLAlchemy session with automatic commit/rollback
        """
        session = self.Session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def load(self, key: str) -> Optional[str]:
        try:
            with self.session() as session:
                row = session.get(StoredBlob, key)
                blob = row.value if row else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load '{key}' from {self.url}: {e}")
            return None
        logger.debug(f"Loaded '{key}' from {self.url}: {'hit' if blob is not None else 'miss'}")
        return blob

    def save(self, key: str, blob: str) -> None:
        try:
            with self.session() as session:
                row = session.get(StoredBlob, key)
                if row:
                    row.value = blob
                else:
                    session.add(StoredBlob(key=key, value=blob))
        except SQLAlchemyError as e:
            logger.error(f"Failed to save '{key}' to {self.url}: {e}")
            raise StorageError(f"Could not save '{key}': {e}") from e
        logger.debug(f"Saved '{key}' ({len(blob)} bytes) to {self.url}")

    def __repr__(self):
        return f"<SqlStorage(url='{self.url}')>"


def open_storage(config: Optional[BookmarkifyConfig] = None) -> StorageAdapter:
    """
    Create the storage backend selected by configuration.

    Args:
        config: Configuration to use (global config if not provided)

    Returns:
        A ready-to-use storage adapter
    """
    config = config or get_config()

    if config.storage == "sqlite":
        if config.database_url:
            return SqlStorage(url=config.database_url, echo=config.database_echo)
        return SqlStorage(path=str(config.get_database_path()), echo=config.database_echo)
    if config.storage == "json":
        return JsonFileStorage(config.get_data_dir())
    if config.storage == "memory":
        return MemoryStorage()

    raise ValueError(f"Unknown storage backend: {config.storage}")
