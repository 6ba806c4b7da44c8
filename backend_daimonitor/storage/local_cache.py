"""
Local blob cache — SQLAlchemy-backed string key/value store.

Process-local and synchronous. Holds the wallet collection, the last-sync
timestamp and the RPC URL override as opaque strings under fixed keys. Uses a
SQLite file (LOCAL_CACHE_PATH) by default; any SQLAlchemy URL is accepted.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Column, Integer, String, Text, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend_daimonitor.core.exceptions import StoreError
from backend_daimonitor.monitor_logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()


class CacheBlob(Base):
    """One cached value. key is unique; value is whatever string the caller stored."""

    __tablename__ = "kv_blobs"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(Integer, nullable=False)  # Unix timestamp


def _database_url(path_or_url: str) -> str:
    if "://" in path_or_url:
        return path_or_url
    return f"sqlite:///{path_or_url}"


class LocalBlobCache:
    """
    Keyed blob get/set over a local database file.

    Tables are created on construction. Errors are raised as StoreError.
    """

    def __init__(self, path_or_url: str) -> None:
        url = _database_url(path_or_url)
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self._url = url
        self._engine = create_engine(url, connect_args=connect_args)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        try:
            Base.metadata.create_all(bind=self._engine)
        except Exception as e:
            logger.exception("local_cache_init_failed", url=url, error=str(e))
            raise StoreError(f"Cannot initialize local cache at {url}: {e}") from e
        logger.debug("local_cache_ready", url=url)

    @property
    def url(self) -> str:
        return self._url

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        """Single session. Commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key was never set."""
        try:
            with self._session_scope() as session:
                row = session.get(CacheBlob, key)
                return row.value if row else None
        except Exception as e:
            logger.exception("local_cache_get_failed", key=key, error=str(e))
            raise StoreError(f"Local cache read failed for {key}: {e}") from e

    def set(self, key: str, value: str) -> None:
        """Insert or overwrite key."""
        try:
            with self._session_scope() as session:
                session.merge(CacheBlob(key=key, value=value, updated_at=int(time.time())))
        except Exception as e:
            logger.exception("local_cache_set_failed", key=key, error=str(e))
            raise StoreError(f"Local cache write failed for {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self._session_scope() as session:
                session.query(CacheBlob).filter(CacheBlob.key == key).delete()
        except Exception as e:
            logger.exception("local_cache_delete_failed", key=key, error=str(e))
            raise StoreError(f"Local cache delete failed for {key}: {e}") from e

    def close(self) -> None:
        self._engine.dispose()
