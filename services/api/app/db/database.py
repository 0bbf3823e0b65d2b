from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


class Database:
    """Owns the SQLAlchemy engine and session factory for one process.

    Built once on application startup and disposed on shutdown. Nothing caches an engine
    at module level, so tests get a fresh database per app instance.
    """

    def __init__(self, url: str) -> None:
        connect_args: dict = {}
        if url.startswith("sqlite"):
            connect_args = {"check_same_thread": False}
            _ensure_sqlite_dir(url)

        self.url = url
        self.engine: Engine = create_engine(url, future=True, connect_args=connect_args)
        self._sessionmaker = sessionmaker(
            bind=self.engine,
            class_=Session,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    def session(self) -> Session:
        return self._sessionmaker()

    def dispose(self) -> None:
        logger.info("disposing database engine")
        self.engine.dispose()


def _ensure_sqlite_dir(url: str) -> None:
    database = make_url(url).database
    if not database or database == ":memory:":
        return
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
