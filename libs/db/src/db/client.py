"""SQLAlchemy engine/session helpers for the ledger storage port.

Usage
-----
from db.client import Database

database = Database("sqlite+pysqlite:///ledger.db")
database.create_all()

with database.session_scope() as s:
    s.execute(...)

There is no process-wide engine: each ``Database`` owns its engine and session
factory so tests and hosts can run several isolated stores side by side.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models.ledger import Base


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_memory(url: str) -> bool:
    return _is_sqlite(url) and (":memory:" in url or url.rstrip("/").endswith("sqlite:"))


def _build_engine(url: str, *, echo: bool = False) -> Engine:
    if _is_memory(url):
        # One shared connection, otherwise every checkout sees an empty database.
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif _is_sqlite(url):
        engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(url, echo=echo, pool_pre_ping=True)

    if _is_sqlite(url):

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_conn, _):  # pragma: no cover - tiny bridge
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

    return engine


class Database:
    """An engine plus session factory bound to one database URL."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        if not url:
            raise RuntimeError("database URL is empty; cannot initialize database client")
        self.url = url
        self.engine: Engine = _build_engine(url, echo=echo)
        self._session_maker: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False, class_=Session
        )

    def create_all(self) -> None:
        """Create every ledger table that does not exist yet."""

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        """Return a new session bound to this database's engine."""

        return self._session_maker()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


__all__ = [
    "Database",
]
