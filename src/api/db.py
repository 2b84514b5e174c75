from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Generator, List, Mapping, Optional, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.pool import QueuePool

from .errors import NotFoundError, StorageError
from .models import DEFAULT_STATUS, PostChanges, PostEntity
from .repositories import PostRepository
from .settings import Settings
from .utils import pagination_window

logger = logging.getLogger(__name__)

# SQLite INTEGER is a signed 64-bit value
SQLITE_INT_MIN = -(2**63)
SQLITE_INT_MAX = 2**63 - 1


@dataclass(frozen=True)
class _Cols:
    table: str = "posts"
    id: str = "id"
    title: str = "title"
    content: str = "content"
    author: str = "author"
    status: str = "status"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_COLS = _Cols()

_SELECT = (
    f"SELECT {_COLS.id}, {_COLS.title}, {_COLS.content}, {_COLS.author}, {_COLS.status}, "
    f"{_COLS.created_at}, {_COLS.updated_at} FROM {_COLS.table}"
)

SAMPLE_POSTS = (
    ("Welcome to the Blog", "This is the first post in our blog!", "Admin"),
    ("Getting Started", "Learn how to build full-stack applications with Python.", "Admin"),
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _storable_id(post_id: int) -> bool:
    return SQLITE_INT_MIN <= post_id <= SQLITE_INT_MAX


# PUBLIC_INTERFACE
def build_engine(settings: Settings) -> Engine:
    """
    Create the SQLAlchemy engine for `settings.database_url` with a bounded pool:
    at most `db_pool_size` connections, waiting `db_acquire_timeout` seconds for one.
    """
    return create_engine(
        settings.database_url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=0,
        pool_timeout=settings.db_acquire_timeout,
        connect_args={"check_same_thread": False},
    )


class SQLitePostRepository(PostRepository):
    """
    SQLite repository implementing the PostRepository interface on top of a
    pooled SQLAlchemy engine.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @contextmanager
    def _conn(self, operation: str) -> Generator[Connection, None, None]:
        """
        Borrow a pooled connection inside a transaction; commit on success,
        roll back on error.
        """
        try:
            with self._engine.begin() as conn:
                yield conn
        except PoolTimeoutError as e:
            raise StorageError(f"Timed out waiting for a database connection during {operation}: {e}") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Database error during {operation}: {e}") from e

    def init_schema(self) -> None:
        with self._conn("init_schema") as conn:
            conn.execute(
                text(
                    f"""
                    CREATE TABLE IF NOT EXISTS {_COLS.table} (
                        {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                        {_COLS.title} TEXT NOT NULL,
                        {_COLS.content} TEXT NOT NULL,
                        {_COLS.author} TEXT NOT NULL,
                        {_COLS.status} TEXT NOT NULL DEFAULT '{DEFAULT_STATUS}',
                        {_COLS.created_at} TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                        {_COLS.updated_at} TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                    )
                    """
                )
            )
            conn.execute(
                text(
                    f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_created_at "
                    f"ON {_COLS.table}({_COLS.created_at})"
                )
            )

    def seed(self) -> int:
        """Insert the sample posts when the table is empty. Return rows inserted."""
        if self.count() > 0:
            return 0
        for title, content, author in SAMPLE_POSTS:
            self.create(title, content, author)
        return len(SAMPLE_POSTS)

    def _row_to_entity(self, row: Mapping[str, Any]) -> PostEntity:
        return {
            "id": int(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "content": str(row[_COLS.content]),
            "author": str(row[_COLS.author]),
            "status": str(row[_COLS.status]),
            "created_at": _parse_dt(row[_COLS.created_at]),
            "updated_at": _parse_dt(row[_COLS.updated_at]),
        }

    def _fetch(self, conn: Connection, post_id: int) -> Optional[Mapping[str, Any]]:
        if not _storable_id(post_id):
            return None
        return conn.execute(
            text(f"{_SELECT} WHERE {_COLS.id} = :id"), {"id": post_id}
        ).mappings().first()

    def _count(self, conn: Connection) -> int:
        return int(conn.execute(text(f"SELECT COUNT(*) FROM {_COLS.table}")).scalar_one())

    def create(self, title: str, content: str, author: str, status: str = DEFAULT_STATUS) -> PostEntity:
        now = _now().isoformat(timespec="microseconds")
        with self._conn("create") as conn:
            result = conn.execute(
                text(
                    f"""
                    INSERT INTO {_COLS.table} ({_COLS.title}, {_COLS.content}, {_COLS.author},
                        {_COLS.status}, {_COLS.created_at}, {_COLS.updated_at})
                    VALUES (:title, :content, :author, :status, :now, :now)
                    """
                ),
                {"title": title, "content": content, "author": author, "status": status, "now": now},
            )
            new_id = result.lastrowid
            row = self._fetch(conn, new_id)
            if row is None:
                raise StorageError(f"Inserted post {new_id} could not be read back")
            return self._row_to_entity(row)

    def get(self, post_id: int) -> PostEntity:
        with self._conn("get") as conn:
            row = self._fetch(conn, post_id)
        if row is None:
            raise NotFoundError("Post not found")
        return self._row_to_entity(row)

    def update(self, post_id: int, changes: PostChanges) -> PostEntity:
        with self._conn("update") as conn:
            # Read-merge-write under one write lock
            conn.exec_driver_sql("BEGIN IMMEDIATE")
            row = self._fetch(conn, post_id)
            if row is None:
                raise NotFoundError("Post not found")
            current = self._row_to_entity(row)

            updated_at = _now()
            if updated_at <= current["updated_at"]:
                updated_at = current["updated_at"] + timedelta(microseconds=1)
            merged = changes.apply_to(current, updated_at)

            conn.execute(
                text(
                    f"""
                    UPDATE {_COLS.table}
                    SET {_COLS.title} = :title, {_COLS.content} = :content, {_COLS.author} = :author,
                        {_COLS.status} = :status, {_COLS.updated_at} = :updated_at
                    WHERE {_COLS.id} = :id
                    """
                ),
                {
                    "title": merged["title"],
                    "content": merged["content"],
                    "author": merged["author"],
                    "status": merged["status"],
                    "updated_at": updated_at.isoformat(timespec="microseconds"),
                    "id": post_id,
                },
            )
            return merged

    def delete(self, post_id: int) -> int:
        if not _storable_id(post_id):
            return 0
        with self._conn("delete") as conn:
            result = conn.execute(
                text(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = :id"), {"id": post_id}
            )
            return result.rowcount

    def count(self) -> int:
        with self._conn("count") as conn:
            return self._count(conn)

    def list(self, page: int, per_page: int) -> Tuple[List[PostEntity], int]:
        offset, limit = pagination_window(page, per_page)
        with self._conn("list") as conn:
            rows = conn.execute(
                text(
                    f"""
                    {_SELECT}
                    ORDER BY {_COLS.created_at} DESC, {_COLS.id} DESC
                    LIMIT :limit OFFSET :offset
                    """
                ),
                {"limit": limit, "offset": offset},
            ).mappings().all()
            total = self._count(conn)
        return [self._row_to_entity(r) for r in rows], total

    def close(self) -> None:
        self._engine.dispose()


def _parse_dt(value: str) -> datetime:
    """
    Parse a stored timestamp. Values written by SQLite's CURRENT_TIMESTAMP carry
    no offset and are UTC.
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# PUBLIC_INTERFACE
def create_repository(settings: Settings) -> SQLitePostRepository:
    """
    Build the pooled SQLite repository described by `settings` and make sure the
    posts table exists.
    """
    db_path = make_url(settings.database_url).database
    if db_path and db_path != ":memory:":
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    logger.info("Opening SQLite database at %s (pool size %d)", db_path, settings.db_pool_size)

    repo = SQLitePostRepository(build_engine(settings))
    repo.init_schema()
    logger.info("Schema for table '%s' is ready", _COLS.table)

    if settings.seed_sample_posts:
        inserted = repo.seed()
        if inserted:
            logger.info("Seeded %d sample posts", inserted)
    return repo
