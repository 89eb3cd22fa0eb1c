from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from visit_notifications.models import Target, TargetKind

from .base import TITLE_META_KEY, StorageError, Store


class SQLiteStore(Store):
    """SQLite-backed store.

    ``lock`` opens an ``IMMEDIATE`` transaction, which holds the database write
    lock until the block exits, so read-modify-write sequences are serialized
    across threads and processes. Reads and writes issued inside the block run
    on the same connection and commit together; an exception rolls them back.
    """

    def __init__(self, db_path: str, timeout_seconds: float = 10.0) -> None:
        self.db_path = Path(db_path)
        self.timeout_seconds = timeout_seconds
        self._local = threading.local()

    def init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._session() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS target_meta (
                    kind TEXT NOT NULL,
                    object_id INTEGER NOT NULL,
                    meta_key TEXT NOT NULL,
                    meta_value TEXT NOT NULL,
                    PRIMARY KEY (kind, object_id, meta_key)
                )
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_target_meta_key_value
                ON target_meta (meta_key, meta_value)
                """
            )
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS options (
                    option_key TEXT PRIMARY KEY,
                    option_value TEXT NOT NULL
                )
                """
            )

    def get_meta(self, target: Target, key: str, default: Any = None) -> Any:
        with self._session() as connection:
            row = connection.execute(
                """
                SELECT meta_value FROM target_meta
                WHERE kind = ? AND object_id = ? AND meta_key = ?
                """,
                (target.kind.value, target.object_id, key),
            ).fetchone()

        if row is None:
            return default
        return _decode(row["meta_value"])

    def set_meta(self, target: Target, key: str, value: Any) -> None:
        with self._session() as connection:
            connection.execute(
                """
                INSERT INTO target_meta (kind, object_id, meta_key, meta_value)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(kind, object_id, meta_key) DO UPDATE SET
                    meta_value = excluded.meta_value
                """,
                (target.kind.value, target.object_id, key, _encode(value)),
            )

    def get_option(self, key: str, default: Any = None) -> Any:
        with self._session() as connection:
            row = connection.execute(
                "SELECT option_value FROM options WHERE option_key = ?",
                (key,),
            ).fetchone()

        if row is None:
            return default
        return _decode(row["option_value"])

    def set_option(self, key: str, value: Any) -> None:
        with self._session() as connection:
            connection.execute(
                """
                INSERT INTO options (option_key, option_value)
                VALUES (?, ?)
                ON CONFLICT(option_key) DO UPDATE SET
                    option_value = excluded.option_value
                """,
                (key, _encode(value)),
            )

    def delete_option(self, key: str) -> None:
        with self._session() as connection:
            connection.execute("DELETE FROM options WHERE option_key = ?", (key,))

    def find_targets(self, key: str) -> list[Target]:
        with self._session() as connection:
            rows = connection.execute(
                """
                SELECT m.kind, m.object_id, t.meta_value AS title
                FROM target_meta AS m
                LEFT JOIN target_meta AS t
                    ON t.kind = m.kind
                    AND t.object_id = m.object_id
                    AND t.meta_key = ?
                WHERE m.meta_key = ?
                ORDER BY m.kind, m.object_id
                """,
                (TITLE_META_KEY, key),
            ).fetchall()

        targets: list[Target] = []
        for row in rows:
            title = _decode(row["title"]) if row["title"] is not None else ""
            targets.append(
                Target(
                    kind=TargetKind(row["kind"]),
                    object_id=int(row["object_id"]),
                    title=str(title or ""),
                )
            )
        return targets

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        # Reentrant: an inner lock joins the transaction already held by this thread.
        if getattr(self._local, "connection", None) is not None:
            yield
            return

        try:
            connection = self._connect()
        except sqlite3.Error as exc:
            raise StorageError(f"cannot open {self.db_path}: {exc}") from exc

        try:
            connection.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            connection.close()
            raise StorageError(f"failed to acquire lock {name}: {exc}") from exc

        self._local.connection = connection
        try:
            yield
            connection.commit()
        except sqlite3.Error as exc:
            connection.rollback()
            raise StorageError(f"transaction for {name} failed: {exc}") from exc
        except BaseException:
            connection.rollback()
            raise
        finally:
            self._local.connection = None
            connection.close()

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        active = getattr(self._local, "connection", None)
        if active is not None:
            try:
                yield active
            except sqlite3.Error as exc:
                raise StorageError(str(exc)) from exc
            return

        try:
            connection = self._connect()
        except sqlite3.Error as exc:
            raise StorageError(f"cannot open {self.db_path}: {exc}") from exc

        try:
            yield connection
            connection.commit()
        except sqlite3.Error as exc:
            connection.rollback()
            raise StorageError(str(exc)) from exc
        finally:
            connection.close()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self.db_path,
            timeout=self.timeout_seconds,
            isolation_level=None,
        )
        connection.row_factory = sqlite3.Row
        return connection


def _encode(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def _decode(raw: str) -> Any:
    return json.loads(raw)
