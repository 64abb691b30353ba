# src/tcrproc/persistence/sqlite_store.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List

from tcrproc.errors import NoResultsError, PersistenceError

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except ValueError:
        return int(default)


class SqliteStore:
    """SQLite-backed DocumentStore.

    One `documents` table holds every aggregate as canonical JSON keyed by
    (kind, key). Connections are opened per operation and never shared, so
    several engines (threads or processes) may write the same file.

    SQLite allows one writer at a time; `write_tx()` retries BEGIN IMMEDIATE
    with bounded exponential backoff before failing.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)
        if not self.path or self.path == ":memory:":
            raise PersistenceError("sqlite_path_required", {"path": self.path})
        self._closed = False
        self.init_schema()

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        mode = (os.environ.get("TCRPROC_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("TCRPROC_SQLITE_SYNCHRONOUS") or default).strip().upper()
        if raw not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            raw = default
        return raw

    def _connect(self) -> sqlite3.Connection:
        if self._closed:
            raise PersistenceError("store_closed", {"path": self.path})
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        connect_timeout_s = float(_env_int("TCRPROC_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0
        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # BEGIN/COMMIT managed here
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        con.execute("PRAGMA journal_mode=WAL;")
        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA temp_store=MEMORY;")
        busy_ms = max(0, _env_int("TCRPROC_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000)))
        con.execute(f"PRAGMA busy_timeout={busy_ms};")
        return con

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg)

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention."""
        deadline_ts = _now_ms() + max(250, _env_int("TCRPROC_SQLITE_WRITE_DEADLINE_MS", 30_000))
        base_sleep = max(0.001, float(_env_int("TCRPROC_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("TCRPROC_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)

        def _backoff(attempt: int) -> None:
            sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
            time.sleep(sleep_s * (0.5 + random.random()))

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    _backoff(attempt)
                    attempt += 1

            try:
                yield con
                c_attempt = 0
                while True:
                    try:
                        con.execute("COMMIT;")
                        break
                    except sqlite3.OperationalError as e:
                        if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                            raise
                        _backoff(c_attempt)
                        c_attempt += 1
            except BaseException:
                con.execute("ROLLBACK;")
                raise

    def init_schema(self) -> None:
        try:
            with self.write_tx() as con:
                con.execute(
                    """
                    CREATE TABLE IF NOT EXISTS meta (
                      key TEXT PRIMARY KEY,
                      value TEXT NOT NULL
                    );
                    """
                )
                con.execute(
                    """
                    CREATE TABLE IF NOT EXISTS documents (
                      kind TEXT NOT NULL,
                      key TEXT NOT NULL,
                      idx TEXT NOT NULL DEFAULT '',
                      doc_json TEXT NOT NULL,
                      updated_ts_ms INTEGER NOT NULL,
                      PRIMARY KEY (kind, key)
                    );
                    """
                )
                con.execute("CREATE INDEX IF NOT EXISTS idx_documents_kind_idx ON documents(kind, idx);")

                row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
                if row is None:
                    con.execute(
                        "INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),)
                    )
                elif str(row["value"]) != str(self.SCHEMA_VERSION):
                    raise PersistenceError(
                        "schema_version_mismatch",
                        {"have": str(row["value"]), "want": self.SCHEMA_VERSION},
                    )
        except sqlite3.Error as e:
            raise PersistenceError("sqlite_init_failed", {"path": self.path, "error": str(e)}) from e

    def get(self, kind: str, key: str) -> Json:
        try:
            with self.connection() as con:
                row = con.execute(
                    "SELECT doc_json FROM documents WHERE kind=? AND key=? LIMIT 1;", (kind, str(key))
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError("sqlite_read_failed", {"kind": kind, "error": str(e)}) from e
        if row is None:
            raise NoResultsError(kind, key)
        return json.loads(row["doc_json"])

    def insert(self, kind: str, key: str, doc: Json, *, index: str = "") -> None:
        try:
            with self.write_tx() as con:
                con.execute(
                    "INSERT INTO documents(kind, key, idx, doc_json, updated_ts_ms) VALUES(?,?,?,?,?);",
                    (kind, str(key), str(index or ""), _canon_json(doc), _now_ms()),
                )
        except sqlite3.IntegrityError as e:
            raise PersistenceError("duplicate_key", {"kind": kind, "key": str(key)}) from e
        except sqlite3.Error as e:
            raise PersistenceError("sqlite_write_failed", {"kind": kind, "error": str(e)}) from e

    def put(self, kind: str, key: str, doc: Json, *, index: str = "") -> None:
        try:
            with self.write_tx() as con:
                con.execute(
                    "INSERT OR REPLACE INTO documents(kind, key, idx, doc_json, updated_ts_ms) VALUES(?,?,?,?,?);",
                    (kind, str(key), str(index or ""), _canon_json(doc), _now_ms()),
                )
        except sqlite3.Error as e:
            raise PersistenceError("sqlite_write_failed", {"kind": kind, "error": str(e)}) from e

    def update(self, kind: str, key: str, fn: Callable[[Json], Json]) -> Json:
        """Read-modify-write one document inside a single write transaction."""
        try:
            with self.write_tx() as con:
                row = con.execute(
                    "SELECT doc_json FROM documents WHERE kind=? AND key=? LIMIT 1;", (kind, str(key))
                ).fetchone()
                if row is None:
                    raise NoResultsError(kind, key)
                new_doc = fn(json.loads(row["doc_json"]))
                con.execute(
                    "UPDATE documents SET doc_json=?, updated_ts_ms=? WHERE kind=? AND key=?;",
                    (_canon_json(new_doc), _now_ms(), kind, str(key)),
                )
                return new_doc
        except sqlite3.Error as e:
            raise PersistenceError("sqlite_write_failed", {"kind": kind, "error": str(e)}) from e

    def delete(self, kind: str, key: str) -> bool:
        try:
            with self.write_tx() as con:
                cur = con.execute("DELETE FROM documents WHERE kind=? AND key=?;", (kind, str(key)))
                return int(cur.rowcount or 0) > 0
        except sqlite3.Error as e:
            raise PersistenceError("sqlite_write_failed", {"kind": kind, "error": str(e)}) from e

    def find(self, kind: str, index: str) -> List[Json]:
        return self._select("SELECT doc_json FROM documents WHERE kind=? AND idx=? ORDER BY key;", (kind, str(index)))

    def scan(self, kind: str) -> List[Json]:
        return self._select("SELECT doc_json FROM documents WHERE kind=? ORDER BY key;", (kind,))

    def _select(self, sql: str, params: tuple) -> List[Json]:
        try:
            with self.connection() as con:
                rows = con.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError("sqlite_read_failed", {"error": str(e)}) from e
        return [json.loads(r["doc_json"]) for r in rows]

    def close(self) -> None:
        self._closed = True
