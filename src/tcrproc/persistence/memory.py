from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, List, Tuple

from tcrproc.errors import NoResultsError, PersistenceError

Json = Dict[str, Any]


def _copy(doc: Json) -> Json:
    # Round-trip through JSON so callers never share mutable state with the store.
    return json.loads(json.dumps(doc, sort_keys=True))


class MemoryStore:
    """Process-local DocumentStore. Used by tests and when no db_path is configured."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._docs: Dict[str, Dict[str, Tuple[Json, str]]] = {}
        self._closed = False

    def _table(self, kind: str) -> Dict[str, Tuple[Json, str]]:
        if self._closed:
            raise PersistenceError("store_closed", {"kind": kind})
        return self._docs.setdefault(kind, {})

    def get(self, kind: str, key: str) -> Json:
        with self._lock:
            row = self._table(kind).get(str(key))
            if row is None:
                raise NoResultsError(kind, key)
            return _copy(row[0])

    def insert(self, kind: str, key: str, doc: Json, *, index: str = "") -> None:
        with self._lock:
            table = self._table(kind)
            if str(key) in table:
                raise PersistenceError("duplicate_key", {"kind": kind, "key": str(key)})
            table[str(key)] = (_copy(doc), str(index or ""))

    def put(self, kind: str, key: str, doc: Json, *, index: str = "") -> None:
        with self._lock:
            self._table(kind)[str(key)] = (_copy(doc), str(index or ""))

    def update(self, kind: str, key: str, fn: Callable[[Json], Json]) -> Json:
        with self._lock:
            table = self._table(kind)
            row = table.get(str(key))
            if row is None:
                raise NoResultsError(kind, key)
            new_doc = fn(_copy(row[0]))
            table[str(key)] = (_copy(new_doc), row[1])
            return _copy(new_doc)

    def delete(self, kind: str, key: str) -> bool:
        with self._lock:
            return self._table(kind).pop(str(key), None) is not None

    def find(self, kind: str, index: str) -> List[Json]:
        with self._lock:
            return [_copy(doc) for doc, idx in self._table(kind).values() if idx == str(index)]

    def scan(self, kind: str) -> List[Json]:
        with self._lock:
            return [_copy(doc) for doc, _ in self._table(kind).values()]

    def close(self) -> None:
        with self._lock:
            self._closed = True
