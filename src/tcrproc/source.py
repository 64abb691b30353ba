# src/tcrproc/source.py
from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import AbstractSet, Iterable, List, Protocol

from tcrproc.errors import DecodeError
from tcrproc.model import Event


class EventSource(Protocol):
    def retrieve_events(self, from_ts: int, exclude_hashes: AbstractSet[str]) -> List[Event]: ...


def _order_key(ev: Event):
    return (int(ev.timestamp), int(ev.block_number), int(ev.log_index))


def _select(events: Iterable[Event], from_ts: int, exclude_hashes: AbstractSet[str]) -> List[Event]:
    out = [ev for ev in events if int(ev.timestamp) >= int(from_ts) and ev.event_hash not in exclude_hashes]
    out.sort(key=_order_key)
    return out


class InMemoryEventSource:
    def __init__(self, events: Iterable[Event] = ()) -> None:
        self._lock = threading.Lock()
        self._events: List[Event] = list(events)

    def append(self, *events: Event) -> None:
        with self._lock:
            self._events.extend(events)

    def retrieve_events(self, from_ts: int, exclude_hashes: AbstractSet[str]) -> List[Event]:
        with self._lock:
            snapshot = list(self._events)
        return _select(snapshot, from_ts, exclude_hashes)


class JsonlEventSource:
    """Reads decoded events from a JSON-lines file, one event object per line.

    The file is re-read on every call so an external writer can append to it.
    A missing file yields no events; a malformed line raises DecodeError.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def _read(self) -> List[Event]:
        if not self.path.exists():
            return []
        events: List[Event] = []
        with self.path.open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                try:
                    obj = json.loads(line)
                    if not isinstance(obj, dict):
                        raise ValueError("event line must be a JSON object")
                    events.append(Event.from_json(obj))
                except ValueError as e:
                    raise DecodeError("bad_event_line", {"path": str(self.path), "line": lineno, "error": str(e)}) from e
        return events

    def retrieve_events(self, from_ts: int, exclude_hashes: AbstractSet[str]) -> List[Event]:
        return _select(self._read(), from_ts, exclude_hashes)
