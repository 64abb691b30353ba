from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

# Ensure local "src/" takes precedence over any globally-installed "tcrproc" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from tcrproc.metrics import reset_metrics  # noqa: E402
from tcrproc.model import Event  # noqa: E402
from tcrproc.persistence import MemoryStore, Persisters, memory_persisters  # noqa: E402
from tcrproc.routing import EventRoutes, load_event_routes  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("TCRPROC_EVENT_ROUTES_PATH", "TCRPROC_CONFIG_PATH", "TCRPROC_METRICS_ENABLED"):
        monkeypatch.delenv(name, raising=False)
    reset_metrics()


@pytest.fixture
def routes() -> EventRoutes:
    return load_event_routes()


@pytest.fixture
def persisters() -> Persisters:
    return memory_persisters()


@pytest.fixture
def make_event() -> Callable[..., Event]:
    counter = {"n": 0}

    def _make(
        contract_name: str,
        event_type: str,
        payload: Dict[str, Any],
        *,
        ts: int = 1_000,
        address: str = "0x" + "ab" * 20,
        tx_hash: Optional[str] = None,
        log_index: Optional[int] = None,
        block_number: int = 1,
    ) -> Event:
        counter["n"] += 1
        n = counter["n"]
        return Event(
            event_type=event_type,
            contract_name=contract_name,
            contract_address=address,
            timestamp=ts,
            payload=payload,
            block_number=block_number,
            tx_hash=tx_hash if tx_hash is not None else "0x" + f"{n:064x}",
            tx_index=0,
            block_hash="0x" + f"{block_number:064x}",
            log_index=log_index if log_index is not None else n,
        )

    return _make


class RecordingStore(MemoryStore):
    """MemoryStore that remembers every call made through the DocumentStore port."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: List[Tuple[str, str]] = []

    def get(self, kind: str, key: str) -> Any:
        self.calls.append(("get", kind))
        return super().get(kind, key)

    def insert(self, kind: str, key: str, doc: Any, *, index: str = "") -> None:
        self.calls.append(("insert", kind))
        super().insert(kind, key, doc, index=index)

    def put(self, kind: str, key: str, doc: Any, *, index: str = "") -> None:
        self.calls.append(("put", kind))
        super().put(kind, key, doc, index=index)

    def update(self, kind: str, key: str, fn: Any) -> Any:
        self.calls.append(("update", kind))
        return super().update(kind, key, fn)

    def delete(self, kind: str, key: str) -> bool:
        self.calls.append(("delete", kind))
        return super().delete(kind, key)

    def find(self, kind: str, index: str) -> Any:
        self.calls.append(("find", kind))
        return super().find(kind, index)

    def scan(self, kind: str) -> Any:
        self.calls.append(("scan", kind))
        return super().scan(kind)


@pytest.fixture
def recording_store() -> RecordingStore:
    return RecordingStore()
