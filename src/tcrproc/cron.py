# src/tcrproc/cron.py
from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
import time
from dataclasses import replace
from typing import AbstractSet, Any, Dict, List, Optional, Sequence, Set, Tuple

from tcrproc.config import ProcessorConfig, load_processor_config
from tcrproc.engine import BatchResult, EventProcessor
from tcrproc.env import load_dotenv_if_present
from tcrproc.metrics import inc_counter, set_gauge
from tcrproc.model import Event
from tcrproc.persistence.ports import CronPersister
from tcrproc.runtime import build_runtime
from tcrproc.source import EventSource
from tcrproc.structured_logging import configure_structured_logging, log_event

log = logging.getLogger("tcrproc.cron")

Json = Dict[str, Any]


def next_watermark(
    events: Sequence[Optional[Event]],
    last_ts: int,
    last_hashes: AbstractSet[str],
) -> Optional[Tuple[int, Set[str]]]:
    """Watermark after a batch, or None when the batch does not move it.

    The hash set holds every event seen at the watermark timestamp so the
    next run (which re-reads from that timestamp inclusively) can skip them.
    """
    evs = [e for e in events if e is not None]
    if not evs:
        return None
    max_ts = max(int(e.timestamp) for e in evs)
    at_max = {e.event_hash for e in evs if int(e.timestamp) == max_ts}
    if max_ts > int(last_ts):
        return max_ts, at_max
    if max_ts == int(last_ts):
        return max_ts, set(last_hashes) | at_max
    return None


def run_processor_once(
    engine: EventProcessor,
    source: EventSource,
    cron: CronPersister,
    *,
    advance_on_error: bool = False,
) -> BatchResult:
    last_ts = cron.last_timestamp()
    last_hashes = cron.event_hashes_at_last_timestamp()
    events = source.retrieve_events(last_ts, last_hashes)

    result = engine.process(events)
    inc_counter("cron_runs_total")

    if result.ok or advance_on_error:
        wm = next_watermark(events, last_ts, last_hashes)
        if wm is not None:
            cron.update_watermark(wm[0], wm[1])
            set_gauge("cron_watermark_ts", wm[0])
    else:
        log_event(
            log,
            "watermark_held",
            level=logging.WARNING,
            last_timestamp=last_ts,
            failed=len(result.errors),
            last_error=str(result.last_error),
        )
    return result


class ProcessorCron:
    """Background loop that runs one processing pass per interval.

    Consecutive failures back off exponentially; after `fail_fast_after` of
    them the loop marks itself unhealthy and stops.
    """

    def __init__(
        self,
        *,
        engine: EventProcessor,
        source: EventSource,
        cron: CronPersister,
        cfg: ProcessorConfig,
    ) -> None:
        self._engine = engine
        self._source = source
        self._cron = cron
        self._cfg = cfg

        self._t: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._started = False
        self._running = False
        self._unhealthy = False

        self._consecutive_failures = 0
        self._last_error = ""
        self._last_run_ms = 0
        self._last_result: Optional[BatchResult] = None

    @property
    def started(self) -> bool:
        return self._started

    @property
    def running(self) -> bool:
        return self._running

    @property
    def unhealthy(self) -> bool:
        return self._unhealthy

    def status(self) -> Json:
        return {
            "enabled": bool(self._cfg.cron_enabled),
            "running": self._running,
            "unhealthy": self._unhealthy,
            "interval_ms": int(self._cfg.cron_interval_ms),
            "consecutive_failures": self._consecutive_failures,
            "last_error": self._last_error,
            "last_run_ms": self._last_run_ms,
            "last_result": self._last_result.to_json() if self._last_result is not None else None,
        }

    def start(self) -> bool:
        if self._started:
            return True
        if not self._cfg.cron_enabled:
            return False
        self._stop.clear()
        self._t = threading.Thread(target=self._run, name="tcrproc-cron", daemon=True)
        self._running = True
        self._started = True
        self._t.start()
        inc_counter("cron_start_total")
        return True

    def stop(self) -> None:
        self._stop.set()
        t = self._t
        if t is not None and t is not threading.current_thread():
            t.join(timeout=2.0)
        self._running = False
        inc_counter("cron_stop_total")

    def run_once(self) -> bool:
        """One pass with error bookkeeping. True when the pass counts as a success."""
        self._last_run_ms = int(time.time() * 1000)
        try:
            result = run_processor_once(
                self._engine,
                self._source,
                self._cron,
                advance_on_error=self._cfg.advance_on_error,
            )
        except Exception as err:
            self._mark_error(where="run", err=err)
            return False

        self._last_result = result
        if not result.ok and not self._cfg.advance_on_error:
            self._mark_error(where="batch", err=result.last_error or RuntimeError("batch failed"))
            return False
        self._clear_error()
        return True

    def _mark_error(self, *, where: str, err: BaseException) -> None:
        self._consecutive_failures += 1
        self._last_error = f"{where}:{type(err).__name__}:{err}"
        inc_counter("cron_errors_total")
        set_gauge("cron_consecutive_failures", self._consecutive_failures)
        log_event(
            log,
            "cron_error",
            level=logging.ERROR,
            where=where,
            failures=self._consecutive_failures,
            error=self._last_error,
        )

    def _clear_error(self) -> None:
        if self._consecutive_failures == 0 and not self._last_error:
            return
        self._consecutive_failures = 0
        self._last_error = ""
        set_gauge("cron_consecutive_failures", 0)

    def _backoff_s(self) -> float:
        n = max(1, int(self._consecutive_failures))
        base = int(self._cfg.error_backoff_min_ms)
        cap = int(self._cfg.error_backoff_max_ms)
        return float(min(cap, base * (2 ** min(10, n - 1)))) / 1000.0

    def _trip_unhealthy_and_stop(self) -> None:
        self._unhealthy = True
        self._running = False
        set_gauge("cron_unhealthy", 1)
        inc_counter("cron_failfast_total")
        log_event(
            log,
            "cron_failfast",
            level=logging.ERROR,
            failures=self._consecutive_failures,
            last_error=self._last_error,
        )
        self._stop.set()

    def _run(self) -> None:
        interval_s = float(self._cfg.cron_interval_ms) / 1000.0
        next_ts = time.monotonic()

        while not self._stop.is_set():
            now = time.monotonic()
            if now < next_ts:
                self._stop.wait(min(0.25, next_ts - now))
                continue

            next_ts = now + interval_s
            if self.run_once():
                continue

            if self._consecutive_failures >= int(self._cfg.fail_fast_after):
                self._trip_unhealthy_and_stop()
                break
            self._stop.wait(self._backoff_s())

        self._running = False


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="TCR events processor cron")
    ap.add_argument("--once", action="store_true", help="run a single processing pass and exit")
    ap.add_argument("--events", dest="events_path", default=None, help="JSON-lines event file (TCRPROC_EVENTS_PATH)")
    ap.add_argument("--config", dest="config_path", default=None, help="JSON or YAML config file (TCRPROC_CONFIG_PATH)")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    load_dotenv_if_present()

    cfg = load_processor_config(config_path=args.config_path)
    if args.events_path:
        cfg = replace(cfg, events_path=str(args.events_path))
    configure_structured_logging(cfg.log_level)

    rt = build_runtime(cfg)
    try:
        if args.once:
            res = run_processor_once(rt.engine, rt.source, rt.persisters.cron, advance_on_error=cfg.advance_on_error)
            print(json.dumps(res.to_json(), indent=2))
            return 0 if res.ok else 1

        loop = ProcessorCron(
            engine=rt.engine,
            source=rt.source,
            cron=rt.persisters.cron,
            cfg=replace(cfg, cron_enabled=True),
        )
        loop.start()
        try:
            while loop.running:
                time.sleep(0.5)
        except KeyboardInterrupt:
            pass
        finally:
            loop.stop()
        return 2 if loop.unhealthy else 0
    finally:
        rt.close()


if __name__ == "__main__":
    raise SystemExit(main())
