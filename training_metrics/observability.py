"""
Training Metrics — Flight recorder and abort guard

FlightRecorder keeps the last N lifecycle events in memory so a failure
can be diagnosed after the fact. Entries carry ids and phases only, never
athlete names or session content.

CancellationToken + assert_not_cancelled guard a commit: the caller's
token is checked immediately before state is written.
"""
import json
import logging
import time
from collections import deque

from training_metrics.errors import OperationCancelled

logger = logging.getLogger(__name__)

MAX_BUFFER_SIZE = 100
FLUSH_EVENTS = ("ERROR", "WATCHDOG")

EVENTS = ("START", "SUCCESS", "ERROR", "ABORT", "WATCHDOG", "REJECTED")


class FlightRecorder:
    """
    Bounded ring buffer of event dicts.

    `sink`, when given, is called with the whole buffer every time an
    ERROR or WATCHDOG event is recorded. A failing sink is logged, never
    raised to the caller.
    """

    def __init__(self, max_entries: int = MAX_BUFFER_SIZE, sink=None, clock=time.time):
        self._buffer = deque(maxlen=max_entries)
        self._sink = sink
        self._clock = clock

    def record(self, run_id: str, phase: str, event: str, source: str | None = None,
               details: str | None = None, duration_ms: float | None = None) -> dict:
        entry = {
            "ts": self._clock(),
            "run_id": run_id,
            "phase": phase,
            "event": event,
            "source": source,
            "details": details,
            "duration_ms": duration_ms,
        }
        self._buffer.append(entry)
        if event in FLUSH_EVENTS:
            self._flush()
        return entry

    def _flush(self):
        if self._sink is None:
            return
        try:
            self._sink(self.entries())
        except Exception:
            logger.exception("flight recorder sink failed")

    def entries(self) -> list[dict]:
        return [dict(e) for e in self._buffer]

    def since(self, ts: float) -> list[dict]:
        return [dict(e) for e in self._buffer if e["ts"] >= ts]

    def clear(self):
        self._buffer.clear()

    def export_json(self) -> str:
        return json.dumps(self.entries(), indent=2, default=str)

    def __len__(self):
        return len(self._buffer)


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def assert_not_cancelled(token: CancellationToken | None, context: str):
    if token is not None and token.cancelled:
        raise OperationCancelled(f"Aborted: {context}")
