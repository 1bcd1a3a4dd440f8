# Wakeup timer: "run the engine again in N seconds, carrying this state".
#
# The scheduler never sleeps between polls. At the end of every cycle it
# registers one wakeup and returns; when the wakeup fires the timer calls the
# bound entry point (PollScheduler.start) with the carried state.
#
# The pending wakeup is also written to disk as a WakeupRecord. A process that
# is killed and started again reads the record back and recomputes how long
# is left, instead of assuming the old in-memory timer is still around.

import asyncio
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Protocol

from state_watcher.models import ObservedState, WakeupRecord
from state_watcher.storage import read_json_object, write_json_atomic

log = logging.getLogger(__name__)

Entry = Callable[[ObservedState], object]


class WakeupTimer(Protocol):
    def register_wakeup(self, delay_seconds: float, carry: ObservedState) -> None: ...

    def cancel(self) -> None: ...


class WakeupStore:
    """JSON file holding at most one WakeupRecord."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, record: WakeupRecord) -> None:
        write_json_atomic(self._path, record.to_dict())

    def load(self) -> WakeupRecord | None:
        try:
            data = read_json_object(self._path)
        except (OSError, ValueError):
            log.exception("Failed to read wakeup record %s; ignoring it.", self._path)
            return None
        if data is None:
            return None

        record = WakeupRecord.from_dict(data)
        if record is None:
            log.warning("Wakeup record %s has no usable due_at; ignoring it.", self._path)
        return record

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass


class LoopTimer:
    """
    WakeupTimer backed by loop.call_later.

    Registering replaces whatever wakeup was pending, so there is never more
    than one. Each registration gets a token; a handle that fires after being
    superseded or cancelled sees a stale token and does nothing.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        store: WakeupStore | None = None,
    ) -> None:
        self._loop = loop
        self._store = store
        self._entry: Entry | None = None
        self._lock = threading.Lock()
        self._token = 0
        self._handle: asyncio.TimerHandle | None = None
        self._pending: WakeupRecord | None = None

    def bind(self, entry: Entry) -> None:
        self._entry = entry

    @property
    def pending(self) -> WakeupRecord | None:
        return self._pending

    def register_wakeup(self, delay_seconds: float, carry: ObservedState) -> None:
        if self._entry is None:
            raise RuntimeError("LoopTimer.register_wakeup() called before bind()")

        delay = max(0.0, float(delay_seconds))
        record = WakeupRecord(
            due_at=datetime.now(tz=timezone.utc) + timedelta(seconds=delay),
            carry=carry,
        )
        with self._lock:
            self._token += 1
            token = self._token
            old, self._handle = self._handle, None
            self._pending = record

        if self._store is not None:
            try:
                self._store.save(record)
            except OSError:
                log.exception("Could not persist wakeup record to %s", self._store.path)

        self._on_loop(lambda: self._arm(token, delay, old))
        log.debug("Wakeup armed in %.0fs carrying %s", delay, carry.label)

    def cancel(self) -> None:
        with self._lock:
            self._token += 1
            old, self._handle = self._handle, None
            had_pending = self._pending is not None
            self._pending = None

        if self._store is not None:
            self._store.clear()
        if old is not None:
            self._on_loop(old.cancel)
        if had_pending:
            log.debug("Pending wakeup cancelled")

    # ─── internal ────────────────────────────────────────────────────────

    def _arm(self, token: int, delay: float, old: asyncio.TimerHandle | None) -> None:
        if old is not None:
            old.cancel()
        handle = self._loop.call_later(delay, self._fire, token)
        with self._lock:
            if token != self._token:
                handle.cancel()   # cancelled or replaced before we got here
                return
            self._handle = handle

    def _fire(self, token: int) -> None:
        with self._lock:
            if token != self._token or self._pending is None:
                return
            carry = self._pending.carry
            self._handle = None
            self._pending = None

        if self._store is not None:
            self._store.clear()

        log.debug("Wakeup fired carrying %s", carry.label)
        try:
            self._entry(carry)
        except Exception:
            log.exception("Wakeup entry point raised; no further wakeup is pending")

    def _on_loop(self, fn: Callable[[], object]) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            fn()
        else:
            self._loop.call_soon_threadsafe(fn)
