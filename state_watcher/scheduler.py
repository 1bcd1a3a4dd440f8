# PollScheduler: the polling engine.

# responsibilities:
#   - run one poll cycle (fetch -> interpret -> compare) per start()
#   - notify only when the observed state changes (or on the first reading)
#   - arm exactly one wakeup after every cycle, success or failure
#   - never run two cycles at once, never arm two wakeups at once
#
# state machine:
#
#   IDLE --start()--> POLLING --cycle done--> AWAITING_WAKEUP
#                        ^                          |
#                        +------ wakeup fires ------+
#   any state --stop()--> IDLE
#
# Every start() and stop() bumps a generation counter. A cycle remembers the
# generation it was started with and re-checks it before fetching, before
# committing a new state and before arming the wakeup, so a cycle that
# outlives a stop() cannot notify or reschedule.

import asyncio
import logging
import threading
from datetime import datetime
from typing import Callable, Protocol

from state_watcher.config import STATE_LINE_COUNT
from state_watcher.errors import FetchFailure, InterpretationError, MalformedTargetError
from state_watcher.handlers import TransitionNotifier
from state_watcher.models import EngineState, ObservedState, PollTarget, WakeupRecord
from state_watcher.parser import parse_state
from state_watcher.settings import SettingsProvider
from state_watcher.wakeup import WakeupTimer

log = logging.getLogger("watcher.state")


class StateFetcher(Protocol):
    async def get_preview(self, target: PollTarget) -> str: ...


class PollScheduler:
    """
    Single-endpoint, single-flight poll engine.

    start() must be called on the thread running the event loop; from any
    other thread use loop.call_soon_threadsafe(engine.start). stop() is safe
    to call from anywhere, any number of times.
    """

    def __init__(
        self,
        settings: SettingsProvider,
        fetcher: StateFetcher,
        notifier: TransitionNotifier,
        timer: WakeupTimer,
        line_count: int = STATE_LINE_COUNT,
    ) -> None:
        self._settings = settings
        self._fetcher = fetcher
        self._notifier = notifier
        self._timer = timer
        self._line_count = line_count

        self._lock = threading.RLock()
        self._state = EngineState.IDLE
        self._observed = ObservedState.UNKNOWN
        self._generation = 0
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def observed(self) -> ObservedState:
        return self._observed

    @property
    def generation(self) -> int:
        return self._generation

    # ─── control surface ─────────────────────────────────────────────────

    def start(self, carry: ObservedState | None = None) -> asyncio.Task | None:
        """
        Begin a poll cycle now.

        From IDLE the poll URL is validated and the observed state is seeded
        from carry (UNKNOWN if not given). From AWAITING_WAKEUP the pending
        wakeup is dropped and carry, if given, replaces the in-memory state.

        Returns the cycle task, or None if a cycle is already in flight.

        Raises:
            MalformedTargetError  starting from IDLE with an unusable poll URL
        """
        loop = asyncio.get_running_loop()

        with self._lock:
            if self._state is EngineState.POLLING:
                log.debug("Poll cycle already in flight; start ignored")
                return None

            if self._state is EngineState.IDLE:
                PollTarget(self._settings.poll_url(), self._line_count)
                self._observed = carry if carry is not None else ObservedState.UNKNOWN
                log.info("State engine starting (previous state %s)", self._observed.label)
            else:
                self._timer.cancel()
                if carry is not None:
                    self._observed = carry

            self._generation += 1
            self._state = EngineState.POLLING
            self._loop = loop
            self._task = loop.create_task(
                self._run_cycle(self._generation),
                name=f"poll-cycle-{self._generation}",
            )
            return self._task

    def stop(self) -> None:
        """Go IDLE: abandon the running cycle, drop the wakeup, clear the notification."""
        with self._lock:
            if self._state is EngineState.IDLE:
                return

            self._generation += 1
            self._state = EngineState.IDLE
            self._observed = ObservedState.UNKNOWN
            task, self._task = self._task, None
            self._timer.cancel()
            self._call_notifier(self._notifier.clear)
            log.info("State engine stopped")

        if task is not None and not task.done():
            self._on_loop(task.cancel)

    def restore(self, record: WakeupRecord, now: datetime | None = None) -> asyncio.Task | None:
        """
        Re-enter after a process restart from a persisted wakeup record.

        An overdue record polls immediately with the carried state; otherwise
        the remaining delay is re-armed and the engine waits for it.
        """
        if record.is_due(now):
            log.info("Persisted wakeup is overdue; polling now")
            return self.start(record.carry)

        with self._lock:
            if self._state is not EngineState.IDLE:
                log.debug("Engine already %s; persisted wakeup ignored", self._state.value)
                return None

            PollTarget(self._settings.poll_url(), self._line_count)
            remaining = record.remaining(now)
            self._generation += 1
            self._observed = record.carry
            self._state = EngineState.AWAITING_WAKEUP
            self._timer.register_wakeup(remaining, record.carry)
            log.info(
                "Resuming: next poll in %.0fs (previous state %s)",
                remaining, record.carry.label,
            )
        return None

    async def wait(self) -> None:
        """Wait for the in-flight cycle, if any, to finish."""
        task = self._task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    # ─── one cycle ───────────────────────────────────────────────────────

    async def _run_cycle(self, generation: int) -> None:
        if not self._is_current(generation):
            log.debug("Engine stopped before the fetch; cycle %d aborted", generation)
            return

        new_state: ObservedState | None = None
        try:
            target = PollTarget(self._settings.poll_url(), self._line_count)
            log.debug("Checking state with %s", target.url)
            text = await self._fetcher.get_preview(target)
            new_state = parse_state(text, strict=self._settings.strict_state())

        except (FetchFailure, InterpretationError, MalformedTargetError) as exc:
            log.warning("Failed to read current state: %s", exc)
            self._call_notifier(self._notifier.post_message, f"State check failed: {exc}")

        except asyncio.CancelledError:
            log.debug("Poll cycle %d cancelled", generation)
            raise

        except Exception as exc:
            log.exception("Unexpected error in poll cycle %d: %s", generation, exc)
            self._call_notifier(self._notifier.post_message, f"State check failed: {exc}")

        if new_state is not None:
            self._commit(generation, new_state)
        self._arm_next(generation)

    def _commit(self, generation: int, new_state: ObservedState) -> None:
        with self._lock:
            if generation != self._generation:
                return

            previous = self._observed
            log.debug("Previous state is %s, current state is %s", previous.label, new_state.label)
            self._observed = new_state

            if not previous.is_known or previous is not new_state:
                log.info("State changed: %s → %s", previous.label, new_state.label)
                self._call_notifier(self._notifier.notify, new_state.is_open)

    def _arm_next(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                log.debug("Engine stopped during cycle %d; not rescheduling", generation)
                return

            interval = self._settings.poll_interval_seconds()
            self._state = EngineState.AWAITING_WAKEUP
            self._task = None
            self._timer.register_wakeup(interval, self._observed)
            log.debug("Next poll in %ds", interval)

    # ─── helpers ─────────────────────────────────────────────────────────

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation and self._state is EngineState.POLLING

    def _call_notifier(self, fn: Callable[..., object], *args: object) -> None:
        # a broken sink must not break the poll loop
        try:
            fn(*args)
        except Exception:
            log.exception("Notifier %s raised", getattr(fn, "__name__", fn))

    def _on_loop(self, fn: Callable[[], object]) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if self._loop is None or running is self._loop:
            fn()
        else:
            self._loop.call_soon_threadsafe(fn)
