# StateWatcher: the top-level wiring.

# Responsibilities:
#   - create the aiohttp session used by every poll cycle
#   - build the fetcher, notification sink, wakeup timer and poll engine
#   - resume from a persisted wakeup record, or start polling straight away
#   - block until stop() is called, then shut the engine down cleanly
#
# Concurrency model:
#   Everything runs on one asyncio event loop. Each poll cycle is its own
#   short-lived task; between cycles nothing runs at all, only a call_later
#   handle is pending.

import asyncio
import logging

import aiohttp

from state_watcher.config import USER_AGENT
from state_watcher.handlers import ConsoleEventHandler, TransitionNotifier
from state_watcher.http_client import PreviewClient
from state_watcher.scheduler import PollScheduler
from state_watcher.settings import SettingsProvider
from state_watcher.wakeup import LoopTimer, WakeupStore

log = logging.getLogger(__name__)


class StateWatcher:

    def __init__(
        self,
        settings: SettingsProvider,
        store: WakeupStore | None = None,
        notifier: TransitionNotifier | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._notifier = notifier or ConsoleEventHandler(settings)
        self._engine: PollScheduler | None = None
        self._stopped = asyncio.Event()

    @property
    def engine(self) -> PollScheduler | None:
        return self._engine

    async def run(self) -> None:
        """
        Poll until stop() is called.

        Raises:
            MalformedTargetError  the configured poll URL cannot be polled
        """
        if self._stopped.is_set():
            log.info("StateWatcher stopped before it started; not polling.")
            return

        loop = asyncio.get_running_loop()

        async with aiohttp.ClientSession(headers={"User-Agent": USER_AGENT}) as session:
            timer = LoopTimer(loop, self._store)
            engine = PollScheduler(
                settings=self._settings,
                fetcher=PreviewClient(session),
                notifier=self._notifier,
                timer=timer,
            )
            timer.bind(engine.start)
            self._engine = engine

            record = self._store.load() if self._store is not None else None
            if record is not None:
                engine.restore(record)
            else:
                engine.start()

            log.info(
                "StateWatcher running, polling %s every %ds. Press Ctrl+C to stop.",
                self._settings.poll_url(),
                self._settings.poll_interval_seconds(),
            )

            try:
                await self._stopped.wait()
            finally:
                engine.stop()
                await engine.wait()

    def stop(self) -> None:
        """Stop polling and let run() return."""
        if self._engine is not None:
            self._engine.stop()
        self._stopped.set()
