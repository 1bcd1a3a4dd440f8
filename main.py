import asyncio
import logging
import platform
import signal
import sys

from state_watcher.config import LOG_LEVEL, SETTINGS_FILE, WAKEUP_FILE
from state_watcher.errors import MalformedTargetError
from state_watcher.orchestrator import StateWatcher
from state_watcher.settings import SettingsProvider
from state_watcher.wakeup import WakeupStore

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)],
)
log = logging.getLogger("main")


async def main() -> None:
    settings = SettingsProvider(SETTINGS_FILE)
    settings.load()

    watcher = StateWatcher(settings, WakeupStore(WAKEUP_FILE))
    loop    = asyncio.get_running_loop()

    if platform.system() != "Windows":

        def _shutdown(sig: signal.Signals) -> None:
            log.info("Received %s, shutting down gracefully...", sig.name)
            watcher.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _shutdown, sig)

        await watcher.run()

    else:
        try:
            await watcher.run()
        except (asyncio.CancelledError, KeyboardInterrupt):
            log.info("Shutting down...")
            watcher.stop()

    log.info("Watcher stopped.")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except MalformedTargetError as exc:
        log.error("Cannot start: %s", exc)
        sys.exit(2)
