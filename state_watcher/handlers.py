# notification sinks: the output layer of the watcher.

# The scheduler only ever calls three things on a sink:
#     notify(state: bool)        -> the observed state changed
#     clear()                    -> the watcher stopped; remove what is showing
#     post_message(message: str) -> a transient notice, e.g. a failed poll
# It never looks at what they return.
#
# to add a new output target (desktop toast, Slack webhook, ...), implement
# the TransitionNotifier protocol and pass it into StateWatcher.

import logging
from datetime import datetime, timezone
from typing import Protocol

from state_watcher.settings import SettingsProvider

log = logging.getLogger(__name__)

# ─── ANSI colours (safe to strip if plain output is needed) ──────────────────

_R = "\033[0m"   # reset

_STATE_COLOR: dict[bool, str] = {
    True:  "\033[32m",   # green: open
    False: "\033[31m",   # red: closed
}
_NOTICE_COLOR = "\033[33m"   # yellow: transient notice


def _ts() -> str:
    """ISO 8601 UTC timestamp, e.g. 2026-02-21T12:39:08Z"""
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _color_state(state: bool) -> str:
    return f"{_STATE_COLOR[state]}{'OPEN' if state else 'CLOSED'}{_R}"


class TransitionNotifier(Protocol):
    def notify(self, state: bool) -> None: ...

    def clear(self) -> None: ...

    def post_message(self, message: str) -> None: ...


class ConsoleEventHandler:
    """
    Renders notifications as single log-friendly lines on stdout.

    Format:
        [2026-02-21T12:39:08Z] OPEN | Visit=http://techinc.nl/ | Sound=none | Vibrate=off

    Notification preferences are read from the provider at notify time, so a
    change to the sound or open URL applies to the next notification.
    """

    _MAX_MSG_LEN = 120

    def __init__(self, settings: SettingsProvider) -> None:
        self._settings = settings
        self._showing: bool | None = None   # state currently on display

    @property
    def showing(self) -> bool | None:
        return self._showing

    def notify(self, state: bool) -> None:
        self._showing = state
        print(self._format(state), flush=True)

    def clear(self) -> None:
        if self._showing is None:
            return
        self._showing = None
        print(f"[{_ts()}] notification cleared", flush=True)

    def post_message(self, message: str) -> None:
        print(f"[{_ts()}] {_NOTICE_COLOR}NOTICE{_R} | {self._truncate(message)}", flush=True)

    def _format(self, state: bool) -> str:
        sound = self._settings.notify_sound_uri() or "none"
        vibrate = "on" if self._settings.vibrate_on_notify() else "off"
        return (
            f"[{_ts()}] "
            f"{_color_state(state)} | "
            f"Visit={self._settings.open_notify_target_url()} | "
            f"Sound={sound} | "
            f"Vibrate={vibrate}"
        )

    def _truncate(self, text: str) -> str:
        text = " ".join(text.split())
        if len(text) <= self._MAX_MSG_LEN:
            return text
        return text[: self._MAX_MSG_LEN - 1].rstrip() + "…"
