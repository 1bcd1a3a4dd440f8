# User preferences for the watcher.
#
# Settings is an immutable, typed snapshot. SettingsProvider holds the current
# snapshot and swaps it whole on every change, so a poll cycle reading
# poll_interval_seconds() while the user edits preferences always sees one
# consistent value: whichever snapshot was current at the moment of the read.
#
# Edits are staged (set) and only written to disk on commit. Staged values are
# already visible to readers.

import dataclasses
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from state_watcher.config import (
    DEFAULT_NOTIFY_SOUND_URI,
    DEFAULT_OPEN_URL,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_POLL_URL,
    DEFAULT_START_ON_BOOT,
    DEFAULT_STRICT_STATE,
    DEFAULT_VIBRATE_ON_NOTIFY,
)
from state_watcher.models import validate_url
from state_watcher.storage import read_json_object, write_json_atomic

log = logging.getLogger(__name__)


def _typed(name: str, value: Any, kind: type, default: Any) -> Any:
    # no coercion: bool("false") is True
    if type(value) is kind:
        return value
    log.error("Setting %s=%r is not a %s. Reverting to %r.", name, value, kind.__name__, default)
    return default


@dataclass(frozen=True)
class Settings:
    poll_url: str = DEFAULT_POLL_URL
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    open_url: str = DEFAULT_OPEN_URL
    start_on_boot: bool = DEFAULT_START_ON_BOOT
    vibrate_on_notify: bool = DEFAULT_VIBRATE_ON_NOTIFY
    notify_sound_uri: str = DEFAULT_NOTIFY_SOUND_URI
    strict_state: bool = DEFAULT_STRICT_STATE

    def validated(self) -> "Settings":
        """
        Return a copy that is safe to hand to the scheduler.

        Raises MalformedTargetError for a bad poll or open URL. An interval
        below one second, or any other field of the wrong type, is not an
        error: it reverts to its default.
        """
        validate_url(self.poll_url)
        validate_url(self.open_url)

        interval = self.poll_interval_seconds
        if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
            log.error(
                "Poll interval %r invalid, must be at least one second. Reverting to %ds.",
                interval, DEFAULT_POLL_INTERVAL_SECONDS,
            )
            interval = DEFAULT_POLL_INTERVAL_SECONDS

        return dataclasses.replace(
            self,
            poll_url=self.poll_url.strip(),
            open_url=self.open_url.strip(),
            poll_interval_seconds=interval,
            start_on_boot=_typed("start_on_boot", self.start_on_boot, bool, DEFAULT_START_ON_BOOT),
            vibrate_on_notify=_typed("vibrate_on_notify", self.vibrate_on_notify, bool, DEFAULT_VIBRATE_ON_NOTIFY),
            notify_sound_uri=_typed("notify_sound_uri", self.notify_sound_uri, str, DEFAULT_NOTIFY_SOUND_URI).strip(),
            strict_state=_typed("strict_state", self.strict_state, bool, DEFAULT_STRICT_STATE),
        )

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            log.warning("Ignoring unknown setting(s): %s", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in data.items() if k in known})


class SettingsProvider:
    """
    Read side for the scheduler and notifier; edit side for whatever UI or
    CLI changes preferences. Reads never block.
    """

    def __init__(self, path: str | Path | None = None, settings: Settings | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._saved: Settings = (settings or Settings()).validated()
        self._current: Settings = self._saved

    # ─── read side ───────────────────────────────────────────────────────

    @property
    def snapshot(self) -> Settings:
        return self._current

    def poll_url(self) -> str:
        return self._current.poll_url

    def poll_interval_seconds(self) -> int:
        return self._current.poll_interval_seconds

    def open_notify_target_url(self) -> str:
        return self._current.open_url

    def vibrate_on_notify(self) -> bool:
        return self._current.vibrate_on_notify

    def notify_sound_uri(self) -> str:
        return self._current.notify_sound_uri

    def start_on_boot(self) -> bool:
        return self._current.start_on_boot

    def strict_state(self) -> bool:
        return self._current.strict_state

    # ─── edit side ───────────────────────────────────────────────────────

    def set(self, **changes: Any) -> Settings:
        """Stage changes. Invalid URLs raise and leave the current snapshot untouched."""
        with self._lock:
            staged = dataclasses.replace(self._current, **changes).validated()
            self._current = staged
        return staged

    def is_dirty(self) -> bool:
        return self._current != self._saved

    def commit(self) -> None:
        """Persist staged changes. Does nothing when nothing changed."""
        with self._lock:
            if self._current == self._saved:
                return
            self._write(self._current)
            self._saved = self._current

    def reset(self) -> None:
        """Drop staged changes and revert everything, on disk too, to defaults."""
        with self._lock:
            self._current = self._saved = Settings().validated()
            if self._path is not None and self._path.exists():
                self._path.unlink()
        log.info("Settings reset to defaults")

    # ─── persistence ─────────────────────────────────────────────────────

    def load(self) -> Settings:
        """
        Load from disk, replacing both saved and staged values.

        A missing file means defaults. An unreadable or invalid file is logged
        and also means defaults: a broken preferences file must not keep the
        watcher from starting with sane values.
        """
        loaded = Settings()
        if self._path is not None:
            try:
                data = read_json_object(self._path)
                if data is not None:
                    loaded = Settings.from_dict(data)
            except (OSError, ValueError, TypeError):
                log.exception("Failed to load settings from %s; using defaults.", self._path)
                loaded = Settings()

        try:
            loaded = loaded.validated()
        except ValueError:
            log.exception("Settings in %s are invalid; using defaults.", self._path)
            loaded = Settings().validated()

        with self._lock:
            self._saved = self._current = loaded
        return loaded

    def save(self) -> None:
        with self._lock:
            self._write(self._current)
            self._saved = self._current

    def _write(self, settings: Settings) -> None:
        if self._path is None:
            return
        write_json_atomic(self._path, settings.to_dict())
        log.debug("Settings written to %s", self._path)
