import os

# defaults for the user preferences (see settings.py)
DEFAULT_POLL_INTERVAL_SECONDS: int = 3 * 60
DEFAULT_POLL_URL: str = "http://techinc.nl/space/spacestate"   # first line is "open" or "closed"
DEFAULT_OPEN_URL: str = "http://techinc.nl/"                   # page offered by the notification
DEFAULT_START_ON_BOOT: bool = True
DEFAULT_VIBRATE_ON_NOTIFY: bool = False
DEFAULT_NOTIFY_SOUND_URI: str = ""                             # no sound
DEFAULT_STRICT_STATE: bool = False

# only the first line of the response carries the state
STATE_LINE_COUNT: int = 1
OPEN_TOKEN: str = "open"
CLOSED_TOKEN: str = "closed"

# unset -> whatever the transport allows; a dead server can stall one cycle
_timeout = os.getenv("STATE_WATCHER_TIMEOUT", "").strip()
REQUEST_TIMEOUT_SECONDS: float | None = float(_timeout) if _timeout else None

USER_AGENT: str = "StateWatcher/1.0 (space-state)"

SETTINGS_FILE: str = os.getenv("STATE_WATCHER_SETTINGS", "state_watcher.json")
WAKEUP_FILE: str = os.getenv("STATE_WATCHER_WAKEUP", ".state_watcher_wakeup.json")
LOG_LEVEL: str = os.getenv("STATE_WATCHER_LOG_LEVEL", "INFO").upper()
