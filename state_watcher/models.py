import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from yarl import URL

from state_watcher.errors import MalformedTargetError

log = logging.getLogger(__name__)

_SCHEMES = ("http", "https")


def parse_dt(value: str | None) -> datetime | None:
    """
    Parse an ISO 8601 timestamp string into an aware UTC datetime.

    Wakeup records are written as '2026-02-21T12:39:08.250000Z'. Naive values are
    taken to be UTC so a hand-edited record still compares correctly.
    """
    if not value:
        return None

    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        log.warning("Could not parse datetime string: %r", value)
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_dt(dt: datetime | None) -> str:
    """ISO 8601 UTC with microseconds and a Z suffix, the format parse_dt reads back."""
    if dt is None:
        return ""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def validate_url(url: str) -> str:
    """Return url unchanged if it is an absolute http(s) URL, else raise."""
    if not isinstance(url, str) or not url.strip():
        raise MalformedTargetError(f"poll URL is empty: {url!r}")
    try:
        parsed = URL(url.strip())
    except (ValueError, TypeError) as exc:
        raise MalformedTargetError(f"invalid URL {url!r}: {exc}") from exc

    if not parsed.is_absolute() or parsed.scheme not in _SCHEMES or not parsed.host:
        raise MalformedTargetError(f"not an absolute http(s) URL: {url!r}")
    return url.strip()


class ObservedState(enum.Enum):
    """What the last successful poll said. UNKNOWN until one has succeeded."""

    UNKNOWN = "unknown"
    OPEN = "open"
    CLOSED = "closed"

    @classmethod
    def from_bool(cls, is_open: bool) -> "ObservedState":
        return cls.OPEN if is_open else cls.CLOSED

    @classmethod
    def from_label(cls, label: str | None) -> "ObservedState":
        # anything unreadable in a carried record degrades to UNKNOWN
        try:
            return cls((label or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_known(self) -> bool:
        return self is not ObservedState.UNKNOWN

    @property
    def is_open(self) -> bool:
        return self is ObservedState.OPEN

    @property
    def label(self) -> str:
        return self.value


class EngineState(enum.Enum):
    IDLE = "idle"                        # constructed, or after stop()
    POLLING = "polling"                  # a cycle task is in flight
    AWAITING_WAKEUP = "awaiting_wakeup"  # cycle done, one wakeup armed


@dataclass(frozen=True)
class PollTarget:
    """Where to poll and how many leading lines of the body to read."""
    url: str
    line_count: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "url", validate_url(self.url))
        if isinstance(self.line_count, bool) or not isinstance(self.line_count, int) or self.line_count < 1:
            raise MalformedTargetError(f"line_count must be a positive integer, got {self.line_count!r}")


@dataclass(frozen=True)
class WakeupRecord:
    """
    The single pending "poll again at due_at" registration.

    Stored on disk so a restarted process can recompute the remaining delay
    instead of assuming the in-memory timer survived.
    """
    due_at: datetime
    carry: ObservedState

    def remaining(self, now: datetime | None = None) -> float:
        now = now or datetime.now(tz=timezone.utc)
        return max(0.0, (self.due_at - now).total_seconds())

    def is_due(self, now: datetime | None = None) -> bool:
        return self.remaining(now) <= 0

    def to_dict(self) -> dict:
        return {"due_at": format_dt(self.due_at), "carry": self.carry.label}

    @classmethod
    def from_dict(cls, data: dict) -> "WakeupRecord | None":
        due_at = parse_dt(data.get("due_at"))
        if due_at is None:
            return None
        return cls(due_at=due_at, carry=ObservedState.from_label(data.get("carry")))
