# exception taxonomy for the watcher.
#
#   MalformedTargetError  -> fatal for start(); the engine never enters Polling
#   FetchFailure          -> one failed cycle; caught at the cycle boundary
#   InterpretationError   -> strict mode only; handled like FetchFailure


class StateWatcherError(Exception):
    """Base class for every error raised by state_watcher."""


class MalformedTargetError(StateWatcherError, ValueError):
    """The poll URL (or line count) cannot be used as a poll target."""


class FetchFailure(StateWatcherError):
    """A single fetch attempt failed: connection, timeout, HTTP status or body."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class InterpretationError(StateWatcherError):
    """Response text is neither the open nor the closed token (strict mode)."""

    def __init__(self, text: str) -> None:
        super().__init__(f"unrecognised state {text!r}")
        self.text = text
