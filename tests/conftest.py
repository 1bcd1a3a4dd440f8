import asyncio
from dataclasses import dataclass

import pytest

from state_watcher.models import ObservedState, PollTarget
from state_watcher.scheduler import PollScheduler
from state_watcher.settings import Settings, SettingsProvider


@dataclass
class Registration:
    delay: float
    carry: ObservedState


class FakeTimer:
    """Records wakeups instead of arming them; tests fire them by hand."""

    def __init__(self) -> None:
        self.registrations: list[Registration] = []
        self.cancels = 0
        self.pending: Registration | None = None

    def register_wakeup(self, delay_seconds: float, carry: ObservedState) -> None:
        reg = Registration(delay_seconds, carry)
        self.registrations.append(reg)
        self.pending = reg

    def cancel(self) -> None:
        self.cancels += 1
        self.pending = None

    @property
    def last(self) -> Registration:
        return self.registrations[-1]


class RecordingNotifier:
    def __init__(self) -> None:
        self.notified: list[bool] = []
        self.cleared = 0
        self.messages: list[str] = []

    def notify(self, state: bool) -> None:
        self.notified.append(state)

    def clear(self) -> None:
        self.cleared += 1

    def post_message(self, message: str) -> None:
        self.messages.append(message)


class ScriptedFetcher:
    """
    Answers get_preview() from a script. Each entry is the response text or
    an exception instance to raise. An optional hook runs inside every call.
    """

    def __init__(self, script=(), hook=None) -> None:
        self.script = list(script)
        self.hook = hook
        self.targets: list[PollTarget] = []
        self.gate: asyncio.Event | None = None

    async def get_preview(self, target: PollTarget) -> str:
        self.targets.append(target)
        if self.hook is not None:
            self.hook()
        if self.gate is not None:
            await self.gate.wait()
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    @property
    def calls(self) -> int:
        return len(self.targets)


@pytest.fixture
def settings() -> SettingsProvider:
    return SettingsProvider(settings=Settings(poll_url="http://space.example/state"))


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def fetcher() -> ScriptedFetcher:
    return ScriptedFetcher()


@pytest.fixture
def engine(settings, fetcher, notifier, timer) -> PollScheduler:
    return PollScheduler(settings=settings, fetcher=fetcher, notifier=notifier, timer=timer)
