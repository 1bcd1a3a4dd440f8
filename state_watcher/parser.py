# turns the fetched preview text into an ObservedState.
#
# The endpoint answers with a single word on its first line. Only the open
# token is meaningful by default: anything else (including "closed", an empty
# body or an HTML error page) reads as closed. Strict mode accepts only the
# two tokens and raises for everything else so the scheduler can count it as
# a failed poll instead.

import logging

from state_watcher.config import CLOSED_TOKEN, OPEN_TOKEN
from state_watcher.errors import InterpretationError
from state_watcher.models import ObservedState

log = logging.getLogger(__name__)


def is_open(text: str) -> bool:
    return text.strip().lower() == OPEN_TOKEN


def parse_state(text: str, strict: bool = False) -> ObservedState:
    """
    Map response text to OPEN or CLOSED. Never returns UNKNOWN.

    Raises:
        InterpretationError  only when strict and the text is neither token
    """
    token = text.strip().lower()

    if token not in (OPEN_TOKEN, CLOSED_TOKEN):
        if strict:
            raise InterpretationError(text)
        log.debug("Unrecognised state text %r treated as closed", text)

    return ObservedState.from_bool(is_open(text))
