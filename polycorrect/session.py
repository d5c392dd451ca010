"""Session counter and per-provider cancellation flags."""
from __future__ import annotations

import threading
from typing import List

from .logger import get_logger

logger = get_logger(__name__)

SLOT_COUNT = 4


class SessionCoordinator:
    """
    Decides whether work started for a session may still reach the user.

    A session id is issued for every dispatch. Provider tasks remember the id
    they were started with and ask ``should_continue`` before producing any
    visible effect, so bumping the counter or setting a flag is enough to
    silence every task of an older session. The lock guards only the counter
    increment; flags are ``threading.Event`` objects and need no extra locking.
    """

    def __init__(self, slot_count: int = SLOT_COUNT) -> None:
        self._counter = 0
        self._lock = threading.Lock()
        self._flags: List[threading.Event] = [threading.Event() for _ in range(slot_count)]

    @property
    def current(self) -> int:
        return self._counter

    @property
    def slot_count(self) -> int:
        return len(self._flags)

    def new_session(self) -> int:
        """Increment the counter and return the new session id."""
        with self._lock:
            self._counter += 1
            return self._counter

    def reset_flags(self) -> None:
        for flag in self._flags:
            flag.clear()

    def begin_session(self) -> int:
        """
        Start a session for a new dispatch.

        Flags are raised first so the previous session stops forwarding
        immediately, then the counter moves on and the flags are cleared for
        the tasks about to be spawned.
        """
        for flag in self._flags:
            flag.set()
        session_id = self.new_session()
        self.reset_flags()
        logger.debug(f"Session {session_id} started")
        return session_id

    def is_current(self, session_id: int) -> bool:
        return session_id == self._counter

    def is_cancelled(self, provider_index: int) -> bool:
        return self._flags[provider_index].is_set()

    def should_continue(self, session_id: int, provider_index: int) -> bool:
        return self.is_current(session_id) and not self.is_cancelled(provider_index)

    def cancel_all(self) -> None:
        for flag in self._flags:
            flag.set()
        session_id = self.new_session()
        logger.debug(f"All providers cancelled (counter now {session_id})")

    def cancel_one(self, provider_index: int) -> None:
        self._flags[provider_index].set()
        logger.debug(f"Provider slot {provider_index} cancelled")
