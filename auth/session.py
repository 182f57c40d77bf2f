from __future__ import annotations

import logging
from typing import Callable

from auth.token_store import CredentialStore

TerminationListener = Callable[[str], None]

LOGGER = logging.getLogger("tokenrelay.auth")


class SessionTerminator:
    def __init__(self, store: CredentialStore, *, logger: logging.Logger | None = None) -> None:
        self._store = store
        self._listeners: list[TerminationListener] = []
        self._logger = logger or LOGGER

    def add_listener(self, listener: TerminationListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: TerminationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def terminate(self, reason: str = "session expired") -> bool:
        # Only the call that actually removed the pair notifies.
        try:
            removed = self._store.clear()
        except Exception:
            # The in-memory pair is gone; only the persisted copy survived.
            self._logger.exception("Could not delete persisted credentials")
            removed = True
        if not removed:
            self._logger.debug("Session already terminated (%s)", reason)
            return False

        self._logger.warning("Session terminated: %s", reason)
        for listener in list(self._listeners):
            try:
                listener(reason)
            except Exception:
                self._logger.exception("Session termination listener failed")
        return True
