from __future__ import annotations

import asyncio
import enum
import logging
from typing import Protocol

from auth.errors import AuthExpiredError, TransientError
from auth.session import SessionTerminator
from auth.token_store import CredentialPair, CredentialStore

LOGGER = logging.getLogger("tokenrelay.auth")


class RefreshState(enum.Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"


class Exchanger(Protocol):
    async def exchange(self, refresh_token: str) -> CredentialPair: ...


class RefreshCoordinator:
    """Single-flight token refresh.

    State is only read and written between ``await`` points, so the event
    loop serializes transitions; nothing is held across the network call.
    """

    def __init__(
        self,
        store: CredentialStore,
        exchanger: Exchanger,
        terminator: SessionTerminator,
        *,
        timeout: float | None = 10.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._exchanger = exchanger
        self._terminator = terminator
        self._timeout = timeout
        self._logger = logger or LOGGER

        self._state = RefreshState.IDLE
        self._task: asyncio.Task | None = None
        self._waiters: list[asyncio.Future] = []
        self.exchange_count = 0

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def waiter_count(self) -> int:
        return len(self._waiters)

    async def ensure_fresh_credential(
        self,
        stale_access_token: str | None = None,
    ) -> CredentialPair:
        if self._state is RefreshState.IDLE:
            current = self._store.read()
            if current is None:
                raise AuthExpiredError("No active session; re-auth required.")
            if stale_access_token is not None and current.access_token != stale_access_token:
                # A refresh already completed after the caller's request went out.
                return current
            if not current.refresh_token:
                self._terminator.terminate("no refresh token available")
                raise AuthExpiredError("No refresh token available; re-auth required.")
            self._start(current.refresh_token)

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            return await waiter
        except asyncio.CancelledError:
            if waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    async def aclose(self) -> None:
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._state is RefreshState.IN_FLIGHT:
            self._finish(error=TransientError("Refresh coordinator closed."))

    def _start(self, refresh_token: str) -> None:
        self._state = RefreshState.IN_FLIGHT
        self.exchange_count += 1
        self._task = asyncio.get_running_loop().create_task(self._run_exchange(refresh_token))

    async def _run_exchange(self, refresh_token: str) -> None:
        self._logger.info("Refreshing access token (exchange #%s)", self.exchange_count)
        try:
            pair = await asyncio.wait_for(self._exchanger.exchange(refresh_token), self._timeout)
        except asyncio.TimeoutError:
            self._logger.warning("Token refresh timed out after %ss", self._timeout)
            self._finish(error=TransientError(f"Token refresh timed out after {self._timeout}s."))
            return
        except AuthExpiredError as error:
            try:
                self._terminator.terminate(str(error))
            finally:
                self._finish(error=error)
            return
        except asyncio.CancelledError:
            self._finish(error=TransientError("Token refresh was cancelled."))
            raise
        except Exception as error:
            self._logger.warning("Token refresh failed: %s", error)
            self._finish(error=error)
            return

        try:
            self._store.replace(pair)
        except Exception as error:
            self._logger.exception("Could not persist refreshed credentials")
            self._finish(error=TransientError(f"Could not persist refreshed credentials: {error}"))
            return

        self._logger.info("Access token refreshed; resuming %s waiter(s)", len(self._waiters))
        self._finish(result=pair)

    def _finish(
        self,
        *,
        result: CredentialPair | None = None,
        error: BaseException | None = None,
    ) -> None:
        waiters, self._waiters = self._waiters, []
        self._state = RefreshState.IDLE
        self._task = None
        for waiter in waiters:
            if waiter.done():
                continue
            if error is None:
                waiter.set_result(result)
            else:
                waiter.set_exception(error)
