from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from auth.coordinator import RefreshCoordinator
from auth.models import PendingRequest
from auth.refresh import DEFAULT_REFRESH_PATH, RefreshExchanger
from auth.session import SessionTerminator, TerminationListener
from auth.token_store import CredentialBackend, CredentialPair, CredentialStore

from .constants import DEFAULT_BASE_URL, DEFAULT_REFRESH_TIMEOUT, DEFAULT_TIMEOUT, LOGGER
from .http import RequestDispatcher, decode_body, raise_for_error


@dataclass
class Collection:
    items: list = field(default_factory=list)
    meta: dict = field(default_factory=dict)


def unwrap_collection(payload: object) -> Collection:
    """Normalise the list envelopes the service returns.

    Accepted shapes: ``{"data": {"data": [...], "meta": {...}}}``,
    ``{"data": [...], "meta": {...}}`` and a bare list.
    """
    if isinstance(payload, list):
        return Collection(items=payload)
    if not isinstance(payload, dict):
        return Collection()

    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        meta = data.get("meta")
        return Collection(items=data["data"], meta=meta if isinstance(meta, dict) else {})
    if isinstance(data, list):
        meta = payload.get("meta")
        return Collection(items=data, meta=meta if isinstance(meta, dict) else {})

    LOGGER.warning("Unexpected collection payload shape: %s", type(data).__name__)
    return Collection()


class SessionClient:
    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        backend: CredentialBackend | None = None,
        refresh_path: str = DEFAULT_REFRESH_PATH,
        timeout: float = DEFAULT_TIMEOUT,
        refresh_timeout: float = DEFAULT_REFRESH_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or LOGGER
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.store = CredentialStore(backend)
        self.terminator = SessionTerminator(self.store, logger=self._logger)
        self.exchanger = RefreshExchanger(
            base_url=base_url,
            path=refresh_path,
            client=self._http,
            timeout=refresh_timeout,
        )
        self.coordinator = RefreshCoordinator(
            self.store,
            self.exchanger,
            self.terminator,
            timeout=refresh_timeout,
            logger=self._logger,
        )
        self.dispatcher = RequestDispatcher(
            self._http,
            self.store,
            self.coordinator,
            logger=self._logger,
        )

    # -- session -----------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self.store.read() is not None

    def login(self, credentials: CredentialPair) -> None:
        self.store.replace(credentials)

    def logout(self) -> bool:
        return self.terminator.terminate("signed out")

    def on_session_terminated(self, listener: TerminationListener) -> None:
        self.terminator.add_listener(listener)

    # -- requests ----------------------------------------------------------

    async def send(self, request: PendingRequest) -> httpx.Response:
        return await self.dispatcher.send(request)

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: bytes | None = None,
    ) -> httpx.Response:
        return await self.send(
            PendingRequest(
                method=method,
                path=path,
                headers=dict(headers or {}),
                params=params,
                json=json,
                content=content,
            )
        )

    async def get(self, path: str, **kwargs) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> httpx.Response:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs) -> httpx.Response:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> httpx.Response:
        return await self.request("DELETE", path, **kwargs)

    async def request_json(self, method: str, path: str, **kwargs) -> Any:
        response = await self.request(method, path, **kwargs)
        raise_for_error(response)
        return decode_body(response)

    async def fetch_collection(self, path: str, query: dict[str, Any] | None = None) -> Collection:
        payload = await self.request_json("GET", path, params=query)
        return unwrap_collection(payload)

    # -- lifecycle ---------------------------------------------------------

    async def aclose(self) -> None:
        await self.coordinator.aclose()
        await self._http.aclose()

    async def __aenter__(self) -> "SessionClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()
