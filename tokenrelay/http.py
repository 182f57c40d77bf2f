from __future__ import annotations

import logging

import httpx

from auth.coordinator import RefreshCoordinator
from auth.errors import AuthExpiredError, ResponseError, TransientError, UnauthorizedError
from auth.models import PendingRequest
from auth.token_store import CredentialStore

from .constants import LOGGER


class RequestDispatcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        store: CredentialStore,
        coordinator: RefreshCoordinator,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._coordinator = coordinator
        self._logger = logger or LOGGER

    async def send(self, request: PendingRequest) -> httpx.Response:
        credentials = self._store.read()
        if credentials is None:
            raise UnauthorizedError("No active session; sign in first.")

        response = await self._send_once(request, credentials.access_token)
        if response.status_code != 401:
            return response

        self._logger.info(
            "Access token rejected for %s %s; refreshing", request.method, request.path
        )
        try:
            fresh = await self._coordinator.ensure_fresh_credential(credentials.access_token)
        except AuthExpiredError as error:
            raise UnauthorizedError(
                "Session expired, please sign in again.",
                response=response,
                session_expired=True,
            ) from error

        replay = await self._send_once(request, fresh.access_token)
        if replay.status_code == 401:
            self._logger.warning(
                "Replayed %s %s was rejected again; giving up", request.method, request.path
            )
            raise UnauthorizedError(
                "Request rejected after refreshing the access token.",
                response=replay,
            )
        return replay

    async def _send_once(self, request: PendingRequest, access_token: str) -> httpx.Response:
        outgoing = request.build(self._client, access_token)
        try:
            return await self._client.send(outgoing)
        except httpx.TransportError as error:
            raise TransientError(
                f"Request {request.method} {request.path} failed: {error!r}"
            ) from error


def friendly_error_message(status_code: int) -> str:
    if status_code == 401:
        return "Session expired, please sign in again."
    if status_code == 403:
        return "You don't have permission to perform this action."
    if status_code == 404:
        return "The requested resource was not found."
    if status_code == 429:
        return "Too many requests. Please try again shortly."
    if status_code >= 500:
        return "The service is experiencing issues. Please try again later."
    return f"Request failed with status {status_code}."


def decode_body(response: httpx.Response) -> object:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return {"raw": response.content.decode("utf-8", errors="replace")}


def raise_for_error(response: httpx.Response) -> None:
    if response.status_code < 400:
        return

    payload = decode_body(response)
    message = friendly_error_message(response.status_code)
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        message = f"{message} {payload['message']}"

    LOGGER.warning(
        "Service error status=%s endpoint=%s",
        response.status_code,
        response.request.url,
    )
    raise ResponseError(message, status_code=response.status_code, payload=payload)


def build_event_hooks(debug_enabled: bool, logger: logging.Logger | None = None) -> dict:
    log = logger or LOGGER

    async def log_request(request: httpx.Request) -> None:
        if not debug_enabled:
            return
        log.info("Request %s %s", request.method, request.url)

    async def log_response(response: httpx.Response) -> None:
        if not debug_enabled:
            return
        log.info(
            "Response %s %s -> %s",
            response.request.method,
            response.request.url,
            response.status_code,
        )
        if response.status_code >= 400 and response.status_code != 401:
            body = await response.aread()
            text = body.decode("utf-8", errors="replace")
            if len(text) > 1000:
                text = text[:1000] + "...<truncated>"
            log.warning("Error body: %s", text)

    return {"request": [log_request], "response": [log_response]}
