from __future__ import annotations

import httpx

from auth.errors import AuthExpiredError, TransientError
from auth.token_store import CredentialPair

DEFAULT_REFRESH_PATH = "/auth/refresh"
_TRANSIENT_CLIENT_STATUSES = {408, 429}


def _unwrap(payload: object) -> dict:
    if not isinstance(payload, dict):
        raise ValueError("Refresh response must be a JSON object.")
    inner = payload.get("data")
    if isinstance(inner, dict) and "accessToken" not in payload:
        return inner
    return payload


async def exchange_refresh_token(
    refresh_token: str,
    *,
    url: str,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
) -> CredentialPair:
    if not refresh_token:
        raise AuthExpiredError("No refresh token available; re-auth required.")

    own_client = client is None
    http_client = client or httpx.AsyncClient()

    try:
        kwargs = {} if timeout is None else {"timeout": timeout}
        response = await http_client.post(url, json={"refreshToken": refresh_token}, **kwargs)
    except httpx.TransportError as error:
        raise TransientError(f"Token refresh request failed: {error!r}") from error
    finally:
        if own_client:
            await http_client.aclose()

    status = response.status_code
    if status >= 400:
        detail = response.text
        if status < 500 and status not in _TRANSIENT_CLIENT_STATUSES:
            raise AuthExpiredError(
                f"Refresh token rejected with status {status}; re-auth required: {detail}"
            )
        raise TransientError(f"Token refresh failed with status {status}: {detail}")

    try:
        return CredentialPair.from_payload(
            _unwrap(response.json()),
            fallback_refresh_token=refresh_token,
        )
    except ValueError as error:
        raise TransientError(f"Token refresh returned an unusable body: {error}") from error


class RefreshExchanger:
    def __init__(
        self,
        *,
        base_url: str,
        path: str = DEFAULT_REFRESH_PATH,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self.url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
        self._client = client
        self._timeout = timeout

    async def exchange(self, refresh_token: str) -> CredentialPair:
        return await exchange_refresh_token(
            refresh_token,
            url=self.url,
            client=self._client,
            timeout=self._timeout,
        )
