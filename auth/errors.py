from __future__ import annotations

import httpx


class SessionError(RuntimeError):
    status_code: int | None = None


class UnauthorizedError(SessionError):
    def __init__(
        self,
        message: str = "Unauthorized request.",
        *,
        response: httpx.Response | None = None,
        session_expired: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = 401
        self.response = response
        self.session_expired = session_expired


class AuthExpiredError(SessionError):
    def __init__(self, message: str = "Refresh token expired or revoked; re-auth required.") -> None:
        super().__init__(message)
        self.status_code = 401


class TransientError(SessionError):
    """Network, timeout or upstream failure. Safe to retry; credentials are kept."""


class ResponseError(SessionError):
    def __init__(self, message: str, *, status_code: int, payload: object = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload
