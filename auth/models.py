from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx


@dataclass
class PendingRequest:
    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] | None = None
    json: Any = None
    content: bytes | None = None

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = {
            key: value for key, value in self.headers.items() if key.lower() != "authorization"
        }

    def build(self, client: httpx.AsyncClient, access_token: str) -> httpx.Request:
        headers = {**self.headers, "Authorization": f"Bearer {access_token}"}
        return client.build_request(
            self.method,
            self.path,
            headers=headers,
            params=self.params,
            json=self.json,
            content=self.content,
        )
