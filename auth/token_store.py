from __future__ import annotations

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CredentialPair:
    access_token: str
    refresh_token: str

    def to_payload(self) -> dict[str, str]:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token}

    @classmethod
    def from_payload(
        cls,
        payload: dict,
        *,
        fallback_refresh_token: str | None = None,
    ) -> "CredentialPair":
        access_token = payload.get("accessToken")
        refresh_token = payload.get("refreshToken") or fallback_refresh_token

        if not isinstance(access_token, str) or not access_token:
            raise ValueError("Credential payload missing accessToken.")
        if not isinstance(refresh_token, str):
            raise ValueError("Credential payload missing refreshToken.")

        return cls(access_token=access_token, refresh_token=refresh_token)


class CredentialBackend(ABC):
    @abstractmethod
    def load(self) -> CredentialPair | None:
        raise NotImplementedError

    @abstractmethod
    def save(self, pair: CredentialPair) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self) -> None:
        raise NotImplementedError


class MemoryCredentialBackend(CredentialBackend):
    def __init__(self, pair: CredentialPair | None = None) -> None:
        self._pair = pair

    def load(self) -> CredentialPair | None:
        return self._pair

    def save(self, pair: CredentialPair) -> None:
        self._pair = pair

    def delete(self) -> None:
        self._pair = None


class FileCredentialBackend(CredentialBackend):
    def __init__(self, path: str | Path = ".tokens.json") -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> CredentialPair | None:
        if not self._path.exists():
            return None

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as error:
            raise RuntimeError(f"Token store file is invalid: {error}") from error
        if not isinstance(raw, dict):
            raise RuntimeError("Token store file is invalid; expected top-level JSON object.")
        try:
            return CredentialPair.from_payload(raw)
        except ValueError as error:
            raise RuntimeError(f"Token store file is invalid: {error}") from error

    def save(self, pair: CredentialPair) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(pair.to_payload(), handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def delete(self) -> None:
        self._path.unlink(missing_ok=True)


class CredentialStore:
    """Process-wide holder of the current credential pair.

    Every operation runs under one lock, and writes are mirrored to the
    backend inside that lock, so a reader never sees a pair that the
    backend does not hold.
    """

    def __init__(self, backend: CredentialBackend | None = None) -> None:
        self._backend = backend or MemoryCredentialBackend()
        self._lock = threading.Lock()
        self._pair = self._backend.load()

    def read(self) -> CredentialPair | None:
        with self._lock:
            return self._pair

    def replace(self, pair: CredentialPair) -> None:
        with self._lock:
            self._backend.save(pair)
            self._pair = pair

    def clear(self) -> bool:
        """Drop the pair. Returns ``True`` only if there was one to drop.

        The in-memory pair is dropped even when the backend delete raises.
        """
        with self._lock:
            if self._pair is None:
                return False
            self._pair = None
            self._backend.delete()
            return True
