from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from auth.refresh import DEFAULT_REFRESH_PATH

from .constants import (
    DEFAULT_BASE_URL,
    DEFAULT_REFRESH_TIMEOUT,
    DEFAULT_TIMEOUT,
    DEFAULT_TOKEN_STORE_PATH,
    ENV_FILE,
    LOGGER,
)

_URL_ADAPTER = TypeAdapter(AnyHttpUrl)


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a number.")
    if value <= 0:
        raise RuntimeError(f"{key} must be greater than zero.")
    return value


def load_env(path: str | Path | None = None) -> None:
    env_path = Path(path) if path is not None else ENV_FILE
    if not env_path.exists():
        return
    load_dotenv(env_path, override=True)


@dataclass
class Settings:
    base_url: str
    timeout: float
    refresh_timeout: float
    refresh_path: str
    token_store_path: Path
    debug: bool


def validate_env() -> Settings:
    base_url = os.getenv("TOKENRELAY_BASE_URL", DEFAULT_BASE_URL).strip()
    try:
        _URL_ADAPTER.validate_python(base_url)
    except ValidationError:
        raise RuntimeError(
            "TOKENRELAY_BASE_URL must be a valid http(s) URL (for example: "
            "http://localhost:8000)."
        )

    refresh_path = os.getenv("TOKENRELAY_REFRESH_PATH", DEFAULT_REFRESH_PATH).strip()
    if not refresh_path.startswith("/"):
        raise RuntimeError("TOKENRELAY_REFRESH_PATH must start with '/'.")

    return Settings(
        base_url=base_url.rstrip("/"),
        timeout=_get_env_float("TOKENRELAY_TIMEOUT", DEFAULT_TIMEOUT),
        refresh_timeout=_get_env_float("TOKENRELAY_REFRESH_TIMEOUT", DEFAULT_REFRESH_TIMEOUT),
        refresh_path=refresh_path,
        token_store_path=Path(
            os.getenv("TOKENRELAY_TOKEN_STORE_PATH", DEFAULT_TOKEN_STORE_PATH)
        ),
        debug=is_truthy(os.getenv("TOKENRELAY_DEBUG", "1")),
    )


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("TOKENRELAY_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
