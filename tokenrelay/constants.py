from __future__ import annotations

import logging
from pathlib import Path

HTTP_METHODS = {
    "get",
    "post",
    "put",
    "patch",
    "delete",
    "options",
    "head",
}

LOGGER = logging.getLogger("tokenrelay.http")
APP_VERSION = "0.1.0"

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TOKEN_STORE_PATH = ".tokens.json"
DEFAULT_TIMEOUT = 30.0
DEFAULT_REFRESH_TIMEOUT = 10.0

ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
