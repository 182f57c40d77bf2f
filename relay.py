from __future__ import annotations

import argparse
import asyncio
import json
import sys

import httpx

from auth.errors import ResponseError, SessionError, TransientError, UnauthorizedError
from auth.token_store import FileCredentialBackend
from tokenrelay.client import SessionClient
from tokenrelay.constants import APP_VERSION, HTTP_METHODS, LOGGER
from tokenrelay.env import load_env, setup_logging, validate_env
from tokenrelay.http import build_event_hooks


def create_client() -> SessionClient:
    load_env()
    debug_enabled = setup_logging()
    settings = validate_env()

    http_client = httpx.AsyncClient(
        base_url=settings.base_url,
        timeout=settings.timeout,
        event_hooks=build_event_hooks(debug_enabled, LOGGER),
    )
    client = SessionClient(
        base_url=settings.base_url,
        backend=FileCredentialBackend(settings.token_store_path),
        refresh_path=settings.refresh_path,
        timeout=settings.timeout,
        refresh_timeout=settings.refresh_timeout,
        http_client=http_client,
        logger=LOGGER,
    )
    client.on_session_terminated(
        lambda reason: print(
            f"Session expired, please sign in again ({reason}).", file=sys.stderr
        )
    )
    return client


def _parse_param(item: str) -> tuple[str, str]:
    key, sep, value = item.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"invalid parameter {item!r}; expected KEY=VALUE")
    return key, value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tokenrelay",
        description="Send an authenticated request using the stored session.",
    )
    parser.add_argument("method", type=str.lower, choices=sorted(HTTP_METHODS))
    parser.add_argument("path")
    parser.add_argument(
        "--param", action="append", default=[], type=_parse_param, metavar="KEY=VALUE"
    )
    parser.add_argument(
        "--json", dest="body", type=json.loads, default=None, help="JSON request body."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    return parser


async def run(args: argparse.Namespace, client: SessionClient) -> int:
    try:
        payload = await client.request_json(
            args.method.upper(),
            args.path,
            params=dict(args.param) or None,
            json=args.body,
        )
    except UnauthorizedError as error:
        print(str(error), file=sys.stderr)
        return 1
    except TransientError as error:
        print(f"Temporary failure, try again: {error}", file=sys.stderr)
        return 1
    except ResponseError as error:
        print(str(error), file=sys.stderr)
        if error.payload is not None:
            print(json.dumps(error.payload, indent=2), file=sys.stderr)
        return 1
    except SessionError as error:
        print(str(error), file=sys.stderr)
        return 1
    finally:
        await client.aclose()

    if payload is not None:
        print(json.dumps(payload, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    client = create_client()
    return asyncio.run(run(args, client))


if __name__ == "__main__":
    sys.exit(main())
