import logging

import httpx
import pytest

from auth.errors import ResponseError
from tokenrelay.http import (
    build_event_hooks,
    decode_body,
    friendly_error_message,
    raise_for_error,
)


def _response(status_code: int, **kwargs) -> httpx.Response:
    return httpx.Response(
        status_code,
        request=httpx.Request("GET", "http://localhost:8000/movies"),
        **kwargs,
    )


def test_403_message() -> None:
    with pytest.raises(ResponseError) as error:
        raise_for_error(_response(403, json={"detail": "forbidden"}))

    assert str(error.value) == "You don't have permission to perform this action."
    assert error.value.status_code == 403
    assert error.value.payload == {"detail": "forbidden"}


def test_404_message_includes_service_message() -> None:
    with pytest.raises(ResponseError) as error:
        raise_for_error(_response(404, json={"message": "Movie not found"}))

    assert str(error.value) == "The requested resource was not found. Movie not found"


def test_500_message_with_text_body() -> None:
    with pytest.raises(ResponseError) as error:
        raise_for_error(_response(500, text="upstream unavailable"))

    assert str(error.value) == "The service is experiencing issues. Please try again later."
    assert error.value.payload == {"raw": "upstream unavailable"}


def test_unmapped_status_message() -> None:
    assert friendly_error_message(422) == "Request failed with status 422."


def test_200_is_not_an_error() -> None:
    response = _response(200, json={"ok": True})

    raise_for_error(response)

    assert decode_body(response) == {"ok": True}


def test_empty_body_decodes_to_none() -> None:
    assert decode_body(_response(204)) is None


@pytest.mark.asyncio
async def test_event_hooks_log_request_and_error_body(caplog) -> None:
    hooks = build_event_hooks(True)
    response = _response(500, text="boom")

    with caplog.at_level(logging.INFO, logger="tokenrelay.http"):
        await hooks["request"][0](response.request)
        await hooks["response"][0](response)

    assert "Request GET http://localhost:8000/movies" in caplog.text
    assert "Error body: boom" in caplog.text


@pytest.mark.asyncio
async def test_event_hooks_silent_when_debug_disabled(caplog) -> None:
    hooks = build_event_hooks(False)
    response = _response(500, text="boom")

    with caplog.at_level(logging.INFO, logger="tokenrelay.http"):
        await hooks["response"][0](response)

    assert caplog.text == ""
