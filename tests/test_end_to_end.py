import asyncio

import httpx
import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from auth.errors import UnauthorizedError
from auth.token_store import CredentialPair, FileCredentialBackend
from tokenrelay.client import SessionClient

BASE_URL = "http://testserver"


class RotatingAuthService:
    def __init__(self) -> None:
        self.valid_access = {"A1"}
        self.valid_refresh = {"R1"}
        self.generation = 1
        self.refresh_calls = 0

    def app(self) -> Starlette:
        return Starlette(
            routes=[
                Route("/auth/refresh", self.refresh, methods=["POST"]),
                Route("/movies", self.movies, methods=["GET", "POST"]),
            ]
        )

    async def refresh(self, request: Request) -> Response:
        self.refresh_calls += 1
        payload = await request.json()
        token = payload.get("refreshToken")
        await asyncio.sleep(0.02)
        if token not in self.valid_refresh:
            return JSONResponse({"message": "Invalid refresh token"}, status_code=401)

        self.valid_refresh.discard(token)
        self.generation += 1
        access, refresh = f"A{self.generation}", f"R{self.generation}"
        self.valid_access = {access}
        self.valid_refresh.add(refresh)
        return JSONResponse(
            {"statusCode": 200, "data": {"accessToken": access, "refreshToken": refresh}}
        )

    async def movies(self, request: Request) -> Response:
        token = request.headers.get("authorization", "").removeprefix("Bearer ")
        if token not in self.valid_access:
            return JSONResponse({"message": "jwt expired"}, status_code=401)
        return JSONResponse(
            {
                "statusCode": 200,
                "data": {"data": [{"id": 1, "title": "Heat"}], "meta": {"page": 1}},
            }
        )


def _client(service: RotatingAuthService, tmp_path) -> SessionClient:
    http_client = httpx.AsyncClient(
        base_url=BASE_URL,
        transport=httpx.ASGITransport(app=service.app()),
    )
    backend = FileCredentialBackend(tmp_path / "tokens.json")
    return SessionClient(base_url=BASE_URL, backend=backend, http_client=http_client)


@pytest.mark.asyncio
async def test_burst_of_expired_requests_survives_rotating_refresh(tmp_path) -> None:
    service = RotatingAuthService()
    FileCredentialBackend(tmp_path / "tokens.json").save(CredentialPair("A1", "R1"))
    service.valid_access = {"A-expired"}

    async with _client(service, tmp_path) as client:
        collections = await asyncio.gather(
            *(client.fetch_collection("/movies", {"page": 1}) for _ in range(5))
        )
        stored = client.store.read()

    assert service.refresh_calls == 1
    assert all(collection.items == [{"id": 1, "title": "Heat"}] for collection in collections)
    assert stored == CredentialPair("A2", "R2")
    assert FileCredentialBackend(tmp_path / "tokens.json").load() == CredentialPair("A2", "R2")


@pytest.mark.asyncio
async def test_revoked_refresh_token_ends_session(tmp_path) -> None:
    service = RotatingAuthService()
    service.valid_access = set()
    service.valid_refresh = set()
    FileCredentialBackend(tmp_path / "tokens.json").save(CredentialPair("A1", "R1"))
    terminated: list[str] = []

    async with _client(service, tmp_path) as client:
        client.on_session_terminated(terminated.append)
        results = await asyncio.gather(
            client.get("/movies"), client.get("/movies"), return_exceptions=True
        )
        with pytest.raises(UnauthorizedError):
            await client.get("/movies")

    assert all(isinstance(result, UnauthorizedError) for result in results)
    assert service.refresh_calls == 1
    assert len(terminated) == 1
    assert not (tmp_path / "tokens.json").exists()
