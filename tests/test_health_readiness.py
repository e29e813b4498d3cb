from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio

import app.main as main_module


@pytest_asyncio.fixture()
async def client() -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=main_module.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


def _database_ready(monkeypatch: pytest.MonkeyPatch, ready: bool) -> None:
    async def _check() -> bool:
        return ready

    monkeypatch.setattr(main_module, "_is_database_ready", _check)


@pytest.mark.asyncio
async def test_liveness_does_not_touch_the_database(
    client: httpx.AsyncClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _database_ready(monkeypatch, False)

    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_ready_reports_database_and_timestamp(
    client: httpx.AsyncClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _database_ready(monkeypatch, True)

    response = await client.get("/ready")

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "ready"
    assert body["database"] == "ok"
    assert body["timestamp"].endswith("+00:00")


@pytest.mark.asyncio
async def test_ready_uses_error_envelope_when_database_is_down(
    client: httpx.AsyncClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _database_ready(monkeypatch, False)

    response = await client.get("/ready")

    assert response.status_code == 503
    assert response.json() == {"error": {"code": "http_error", "message": "Database is not ready"}}


@pytest.mark.asyncio
async def test_database_check_reports_failure_instead_of_raising(monkeypatch: pytest.MonkeyPatch) -> None:
    class _BrokenSession:
        async def __aenter__(self):
            raise ConnectionRefusedError("database is down")

        async def __aexit__(self, *exc_info) -> None:
            return None

    monkeypatch.setattr(main_module, "SessionLocal", _BrokenSession)

    assert await main_module._is_database_ready() is False
