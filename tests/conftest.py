from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from task_tracker.api.main import create_app
from task_tracker.client.http import BackendClient
from task_tracker.client.session import MemorySessionStore, SessionManager
from task_tracker.config.settings import Settings
from task_tracker.storage.memory import InMemoryTaskStorage

API_KEY = "public-anon-key"
BASE_URL = "http://testserver"


class AppTransport:
    """Routes client HTTP calls into the FastAPI app in-process."""

    def __init__(self, client: TestClient) -> None:
        self.client = client
        self.calls: list[tuple[str, str]] = []

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        body: bytes | None,
        timeout_s: float,
    ) -> tuple[int, bytes]:
        self.calls.append((method, url.removeprefix(BASE_URL)))
        response = self.client.request(method, url, headers=headers, content=body)
        return response.status_code, response.content


def make_settings(tmp_path: Path, **overrides: object) -> Settings:
    values: dict[str, object] = {
        "jwt_secret": "test-jwt-secret-with-enough-bytes-for-hs256",
        "anon_key": API_KEY,
        "url": BASE_URL,
        "session_file": tmp_path / "session.json",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def storage() -> InMemoryTaskStorage:
    return InMemoryTaskStorage()


@pytest.fixture
def api(storage: InMemoryTaskStorage, settings: Settings) -> Iterator[TestClient]:
    app = create_app(storage=storage, settings_override=settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def transport(api: TestClient) -> AppTransport:
    return AppTransport(api)


@pytest.fixture
def backend(transport: AppTransport) -> BackendClient:
    return BackendClient(base_url=BASE_URL, api_key=API_KEY, transport=transport)


@pytest.fixture
def session_manager(backend: BackendClient) -> SessionManager:
    return SessionManager(backend, MemorySessionStore())


@pytest.fixture
def sign_in(api: TestClient):
    """Anonymous sign-up over raw HTTP; returns (user_id, auth headers)."""

    def _sign_in() -> tuple[str, dict[str, str]]:
        response = api.post("/auth/v1/signup/anonymous", headers={"apikey": API_KEY})
        assert response.status_code == 200
        payload = response.json()
        headers = {"apikey": API_KEY, "Authorization": f"Bearer {payload['access_token']}"}
        return payload["user"]["id"], headers

    return _sign_in
