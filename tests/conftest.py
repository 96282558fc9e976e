"""Shared test fixtures for Ahoi API."""

from collections.abc import Generator
from pathlib import Path

import httpx
import pytest

from ahoi import Ahoi, Settings
from ahoi.auth.principal import Principal

TEST_SECRET = "test-secret-with-enough-entropy-0123456789"


class WebhookRecorder:
    """Collects every request the delivery worker sends."""

    def __init__(self, status_code: int = 200) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = status_code

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


@pytest.fixture
def webhook_recorder() -> WebhookRecorder:
    return WebhookRecorder()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """In-memory settings (static pool, so worker threads share the database)."""
    return Settings(
        database_url="sqlite:///:memory:",
        jwt_secret=TEST_SECRET,
        media_root=str(tmp_path / "media"),
        allowed_origins="https://app.example.com",
        _env_file=None,
    )


@pytest.fixture
def ahoi(settings: Settings, webhook_recorder: WebhookRecorder) -> Generator[Ahoi, None, None]:
    """An Ahoi instance over in-memory SQLite with a mocked webhook transport."""
    service = Ahoi(settings, transport=httpx.MockTransport(webhook_recorder))
    yield service
    service.close()


@pytest.fixture
def movies(ahoi: Ahoi):
    """A ``movies`` structure with a required title and an optional year."""
    return ahoi.create_structure(
        "Movies",
        "movies",
        fields=[
            {"name": "Title", "slug": "title", "type": "TEXT_SHORT", "is_required": True},
            {"name": "Year", "slug": "year", "type": "NUMBER_INT"},
        ],
    )


@pytest.fixture
def alice() -> Principal:
    return Principal(id=1, roles=("subscriber",), capabilities=frozenset({"read", "use_ahoi_api"}))


@pytest.fixture
def bob() -> Principal:
    return Principal(id=2, roles=("subscriber",), capabilities=frozenset({"read", "use_ahoi_api"}))


@pytest.fixture
def admin() -> Principal:
    return Principal(id=99, roles=("administrator",))
