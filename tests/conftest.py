from __future__ import annotations

import os
from typing import Any, Callable

import httpx
import pytest

from adapters.http_client import build_async_client
from core.config import AppSettings
from core.services.content_type_cache import ContentTypeCache
from core.services.strapi_service import StrapiService

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.upper().startswith("STRAPI_"):
            monkeypatch.delenv(key, raising=False)


def make_settings(**overrides: Any) -> AppSettings:
    values: dict[str, Any] = {"url": "http://strapi.test"}
    values.update(overrides)
    return AppSettings(_env_file=None, **values)


@pytest.fixture
def token_settings() -> AppSettings:
    return make_settings(api_token="secret-token")


@pytest.fixture
def admin_settings() -> AppSettings:
    return make_settings(
        api_token="secret-token",
        admin_email="admin@example.com",
        admin_password="hunter2",
    )


def make_service(settings: AppSettings, handler: Handler, **kwargs: Any) -> StrapiService:
    client = build_async_client(settings, transport=httpx.MockTransport(handler))
    kwargs.setdefault("cache", ContentTypeCache())
    return StrapiService(settings, client, **kwargs)


def login_response() -> httpx.Response:
    return httpx.Response(200, json={"data": {"token": "session-1", "user": {"id": 1}}})
