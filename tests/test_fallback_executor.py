from __future__ import annotations

from collections import Counter

import httpx
import pytest

from adapters.http_client import build_async_client
from conftest import make_settings
from core.credentials import CredentialStore
from core.domain.models import CredentialMode, EndpointCandidate, FallbackPlan, ResultKind
from core.errors import (
    AccessDenied,
    ConfigurationError,
    ResourceNotFound,
    UpstreamBadRequest,
    UpstreamUnavailable,
)
from core.services.fallback_executor import FallbackExecutor, RequestSpec


class SpyStore(CredentialStore):
    def __init__(self, initial=None) -> None:
        super().__init__(initial)
        self.invalidations = 0
        self.sets = 0

    def set_token(self, mode, token) -> None:
        self.sets += 1
        super().set_token(mode, token)

    def invalidate(self, mode) -> None:
        self.invalidations += 1
        super().invalidate(mode)


class FakeAuthenticator:
    def __init__(self, store: CredentialStore, tokens: list[str]) -> None:
        self.store = store
        self.tokens = list(tokens)
        self.calls = 0

    async def login(self, mode: CredentialMode) -> bool:
        self.calls += 1
        if not self.tokens:
            return False
        self.store.set_token(mode, self.tokens.pop(0))
        return True


def _plan(*candidates: tuple[CredentialMode, str], method: str = "GET") -> FallbackPlan:
    return FallbackPlan(
        operation="test",
        candidates=[EndpointCandidate(mode=mode, method=method, endpoint=path) for mode, path in candidates],
    )


def _executor(handler, store: CredentialStore, authenticator=None) -> FallbackExecutor:
    client = build_async_client(make_settings(), transport=httpx.MockTransport(handler))
    return FallbackExecutor(client, store, authenticator or FakeAuthenticator(store, []))


@pytest.mark.asyncio
async def test_first_success_stops_the_plan() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"data": [{"id": 1}], "meta": {}})

    store = CredentialStore({CredentialMode.API_TOKEN: "tok"})
    executor = _executor(handler, store)

    result = await executor.execute(
        _plan((CredentialMode.API_TOKEN, "/api/articles"), (CredentialMode.API_TOKEN, "/api/article"))
    )

    assert seen == ["/api/articles"]
    assert result.kind is ResultKind.COLLECTION
    assert result.data == [{"id": 1}]
    assert result.source is not None and result.source.endpoint == "/api/articles"


@pytest.mark.asyncio
async def test_bearer_token_is_sent_per_mode() -> None:
    headers: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        headers.append(request.headers.get("Authorization"))
        return httpx.Response(404)

    store = CredentialStore({CredentialMode.API_TOKEN: "tok"})
    executor = _executor(handler, store)

    with pytest.raises(ResourceNotFound):
        await executor.execute(
            _plan((CredentialMode.API_TOKEN, "/api/a"), (CredentialMode.ANONYMOUS_PROBE, "/api/b"))
        )

    assert headers == ["Bearer tok", None]


@pytest.mark.asyncio
async def test_expired_session_relogs_once_and_retries_same_candidate() -> None:
    calls = Counter()

    def handler(request: httpx.Request) -> httpx.Response:
        calls[request.url.path] += 1
        if request.headers.get("Authorization") == "Bearer stale":
            return httpx.Response(401, json={"error": {"message": "expired"}})
        return httpx.Response(200, json={"data": {"id": 3, "title": "ok"}})

    store = SpyStore({CredentialMode.ADMIN_SESSION: "stale"})
    authenticator = FakeAuthenticator(store, ["fresh"])
    executor = _executor(handler, store, authenticator)

    result = await executor.execute(_plan((CredentialMode.ADMIN_SESSION, "/content-manager/x")))

    assert result.kind is ResultKind.ENTRY
    assert calls["/content-manager/x"] == 2
    assert store.invalidations == 1
    assert store.sets == 1
    assert authenticator.calls == 1


@pytest.mark.asyncio
async def test_second_401_after_relogin_falls_through() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/content-manager"):
            return httpx.Response(401)
        return httpx.Response(200, json=[{"id": 1}])

    store = CredentialStore({CredentialMode.ADMIN_SESSION: "stale", CredentialMode.API_TOKEN: "tok"})
    authenticator = FakeAuthenticator(store, ["fresh", "another"])
    executor = _executor(handler, store, authenticator)

    result = await executor.execute(
        _plan((CredentialMode.ADMIN_SESSION, "/content-manager/x"), (CredentialMode.API_TOKEN, "/api/x"))
    )

    assert authenticator.calls == 1
    assert result.source.endpoint == "/api/x"


@pytest.mark.asyncio
async def test_all_not_found_lists_every_attempt() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": {"message": "Not Found"}})

    store = CredentialStore({CredentialMode.API_TOKEN: "tok"})
    executor = _executor(handler, store)

    with pytest.raises(ResourceNotFound) as info:
        await executor.execute(
            _plan(
                (CredentialMode.API_TOKEN, "/api/a"),
                (CredentialMode.API_TOKEN, "/api/b"),
                (CredentialMode.API_TOKEN, "/api/c"),
            )
        )

    assert [a.endpoint for a in info.value.attempts] == ["/api/a", "/api/b", "/api/c"]
    for path in ("/api/a", "/api/b", "/api/c"):
        assert path in info.value.detail
    payload = info.value.to_payload()
    assert payload["error"]["kind"] == "ResourceNotFound"
    assert len(payload["error"]["attempts"]) == 3


@pytest.mark.asyncio
async def test_server_error_aborts_without_trying_the_rest() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(500, text="boom")

    store = CredentialStore({CredentialMode.API_TOKEN: "tok"})
    executor = _executor(handler, store)

    with pytest.raises(UpstreamUnavailable) as info:
        await executor.execute(
            _plan((CredentialMode.API_TOKEN, "/api/a"), (CredentialMode.API_TOKEN, "/api/b"))
        )

    assert seen == ["/api/a"]
    assert info.value.status_code == 500


@pytest.mark.asyncio
async def test_bad_request_aborts_with_strapi_message() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "title must be unique"}})

    store = CredentialStore({CredentialMode.API_TOKEN: "tok"})
    executor = _executor(handler, store)

    with pytest.raises(UpstreamBadRequest) as info:
        await executor.execute(
            _plan((CredentialMode.API_TOKEN, "/api/a"), (CredentialMode.API_TOKEN, "/api/b"), method="POST"),
            lambda _: RequestSpec(json={"data": {"title": "x"}}),
            write=True,
        )

    assert "title must be unique" in info.value.detail
    assert len(info.value.attempts) == 1


@pytest.mark.asyncio
async def test_forbidden_everywhere_is_access_denied() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(403)

    store = CredentialStore({CredentialMode.API_TOKEN: "tok"})
    executor = _executor(handler, store)

    with pytest.raises(AccessDenied):
        await executor.execute(
            _plan((CredentialMode.API_TOKEN, "/api/a"), (CredentialMode.ANONYMOUS_PROBE, "/api/b"))
        )


@pytest.mark.asyncio
async def test_network_error_is_upstream_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = CredentialStore({CredentialMode.API_TOKEN: "tok"})
    executor = _executor(handler, store)

    with pytest.raises(UpstreamUnavailable):
        await executor.execute(_plan((CredentialMode.API_TOKEN, "/api/a")))


@pytest.mark.asyncio
async def test_empty_plan_is_a_configuration_error() -> None:
    executor = _executor(lambda _: httpx.Response(200), CredentialStore())

    with pytest.raises(ConfigurationError):
        await executor.execute(FallbackPlan(operation="get_schema"))


@pytest.mark.asyncio
async def test_session_candidate_is_skipped_when_login_fails() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"data": []})

    store = CredentialStore({CredentialMode.API_TOKEN: "tok"})
    executor = _executor(handler, store, FakeAuthenticator(store, []))

    result = await executor.execute(
        _plan((CredentialMode.ADMIN_SESSION, "/content-manager/x"), (CredentialMode.API_TOKEN, "/api/x"))
    )

    assert seen == ["/api/x"]
    assert result.kind is ResultKind.COLLECTION


@pytest.mark.asyncio
async def test_write_with_error_body_is_rejected() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": {"message": "ValidationError"}})

    store = CredentialStore({CredentialMode.API_TOKEN: "tok"})
    executor = _executor(handler, store)

    with pytest.raises(UpstreamBadRequest):
        await executor.execute(_plan((CredentialMode.API_TOKEN, "/api/a"), method="POST"), write=True)


@pytest.mark.asyncio
async def test_write_with_unparseable_body_succeeds_with_warning() -> None:
    calls = 0

    def handler(_: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(201, json={"ok": True})

    store = CredentialStore({CredentialMode.API_TOKEN: "tok"})
    executor = _executor(handler, store)

    result = await executor.execute(
        _plan((CredentialMode.API_TOKEN, "/api/a"), (CredentialMode.API_TOKEN, "/api/b"), method="POST"),
        write=True,
    )

    assert calls == 1, "an accepted write must not be retried on another candidate"
    assert result.kind is ResultKind.UNRECOGNIZED
    assert any("write accepted" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_request_builder_runs_again_on_retry() -> None:
    built: list[str] = []
    responses = iter([httpx.Response(401), httpx.Response(200, json={"data": {"id": 1}})])

    def handler(_: httpx.Request) -> httpx.Response:
        return next(responses)

    def builder(candidate: EndpointCandidate) -> RequestSpec:
        built.append(candidate.endpoint)
        return RequestSpec(json={"x": 1})

    store = CredentialStore({CredentialMode.ADMIN_SESSION: "stale"})
    executor = _executor(handler, store, FakeAuthenticator(store, ["fresh"]))

    await executor.execute(_plan((CredentialMode.ADMIN_SESSION, "/cm"), method="PUT"), builder, write=True)

    assert built == ["/cm", "/cm"]
