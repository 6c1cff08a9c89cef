"""Política de ejecución con fallback.

Recorre un FallbackPlan candidato a candidato:

- los candidatos de sesión hacen login antes si no hay token en cache;
- un 2xx es éxito terminal (no se prueba nada más: una escritura llega una vez);
- 404, 403 y un 401 irrecuperable pasan al siguiente candidato;
- un 401 en un candidato de sesión invalida el token, repite el login y
  reintenta ese mismo candidato una sola vez;
- cualquier otro 4xx, los 5xx y los errores de red abortan el plan entero.

Si se saltan todos los candidatos, el plan falla con la lista completa de
intentos.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol

import httpx

from adapters.http_client import bearer, describe_http_error
from core.domain.models import (
    Attempt,
    CredentialMode,
    EndpointCandidate,
    FallbackPlan,
    NormalizedResult,
    ResultKind,
)
from core.errors import (
    AccessDenied,
    AuthUnavailable,
    ConfigurationError,
    ResourceNotFound,
    StrapiAdapterError,
    UpstreamBadRequest,
    UpstreamUnavailable,
)
from core.interfaces.stores import TokenStore
from core.services.normalizer import error_message, normalize

logger = logging.getLogger(__name__)


@dataclass
class RequestSpec:
    """Piezas del request para un candidato (todo salvo método y path)."""

    params: list[tuple[str, str]] | None = None
    json: Any = None
    data: dict[str, Any] | None = None
    files: Any = None
    timeout: float | None = None


RequestBuilder = Callable[[EndpointCandidate], RequestSpec]


class Authenticator(Protocol):
    async def login(self, mode: CredentialMode) -> bool:
        ...


def _empty_request(_: EndpointCandidate) -> RequestSpec:
    return RequestSpec()


def _read_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _attempt(candidate: EndpointCandidate, outcome: str, status: int | None = None) -> Attempt:
    return Attempt(
        mode=candidate.mode,
        method=candidate.method,
        endpoint=candidate.endpoint,
        status=status,
        outcome=outcome,
    )


def _describe_attempts(attempts: list[Attempt]) -> str:
    return "; ".join(
        f"{a.method} {a.endpoint} [{a.mode.value}] -> {a.status or a.outcome}" for a in attempts
    )


class FallbackExecutor:
    def __init__(
        self,
        client: httpx.AsyncClient,
        store: TokenStore,
        authenticator: Authenticator,
    ) -> None:
        self._client = client
        self._store = store
        self._authenticator = authenticator

    async def _token_for(self, mode: CredentialMode) -> tuple[bool, str | None]:
        if mode is CredentialMode.ANONYMOUS_PROBE:
            return True, None
        token = self._store.get_token(mode)
        if token is None and mode.is_session:
            if await self._authenticator.login(mode):
                token = self._store.get_token(mode)
        return token is not None, token

    async def _send(
        self,
        candidate: EndpointCandidate,
        token: str | None,
        request_builder: RequestBuilder,
    ) -> httpx.Response:
        spec = request_builder(candidate)
        kwargs: dict[str, Any] = {"headers": bearer(token)}
        if spec.params:
            kwargs["params"] = spec.params
        if spec.json is not None:
            kwargs["json"] = spec.json
        if spec.data is not None:
            kwargs["data"] = spec.data
        if spec.files is not None:
            kwargs["files"] = spec.files
        if spec.timeout is not None:
            kwargs["timeout"] = spec.timeout
        return await self._client.request(candidate.method, candidate.endpoint, **kwargs)

    async def execute(
        self,
        plan: FallbackPlan,
        request_builder: RequestBuilder | None = None,
        *,
        write: bool = False,
    ) -> NormalizedResult:
        if not plan:
            raise ConfigurationError(
                f"No usable credentials for {plan.operation}: configure "
                "STRAPI_ADMIN_EMAIL/STRAPI_ADMIN_PASSWORD (admin endpoints) "
                "or STRAPI_API_TOKEN (public API)"
            )
        request_builder = request_builder or _empty_request
        attempts: list[Attempt] = []

        for candidate in plan.candidates:
            authenticated, token = await self._token_for(candidate.mode)
            if not authenticated:
                logger.info("Skipping %s: no credential available", candidate.label())
                attempts.append(_attempt(candidate, "auth_unavailable"))
                continue

            retried = False
            while True:
                try:
                    response = await self._send(candidate, token, request_builder)
                except httpx.HTTPError as exc:
                    attempts.append(_attempt(candidate, "unavailable"))
                    raise UpstreamUnavailable(
                        f"Network error on {candidate.label()}: {describe_http_error(exc)}",
                        attempts=attempts,
                    ) from exc

                status = response.status_code
                logger.debug("%s -> HTTP %s", candidate.label(), status)

                if 200 <= status < 300:
                    attempts.append(_attempt(candidate, "success", status))
                    return self._success(candidate, response, write, attempts)

                if status == 401 and candidate.mode.is_session and not retried:
                    retried = True
                    logger.info("Session expired on %s, logging in again", candidate.label())
                    self._store.invalidate(candidate.mode)
                    if await self._authenticator.login(candidate.mode):
                        token = self._store.get_token(candidate.mode)
                        continue
                    attempts.append(_attempt(candidate, "auth_unavailable", status))
                    break

                if status in (401, 403):
                    outcome = "unauthorized" if status == 401 else "forbidden"
                    attempts.append(_attempt(candidate, outcome, status))
                    break
                if status == 404:
                    attempts.append(_attempt(candidate, "not_found", status))
                    break

                body = _read_body(response)
                if 400 <= status < 500:
                    attempts.append(_attempt(candidate, "bad_request", status))
                    raise UpstreamBadRequest(
                        f"Strapi rejected {candidate.label()}: {error_message(body)}",
                        attempts=attempts,
                        status_code=status,
                    )
                attempts.append(_attempt(candidate, "unavailable", status))
                raise UpstreamUnavailable(
                    f"Strapi failed on {candidate.label()} with HTTP {status}: {error_message(body)}",
                    attempts=attempts,
                    status_code=status,
                )

            logger.info("Falling back after %s", candidate.label())

        raise self._exhausted(plan, attempts)

    def _success(
        self,
        candidate: EndpointCandidate,
        response: httpx.Response,
        write: bool,
        attempts: list[Attempt],
    ) -> NormalizedResult:
        body = _read_body(response)
        result = normalize(body, write=write)
        if result.kind is ResultKind.ERROR:
            raise UpstreamBadRequest(
                f"Strapi reported an error on {candidate.label()}: {error_message(body)}",
                attempts=attempts,
                status_code=response.status_code,
            )
        if write and result.kind is ResultKind.UNRECOGNIZED:
            result.warnings.append("write accepted by Strapi but the response could not be parsed")
        result.source = candidate
        return result

    @staticmethod
    def _exhausted(plan: FallbackPlan, attempts: list[Attempt]) -> StrapiAdapterError:
        outcomes = {a.outcome for a in attempts}
        tried = _describe_attempts(attempts)
        if "not_found" in outcomes:
            return ResourceNotFound(
                f"{plan.operation}: no endpoint found the resource; tried {tried}",
                attempts=attempts,
            )
        if outcomes & {"unauthorized", "forbidden"}:
            return AccessDenied(
                f"{plan.operation}: access denied on every endpoint; tried {tried}",
                attempts=attempts,
            )
        return AuthUnavailable(
            f"{plan.operation}: no credential mode could authenticate; tried {tried}",
            attempts=attempts,
        )
