"""Wrapper de httpx.

Por qué un wrapper:
- Estandariza base URL, timeouts y headers para todas las llamadas a Strapi.
- Facilita testeo: se puede inyectar un `httpx.MockTransport`.
"""

from __future__ import annotations

import httpx

from core.config import AppSettings


def build_async_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Crea un `httpx.AsyncClient` apuntando a la instancia Strapi configurada.

    El cliente no lleva `Authorization` fijo: el ejecutor de fallbacks decide el
    token por candidato.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        base_url=settings.url,
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )


def bearer(token: str | None) -> dict[str, str]:
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}


def describe_http_error(exc: httpx.HTTPError) -> str:
    """Mensaje corto para errores de red (sin volcar el request completo)."""

    message = str(exc) or exc.__class__.__name__
    try:
        request = exc.request
    except RuntimeError:
        return message
    return f"{request.method} {request.url.path}: {message}"
