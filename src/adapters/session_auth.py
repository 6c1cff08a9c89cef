"""Session Authenticator: login contra el panel admin de Strapi.

Contrato:
- `login(mode)` nunca lanza; devuelve False ante cualquier fallo para que el
  ejecutor pueda pasar al siguiente candidato.
- No repite el login si ya hay un token en cache (hay que invalidar antes).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from adapters.http_client import describe_http_error
from core.config import AppSettings
from core.domain.models import CredentialMode
from core.interfaces.stores import TokenStore

logger = logging.getLogger(__name__)

ADMIN_LOGIN_PATH = "/admin/login"


def _extract_token(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("token"), str) and data["token"]:
        return data["token"]
    # Algunas versiones/proxies devuelven el token plano.
    if isinstance(payload.get("token"), str) and payload["token"]:
        return payload["token"]
    return None


class SessionAuthenticator:
    def __init__(
        self,
        client: httpx.AsyncClient,
        store: TokenStore,
        settings: AppSettings,
    ) -> None:
        self._client = client
        self._store = store
        self._settings = settings

    async def login(self, mode: CredentialMode) -> bool:
        if mode is CredentialMode.ANONYMOUS_PROBE:
            return True
        if mode is CredentialMode.API_TOKEN:
            return self._store.get_token(mode) is not None

        if self._store.get_token(mode):
            return True
        if not self._settings.has_admin_credentials:
            logger.debug("No admin credentials configured; skipping session login")
            return False

        try:
            response = await self._client.post(
                ADMIN_LOGIN_PATH,
                json={
                    "email": self._settings.admin_email,
                    "password": self._settings.admin_password,
                },
            )
        except httpx.HTTPError as exc:
            logger.warning("Admin login failed: %s", describe_http_error(exc))
            return False

        if response.status_code >= 400:
            logger.warning("Admin login rejected with HTTP %s", response.status_code)
            return False

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Admin login returned a non-JSON body")
            return False

        token = _extract_token(payload)
        if token is None:
            logger.warning("Admin login response did not contain a session token")
            return False

        self._store.set_token(mode, token)
        logger.info("Admin session established")
        return True
