"""Credential Store: token activo por modo de autenticación.

Sin I/O. El token de sesión admin nace en un login exitoso y muere al detectar
expiración (401) o por invalidación explícita.
"""

from __future__ import annotations

from typing import Mapping

from core.config import AppSettings
from core.domain.models import CredentialMode


class CredentialStore:
    def __init__(self, initial: Mapping[CredentialMode, str] | None = None) -> None:
        self._tokens: dict[CredentialMode, str] = dict(initial or {})

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "CredentialStore":
        initial: dict[CredentialMode, str] = {}
        if settings.has_api_token and settings.api_token:
            initial[CredentialMode.API_TOKEN] = settings.api_token.strip()
        return cls(initial)

    def get_token(self, mode: CredentialMode) -> str | None:
        return self._tokens.get(mode)

    def set_token(self, mode: CredentialMode, token: str) -> None:
        self._tokens[mode] = token

    def invalidate(self, mode: CredentialMode) -> None:
        self._tokens.pop(mode, None)
