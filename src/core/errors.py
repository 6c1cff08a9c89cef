"""Taxonomía de errores del adaptador.

Reglas:
- Todas las excepciones heredan de `StrapiAdapterError` y llevan un `kind`
  estable que la capa MCP serializa tal cual.
- `ConfigurationError` es fatal solo en el arranque; en runtime (p.ej. un plan
  vacío por falta de credenciales admin) se reporta como cualquier otro error.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Sequence


class ErrorKind(str, Enum):
    CONFIGURATION = "ConfigurationError"
    AUTH_UNAVAILABLE = "AuthUnavailable"
    RESOURCE_NOT_FOUND = "ResourceNotFound"
    ACCESS_DENIED = "AccessDenied"
    INVALID_REQUEST = "InvalidRequest"
    UPSTREAM_BAD_REQUEST = "UpstreamBadRequest"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"
    UNRECOGNIZED_RESPONSE_SHAPE = "UnrecognizedResponseShape"


class StrapiAdapterError(Exception):
    """Base de todos los errores que cruzan el borde de una operación."""

    kind: ErrorKind = ErrorKind.UPSTREAM_UNAVAILABLE

    def __init__(
        self,
        detail: str,
        *,
        attempts: Sequence[Any] = (),
        status_code: int | None = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.attempts = list(attempts)
        self.status_code = status_code

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind.value, "detail": self.detail}
        if self.status_code is not None:
            payload["status_code"] = self.status_code
        if self.attempts:
            payload["attempts"] = [
                a.model_dump(mode="json") if hasattr(a, "model_dump") else a
                for a in self.attempts
            ]
        return {"error": payload}


class ConfigurationError(StrapiAdapterError):
    kind = ErrorKind.CONFIGURATION


class AuthUnavailable(StrapiAdapterError):
    kind = ErrorKind.AUTH_UNAVAILABLE


class ResourceNotFound(StrapiAdapterError):
    kind = ErrorKind.RESOURCE_NOT_FOUND


class AccessDenied(StrapiAdapterError):
    kind = ErrorKind.ACCESS_DENIED


class InvalidRequest(StrapiAdapterError):
    kind = ErrorKind.INVALID_REQUEST


class UpstreamBadRequest(StrapiAdapterError):
    kind = ErrorKind.UPSTREAM_BAD_REQUEST


class UpstreamUnavailable(StrapiAdapterError):
    kind = ErrorKind.UPSTREAM_UNAVAILABLE
