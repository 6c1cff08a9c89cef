"""Contratos de estado compartido (tokens y cache de content types).

Ambos stores se comparten entre invocaciones concurrentes del servidor MCP.
Sobre asyncio no hay preempción entre awaits, así que lectura/escritura es
last-write-wins sin locks.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from core.domain.models import ContentTypeDescriptor, CredentialMode


@runtime_checkable
class TokenStore(Protocol):
    """Contrato mínimo del Credential Store."""

    def get_token(self, mode: CredentialMode) -> str | None:
        ...

    def set_token(self, mode: CredentialMode, token: str) -> None:
        ...

    def invalidate(self, mode: CredentialMode) -> None:
        ...


@runtime_checkable
class ContentTypeStore(Protocol):
    """Contrato mínimo de la cache de content types."""

    def get(self) -> list[ContentTypeDescriptor]:
        ...

    def set(self, descriptors: Sequence[ContentTypeDescriptor]) -> None:
        ...

    def clear(self) -> None:
        ...
