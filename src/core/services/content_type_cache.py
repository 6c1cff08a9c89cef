"""Memo de proceso con los content types descubiertos.

Sin TTL: vive hasta que alguien llama a `clear()`.
"""

from __future__ import annotations

from typing import Sequence

from core.domain.models import ContentTypeDescriptor


class ContentTypeCache:
    def __init__(self) -> None:
        self._items: list[ContentTypeDescriptor] = []

    def get(self) -> list[ContentTypeDescriptor]:
        return list(self._items)

    def set(self, descriptors: Sequence[ContentTypeDescriptor]) -> None:
        # uid único: un duplicado posterior reemplaza al anterior en su sitio.
        by_uid: dict[str, ContentTypeDescriptor] = {}
        for descriptor in descriptors:
            by_uid[descriptor.uid] = descriptor
        self._items = list(by_uid.values())

    def clear(self) -> None:
        self._items = []

    def find(self, uid: str) -> ContentTypeDescriptor | None:
        for descriptor in self._items:
            if descriptor.uid == uid:
                return descriptor
        return None


default_cache = ContentTypeCache()
