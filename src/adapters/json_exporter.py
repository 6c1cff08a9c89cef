"""Exportación JSON de resultados hacia el protocolo MCP.

Las herramientas y recursos devuelven texto JSON estable (UTF-8, indentado).
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel


def _default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return str(value)


def export_json_text(payload: Any) -> str:
    """Serializa `payload` a JSON legible conservando el orden de claves."""

    return json.dumps(payload, ensure_ascii=False, indent=2, default=_default)
