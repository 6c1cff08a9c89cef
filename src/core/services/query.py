"""Parseo de opciones de consulta y codificación del query string de Strapi.

Strapi lee los parámetros anidados en formato `qs` con corchetes, p.ej.
`filters[title][$contains]=hello&pagination[page]=1&sort[0]=title:asc`.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from pydantic import ValidationError

from core.domain.models import QueryOptions
from core.errors import InvalidRequest


def parse_options(raw: str | Mapping[str, Any] | QueryOptions | None) -> QueryOptions:
    """Acepta texto JSON, un mapping o el modelo y devuelve `QueryOptions`."""

    if raw is None or raw == "":
        return QueryOptions()
    if isinstance(raw, QueryOptions):
        return raw
    data: Any = raw
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise InvalidRequest(f"Invalid query options: {exc.msg}") from exc
    if not isinstance(data, Mapping):
        raise InvalidRequest("Query options must be a JSON object")
    try:
        return QueryOptions.model_validate(dict(data))
    except ValidationError as exc:
        raise InvalidRequest(f"Invalid query options: {exc.errors()[0]['msg']}") from exc


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _flatten(prefix: str, value: Any, out: list[tuple[str, str]]) -> None:
    if isinstance(value, Mapping):
        for key, item in value.items():
            _flatten(f"{prefix}[{key}]", item, out)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _flatten(f"{prefix}[{index}]", item, out)
    else:
        out.append((prefix, _scalar(value)))


def encode_params(options: QueryOptions | Mapping[str, Any] | None) -> list[tuple[str, str]]:
    """Codifica las opciones como pares `(clave, valor)` ordenados para `httpx`.

    Las opciones ausentes no generan pares. Un `populate` de texto (p.ej. `*`)
    se envía tal cual.
    """

    if options is None:
        return []
    params = options.to_params() if isinstance(options, QueryOptions) else dict(options)
    out: list[tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (Mapping, list, tuple)):
            _flatten(key, value, out)
        else:
            out.append((key, _scalar(value)))
    return out
