"""Parseo de URIs de recurso `strapi://content-type/{uid}[/{entryId}][?query]`.

Gramática del query: `filters` (objeto JSON), `page`, `pageSize`, `sort`
(lista separada por comas), `populate` (JSON o lista con comas) y `fields`
(lista con comas).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, unquote

from core.domain.models import QueryOptions
from core.errors import InvalidRequest
from core.services.query import parse_options

SCHEME = "strapi"

_URI_RE = re.compile(
    r"^(?P<scheme>[a-z][a-z0-9+.-]*)://content-type/(?P<uid>[^/?]+)"
    r"(?:/(?P<entry>[^/?]+))?(?:\?(?P<query>.*))?$"
)


@dataclass
class ResourceRef:
    uid: str
    entry_id: str | None = None
    options: QueryOptions = field(default_factory=QueryOptions)


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _to_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise InvalidRequest(f"Query parameter '{name}' must be an integer") from exc


def parse_query(query: str) -> QueryOptions:
    params = {key: values[-1] for key, values in parse_qs(query, keep_blank_values=False).items()}
    options: dict[str, Any] = {}

    if "filters" in params:
        try:
            options["filters"] = json.loads(params["filters"])
        except json.JSONDecodeError as exc:
            raise InvalidRequest(f"Query parameter 'filters' is not valid JSON: {exc.msg}") from exc

    pagination: dict[str, int] = {}
    if "page" in params:
        pagination["page"] = _to_int("page", params["page"])
    if "pageSize" in params:
        pagination["pageSize"] = _to_int("pageSize", params["pageSize"])
    if pagination:
        options["pagination"] = pagination

    if "sort" in params:
        options["sort"] = _split_csv(params["sort"])

    if "populate" in params:
        raw = params["populate"]
        try:
            options["populate"] = json.loads(raw)
        except json.JSONDecodeError:
            options["populate"] = raw if raw == "*" else _split_csv(raw)

    if "fields" in params:
        options["fields"] = _split_csv(params["fields"])

    return parse_options(options)


def parse_resource_uri(uri: str, *, scheme: str = SCHEME) -> ResourceRef:
    match = _URI_RE.match(uri.strip())
    if not match or match.group("scheme") != scheme:
        raise InvalidRequest(f"Invalid resource URI: {uri}")
    entry = match.group("entry")
    query = match.group("query")
    return ResourceRef(
        uid=unquote(match.group("uid")),
        entry_id=unquote(entry) if entry else None,
        options=parse_query(query) if query else QueryOptions(),
    )


def content_type_uri(uid: str, *, scheme: str = SCHEME) -> str:
    return f"{scheme}://content-type/{uid}"
