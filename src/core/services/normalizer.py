"""Normalización de respuestas.

Strapi responde con formas distintas según versión, superficie de API y plugin
(`{data, meta}`, arrays planos, admin `{results, pagination}`, sobres de error).
`normalize` recorre una tabla ordenada de reglas y gana la primera que encaja;
una forma nueva se soporta añadiendo una regla. Nunca lanza ante una forma
inesperada: lo que no encaja se envuelve como un único elemento con aviso.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from core.domain.models import (
    AttributeSpec,
    ContentTypeDescriptor,
    NormalizedResult,
    ResultKind,
)
from core.errors import ErrorKind

logger = logging.getLogger(__name__)


def has_error_marker(item: Any) -> bool:
    return isinstance(item, Mapping) and item.get("error") not in (None, False, "")


def error_message(body: Any) -> str:
    """Mensaje legible (best-effort) a partir de un sobre de error de Strapi."""

    if not isinstance(body, Mapping):
        return str(body)[:500]
    error = body.get("error")
    if isinstance(error, Mapping):
        message = error.get("message") or error.get("name")
        details = error.get("details")
        if message and details:
            return f"{message} ({details})"
        if message:
            return str(message)
    if isinstance(error, str):
        return error
    if isinstance(body.get("message"), str):
        return body["message"]
    return "Unknown error"


@dataclass(frozen=True)
class ShapeRule:
    name: str
    matches: Callable[[Any], bool]
    transform: Callable[[Any, bool], NormalizedResult]


def _data_list(body: Any, write: bool) -> NormalizedResult:
    items = [item for item in body["data"] if not has_error_marker(item)]
    meta = body.get("meta")
    return NormalizedResult(
        kind=ResultKind.COLLECTION,
        data=items,
        meta=dict(meta) if isinstance(meta, Mapping) else {},
        raw=body,
    )


def _data_object(body: Any, write: bool) -> NormalizedResult:
    entry = body["data"]
    meta = body.get("meta")
    meta = dict(meta) if isinstance(meta, Mapping) else {}
    if has_error_marker(entry):
        return NormalizedResult(kind=ResultKind.EMPTY, data=None, meta=meta, raw=body)
    return NormalizedResult(kind=ResultKind.ENTRY, data=dict(entry), meta=meta, raw=body)


def _bare_list(body: Any, write: bool) -> NormalizedResult:
    items = [item for item in body if not has_error_marker(item)]
    total = len(items)
    return NormalizedResult(
        kind=ResultKind.COLLECTION,
        data=items,
        meta={
            "pagination": {
                "page": 1,
                "pageSize": total,
                "pageCount": 1,
                "total": total,
            }
        },
        raw=body,
    )


def _admin_results(body: Any, write: bool) -> NormalizedResult:
    items = [item for item in body["results"] if not has_error_marker(item)]
    pagination = body.get("pagination")
    meta = {"pagination": dict(pagination)} if isinstance(pagination, Mapping) else {}
    return NormalizedResult(kind=ResultKind.COLLECTION, data=items, meta=meta, raw=body)


def _error_envelope(body: Any, write: bool) -> NormalizedResult:
    message = error_message(body)
    if write:
        return NormalizedResult(kind=ResultKind.ERROR, data=None, warnings=[message], raw=body)
    logger.info("Read returned an error envelope, treating as empty: %s", message)
    return NormalizedResult(kind=ResultKind.EMPTY, data=[], meta={}, raw=body)


def _bare_entry(body: Any, write: bool) -> NormalizedResult:
    return NormalizedResult(kind=ResultKind.ENTRY, data=dict(body), raw=body)


def _no_body(body: Any, write: bool) -> NormalizedResult:
    return NormalizedResult(kind=ResultKind.EMPTY, data=None, raw=body)


def _unrecognized(body: Any, write: bool) -> NormalizedResult:
    logger.warning(
        "%s: wrapping %s body as a single item",
        ErrorKind.UNRECOGNIZED_RESPONSE_SHAPE.value,
        type(body).__name__,
    )
    return NormalizedResult(
        kind=ResultKind.UNRECOGNIZED,
        data=[body],
        meta={},
        warnings=[f"{ErrorKind.UNRECOGNIZED_RESPONSE_SHAPE.value}: response body had an unexpected shape"],
        raw=body,
    )


SHAPE_RULES: tuple[ShapeRule, ...] = (
    ShapeRule(
        "data-list",
        lambda b: isinstance(b, Mapping) and isinstance(b.get("data"), list),
        _data_list,
    ),
    ShapeRule(
        "data-object",
        lambda b: isinstance(b, Mapping) and isinstance(b.get("data"), Mapping),
        _data_object,
    ),
    ShapeRule("bare-list", lambda b: isinstance(b, list), _bare_list),
    ShapeRule(
        "admin-results",
        lambda b: isinstance(b, Mapping) and isinstance(b.get("results"), list),
        _admin_results,
    ),
    ShapeRule("error-envelope", has_error_marker, _error_envelope),
    # content-manager (v4) devuelve la entrada sin envolver.
    ShapeRule(
        "bare-entry",
        lambda b: isinstance(b, Mapping) and ("id" in b or "documentId" in b),
        _bare_entry,
    ),
    ShapeRule("no-body", lambda b: b is None or b == "", _no_body),
)


def normalize(body: Any, *, write: bool = False) -> NormalizedResult:
    for rule in SHAPE_RULES:
        if rule.matches(body):
            return rule.transform(body, write)
    return _unrecognized(body, write)


# ---------------------------------------------------------------------------
# Esquemas
# ---------------------------------------------------------------------------


def _model_name(uid: str) -> str:
    return uid.split("::", 1)[-1].split(".")[-1]


def descriptor_from_raw(raw: Any) -> ContentTypeDescriptor | None:
    """Construye un descriptor desde las formas de content-type-builder o content-manager.

    - content-type-builder: `{uid, schema: {displayName, pluralName, attributes...}}`
    - content-manager: `{uid, apiID, info: {displayName, ...}, attributes}`
    """

    if not isinstance(raw, Mapping) or not isinstance(raw.get("uid"), str):
        return None
    uid = raw["uid"]
    schema = raw.get("schema") if isinstance(raw.get("schema"), Mapping) else {}
    info = raw.get("info") if isinstance(raw.get("info"), Mapping) else {}

    def pick(key: str) -> Any:
        for source in (schema, info, raw):
            value = source.get(key)
            if value not in (None, ""):
                return value
        return None

    raw_attributes = pick("attributes") or {}
    attributes: dict[str, AttributeSpec] = {}
    if isinstance(raw_attributes, Mapping):
        for name, spec in raw_attributes.items():
            if isinstance(spec, Mapping):
                attributes[str(name)] = AttributeSpec.model_validate(dict(spec))

    singular = pick("singularName")
    return ContentTypeDescriptor(
        uid=uid,
        api_id=str(raw.get("apiID") or raw.get("apiId") or singular or _model_name(uid)),
        display_name=str(pick("displayName") or pick("name") or _model_name(uid)),
        description=str(pick("description") or ""),
        kind=str(pick("kind") or "collectionType"),
        singular_name=singular,
        plural_name=pick("pluralName") or pick("collectionName"),
        attributes=attributes,
    )


def normalize_schema(body: Any) -> ContentTypeDescriptor | None:
    """Desenvuelve una respuesta de esquema (`{data: {...}}` o el objeto plano)."""

    candidate = body.get("data") if isinstance(body, Mapping) and "data" in body else body
    return descriptor_from_raw(candidate)
