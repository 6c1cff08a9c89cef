"""Resolución de endpoints: operación lógica -> FallbackPlan ordenado.

Los candidatos admin (content-manager / content-type-builder) van primero y
necesitan sesión admin. Después van los candidatos públicos `/api/...`, con el
API token si está configurado o como sondeo anónimo (solo lecturas). El plan
depende únicamente de la entrada y de las credenciales configuradas.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping
from urllib.parse import quote

from core.config import AppSettings
from core.domain.models import ApiSurface, CredentialMode, EndpointCandidate, FallbackPlan
from core.errors import InvalidRequest

CONTENT_MANAGER = "/content-manager/collection-types"
CONTENT_TYPE_BUILDER = "/content-type-builder"


class Operation(str, Enum):
    LIST_ENTRIES = "list_entries"
    GET_ENTRY = "get_entry"
    CREATE_ENTRY = "create_entry"
    UPDATE_ENTRY = "update_entry"
    DELETE_ENTRY = "delete_entry"
    PUBLISH_ENTRY = "publish_entry"
    UNPUBLISH_ENTRY = "unpublish_entry"
    PROBE_COLLECTION = "probe_collection"
    LIST_CONTENT_TYPES = "list_content_types"
    GET_SCHEMA = "get_schema"
    CREATE_CONTENT_TYPE = "create_content_type"
    UPDATE_CONTENT_TYPE = "update_content_type"
    DELETE_CONTENT_TYPE = "delete_content_type"
    LIST_COMPONENTS = "list_components"
    GET_COMPONENT = "get_component"
    CREATE_COMPONENT = "create_component"
    UPDATE_COMPONENT = "update_component"
    UPLOAD_MEDIA = "upload_media"

    @property
    def is_write(self) -> bool:
        return self not in _READ_OPERATIONS


_READ_OPERATIONS = frozenset(
    {
        Operation.LIST_ENTRIES,
        Operation.GET_ENTRY,
        Operation.PROBE_COLLECTION,
        Operation.LIST_CONTENT_TYPES,
        Operation.GET_SCHEMA,
        Operation.LIST_COMPONENTS,
        Operation.GET_COMPONENT,
    }
)

_ENTRY_LEVEL = frozenset(
    {
        Operation.GET_ENTRY,
        Operation.UPDATE_ENTRY,
        Operation.DELETE_ENTRY,
        Operation.PUBLISH_ENTRY,
        Operation.UNPUBLISH_ENTRY,
    }
)

_COLLECTION_METHODS: dict[Operation, str] = {
    Operation.LIST_ENTRIES: "GET",
    Operation.GET_ENTRY: "GET",
    Operation.CREATE_ENTRY: "POST",
    Operation.UPDATE_ENTRY: "PUT",
    Operation.DELETE_ENTRY: "DELETE",
    Operation.PUBLISH_ENTRY: "PUT",
    Operation.UNPUBLISH_ENTRY: "PUT",
}

# (método, plantilla de path) de las operaciones de esquema, solo admin.
_BUILDER_ROUTES: dict[Operation, tuple[str, str]] = {
    Operation.GET_SCHEMA: ("GET", "/content-types/{uid}"),
    Operation.CREATE_CONTENT_TYPE: ("POST", "/content-types"),
    Operation.UPDATE_CONTENT_TYPE: ("PUT", "/content-types/{uid}"),
    Operation.DELETE_CONTENT_TYPE: ("DELETE", "/content-types/{uid}"),
    Operation.LIST_COMPONENTS: ("GET", "/components"),
    Operation.GET_COMPONENT: ("GET", "/components/{uid}"),
    Operation.CREATE_COMPONENT: ("POST", "/components"),
    Operation.UPDATE_COMPONENT: ("PUT", "/components/{uid}"),
}


def model_name(uid: str) -> str:
    """`api::blog-post.blog-post` -> `blog-post`."""

    return uid.split("::", 1)[-1].split(".")[-1]


def pluralize(name: str) -> str:
    if not name:
        return name
    lower = name.lower()
    if lower.endswith("y") and len(name) > 1 and lower[-2] not in "aeiou":
        return name[:-1] + "ies"
    if lower.endswith(("s", "x", "z", "ch", "sh")):
        return name + "es"
    return name + "s"


def collection_name_variants(uid: str, plural_hint: str | None = None) -> list[str]:
    base = model_name(uid)
    raw = [plural_hint or "", pluralize(base), base]
    variants: list[str] = []
    for name in raw + [n.lower() for n in raw]:
        if name and name not in variants:
            variants.append(name)
    return variants


def _segment(value: Any) -> str:
    return quote(str(value), safe="")


class EndpointResolver:
    def __init__(self, settings: AppSettings) -> None:
        self._settings = settings

    def _public_mode(self, operation: Operation) -> CredentialMode | None:
        if self._settings.has_api_token:
            return CredentialMode.API_TOKEN
        if not operation.is_write:
            return CredentialMode.ANONYMOUS_PROBE
        return None

    def resolve(
        self,
        operation: Operation,
        uid: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> FallbackPlan:
        extra = extra or {}
        admin = self._settings.has_admin_credentials
        candidates: list[EndpointCandidate] = []

        if operation in _BUILDER_ROUTES:
            method, template = _BUILDER_ROUTES[operation]
            if "{uid}" in template and not uid:
                raise InvalidRequest(f"{operation.value} requires a uid")
            if admin:
                candidates.append(
                    EndpointCandidate(
                        mode=CredentialMode.ADMIN_SESSION,
                        method=method,
                        endpoint=CONTENT_TYPE_BUILDER + template.format(uid=uid),
                        surface=ApiSurface.CONTENT_TYPE_BUILDER,
                    )
                )
        elif operation is Operation.LIST_CONTENT_TYPES:
            if admin:
                candidates.append(
                    EndpointCandidate(
                        mode=CredentialMode.ADMIN_SESSION,
                        endpoint=f"{CONTENT_TYPE_BUILDER}/content-types",
                        surface=ApiSurface.CONTENT_TYPE_BUILDER,
                    )
                )
                candidates.append(
                    EndpointCandidate(
                        mode=CredentialMode.ADMIN_SESSION,
                        endpoint="/content-manager/content-types",
                        surface=ApiSurface.CONTENT_MANAGER,
                    )
                )
        elif operation is Operation.UPLOAD_MEDIA:
            if self._settings.has_api_token:
                candidates.append(
                    EndpointCandidate(
                        mode=CredentialMode.API_TOKEN,
                        method="POST",
                        endpoint="/api/upload",
                        surface=ApiSurface.UPLOAD,
                    )
                )
            if admin:
                candidates.append(
                    EndpointCandidate(
                        mode=CredentialMode.ADMIN_SESSION,
                        method="POST",
                        endpoint="/upload",
                        surface=ApiSurface.UPLOAD,
                    )
                )
        elif operation is Operation.PROBE_COLLECTION:
            name = extra.get("collection")
            if not name:
                raise InvalidRequest("probe_collection requires a collection name")
            mode = self._public_mode(operation)
            if mode is not None:
                candidates.append(
                    EndpointCandidate(mode=mode, endpoint=f"/api/{_segment(name)}")
                )
        else:
            candidates = self._collection_candidates(operation, uid, extra, admin)

        return FallbackPlan(operation=operation.value, candidates=candidates)

    def _collection_candidates(
        self,
        operation: Operation,
        uid: str | None,
        extra: Mapping[str, Any],
        admin: bool,
    ) -> list[EndpointCandidate]:
        if not uid:
            raise InvalidRequest(f"{operation.value} requires a content type uid")
        suffix = ""
        if operation in _ENTRY_LEVEL:
            entry_id = extra.get("entry_id")
            if entry_id in (None, ""):
                raise InvalidRequest(f"{operation.value} requires an entry id")
            suffix = f"/{_segment(entry_id)}"

        candidates: list[EndpointCandidate] = []
        if admin:
            method = _COLLECTION_METHODS[operation]
            admin_path = f"{CONTENT_MANAGER}/{uid}{suffix}"
            if operation is Operation.PUBLISH_ENTRY:
                method, admin_path = "POST", admin_path + "/actions/publish"
            elif operation is Operation.UNPUBLISH_ENTRY:
                method, admin_path = "POST", admin_path + "/actions/unpublish"
            candidates.append(
                EndpointCandidate(
                    mode=CredentialMode.ADMIN_SESSION,
                    method=method,
                    endpoint=admin_path,
                    surface=ApiSurface.CONTENT_MANAGER,
                )
            )

        mode = self._public_mode(operation)
        if mode is not None:
            for name in collection_name_variants(uid, extra.get("plural_name")):
                candidates.append(
                    EndpointCandidate(
                        mode=mode,
                        method=_COLLECTION_METHODS[operation],
                        endpoint=f"/api/{name}{suffix}",
                        surface=ApiSurface.PUBLIC,
                    )
                )
        return candidates
