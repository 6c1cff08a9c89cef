"""Operaciones lógicas sobre Strapi.

Todas siguen el mismo camino: el resolver construye un FallbackPlan, el ejecutor
lo recorre con un constructor de request por candidato y el resultado
normalizado se proyecta a la forma que devuelve la capa MCP. Ninguna operación
lleva su propia cadena de fallbacks.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

import httpx

from adapters.http_client import build_async_client
from adapters.media_sources import MediaFile, from_base64, from_path, from_url
from adapters.session_auth import SessionAuthenticator
from core.config import AppSettings
from core.credentials import CredentialStore
from core.domain.models import (
    ApiSurface,
    AttributeSpec,
    ContentTypeDescriptor,
    EndpointCandidate,
    NormalizedResult,
    QueryOptions,
    ResultKind,
)
from core.errors import (
    AccessDenied,
    AuthUnavailable,
    ConfigurationError,
    InvalidRequest,
    ResourceNotFound,
    UpstreamBadRequest,
)
from core.interfaces.stores import ContentTypeStore, TokenStore
from core.services.content_type_cache import default_cache
from core.services.endpoint_resolver import EndpointResolver, Operation
from core.services.fallback_executor import FallbackExecutor, RequestBuilder, RequestSpec
from core.services.normalizer import descriptor_from_raw, normalize_schema
from core.services.query import encode_params, parse_options
from core.services.validation import ValidationRuleTable

logger = logging.getLogger(__name__)

_INTERNAL_PREFIXES = ("admin::", "plugin::", "strapi::")
_SINGLE_ENTRY_OPTIONS = {"populate", "fields", "locale", "status", "publication_state"}


def singularize(name: str) -> str:
    if name.endswith("ies") and len(name) > 3:
        return name[:-3] + "y"
    if name.endswith("s") and not name.endswith("ss"):
        return name[:-1]
    return name


def infer_attribute_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "relation" if all(isinstance(v, Mapping) and "id" in v for v in value) and value else "json"
    if isinstance(value, Mapping):
        if "data" in value or "id" in value:
            return "relation"
        return "json"
    return "string"


def descriptor_from_sample(collection: str, sample: Mapping[str, Any] | None) -> ContentTypeDescriptor:
    """Descriptor de una colección encontrada sondeando la API pública.

    Los atributos salen de las claves de la primera entrada (sin `id`); en v4
    los campos van anidados bajo `attributes`.
    """

    singular = singularize(collection)
    fields: Mapping[str, Any] = {}
    if isinstance(sample, Mapping):
        nested = sample.get("attributes")
        fields = nested if isinstance(nested, Mapping) else sample
    attributes = {
        str(key): AttributeSpec(type=infer_attribute_type(value))
        for key, value in fields.items()
        if key != "id"
    }
    return ContentTypeDescriptor(
        uid=f"api::{singular}.{singular}",
        api_id=singular,
        display_name=singular.replace("-", " ").replace("_", " ").title(),
        description=f"Discovered from /api/{collection}",
        singular_name=singular,
        plural_name=collection,
        attributes=attributes,
    )


def _coerce_id(value: Any) -> int | str:
    if isinstance(value, bool):
        raise InvalidRequest("Relation ids must be numbers or strings")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        raise InvalidRequest("Relation ids must not be empty")
    return int(text) if text.isdigit() else text


def extract_relation_ids(value: Any) -> list[int | str] | None:
    """Ids relacionados en las formas que usa Strapi para relaciones pobladas.

    Devuelve `None` cuando la forma no permite conocer los ids (p.ej. el
    `{"count": N}` del content-manager); `[]` solo si la relación está vacía.
    """

    if value is None:
        return []
    if isinstance(value, Mapping):
        if "data" in value:
            return extract_relation_ids(value["data"])
        if "id" in value:
            return [_coerce_id(value["id"])]
        return None
    if isinstance(value, list):
        ids: list[int | str] = []
        for item in value:
            found = extract_relation_ids(item)
            if found is None:
                return None
            ids.extend(found)
        return ids
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return [_coerce_id(value)]
    return None


class StrapiService:
    def __init__(
        self,
        settings: AppSettings,
        client: httpx.AsyncClient,
        *,
        store: TokenStore | None = None,
        cache: ContentTypeStore | None = None,
        resolver: EndpointResolver | None = None,
        validation: ValidationRuleTable | None = None,
        media_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.store = store or CredentialStore.from_settings(settings)
        self.cache = cache if cache is not None else default_cache
        self.resolver = resolver or EndpointResolver(settings)
        self.authenticator = SessionAuthenticator(client, self.store, settings)
        self.executor = FallbackExecutor(client, self.store, self.authenticator)
        self.validation = validation or ValidationRuleTable.from_mapping(settings.validation_rules)
        self._media_client = media_client

    async def aclose(self) -> None:
        await self.client.aclose()

    # ------------------------------------------------------------------
    # utilidades
    # ------------------------------------------------------------------

    def _extra(self, uid: str, **values: Any) -> dict[str, Any]:
        extra: dict[str, Any] = dict(values)
        find = getattr(self.cache, "find", None)
        descriptor = find(uid) if find else None
        if descriptor is not None and descriptor.plural_name:
            extra["plural_name"] = descriptor.plural_name
        return extra

    @staticmethod
    def _query_builder(options: QueryOptions) -> RequestBuilder:
        def build(candidate: EndpointCandidate) -> RequestSpec:
            params = options.to_params()
            if candidate.surface is ApiSurface.CONTENT_MANAGER:
                # La API admin usa page/pageSize planos y un único sort separado por comas.
                pagination = params.pop("pagination", None) or {}
                params.update(pagination)
                if "sort" in params:
                    params["sort"] = ",".join(params["sort"])
            return RequestSpec(params=encode_params(params) or None)

        return build

    @staticmethod
    def _entry_body(data: Mapping[str, Any]) -> RequestBuilder:
        def build(candidate: EndpointCandidate) -> RequestSpec:
            if candidate.surface is ApiSurface.CONTENT_MANAGER:
                return RequestSpec(json=dict(data))
            return RequestSpec(json={"data": dict(data)})

        return build

    @staticmethod
    def _entry_payload(result: NormalizedResult) -> Any:
        entry = result.as_entry()
        if result.warnings:
            return {"data": entry if entry is not None else result.data, "warnings": result.warnings}
        return entry

    @staticmethod
    def _collection_payload(result: NormalizedResult) -> dict[str, Any]:
        payload = result.as_collection()
        if result.warnings:
            payload["warnings"] = list(result.warnings)
        return payload

    def _require_dev_mode(self, action: str) -> None:
        if not self.settings.dev_mode:
            raise ConfigurationError(
                f"{action} changes the Strapi schema; enable STRAPI_DEV_MODE=true "
                "and run Strapi in development mode"
            )

    # ------------------------------------------------------------------
    # content types
    # ------------------------------------------------------------------

    async def discover_content_types(self) -> list[ContentTypeDescriptor]:
        cached = self.cache.get()
        if cached:
            return cached

        descriptors: list[ContentTypeDescriptor] = []
        plan = self.resolver.resolve(Operation.LIST_CONTENT_TYPES)
        if plan:
            try:
                result = await self.executor.execute(plan)
            except (ResourceNotFound, AccessDenied, AuthUnavailable) as exc:
                logger.info("Admin content-type listing unavailable (%s); probing public API", exc.kind.value)
            else:
                items = result.data if isinstance(result.data, list) else []
                for item in items:
                    descriptor = descriptor_from_raw(item)
                    if descriptor is not None and not descriptor.uid.startswith(_INTERNAL_PREFIXES):
                        descriptors.append(descriptor)

        if not descriptors:
            descriptors = await self._probe_public_collections(self.settings.probe_names)

        self.cache.set(descriptors)
        logger.info("Discovered %d content types", len(descriptors))
        return self.cache.get()

    async def _probe_public_collections(self, names: Iterable[str]) -> list[ContentTypeDescriptor]:
        found: list[ContentTypeDescriptor] = []
        probe = RequestSpec(params=encode_params({"pagination": {"pageSize": 1}}))
        for name in names:
            plan = self.resolver.resolve(Operation.PROBE_COLLECTION, extra={"collection": name})
            if not plan:
                continue
            try:
                result = await self.executor.execute(plan, lambda _: probe)
            except (ResourceNotFound, AccessDenied, AuthUnavailable, UpstreamBadRequest):
                logger.debug("Probe for /api/%s found nothing", name)
                continue
            entries = result.as_collection()["data"]
            sample = entries[0] if entries and isinstance(entries[0], Mapping) else None
            found.append(descriptor_from_sample(name, sample))
        return found

    async def list_content_types(self) -> list[dict[str, Any]]:
        return [d.summary() for d in await self.discover_content_types()]

    async def refresh_content_types(self) -> list[dict[str, Any]]:
        self.cache.clear()
        return await self.list_content_types()

    async def get_content_type_schema(self, uid: str) -> dict[str, Any]:
        plan = self.resolver.resolve(Operation.GET_SCHEMA, uid)
        result = await self.executor.execute(plan)
        descriptor = normalize_schema(result.raw)
        if descriptor is None:
            return {"data": result.data, "warnings": ["schema response had an unexpected shape"]}
        return descriptor.model_dump(mode="json", by_alias=True, exclude_none=True)

    async def create_content_type(self, definition: Mapping[str, Any]) -> Any:
        self._require_dev_mode("create_content_type")
        body = dict(definition) if "contentType" in definition else {"contentType": dict(definition)}
        content_type = body["contentType"]
        missing = [k for k in ("displayName", "singularName", "pluralName") if not content_type.get(k)]
        if missing:
            raise InvalidRequest("Content type definition is missing: " + ", ".join(missing))
        content_type.setdefault("kind", "collectionType")
        content_type.setdefault("attributes", {})
        plan = self.resolver.resolve(Operation.CREATE_CONTENT_TYPE)
        result = await self.executor.execute(plan, lambda _: RequestSpec(json=body), write=True)
        self.cache.clear()
        return self._entry_payload(result)

    async def update_content_type(self, uid: str, definition: Mapping[str, Any]) -> Any:
        self._require_dev_mode("update_content_type")
        body = dict(definition) if "contentType" in definition else {"contentType": dict(definition)}
        plan = self.resolver.resolve(Operation.UPDATE_CONTENT_TYPE, uid)
        result = await self.executor.execute(plan, lambda _: RequestSpec(json=body), write=True)
        self.cache.clear()
        return self._entry_payload(result)

    async def delete_content_type(self, uid: str) -> dict[str, Any]:
        self._require_dev_mode("delete_content_type")
        plan = self.resolver.resolve(Operation.DELETE_CONTENT_TYPE, uid)
        result = await self.executor.execute(plan, write=True)
        self.cache.clear()
        payload: dict[str, Any] = {"deleted": True, "uid": uid}
        if result.warnings:
            payload["warnings"] = result.warnings
        return payload

    # ------------------------------------------------------------------
    # componentes
    # ------------------------------------------------------------------

    async def list_components(self) -> list[dict[str, Any]]:
        plan = self.resolver.resolve(Operation.LIST_COMPONENTS)
        result = await self.executor.execute(plan)
        components: list[dict[str, Any]] = []
        for item in result.as_collection()["data"]:
            if not isinstance(item, Mapping):
                continue
            schema = item.get("schema") if isinstance(item.get("schema"), Mapping) else {}
            info = schema.get("info") if isinstance(schema.get("info"), Mapping) else {}
            components.append(
                {
                    "uid": item.get("uid"),
                    "category": item.get("category") or schema.get("category"),
                    "displayName": schema.get("displayName") or info.get("displayName") or item.get("uid"),
                    "description": schema.get("description") or info.get("description") or "",
                }
            )
        return components

    async def get_component_schema(self, uid: str) -> Any:
        plan = self.resolver.resolve(Operation.GET_COMPONENT, uid)
        result = await self.executor.execute(plan)
        return self._entry_payload(result)

    async def create_component(self, definition: Mapping[str, Any]) -> Any:
        self._require_dev_mode("create_component")
        body = dict(definition) if "component" in definition else {"component": dict(definition)}
        component = body["component"]
        missing = [k for k in ("category", "displayName") if not component.get(k)]
        if missing:
            raise InvalidRequest("Component definition is missing: " + ", ".join(missing))
        component.setdefault("attributes", {})
        plan = self.resolver.resolve(Operation.CREATE_COMPONENT)
        result = await self.executor.execute(plan, lambda _: RequestSpec(json=body), write=True)
        return self._entry_payload(result)

    async def update_component(self, uid: str, definition: Mapping[str, Any]) -> Any:
        self._require_dev_mode("update_component")
        body = dict(definition) if "component" in definition else {"component": dict(definition)}
        plan = self.resolver.resolve(Operation.UPDATE_COMPONENT, uid)
        result = await self.executor.execute(plan, lambda _: RequestSpec(json=body), write=True)
        return self._entry_payload(result)

    # ------------------------------------------------------------------
    # entradas
    # ------------------------------------------------------------------

    async def get_entries(
        self,
        uid: str,
        options: str | Mapping[str, Any] | QueryOptions | None = None,
    ) -> dict[str, Any]:
        query = parse_options(options)
        plan = self.resolver.resolve(Operation.LIST_ENTRIES, uid, self._extra(uid))
        result = await self.executor.execute(plan, self._query_builder(query))
        return self._collection_payload(result)

    async def get_entry(
        self,
        uid: str,
        entry_id: str | int,
        options: str | Mapping[str, Any] | QueryOptions | None = None,
    ) -> Any:
        query = parse_options(options)
        query = QueryOptions.model_validate(
            query.model_dump(include=_SINGLE_ENTRY_OPTIONS, exclude_none=True)
        )
        plan = self.resolver.resolve(Operation.GET_ENTRY, uid, self._extra(uid, entry_id=entry_id))
        result = await self.executor.execute(plan, self._query_builder(query))
        if result.kind is ResultKind.EMPTY:
            raise ResourceNotFound(f"Entry {entry_id} of {uid} not found")
        return self._entry_payload(result)

    async def create_entry(self, uid: str, data: Mapping[str, Any]) -> Any:
        if not isinstance(data, Mapping) or not data:
            raise InvalidRequest("data must be a non-empty object")
        self.validation.validate(uid, data)
        plan = self.resolver.resolve(Operation.CREATE_ENTRY, uid, self._extra(uid))
        result = await self.executor.execute(plan, self._entry_body(data), write=True)
        return self._entry_payload(result)

    async def update_entry(
        self,
        uid: str,
        entry_id: str | int,
        data: Mapping[str, Any],
    ) -> Any:
        if not isinstance(data, Mapping) or not data:
            raise InvalidRequest("data must be a non-empty object")
        self.validation.validate(uid, data, partial=True)
        plan = self.resolver.resolve(Operation.UPDATE_ENTRY, uid, self._extra(uid, entry_id=entry_id))
        result = await self.executor.execute(plan, self._entry_body(data), write=True)
        return self._entry_payload(result)

    async def delete_entry(self, uid: str, entry_id: str | int) -> dict[str, Any]:
        plan = self.resolver.resolve(Operation.DELETE_ENTRY, uid, self._extra(uid, entry_id=entry_id))
        result = await self.executor.execute(plan, write=True)
        payload: dict[str, Any] = {"deleted": True, "contentType": uid, "id": str(entry_id)}
        if result.warnings:
            payload["warnings"] = result.warnings
        return payload

    async def _set_publication(self, operation: Operation, uid: str, entry_id: str | int) -> Any:
        published_at = (
            datetime.now(timezone.utc).isoformat() if operation is Operation.PUBLISH_ENTRY else None
        )

        def build(candidate: EndpointCandidate) -> RequestSpec:
            if candidate.surface is ApiSurface.CONTENT_MANAGER:
                return RequestSpec()
            return RequestSpec(json={"data": {"publishedAt": published_at}})

        plan = self.resolver.resolve(operation, uid, self._extra(uid, entry_id=entry_id))
        result = await self.executor.execute(plan, build, write=True)
        return self._entry_payload(result)

    async def publish_entry(self, uid: str, entry_id: str | int) -> Any:
        return await self._set_publication(Operation.PUBLISH_ENTRY, uid, entry_id)

    async def unpublish_entry(self, uid: str, entry_id: str | int) -> Any:
        return await self._set_publication(Operation.UNPUBLISH_ENTRY, uid, entry_id)

    # ------------------------------------------------------------------
    # relaciones
    # ------------------------------------------------------------------

    async def _current_relation_ids(
        self, uid: str, entry_id: str | int, field: str
    ) -> list[int | str] | None:
        entry = await self.get_entry(uid, entry_id, {"populate": [field]})
        if isinstance(entry, Mapping) and "warnings" in entry:
            entry = entry.get("data")
        if not isinstance(entry, Mapping):
            return None
        if field in entry:
            return extract_relation_ids(entry[field])
        attributes = entry.get("attributes")
        if isinstance(attributes, Mapping) and field in attributes:
            return extract_relation_ids(attributes[field])
        return None

    async def _rewrite_relation(
        self,
        uid: str,
        entry_id: str | int,
        field: str,
        related_ids: Sequence[Any],
        *,
        connect: bool,
    ) -> Any:
        if not field:
            raise InvalidRequest("relation_field is required")
        if not related_ids:
            raise InvalidRequest("related_ids must contain at least one id")
        requested = [_coerce_id(rid) for rid in related_ids]
        current = await self._current_relation_ids(uid, entry_id, field)
        plan = self.resolver.resolve(Operation.UPDATE_ENTRY, uid, self._extra(uid, entry_id=entry_id))
        if current is None:
            # ids actuales desconocidos: se delega el cambio a Strapi
            op = "connect" if connect else "disconnect"
            logger.warning(
                "Could not read current %s ids on %s/%s, sending a %s operation",
                field,
                uid,
                entry_id,
                op,
            )
            body = self._entry_body({field: {op: [{"id": rid} for rid in requested]}})
            result = await self.executor.execute(plan, body, write=True)
            return self._entry_payload(result)
        if connect:
            merged = current + [rid for rid in requested if rid not in current]
        else:
            merged = [rid for rid in current if rid not in requested]
        logger.info(
            "%s %s on %s/%s: %d -> %d related ids",
            "Connecting" if connect else "Disconnecting",
            field,
            uid,
            entry_id,
            len(current),
            len(merged),
        )
        result = await self.executor.execute(plan, self._entry_body({field: merged}), write=True)
        return self._entry_payload(result)

    async def connect_relation(
        self, uid: str, entry_id: str | int, field: str, related_ids: Sequence[Any]
    ) -> Any:
        return await self._rewrite_relation(uid, entry_id, field, related_ids, connect=True)

    async def disconnect_relation(
        self, uid: str, entry_id: str | int, field: str, related_ids: Sequence[Any]
    ) -> Any:
        return await self._rewrite_relation(uid, entry_id, field, related_ids, connect=False)

    # ------------------------------------------------------------------
    # media
    # ------------------------------------------------------------------

    async def _upload(self, media: MediaFile) -> Any:
        logger.info("Uploading %s (%d bytes, %s)", media.name, media.size, media.mime_type)
        plan = self.resolver.resolve(Operation.UPLOAD_MEDIA)
        spec_timeout = self.settings.upload_timeout_seconds

        def build(_: EndpointCandidate) -> RequestSpec:
            return RequestSpec(files=media.as_multipart(), timeout=spec_timeout)

        result = await self.executor.execute(plan, build, write=True)
        files = result.as_collection()["data"]
        if result.warnings:
            return {"data": files, "warnings": result.warnings}
        return files

    async def upload_media(self, file_data: str, file_name: str, file_type: str | None = None) -> Any:
        if not file_name:
            raise InvalidRequest("file_name is required")
        media = from_base64(file_data, file_name, file_type, max_size=self.settings.max_upload_size)
        return await self._upload(media)

    async def upload_media_from_path(
        self,
        path: str,
        file_name: str | None = None,
        file_type: str | None = None,
    ) -> Any:
        media = from_path(
            path,
            allowed_dirs=self.settings.upload_dirs,
            max_size=self.settings.max_upload_size,
            file_name=file_name,
            mime_type=file_type,
        )
        return await self._upload(media)

    async def upload_media_from_url(
        self,
        url: str,
        file_name: str | None = None,
        file_type: str | None = None,
    ) -> Any:
        media = await from_url(
            url,
            settings=self.settings,
            file_name=file_name,
            mime_type=file_type,
            client=self._media_client,
        )
        return await self._upload(media)


def build_service(
    settings: AppSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> StrapiService:
    settings = settings or AppSettings()
    client = build_async_client(settings, transport=transport)
    return StrapiService(settings, client)
