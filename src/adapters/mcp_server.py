"""Servidor MCP que expone las operaciones de Strapi como tools y resources.

Las tools reciben argumentos snake_case (FastMCP deriva el JSON schema de los
type hints) y devuelven texto JSON. Los errores del adaptador se convierten en
errores de tool con texto
`{"error": {"kind": ..., "detail": ..., "attempts": [...]}}`.

Los docstrings de cada tool son la ayuda que ve el cliente MCP (en inglés).

Resources:
  strapi://content-types                      content types descubiertos
  strapi://content-type/{uid}[?query]         entradas de un content type
  strapi://content-type/{uid}/{entry_id}      una entrada
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ResourceError, ToolError

from adapters.json_exporter import export_json_text
from core.config import AppSettings
from core.errors import StrapiAdapterError
from core.services.resource_uri import SCHEME, parse_resource_uri
from core.services.strapi_service import StrapiService, build_service

logger = logging.getLogger(__name__)

SERVER_NAME = "strapi-mcp"

INSTRUCTIONS = (
    "Strapi CMS tools. Content types are addressed by UID, e.g. 'api::article.article'. "
    "Call list_content_types first when the UID is unknown. "
    "Query options follow Strapi syntax: filters, pagination {page, pageSize}, "
    "sort ['field:asc'], populate, fields. "
    "Schema and component changes need an admin account and STRAPI_DEV_MODE=true."
)


async def _run(operation: str, call: Awaitable[Any]) -> str:
    try:
        result = await call
    except StrapiAdapterError as exc:
        logger.warning("%s failed: %s: %s", operation, exc.kind.value, exc.detail)
        raise ToolError(export_json_text(exc.to_payload())) from exc
    except Exception:
        logger.exception("Unexpected failure in %s", operation)
        raise
    return export_json_text(result)


def build_server(
    settings: AppSettings | None = None,
    *,
    service: StrapiService | None = None,
) -> FastMCP:
    settings = settings or AppSettings()
    service = service or build_service(settings)

    @asynccontextmanager
    async def lifespan(_: FastMCP) -> AsyncIterator[None]:
        logger.info("Connected to Strapi at %s", settings.url)
        try:
            yield
        finally:
            await service.aclose()

    mcp = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS, lifespan=lifespan)

    # -- content types -------------------------------------------------

    @mcp.tool()
    async def list_content_types() -> str:
        """List all available content types in Strapi."""
        return await _run("list_content_types", service.list_content_types())

    @mcp.tool()
    async def refresh_content_types() -> str:
        """Clear the content-type cache and discover content types again."""
        return await _run("refresh_content_types", service.refresh_content_types())

    @mcp.tool()
    async def get_content_type_schema(content_type: str) -> str:
        """Get the schema (fields, types, relations) for a content type UID."""
        return await _run("get_content_type_schema", service.get_content_type_schema(content_type))

    @mcp.tool()
    async def create_content_type(definition: dict[str, Any]) -> str:
        """Create a content type. Needs displayName, singularName, pluralName and attributes."""
        return await _run("create_content_type", service.create_content_type(definition))

    @mcp.tool()
    async def update_content_type(content_type: str, definition: dict[str, Any]) -> str:
        """Update the schema of an existing content type."""
        return await _run("update_content_type", service.update_content_type(content_type, definition))

    @mcp.tool()
    async def delete_content_type(content_type: str) -> str:
        """Delete a content type and all of its entries."""
        return await _run("delete_content_type", service.delete_content_type(content_type))

    # -- components ----------------------------------------------------

    @mcp.tool()
    async def list_components() -> str:
        """List all components defined in Strapi."""
        return await _run("list_components", service.list_components())

    @mcp.tool()
    async def get_component_schema(component_uid: str) -> str:
        """Get the schema of a component, e.g. 'shared.seo'."""
        return await _run("get_component_schema", service.get_component_schema(component_uid))

    @mcp.tool()
    async def create_component(definition: dict[str, Any]) -> str:
        """Create a component. Needs category, displayName and attributes."""
        return await _run("create_component", service.create_component(definition))

    @mcp.tool()
    async def update_component(component_uid: str, definition: dict[str, Any]) -> str:
        """Update an existing component."""
        return await _run("update_component", service.update_component(component_uid, definition))

    # -- entries -------------------------------------------------------

    @mcp.tool()
    async def get_entries(content_type: str, options: str | dict[str, Any] | None = None) -> str:
        """Get entries with optional filters, pagination, sort, populate and fields.

        `options` is a JSON object (or JSON string), e.g.
        {"filters": {"title": {"$contains": "hello"}}, "pagination": {"page": 1, "pageSize": 10},
        "sort": ["title:asc"], "populate": ["author"], "fields": ["title"]}
        """
        return await _run("get_entries", service.get_entries(content_type, options))

    @mcp.tool()
    async def get_entry(content_type: str, entry_id: str, options: str | dict[str, Any] | None = None) -> str:
        """Get one entry by id. `options` may carry populate and fields."""
        return await _run("get_entry", service.get_entry(content_type, entry_id, options))

    @mcp.tool()
    async def create_entry(content_type: str, data: dict[str, Any]) -> str:
        """Create a new entry for a content type."""
        return await _run("create_entry", service.create_entry(content_type, data))

    @mcp.tool()
    async def update_entry(content_type: str, entry_id: str, data: dict[str, Any]) -> str:
        """Update an existing entry."""
        return await _run("update_entry", service.update_entry(content_type, entry_id, data))

    @mcp.tool()
    async def delete_entry(content_type: str, entry_id: str) -> str:
        """Delete an entry. Not retried automatically."""
        return await _run("delete_entry", service.delete_entry(content_type, entry_id))

    @mcp.tool()
    async def publish_entry(content_type: str, entry_id: str) -> str:
        """Publish a draft entry."""
        return await _run("publish_entry", service.publish_entry(content_type, entry_id))

    @mcp.tool()
    async def unpublish_entry(content_type: str, entry_id: str) -> str:
        """Move a published entry back to draft."""
        return await _run("unpublish_entry", service.unpublish_entry(content_type, entry_id))

    # -- relations -----------------------------------------------------

    @mcp.tool()
    async def connect_relation(
        content_type: str,
        entry_id: str,
        relation_field: str,
        related_ids: list[str | int],
    ) -> str:
        """Connect related entries to an entry's relation field."""
        return await _run(
            "connect_relation",
            service.connect_relation(content_type, entry_id, relation_field, related_ids),
        )

    @mcp.tool()
    async def disconnect_relation(
        content_type: str,
        entry_id: str,
        relation_field: str,
        related_ids: list[str | int],
    ) -> str:
        """Disconnect related entries from an entry's relation field."""
        return await _run(
            "disconnect_relation",
            service.disconnect_relation(content_type, entry_id, relation_field, related_ids),
        )

    # -- media ---------------------------------------------------------

    @mcp.tool()
    async def upload_media(file_data: str, file_name: str, file_type: str | None = None) -> str:
        """Upload a base64-encoded file to the Strapi media library."""
        return await _run("upload_media", service.upload_media(file_data, file_name, file_type))

    @mcp.tool()
    async def upload_media_from_path(path: str, file_name: str | None = None, file_type: str | None = None) -> str:
        """Upload a local file. The path must be inside STRAPI_ALLOWED_UPLOAD_DIRS."""
        return await _run("upload_media_from_path", service.upload_media_from_path(path, file_name, file_type))

    @mcp.tool()
    async def upload_media_from_url(url: str, file_name: str | None = None, file_type: str | None = None) -> str:
        """Download a file from an http(s) URL and upload it to the media library."""
        return await _run("upload_media_from_url", service.upload_media_from_url(url, file_name, file_type))

    # -- resources -----------------------------------------------------

    async def read_resource(uri: str) -> str:
        try:
            ref = parse_resource_uri(uri, scheme=SCHEME)
            if ref.entry_id is not None:
                result = await service.get_entry(ref.uid, ref.entry_id, ref.options)
            else:
                result = await service.get_entries(ref.uid, ref.options)
        except StrapiAdapterError as exc:
            logger.warning("Reading %s failed: %s: %s", uri, exc.kind.value, exc.detail)
            raise ResourceError(export_json_text(exc.to_payload())) from exc
        return export_json_text(result)

    @mcp.resource(f"{SCHEME}://content-types", name="content-types", mime_type="application/json")
    async def content_types_resource() -> str:
        """Content types discovered in Strapi."""
        return export_json_text(await service.list_content_types())

    @mcp.resource(f"{SCHEME}://content-type/{{uid}}", mime_type="application/json")
    async def entries_resource(uid: str) -> str:
        """Entries of a content type; accepts ?filters=&page=&pageSize=&sort=&populate=&fields=."""
        return await read_resource(f"{SCHEME}://content-type/{uid}")

    @mcp.resource(f"{SCHEME}://content-type/{{uid}}/{{entry_id}}", mime_type="application/json")
    async def entry_resource(uid: str, entry_id: str) -> str:
        """A single entry; accepts ?populate=&fields=."""
        return await read_resource(f"{SCHEME}://content-type/{uid}/{entry_id}")

    return mcp
