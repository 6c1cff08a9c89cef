from __future__ import annotations

import json

import httpx
import pytest
from mcp.server.fastmcp.exceptions import ToolError

from adapters.mcp_server import build_server
from conftest import make_service

EXPECTED_TOOLS = {
    "list_content_types",
    "refresh_content_types",
    "get_content_type_schema",
    "create_content_type",
    "update_content_type",
    "delete_content_type",
    "list_components",
    "get_component_schema",
    "create_component",
    "update_component",
    "get_entries",
    "get_entry",
    "create_entry",
    "update_entry",
    "delete_entry",
    "publish_entry",
    "unpublish_entry",
    "connect_relation",
    "disconnect_relation",
    "upload_media",
    "upload_media_from_path",
    "upload_media_from_url",
}


@pytest.mark.asyncio
async def test_server_exposes_every_tool(token_settings) -> None:
    service = make_service(token_settings, lambda _: httpx.Response(404))
    server = build_server(token_settings, service=service)

    tools = await server.list_tools()

    assert {tool.name for tool in tools} == EXPECTED_TOOLS
    await service.aclose()


@pytest.mark.asyncio
async def test_server_registers_entry_resources(token_settings) -> None:
    service = make_service(token_settings, lambda _: httpx.Response(404))
    server = build_server(token_settings, service=service)

    templates = await server.list_resource_templates()
    resources = await server.list_resources()

    assert {t.uriTemplate for t in templates} == {
        "strapi://content-type/{uid}",
        "strapi://content-type/{uid}/{entry_id}",
    }
    assert len(resources) == 1
    assert str(resources[0].uri).startswith("strapi://content-types")
    await service.aclose()


@pytest.mark.asyncio
async def test_adapter_errors_surface_as_tool_errors(token_settings) -> None:
    service = make_service(token_settings, lambda _: httpx.Response(404))
    server = build_server(token_settings, service=service)

    with pytest.raises(ToolError) as info:
        await server.call_tool("get_entry", {"content_type": "api::article.article", "entry_id": "1"})

    assert "ResourceNotFound" in str(info.value)
    await service.aclose()


@pytest.mark.asyncio
async def test_entries_resource_passes_query_options(token_settings) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": [{"id": 1}], "meta": {}})

    service = make_service(token_settings, handler)
    server = build_server(token_settings, service=service)

    contents = list(await server.read_resource("strapi://content-type/api::article.article?page=2&pageSize=1"))

    assert json.loads(contents[0].content) == {"data": [{"id": 1}], "meta": {}}
    assert seen[0].url.params["pagination[page]"] == "2"
    assert seen[0].url.params["pagination[pageSize]"] == "1"
    await service.aclose()
