"""
Unit tests for the MCP server wiring.

The handlers registered on the low-level server are exercised through
the server's request_handlers map, the same way the SDK dispatches them.
"""

import base64
import json
from importlib import metadata

import pytest
from mcp import types

from geomcp.config import ServerConfig
from geomcp.http.models import HttpRequest, HttpResponse
from geomcp.http.tracing import InMemorySpanSink, LogSpanSink
from geomcp.server import create_server, create_span_sink, describe_tool, render_output
from geomcp.tools.base import ToolOutput
from geomcp.tools.registry import build_registry


def make_execute(response: HttpResponse):
    async def execute(request: HttpRequest) -> HttpResponse:
        return response
    return execute


async def list_tools(server) -> list[types.Tool]:
    handler = server.request_handlers[types.ListToolsRequest]
    result = await handler(types.ListToolsRequest(method="tools/list"))
    return result.root.tools


async def call_tool(server, name: str, arguments: dict) -> types.CallToolResult:
    handler = server.request_handlers[types.CallToolRequest]
    request = types.CallToolRequest(
        method="tools/call",
        params=types.CallToolRequestParams(name=name, arguments=arguments),
    )
    result = await handler(request)
    return result.root


class TestRenderOutput:
    """Tests for render_output."""

    def test_data_as_json_text(self) -> None:
        """Data is rendered as JSON text."""
        content = render_output(ToolOutput.ok({"a": 1}))
        assert len(content) == 1
        assert content[0].type == "text"
        assert json.loads(content[0].text) == {"a": 1}

    def test_image(self) -> None:
        """Images are rendered as image content."""
        content = render_output(ToolOutput.ok_image(b"png", "image/png"))
        assert content[0].type == "image"
        assert base64.b64decode(content[0].data) == b"png"
        assert content[0].mimeType == "image/png"

    def test_failure(self) -> None:
        """Failures carry the error and details."""
        content = render_output(ToolOutput.fail("nope", code=2004))
        payload = json.loads(content[0].text)
        assert payload == {"error": "nope", "details": {"code": 2004}}


class TestDescribeTool:
    """Tests for describe_tool."""

    def test_annotations(self, config: ServerConfig) -> None:
        """Read-only and network hints are advertised."""
        registry = build_registry(make_execute(HttpResponse(200)), config)

        directions = describe_tool(registry.get("directions"))
        version = describe_tool(registry.get("version"))

        assert directions.annotations.readOnlyHint is True
        assert directions.annotations.openWorldHint is True
        assert version.annotations.openWorldHint is False
        assert "coordinates" in directions.inputSchema["properties"]


class TestServerHandlers:
    """Tests for list_tools and call_tool handlers."""

    @pytest.mark.asyncio
    async def test_list_tools_respects_filter(self, config: ServerConfig) -> None:
        """Only registered tools are listed."""
        registry = build_registry(make_execute(HttpResponse(200)), config, enable=["version", "matrix"])
        tools = await list_tools(create_server(registry))
        assert [t.name for t in tools] == ["matrix", "version"]

    @pytest.mark.asyncio
    async def test_call_tool_success(self, config: ServerConfig) -> None:
        """A successful call returns JSON text content."""
        registry = build_registry(make_execute(HttpResponse(200)), config)
        server = create_server(registry)
        await list_tools(server)

        result = await call_tool(server, "version", {})

        assert not result.isError
        payload = json.loads(result.content[0].text)
        assert payload["name"] == "geomcp"
        assert payload["version"] == config.client_version

    @pytest.mark.asyncio
    async def test_call_tool_api_failure(self, config: ServerConfig) -> None:
        """API rejections are reported to the agent as an error payload."""
        response = HttpResponse(403, body=b'{"message": "Forbidden"}')
        server = create_server(build_registry(make_execute(response), config))
        await list_tools(server)

        result = await call_tool(server, "forward_geocode", {"q": "Paris"})

        payload = json.loads(result.content[0].text)
        assert "HTTP 403" in payload["error"]
        assert payload["details"]["code"] == 2004

    @pytest.mark.asyncio
    async def test_call_unknown_tool(self, config: ServerConfig) -> None:
        """Unknown tools are reported as errors."""
        server = create_server(build_registry(make_execute(HttpResponse(200)), config, enable=["version"]))
        await list_tools(server)

        result = await call_tool(server, "directions", {"coordinates": []})

        assert result.isError


class TestSpanSinkSelection:
    """Tests for create_span_sink."""

    def test_disabled(self) -> None:
        """No sink when tracing is off."""
        assert create_span_sink(ServerConfig()) is None

    def test_log_sink(self) -> None:
        """The log sink is the default."""
        assert isinstance(create_span_sink(ServerConfig(tracing={"enabled": True})), LogSpanSink)

    def test_memory_sink(self) -> None:
        """The memory sink can be selected."""
        config = ServerConfig(tracing={"enabled": True, "sink": "memory"})
        assert isinstance(create_span_sink(config), InMemorySpanSink)


class TestSdkCompatibility:
    """The server is written against the 1.x low-level SDK API."""

    def test_sdk_major_version(self) -> None:
        """The installed SDK is a 1.x release."""
        assert metadata.version("mcp").split(".")[0] == "1"

    def test_handlers_registered(self, config: ServerConfig) -> None:
        """create_server registers list and call handlers."""
        server = create_server(build_registry(make_execute(HttpResponse(200)), config))
        assert types.ListToolsRequest in server.request_handlers
        assert types.CallToolRequest in server.request_handlers
