"""
MCP server for geomcp.

Exposes the tools in a ToolRegistry over the Model Context Protocol:
- list_tools: every registered tool with its JSON schema and hints
- call_tool: validate, run and render one tool call

The server speaks MCP over stdio, so stdout belongs to the protocol and
all logging goes to stderr.
"""

import json
from typing import Any

import mcp.server.stdio
from mcp import types
from mcp.server import Server

from geomcp.config import ServerConfig
from geomcp.http.pipeline import build_pipeline
from geomcp.http.tracing import InMemorySpanSink, LogSpanSink, SpanSink
from geomcp.http.transport import HttpxTransport
from geomcp.logging import get_logger
from geomcp.tools.base import Tool, ToolOutput
from geomcp.tools.registry import ToolRegistry, build_registry

logger = get_logger(__name__)

SERVER_NAME = "geomcp"

Content = types.TextContent | types.ImageContent


def describe_tool(tool: Tool) -> types.Tool:
    """Build the MCP tool listing entry for a tool."""
    return types.Tool(
        name=tool.name,
        description=tool.description,
        inputSchema=tool.input_schema,
        annotations=types.ToolAnnotations(
            readOnlyHint=tool.read_only,
            openWorldHint=tool.requires_network,
        ),
    )


def render_output(output: ToolOutput) -> list[Content]:
    """
    Convert a ToolOutput into MCP content blocks.

    Images become image content; everything else is pretty-printed JSON.
    Failures are rendered as {"error": ..., "details": ...} so the agent
    can read what went wrong.
    """
    if not output.success:
        payload: dict[str, Any] = {"error": output.error}
        if output.metadata:
            payload["details"] = output.metadata
        return [types.TextContent(type="text", text=json.dumps(payload, ensure_ascii=False, indent=2))]

    if output.image is not None:
        return [types.ImageContent(type="image", data=output.image, mimeType=output.mime_type or "image/png")]

    return [types.TextContent(type="text", text=json.dumps(output.data, ensure_ascii=False, indent=2))]


def create_server(registry: ToolRegistry) -> Server:
    """Create an MCP server exposing the tools in registry."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [describe_tool(tool) for tool in registry]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[Content]:
        # Unknown tools raise; the SDK reports them as an error result
        tool = registry.get(name)
        logger.info("tool.call", tool=name)
        output = await tool.run(arguments)
        logger.info("tool.done", tool=name, success=output.success)
        return render_output(output)

    return server


def create_span_sink(config: ServerConfig) -> SpanSink | None:
    """Choose the span sink named in the tracing config."""
    if not config.tracing.enabled:
        return None
    if config.tracing.sink == "memory":
        return InMemorySpanSink()
    return LogSpanSink()


async def serve_stdio(
    config: ServerConfig,
    enable: list[str] | None = None,
    disable: list[str] | None = None,
) -> None:
    """
    Run the server over stdio until the host disconnects.

    Builds the transport, pipeline and tool registry once; they are shared
    by every call for the life of the process.
    """
    async with HttpxTransport(
        timeout_seconds=config.http.timeout_seconds,
        max_response_bytes=config.http.max_response_bytes,
    ) as transport:
        pipeline = build_pipeline(config, transport, create_span_sink(config))
        registry = build_registry(pipeline.execute, config, enable=enable, disable=disable)
        server = create_server(registry)

        logger.info(
            "server.start",
            tools=registry.list_tools(),
            pipeline=repr(pipeline),
            endpoint=config.api_endpoint,
        )
        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
        logger.info("server.stop")
