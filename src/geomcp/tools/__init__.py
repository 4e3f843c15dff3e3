"""
Tools module for geomcp.

Tools are the operations the server exposes to an agent. Every
network-backed tool sends its requests through the HTTP pipeline it was
constructed with, so identification, retries and tracing apply uniformly.

Built-in tools:
    - forward_geocode: Address or place name -> coordinates
    - reverse_geocode: Coordinates -> address or place name
    - directions: Route between waypoints
    - matrix: Travel time/distance matrix
    - isochrone: Reachable areas
    - static_map: Rendered map image
    - version: Server identity (no network)

Architecture:
    - Tool: Abstract base class defining the tool interface
    - ToolOutput: Standardized result format from tool execution
    - ToolRegistry: Lookup by name for the tools a server exposes
"""

from geomcp.tools.base import Tool, ToolOutput
from geomcp.tools.geocode import ForwardGeocodeTool, ReverseGeocodeTool
from geomcp.tools.registry import (
    TOOL_CLASSES,
    ToolRegistry,
    build_registry,
    filter_tools,
    parse_tool_list,
)
from geomcp.tools.routing import DirectionsTool, IsochroneTool, MatrixTool
from geomcp.tools.static_map import StaticMapTool
from geomcp.tools.version import VersionTool

__all__ = [
    "Tool",
    "ToolOutput",
    "ToolRegistry",
    "TOOL_CLASSES",
    "build_registry",
    "filter_tools",
    "parse_tool_list",
    "ForwardGeocodeTool",
    "ReverseGeocodeTool",
    "DirectionsTool",
    "MatrixTool",
    "IsochroneTool",
    "StaticMapTool",
    "VersionTool",
]
