"""
Tool registry for geomcp.

The registry is the central location for the tools a server exposes.
Which tools exist is fixed at build time by TOOL_CLASSES; which of them
a given server exposes is decided once at startup by filter_tools().

Usage:
    from geomcp.tools.registry import build_registry

    registry = build_registry(pipeline.execute, config, enable=["directions"])
    tool = registry.get("directions")
"""

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from geomcp.errors import ToolNotFoundError
from geomcp.http.pipeline import Handler
from geomcp.logging import get_logger
from geomcp.tools.base import Tool
from geomcp.tools.geocode import ForwardGeocodeTool, ReverseGeocodeTool
from geomcp.tools.routing import DirectionsTool, IsochroneTool, MatrixTool
from geomcp.tools.static_map import StaticMapTool
from geomcp.tools.version import VersionTool

if TYPE_CHECKING:
    from geomcp.config import ServerConfig

logger = get_logger(__name__)

# Every tool the server knows about, in listing order
TOOL_CLASSES: tuple[type[Tool], ...] = (
    ForwardGeocodeTool,
    ReverseGeocodeTool,
    DirectionsTool,
    MatrixTool,
    IsochroneTool,
    StaticMapTool,
    VersionTool,
)


class ToolRegistry:
    """
    Registry for looking up tools by name.

    Attributes:
        _tools: Internal mapping of tool names to tool instances
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """
        Register a tool in the registry.

        A tool with the same name replaces the earlier one.

        Raises:
            ValueError: If tool is None or has an empty name
        """
        if tool is None:
            msg = "Cannot register None as a tool"
            raise ValueError(msg)

        name = tool.name
        if not name:
            msg = "Tool must have a non-empty name"
            raise ValueError(msg)

        self._tools[name] = tool

    def get(self, name: str) -> Tool:
        """
        Look up a tool by name.

        Raises:
            ToolNotFoundError: If no tool with that name is registered
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(tool=name)
        return tool

    def get_optional(self, name: str) -> Tool | None:
        """Look up a tool by name, returning None if not found."""
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def unregister(self, name: str) -> bool:
        """
        Remove a tool from the registry.

        Returns:
            True if the tool was removed, False if it wasn't registered
        """
        return self._tools.pop(name, None) is not None

    def list_tools(self) -> list[str]:
        """List registered tool names in registration order."""
        return list(self._tools)

    def __len__(self) -> int:
        """Return the number of registered tools."""
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        """Iterate over all registered tools."""
        return iter(self._tools.values())

    def __contains__(self, name: str) -> bool:
        """Check if a tool is registered using 'in' operator."""
        return name in self._tools

    def __repr__(self) -> str:
        """String representation of the registry."""
        tools = ", ".join(self.list_tools())
        return f"<ToolRegistry: [{tools}]>"


def parse_tool_list(value: str | None) -> list[str]:
    """
    Split a comma-separated tool list.

    Blank entries are dropped; parse_tool_list(None) returns [].
    """
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


def filter_tools(
    names: Iterable[str],
    enable: Iterable[str] | None = None,
    disable: Iterable[str] | None = None,
) -> list[str]:
    """
    Decide which tools to expose.

    An enable list (when non-empty) keeps only the named tools; the disable
    list is applied after it. Names that match no tool are logged and
    ignored. Input order is preserved.

    Args:
        names: All available tool names
        enable: Tools to keep, or None/empty for all
        disable: Tools to drop

    Returns:
        The tool names to expose
    """
    available = list(names)
    known = set(available)
    enable = list(enable or [])
    disable = list(disable or [])

    for name in [*enable, *disable]:
        if name not in known:
            logger.warning("tools.unknown_name", tool=name, available=available)

    selected = [n for n in available if n in set(enable)] if enable else available
    dropped = set(disable)
    return [n for n in selected if n not in dropped]


def build_registry(
    execute: Handler,
    config: "ServerConfig",
    enable: Iterable[str] | None = None,
    disable: Iterable[str] | None = None,
) -> ToolRegistry:
    """
    Instantiate the selected tools around a pipeline execute function.

    Args:
        execute: The HTTP pipeline's execute function
        config: Server configuration handed to every tool
        enable: Optional allow-list of tool names
        disable: Optional deny-list of tool names
    """
    registry = ToolRegistry()
    for cls in TOOL_CLASSES:
        registry.register(cls(execute, config))

    selected = set(filter_tools(registry.list_tools(), enable, disable))
    for name in registry.list_tools():
        if name not in selected:
            registry.unregister(name)

    logger.info("tools.registered", tools=registry.list_tools())
    return registry
