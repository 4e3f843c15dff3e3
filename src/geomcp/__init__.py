"""
geomcp - Geospatial API tools for agents, served over the Model Context Protocol.

geomcp exposes remote geospatial operations (geocoding, routing, isochrones,
travel-time matrices, static maps) as tools an agent can call. It provides:
- An outbound HTTP policy pipeline (identification, retry, tracing)
- Per-tool input schemas validated with Pydantic
- A static tool registry with CLI enable/disable filtering

Example usage:
    $ export MAPBOX_ACCESS_TOKEN=pk.xxx
    $ geomcp serve --disable-tools static_map
    $ geomcp tools
"""

__version__ = "0.1.0"
__author__ = "geomcp Contributors"

__all__ = [
    "__version__",
    "__author__",
]
