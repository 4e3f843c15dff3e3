"""
Version tool for geomcp.

Reports the server's identity without touching the network.
"""

import platform

from geomcp.schema import VersionInput
from geomcp.tools.base import Tool, ToolOutput


class VersionTool(Tool):
    """Report the server name and version."""

    input_model = VersionInput
    requires_network = False

    @property
    def name(self) -> str:
        return "version"

    @property
    def description(self) -> str:
        return "Report the name and version of this geospatial tool server."

    async def invoke(self, params: VersionInput) -> ToolOutput:
        return ToolOutput.ok({
            "name": self.config.client_name,
            "version": self.config.client_version,
            "python": platform.python_version(),
        })
