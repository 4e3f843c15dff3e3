"""
Static map tool for geomcp.

Renders a map image with the static images API and returns it as a
base64 payload the host can show inline.
"""

from geomcp.schema import StaticMapInput
from geomcp.tools.base import Tool, ToolOutput

STATIC_PATH = "styles/v1/{style}/static/{overlay}{center},{zoom}/{width}x{height}{scale}"
MARKER = "pin-s+ff0000({position})"
DEFAULT_MIME_TYPE = "image/png"


def static_map_path(params: StaticMapInput) -> str:
    """Build the static image path for the given map parameters."""
    overlay = ",".join(MARKER.format(position=m.as_path()) for m in params.markers)
    return STATIC_PATH.format(
        style=params.style,
        overlay=f"{overlay}/" if overlay else "",
        center=params.center.as_path(),
        zoom=f"{params.zoom:g}",
        width=params.width,
        height=params.height,
        scale="@2x" if params.high_dpi else "",
    )


class StaticMapTool(Tool):
    """
    Render a map image.

    Arguments:
        center (Coordinate): Map center (required)
        zoom (float): Zoom level, 0-22 (default 12)
        width (int): Image width in pixels, 1-1280 (default 600)
        height (int): Image height in pixels, 1-1280 (default 400)
        style (str): Style as "owner/style_id" (default mapbox/streets-v12)
        markers (list[Coordinate]): Up to 20 pins
        high_dpi (bool): Render at twice the pixel density

    Returns:
        On success: A base64 image with its MIME type
        On failure: Error message describing what went wrong
    """

    input_model = StaticMapInput

    @property
    def name(self) -> str:
        return "static_map"

    @property
    def description(self) -> str:
        return (
            "Render a map image centered on a position, optionally with marker pins. "
            "Returns the image itself."
        )

    async def invoke(self, params: StaticMapInput) -> ToolOutput:
        response = await self.api_get(static_map_path(params))
        if not response.is_success:
            return self.api_failure(response)

        mime_type = response.header("content-type", DEFAULT_MIME_TYPE).split(";")[0].strip()
        return ToolOutput.ok_image(response.body, mime_type, size_bytes=len(response.body))
