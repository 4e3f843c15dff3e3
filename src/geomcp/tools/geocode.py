"""
Geocoding tools for geomcp.

This module provides tools backed by the geocoding API (v6):
- forward_geocode: Address or place name -> coordinates
- reverse_geocode: Coordinates -> address or place name

Both return a compact GeocodeResult rather than the raw FeatureCollection.
"""

from typing import Any

from geomcp.schema import (
    ForwardGeocodeInput,
    GeocodeFeature,
    GeocodeResult,
    ReverseGeocodeInput,
)
from geomcp.tools.base import Tool, ToolOutput

FORWARD_PATH = "search/geocode/v6/forward"
REVERSE_PATH = "search/geocode/v6/reverse"


def parse_feature(feature: dict[str, Any]) -> GeocodeFeature | None:
    """
    Extract the fields an agent needs from one GeoJSON feature.

    Returns None for features without a usable position.
    """
    properties = feature.get("properties") or {}
    coordinates = properties.get("coordinates") or {}
    longitude = coordinates.get("longitude")
    latitude = coordinates.get("latitude")
    if longitude is None or latitude is None:
        geometry = (feature.get("geometry") or {}).get("coordinates") or []
        if len(geometry) < 2:
            return None
        longitude, latitude = geometry[0], geometry[1]

    return GeocodeFeature(
        name=properties.get("name") or properties.get("full_address") or "",
        full_address=properties.get("full_address") or properties.get("place_formatted"),
        feature_type=properties.get("feature_type"),
        longitude=longitude,
        latitude=latitude,
        mapbox_id=properties.get("mapbox_id"),
    )


def parse_feature_collection(payload: dict[str, Any]) -> GeocodeResult:
    """Convert a geocoding FeatureCollection into a GeocodeResult."""
    features = [
        parsed
        for feature in payload.get("features") or []
        if (parsed := parse_feature(feature)) is not None
    ]
    return GeocodeResult(features=features, attribution=payload.get("attribution"))


class ForwardGeocodeTool(Tool):
    """
    Look up coordinates for an address or place name.

    Arguments:
        q (str): Search text (required)
        limit (int): Maximum results, 1-10 (default 5)
        country (list[str]): ISO country codes to restrict to
        proximity (Coordinate): Bias results toward this position
        language (str): Language for names
        types (list[str]): Place types to restrict to

    Returns:
        On success: {"features": [{name, full_address, longitude, latitude, ...}]}
        On failure: Error message describing what went wrong
    """

    input_model = ForwardGeocodeInput

    @property
    def name(self) -> str:
        return "forward_geocode"

    @property
    def description(self) -> str:
        return (
            "Find the coordinates of an address, place or point of interest. "
            "Returns matching places with their full address and longitude/latitude."
        )

    async def invoke(self, params: ForwardGeocodeInput) -> ToolOutput:
        response = await self.api_get(
            FORWARD_PATH,
            q=params.q,
            limit=params.limit,
            country=params.country,
            proximity=params.proximity.as_path() if params.proximity else None,
            language=params.language,
            types=params.types,
        )
        if not response.is_success:
            return self.api_failure(response)

        result = parse_feature_collection(self.api_json(response))
        return ToolOutput.ok(result, count=len(result.features))


class ReverseGeocodeTool(Tool):
    """
    Look up the address or place at a position.

    Arguments:
        longitude (float): Degrees east (required)
        latitude (float): Degrees north (required)
        limit (int): Maximum results, 1-5 (default 1)
        language (str): Language for names
        types (list[str]): Place types to restrict to

    Returns:
        On success: {"features": [...]} ordered from most to least specific
        On failure: Error message describing what went wrong
    """

    input_model = ReverseGeocodeInput

    @property
    def name(self) -> str:
        return "reverse_geocode"

    @property
    def description(self) -> str:
        return (
            "Find the address or place name at a longitude/latitude position. "
            "Use types to ask for a specific level such as place or postcode."
        )

    async def invoke(self, params: ReverseGeocodeInput) -> ToolOutput:
        response = await self.api_get(
            REVERSE_PATH,
            longitude=params.longitude,
            latitude=params.latitude,
            limit=params.limit,
            language=params.language,
            types=params.types,
        )
        if not response.is_success:
            return self.api_failure(response)

        result = parse_feature_collection(self.api_json(response))
        return ToolOutput.ok(result, count=len(result.features))
