"""
Routing tools for geomcp.

This module provides tools backed by the routing APIs:
- directions: Route between two or more waypoints
- matrix: Travel times/distances between many origins and destinations
- isochrone: Areas reachable within given times or distances

The routing APIs report logical failures (e.g. "NoRoute") with a 200
status and a "code" field; those become failed outputs too.
"""

from typing import Any

from geomcp.schema import (
    DirectionsInput,
    DirectionsResult,
    IsochroneInput,
    MatrixInput,
    MatrixResult,
    RouteSummary,
    coordinates_path,
)
from geomcp.tools.base import Tool, ToolOutput

DIRECTIONS_PATH = "directions/v5/mapbox/{profile}/{coordinates}"
MATRIX_PATH = "directions-matrix/v1/mapbox/{profile}/{coordinates}"
ISOCHRONE_PATH = "isochrone/v1/mapbox/{profile}/{coordinate}"


def routing_failure(payload: dict[str, Any]) -> str | None:
    """Return an error message when a routing payload reports a non-Ok code."""
    code = payload.get("code")
    if code is None or code == "Ok":
        return None
    message = payload.get("message")
    return f"{code}: {message}" if message else str(code)


def _indices(values: list[int] | None) -> str | None:
    return ";".join(str(v) for v in values) if values is not None else None


class DirectionsTool(Tool):
    """
    Route between waypoints.

    Arguments:
        coordinates (list[Coordinate]): 2-25 waypoints in visiting order (required)
        profile (str): driving-traffic, driving, walking or cycling
        alternatives (bool): Also return alternative routes
        exclude (list[str]): toll, motorway and/or ferry
        include_geometry (bool): Include each route line as GeoJSON

    Returns:
        On success: {"routes": [{duration_seconds, distance_meters, summary}], "waypoints": [...]}
        On failure: Error message describing what went wrong
    """

    input_model = DirectionsInput

    @property
    def name(self) -> str:
        return "directions"

    @property
    def description(self) -> str:
        return (
            "Get a route between two or more longitude/latitude waypoints with travel "
            "time and distance, for driving (optionally with live traffic), walking or cycling."
        )

    async def invoke(self, params: DirectionsInput) -> ToolOutput:
        path = DIRECTIONS_PATH.format(
            profile=params.profile.value,
            coordinates=coordinates_path(params.coordinates),
        )
        response = await self.api_get(
            path,
            alternatives=params.alternatives,
            exclude=params.exclude,
            geometries="geojson" if params.include_geometry else None,
            overview="full" if params.include_geometry else "false",
        )
        if not response.is_success:
            return self.api_failure(response)

        payload = self.api_json(response)
        if error := routing_failure(payload):
            return ToolOutput.fail(error, tool=self.name)

        routes = [
            RouteSummary(
                duration_seconds=route.get("duration", 0.0),
                distance_meters=route.get("distance", 0.0),
                summary=", ".join(leg["summary"] for leg in route.get("legs", []) if leg.get("summary")),
                geometry=route.get("geometry") if params.include_geometry else None,
            )
            for route in payload.get("routes", [])
        ]
        waypoints = [wp.get("name", "") for wp in payload.get("waypoints", [])]
        return ToolOutput.ok(DirectionsResult(routes=routes, waypoints=waypoints), count=len(routes))


class MatrixTool(Tool):
    """
    Travel times and distances between sets of points.

    Arguments:
        coordinates (list[Coordinate]): 2-25 points (required)
        profile (str): driving-traffic (max 10 points), driving, walking or cycling
        annotations (list[str]): duration and/or distance
        sources (list[int]): Indices of origins (default: all)
        destinations (list[int]): Indices of destinations (default: all)

    Returns:
        On success: {"durations": [[...]], "distances": [[...]], "sources": [...], "destinations": [...]}
        On failure: Error message describing what went wrong
    """

    input_model = MatrixInput

    @property
    def name(self) -> str:
        return "matrix"

    @property
    def description(self) -> str:
        return (
            "Compute a travel-time and/or distance matrix between origin and destination "
            "points. Rows are sources, columns are destinations; unreachable pairs are null."
        )

    async def invoke(self, params: MatrixInput) -> ToolOutput:
        path = MATRIX_PATH.format(
            profile=params.profile.value,
            coordinates=coordinates_path(params.coordinates),
        )
        response = await self.api_get(
            path,
            annotations=params.annotations,
            sources=_indices(params.sources),
            destinations=_indices(params.destinations),
        )
        if not response.is_success:
            return self.api_failure(response)

        payload = self.api_json(response)
        if error := routing_failure(payload):
            return ToolOutput.fail(error, tool=self.name)

        result = MatrixResult(
            durations=payload.get("durations"),
            distances=payload.get("distances"),
            sources=[s.get("name", "") for s in payload.get("sources", [])],
            destinations=[d.get("name", "") for d in payload.get("destinations", [])],
        )
        return ToolOutput.ok(result)


class IsochroneTool(Tool):
    """
    Areas reachable from a point within given times or distances.

    Arguments:
        coordinate (Coordinate): Starting point (required)
        profile (str): driving, driving-traffic, walking or cycling
        contours_minutes (list[int]): Up to 4 travel times, 1-60 minutes
        contours_meters (list[int]): Up to 4 distances, 1-100000 meters
        polygons (bool): Polygons (default) or lines
        generalize (float): Simplification tolerance in meters

    Returns:
        On success: A GeoJSON FeatureCollection, one feature per contour
        On failure: Error message describing what went wrong
    """

    input_model = IsochroneInput

    @property
    def name(self) -> str:
        return "isochrone"

    @property
    def description(self) -> str:
        return (
            "Compute the area reachable from a point within given travel times or "
            "distances. Returns GeoJSON polygons, one per contour."
        )

    async def invoke(self, params: IsochroneInput) -> ToolOutput:
        path = ISOCHRONE_PATH.format(
            profile=params.profile.value,
            coordinate=params.coordinate.as_path(),
        )
        response = await self.api_get(
            path,
            contours_minutes=params.contours_minutes,
            contours_meters=params.contours_meters,
            polygons=params.polygons,
            generalize=params.generalize,
        )
        if not response.is_success:
            return self.api_failure(response)

        payload = self.api_json(response)
        return ToolOutput.ok(payload, count=len(payload.get("features", [])))
