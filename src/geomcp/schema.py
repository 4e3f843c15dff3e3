"""
Schema definitions for geomcp tools.

This module defines the Pydantic models used at the tool boundary:
- Shared types: Coordinate, routing profiles, place types
- Tool inputs: validated before any request is built
- Tool outputs: the compact shapes returned to the agent

Design Decisions:
    - Input models forbid unknown fields so typos surface as errors
    - Coordinates are always (longitude, latitude), as in GeoJSON
    - Output models keep only what an agent needs to reason; raw API
      payloads are not passed through except for GeoJSON geometry
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# Shared types
# =============================================================================


class RoutingProfile(str, Enum):
    """Travel modes understood by the routing APIs."""

    DRIVING_TRAFFIC = "driving-traffic"
    DRIVING = "driving"
    WALKING = "walking"
    CYCLING = "cycling"


class PlaceType(str, Enum):
    """Feature types the geocoder can filter on."""

    COUNTRY = "country"
    REGION = "region"
    POSTCODE = "postcode"
    DISTRICT = "district"
    PLACE = "place"
    LOCALITY = "locality"
    NEIGHBORHOOD = "neighborhood"
    STREET = "street"
    ADDRESS = "address"


class Coordinate(BaseModel):
    """
    A WGS84 position.

    Attributes:
        longitude: Degrees east, -180..180
        latitude: Degrees north, -90..90
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)

    def as_path(self) -> str:
        """Render as "lon,lat" for URL path segments."""
        return f"{self.longitude:g},{self.latitude:g}"


def coordinates_path(coordinates: list[Coordinate]) -> str:
    """Render a list of coordinates as "lon,lat;lon,lat"."""
    return ";".join(c.as_path() for c in coordinates)


class ToolInput(BaseModel):
    """Base class for tool inputs."""

    model_config = ConfigDict(frozen=True, extra="forbid")


# =============================================================================
# Geocoding
# =============================================================================


class ForwardGeocodeInput(ToolInput):
    """Arguments for forward_geocode."""

    q: str = Field(..., min_length=1, max_length=256, description="Address or place name to look up")
    limit: int = Field(default=5, ge=1, le=10, description="Maximum number of results")
    country: list[str] | None = Field(
        default=None,
        description="ISO 3166-1 alpha-2 country codes to restrict results to",
    )
    proximity: Coordinate | None = Field(default=None, description="Bias results toward this position")
    language: str | None = Field(default=None, description="IETF language tag for result names")
    types: list[PlaceType] | None = Field(default=None, description="Restrict results to these place types")

    @field_validator("q")
    @classmethod
    def validate_query(cls, v: str) -> str:
        """Reject whitespace-only queries."""
        if not v.strip():
            msg = "q cannot be blank"
            raise ValueError(msg)
        return v.strip()

    @field_validator("country")
    @classmethod
    def validate_country(cls, v: list[str] | None) -> list[str] | None:
        """Country codes are two ASCII letters."""
        if v is None:
            return v
        codes = []
        for code in v:
            if len(code) != 2 or not code.isascii() or not code.isalpha():
                msg = f"Invalid country code: {code}"
                raise ValueError(msg)
            codes.append(code.lower())
        return codes


class ReverseGeocodeInput(ToolInput):
    """Arguments for reverse_geocode."""

    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)
    limit: int = Field(default=1, ge=1, le=5, description="Maximum number of results")
    language: str | None = Field(default=None, description="IETF language tag for result names")
    types: list[PlaceType] | None = Field(default=None, description="Restrict results to these place types")

    @model_validator(mode="after")
    def validate_limit_with_types(self) -> "ReverseGeocodeInput":
        """The reverse geocoder only honours limit > 1 with exactly one type."""
        if self.limit > 1 and (self.types is None or len(self.types) != 1):
            msg = "limit > 1 requires exactly one entry in types"
            raise ValueError(msg)
        return self


class GeocodeFeature(BaseModel):
    """One geocoding match."""

    name: str
    full_address: str | None = None
    feature_type: str | None = None
    longitude: float
    latitude: float
    mapbox_id: str | None = None


class GeocodeResult(BaseModel):
    """Output of forward_geocode and reverse_geocode."""

    features: list[GeocodeFeature]
    attribution: str | None = None


# =============================================================================
# Routing
# =============================================================================


class DirectionsInput(ToolInput):
    """Arguments for directions."""

    coordinates: list[Coordinate] = Field(..., min_length=2, max_length=25)
    profile: RoutingProfile = RoutingProfile.DRIVING_TRAFFIC
    alternatives: bool = Field(default=False, description="Return up to two alternative routes")
    exclude: list[Literal["toll", "motorway", "ferry"]] | None = Field(
        default=None,
        description="Road classes to avoid (driving profiles only)",
    )
    include_geometry: bool = Field(default=False, description="Include the route line as GeoJSON")

    @model_validator(mode="after")
    def validate_profile_limits(self) -> "DirectionsInput":
        """driving-traffic accepts at most 3 waypoints; exclude needs driving."""
        if self.profile is RoutingProfile.DRIVING_TRAFFIC and len(self.coordinates) > 3:
            msg = "driving-traffic supports at most 3 coordinates"
            raise ValueError(msg)
        if self.exclude and self.profile not in (RoutingProfile.DRIVING, RoutingProfile.DRIVING_TRAFFIC):
            msg = "exclude is only supported for driving profiles"
            raise ValueError(msg)
        return self


class RouteSummary(BaseModel):
    """One route returned by directions."""

    duration_seconds: float
    distance_meters: float
    summary: str = ""
    geometry: dict[str, Any] | None = None


class DirectionsResult(BaseModel):
    """Output of directions."""

    routes: list[RouteSummary]
    waypoints: list[str]


class MatrixInput(ToolInput):
    """Arguments for matrix."""

    coordinates: list[Coordinate] = Field(..., min_length=2, max_length=25)
    profile: RoutingProfile = RoutingProfile.DRIVING
    annotations: list[Literal["duration", "distance"]] = Field(default_factory=lambda: ["duration"], min_length=1)
    sources: list[int] | None = Field(default=None, description="Indices of coordinates used as origins")
    destinations: list[int] | None = Field(default=None, description="Indices of coordinates used as destinations")

    @model_validator(mode="after")
    def validate_indices(self) -> "MatrixInput":
        """Indices must point into coordinates; driving-traffic allows 10 points."""
        if self.profile is RoutingProfile.DRIVING_TRAFFIC and len(self.coordinates) > 10:
            msg = "driving-traffic supports at most 10 coordinates"
            raise ValueError(msg)
        for label, indices in (("sources", self.sources), ("destinations", self.destinations)):
            if indices is None:
                continue
            if not indices:
                msg = f"{label} cannot be empty"
                raise ValueError(msg)
            for index in indices:
                if not 0 <= index < len(self.coordinates):
                    msg = f"{label} index out of range: {index}"
                    raise ValueError(msg)
        return self


class MatrixResult(BaseModel):
    """Output of matrix: rows are sources, columns destinations."""

    durations: list[list[float | None]] | None = None
    distances: list[list[float | None]] | None = None
    sources: list[str]
    destinations: list[str]


class IsochroneInput(ToolInput):
    """Arguments for isochrone."""

    coordinate: Coordinate
    profile: RoutingProfile = RoutingProfile.DRIVING
    contours_minutes: list[int] | None = Field(default=None, min_length=1, max_length=4)
    contours_meters: list[int] | None = Field(default=None, min_length=1, max_length=4)
    polygons: bool = Field(default=True, description="Return polygons instead of lines")
    generalize: float | None = Field(default=None, ge=0, description="Simplification tolerance in meters")

    @model_validator(mode="after")
    def validate_contours(self) -> "IsochroneInput":
        """Exactly one contour kind, within the API's limits, ascending."""
        if (self.contours_minutes is None) == (self.contours_meters is None):
            msg = "provide exactly one of contours_minutes or contours_meters"
            raise ValueError(msg)
        if self.contours_minutes is not None:
            values, low, high = self.contours_minutes, 1, 60
        else:
            values, low, high = self.contours_meters, 1, 100_000
        if any(not low <= v <= high for v in values):
            msg = f"contour values must be between {low} and {high}"
            raise ValueError(msg)
        if values != sorted(values):
            msg = "contour values must be in increasing order"
            raise ValueError(msg)
        return self


# =============================================================================
# Maps
# =============================================================================


class StaticMapInput(ToolInput):
    """Arguments for static_map."""

    center: Coordinate
    zoom: float = Field(default=12, ge=0, le=22)
    width: int = Field(default=600, ge=1, le=1280)
    height: int = Field(default=400, ge=1, le=1280)
    style: str = Field(default="mapbox/streets-v12", pattern=r"^[\w.-]+/[\w.-]+$")
    markers: list[Coordinate] = Field(default_factory=list, max_length=20)
    high_dpi: bool = False


class VersionInput(ToolInput):
    """version takes no arguments."""
