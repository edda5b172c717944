"""
Spatial indexing using H3 hexagonal grid system.
Resolution 9 = ~200m hexagon edge length (~0.1 km² area)
"""
import math
from typing import Protocol

import h3

# H3 resolution level
# 8 = ~530m edge (~0.74km² area)
# 9 = ~200m edge (~0.10km² area) ← campus-scale footfall
# 10 = ~76m edge (~0.015km² area)
H3_RESOLUTION = 9

# Resolutions supported by H3
MIN_RESOLUTION = 0
MAX_RESOLUTION = 15


class InvalidCoordinate(ValueError):
    """A lat/lon pair (or resolution) that cannot be placed on the grid."""


class InvalidResolution(InvalidCoordinate):
    """Resolution outside the grid's supported range. Treated as a configuration error."""


def validate_resolution(resolution: int) -> None:
    """
    Check that a resolution is one H3 supports.

    Raises:
        InvalidResolution: If resolution is not an int in 0-15
    """
    if isinstance(resolution, bool) or not isinstance(resolution, int):
        raise InvalidResolution(f"Resolution must be an integer, got {resolution!r}")
    if not MIN_RESOLUTION <= resolution <= MAX_RESOLUTION:
        raise InvalidResolution(
            f"Resolution {resolution} outside supported range {MIN_RESOLUTION}-{MAX_RESOLUTION}"
        )


def validate_latlon(lat: float, lon: float) -> None:
    """
    Check that lat/lon are finite and within [-90, 90] / [-180, 180].

    Raises:
        InvalidCoordinate: If either value is out of range
    """
    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError) as exc:
        raise InvalidCoordinate(f"Coordinates must be numeric: ({lat!r}, {lon!r})") from exc

    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidCoordinate(f"Coordinates must be finite: ({lat}, {lon})")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinate(f"Latitude {lat} outside [-90, 90]")
    if not -180.0 <= lon <= 180.0:
        raise InvalidCoordinate(f"Longitude {lon} outside [-180, 180]")


def latlon_to_cell(lat: float, lon: float, resolution: int = H3_RESOLUTION) -> str:
    """
    Convert lat/lon to H3 hexagon cell ID.

    Args:
        lat: Latitude
        lon: Longitude
        resolution: H3 resolution (defaults to H3_RESOLUTION)

    Returns:
        H3 cell ID (e.g., "89195da49b7ffff")

    Raises:
        InvalidResolution: If resolution is outside 0-15
        InvalidCoordinate: If lat/lon are out of range or rejected by H3
    """
    validate_resolution(resolution)
    validate_latlon(lat, lon)

    try:
        return h3.latlng_to_cell(float(lat), float(lon), resolution)
    except h3.H3BaseException as exc:
        raise InvalidCoordinate(f"H3 rejected ({lat}, {lon}): {exc}") from exc


def cell_to_latlon(cell_id: str) -> tuple[float, float]:
    """
    Convert H3 cell ID back to lat/lon (center of hexagon).

    Args:
        cell_id: H3 cell ID

    Returns:
        Tuple of (lat, lon)
    """
    lat, lon = h3.cell_to_latlng(cell_id)
    return lat, lon


class GridIndexer(Protocol):
    """Anything that can place a point in a cell and give back the cell's centroid."""

    resolution: int

    def index_of(self, lat: float, lon: float) -> str:
        ...

    def centroid_of(self, cell_id: str) -> tuple[float, float]:
        ...


class H3Indexer:
    """GridIndexer backed by H3 at a fixed resolution."""

    def __init__(self, resolution: int = H3_RESOLUTION):
        self.resolution = resolution

    def index_of(self, lat: float, lon: float) -> str:
        return latlon_to_cell(lat, lon, self.resolution)

    def centroid_of(self, cell_id: str) -> tuple[float, float]:
        return cell_to_latlon(cell_id)

    def __repr__(self) -> str:
        return f"H3Indexer(resolution={self.resolution})"
