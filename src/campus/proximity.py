"""
Great-circle proximity checks for check-ins and nearby chat rooms.

Both call sites share one primitive, is_within, and differ only in which
radius they pass:
- Check-in: fixed CHECKIN_RADIUS_M around the place
- Nearby rooms: max(caller's search radius, room's own radius)
"""
import math
from dataclasses import dataclass
from typing import Iterable, Optional, TypeVar

from .grid import validate_latlon

EARTH_RADIUS_M = 6_371_000

# A user must be this close to a place to check in
CHECKIN_RADIUS_M = 100

# Nearby-room discovery defaults
DEFAULT_SEARCH_RADIUS_M = 500
DEFAULT_ROOM_RADIUS_M = 500
PLACE_ROOM_RADIUS_M = 200  # rooms created for a specific place

Point = tuple[float, float]
RoomT = TypeVar("RoomT")


@dataclass
class CheckInDecision:
    """Admit/deny outcome of a check-in, with the distance that decided it."""
    allowed: bool
    distance_m: float


@dataclass
class RoomAnchor:
    """Minimal chat-room shape used for discovery."""
    lat: Optional[float]
    lng: Optional[float]
    radius_meters: Optional[int] = None


def distance_meters(a: Point, b: Point) -> float:
    """
    Haversine distance between two (lat, lng) points.

    Args:
        a: First point (lat, lng) in degrees
        b: Second point (lat, lng) in degrees

    Returns:
        Distance in meters
    """
    lat1, lng1 = map(math.radians, a)
    lat2, lng2 = map(math.radians, b)
    dlat = lat2 - lat1
    dlng = lng2 - lng1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def is_within(a: Point, b: Point, max_distance_m: float) -> bool:
    """Whether a and b are at most max_distance_m apart."""
    return distance_meters(a, b) <= max_distance_m


def validate_point(point: Point) -> Point:
    """
    Range-check a single (lat, lng) point.

    Raises:
        InvalidCoordinate: If lat/lng are out of range
    """
    lat, lng = point
    validate_latlon(lat, lng)
    return float(lat), float(lng)


def check_in_allowed(user_point: Point, place_point: Point) -> CheckInDecision:
    """
    Decide whether a user is close enough to a place to check in.

    Args:
        user_point: User's reported (lat, lng)
        place_point: Place's (lat, lng)

    Returns:
        CheckInDecision with the computed distance, for use in denial messages
    """
    distance = distance_meters(user_point, place_point)
    return CheckInDecision(allowed=distance <= CHECKIN_RADIUS_M, distance_m=distance)


def room_radius(room) -> float:
    """The room's configured radius, or DEFAULT_ROOM_RADIUS_M if it has none."""
    return getattr(room, "radius_meters", None) or DEFAULT_ROOM_RADIUS_M


def nearby_rooms(
    user_point: Point,
    rooms: Iterable[RoomT],
    search_radius: float = DEFAULT_SEARCH_RADIUS_M
) -> list[RoomT]:
    """
    Filter chat rooms down to the ones discoverable from user_point.

    A room is nearby when the user is within the larger of search_radius and
    the room's own radius, so a wide room can be found from farther away
    than the caller asked for.

    Args:
        user_point: User's (lat, lng)
        rooms: Candidate rooms; anything with lat, lng and radius_meters
        search_radius: Caller's search radius in meters

    Returns:
        The nearby rooms, in candidate order. Rooms without an anchor are skipped.
    """
    result = []
    for room in rooms:
        if room.lat is None or room.lng is None:
            continue
        limit = max(search_radius, room_radius(room))
        if is_within(user_point, (float(room.lat), float(room.lng)), limit):
            result.append(room)
    return result
