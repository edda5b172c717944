"""
Read and write paths over the relational store.

Every function opens its own session and closes it before returning. The
heatmap reads raise StoreUnavailable when the database is missing or a query
fails, so an outage is never mistaken for a city with no visits. The other
paths return a neutral value (None / empty list) and leave the response to
the route handler.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func

from .achievements import check_achievements
from .database import get_db_session, is_database_configured, City, Place, Visit, ChatRoom
from .heatmap import VisitRow
from .proximity import DEFAULT_ROOM_RADIUS_M, PLACE_ROOM_RADIUS_M

logger = logging.getLogger(__name__)


class StoreUnavailable(Exception):
    """The store could not be read (not configured, or the query failed)."""


def _open_session():
    if not is_database_configured():
        return None
    return get_db_session()


def _require_session():
    session = _open_session()
    if session is None:
        raise StoreUnavailable("Database not configured")
    return session


def get_city_center(city_id: int) -> Optional[tuple[float, float]]:
    """
    Anchor coordinate of a city.

    Returns:
        (lat, lng), or None if the city doesn't exist

    Raises:
        StoreUnavailable: If the database is unavailable
    """
    session = _require_session()

    try:
        city = session.query(City).filter(City.id == city_id).first()
        if city is None:
            return None
        return float(city.lat), float(city.lng)
    except Exception as exc:
        logger.exception("Failed to load city %s", city_id)
        raise StoreUnavailable(f"Failed to load city {city_id}") from exc
    finally:
        session.close()


def get_city_visit_rows(city_id: int) -> list[VisitRow]:
    """
    Visits to every place in a city, grouped by place location and timestamp.

    Rows are returned unfiltered by date; the heatmap applies the date filter.

    Args:
        city_id: City to read

    Returns:
        List of VisitRow (empty only when the city has no visits)

    Raises:
        StoreUnavailable: If the database is unavailable
    """
    session = _require_session()

    try:
        rows = (
            session.query(
                Place.lat,
                Place.lng,
                Visit.timestamp,
                func.count(Visit.id).label("visit_count"),
            )
            .join(Place, Visit.place_id == Place.id)
            .filter(Place.city_id == city_id)
            .group_by(Place.lat, Place.lng, Visit.timestamp)
            .order_by(func.count(Visit.id).desc())
            .all()
        )
        return [
            VisitRow(
                place_lat=float(row.lat),
                place_lng=float(row.lng),
                visit_count=int(row.visit_count),
                timestamp=row.timestamp,
            )
            for row in rows
        ]
    except Exception as exc:
        logger.exception("Failed to load visits for city %s", city_id)
        raise StoreUnavailable(f"Failed to load visits for city {city_id}") from exc
    finally:
        session.close()


def get_place_location(place_id: int) -> Optional[tuple[float, float]]:
    """
    Coordinates of a place.

    Returns:
        (lat, lng), or None if the place doesn't exist
    """
    session = _open_session()
    if session is None:
        return None

    try:
        place = session.query(Place).filter(Place.id == place_id).first()
        if place is None:
            return None
        return float(place.lat), float(place.lng)
    except Exception:
        logger.exception("Failed to load place %s", place_id)
        return None
    finally:
        session.close()


def record_visit(user_id: int, place_id: int) -> Optional[dict]:
    """
    Store a check-in and evaluate achievements.

    Returns:
        {"visit": {...}, "unlocked": [names]} or None if the write failed
    """
    session = _open_session()
    if session is None:
        return None

    try:
        visit = Visit(user_id=user_id, place_id=place_id, timestamp=datetime.now(timezone.utc))
        session.add(visit)
        session.commit()
        session.refresh(visit)

        visit_data = {
            "id": visit.id,
            "user_id": visit.user_id,
            "place_id": visit.place_id,
            "timestamp": visit.timestamp.isoformat() if visit.timestamp else None,
        }
        unlocked = check_achievements(session, user_id)
        return {"visit": visit_data, "unlocked": unlocked}
    except Exception:
        logger.exception("Failed to record visit for user %s at place %s", user_id, place_id)
        session.rollback()
        return None
    finally:
        session.close()


def list_chat_rooms() -> list[ChatRoom]:
    """All chat rooms that have an anchor point."""
    session = _open_session()
    if session is None:
        return []

    try:
        rooms = (
            session.query(ChatRoom)
            .filter(ChatRoom.lat.isnot(None), ChatRoom.lng.isnot(None))
            .order_by(ChatRoom.updated_at.desc())
            .all()
        )
        session.expunge_all()
        return rooms
    except Exception:
        logger.exception("Failed to list chat rooms")
        return []
    finally:
        session.close()


def create_chat_room(
    name: str,
    lat: float,
    lng: float,
    radius_meters: Optional[int] = None,
    description: Optional[str] = None,
    place_id: Optional[int] = None
) -> Optional[ChatRoom]:
    """
    Create an anchored chat room.

    Returns:
        The new room, or None if the write failed
    """
    session = _open_session()
    if session is None:
        return None

    try:
        room = ChatRoom(
            name=name,
            description=description,
            lat=lat,
            lng=lng,
            radius_meters=radius_meters or DEFAULT_ROOM_RADIUS_M,
            place_id=place_id,
        )
        session.add(room)
        session.commit()
        session.refresh(room)
        session.expunge(room)
        return room
    except Exception:
        logger.exception("Failed to create chat room %r", name)
        session.rollback()
        return None
    finally:
        session.close()


def get_or_create_place_room(place_id: int) -> Optional[ChatRoom]:
    """
    The chat room for a place, creating it on first request.

    New place rooms are anchored on the place with PLACE_ROOM_RADIUS_M.

    Returns:
        The room, or None if the place doesn't exist (or on failure)
    """
    session = _open_session()
    if session is None:
        return None

    try:
        room = session.query(ChatRoom).filter(ChatRoom.place_id == place_id).first()
        if room is None:
            place = session.query(Place).filter(Place.id == place_id).first()
            if place is None:
                return None

            room = ChatRoom(
                name=f"{place.name} Chat",
                description=f"Chat with visitors at {place.name}",
                lat=place.lat,
                lng=place.lng,
                radius_meters=PLACE_ROOM_RADIUS_M,
                place_id=place_id,
            )
            session.add(room)
            session.commit()
            session.refresh(room)
            logger.info("Created chat room %s for place %s", room.id, place_id)

        session.expunge(room)
        return room
    except Exception:
        logger.exception("Failed to get or create chat room for place %s", place_id)
        session.rollback()
        return None
    finally:
        session.close()
