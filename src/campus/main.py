"""
Campus Guide API
FastAPI application serving the footfall heatmap, check-ins and proximity chat discovery.
"""
import logging
import time
from typing import Optional

from fastapi import FastAPI, Response, HTTPException, Query
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from redis.exceptions import RedisError

from src.campus import events
from src.campus import metrics
from src.campus import store
from src.campus.config import (
    LOG_LEVEL, CHECKIN_RATE_LIMIT_PER_MINUTE, CHECKIN_RATE_LIMIT_WINDOW_SECONDS
)
from src.campus.database import is_database_configured
from src.campus.grid import InvalidCoordinate, latlon_to_cell
from src.campus.heatmap import build_heatmap
from src.campus.models import CheckInRequest, ChatRoomCreate
from src.campus.proximity import (
    CHECKIN_RADIUS_M, DEFAULT_SEARCH_RADIUS_M, check_in_allowed, nearby_rooms, validate_point
)
from src.campus.redis_client import get_redis_client
from src.campus.time_utils import parse_date_filter

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def check_rate_limit(r, user_id: int) -> bool:
    """
    Check if a user has exceeded the check-in rate limit.

    Uses Redis INCR with TTL as a fixed-window counter.

    Args:
        r: Redis client
        user_id: User identifier

    Returns:
        True if within rate limit, False if exceeded
    """
    key = f"ratelimit:checkin:{user_id}"

    # Increment counter, set TTL on first request
    count = r.incr(key)
    if count == 1:
        r.expire(key, CHECKIN_RATE_LIMIT_WINDOW_SECONDS)
    metrics.redis_operations_total.labels(operation="incr", status="success").inc()

    return count <= CHECKIN_RATE_LIMIT_PER_MINUTE


# Initialize FastAPI application
app = FastAPI(
    title="Campus Guide",
    description="Footfall heatmaps, check-ins and proximity chat discovery on an H3 hexagonal grid",
    version="1.0.0"
)


@app.get("/metrics")
def get_metrics():
    """
    Prometheus metrics endpoint.

    Returns:
        Response: Prometheus-formatted metrics
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
        dict: API status, Redis connection status and whether a database is configured
    """
    try:
        redis_client = get_redis_client()
        redis_client.ping()
        redis_status = "connected"
        metrics.redis_operations_total.labels(operation="ping", status="success").inc()
    except RedisError:
        redis_status = "disconnected"
        metrics.redis_operations_total.labels(operation="ping", status="error").inc()

    return {
        "status": "healthy",
        "redis": redis_status,
        "database": "configured" if is_database_configured() else "not_configured",
    }


@app.get("/v1/cities/{city_id}/heatmap")
def city_heatmap(city_id: int, date: Optional[str] = None):
    """
    Footfall heatmap for a city.

    Process:
    1. Look up the city's anchor coordinate
    2. Read every visit to a place in the city
    3. Keep visits on the requested day (if any), bucket into H3 cells, score 0-100
    4. Fall back to a zero-score base grid around the city when no visits remain

    Args:
        city_id: City to render
        date: Optional day filter (YYYY-MM-DD)

    Returns:
        dict: Scored cells, cell count, date filter, data source and total visits

    Raises:
        HTTPException 400: If date is not a valid YYYY-MM-DD date
        HTTPException 404: If the city doesn't exist
        HTTPException 500: If the city's stored location is unusable
        HTTPException 503: If the store can't be read
    """
    start_time = time.time()

    try:
        day = parse_date_filter(date)
    except ValueError:
        metrics.heatmap_requests_total.labels(status="bad_request", data_source="none").inc()
        raise HTTPException(status_code=400, detail="date must be formatted YYYY-MM-DD")

    try:
        center = store.get_city_center(city_id)
        if center is None:
            metrics.heatmap_requests_total.labels(status="not_found", data_source="none").inc()
            raise HTTPException(status_code=404, detail="City not found")
        rows = store.get_city_visit_rows(city_id)
    except store.StoreUnavailable:
        metrics.heatmap_requests_total.labels(status="error", data_source="none").inc()
        raise HTTPException(status_code=503, detail="Visit data is temporarily unavailable")

    try:
        result = build_heatmap(center, rows, date_filter=day)
    except InvalidCoordinate:
        logger.exception("City %s has an unusable location %s", city_id, center)
        metrics.heatmap_requests_total.labels(status="error", data_source="none").inc()
        raise HTTPException(status_code=500, detail="City location is invalid")

    metrics.heatmap_requests_total.labels(status="success", data_source=result.data_source).inc()
    metrics.heatmap_cells_returned.observe(len(result.cells))
    metrics.request_duration_seconds.labels(endpoint="city_heatmap").observe(time.time() - start_time)

    return {
        "city_id": city_id,
        "cells": [cell.to_dict() for cell in result.cells],
        "count": len(result.cells),
        "date_filter": day.isoformat() if day else None,
        "data_source": result.data_source,
        "total_visits": result.total_visits,
    }


@app.post("/v1/visits", status_code=201)
def create_visit(checkin: CheckInRequest):
    """
    Check a user in to a place.

    The user must be within CHECKIN_RADIUS_M (100m) of the place. Admitted
    check-ins are stored, evaluated for achievements and published to the
    event stream.

    Args:
        checkin: User, place and the user's reported location

    Returns:
        dict: Stored visit, distance to the place and any unlocked achievements

    Raises:
        HTTPException 400: If the user is too far away (detail includes the distance)
        HTTPException 404: If the place doesn't exist
        HTTPException 429: If the user exceeds the check-in rate limit
        HTTPException 503: If the visit couldn't be stored
    """
    start_time = time.time()
    r = get_redis_client()

    if not check_rate_limit(r, checkin.user_id):
        metrics.checkin_requests_total.labels(status="rate_limited").inc()
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded. Max {CHECKIN_RATE_LIMIT_PER_MINUTE} check-ins per minute."
        )

    place_point = store.get_place_location(checkin.place_id)
    if place_point is None:
        metrics.checkin_requests_total.labels(status="not_found").inc()
        raise HTTPException(status_code=404, detail="Place not found")

    user_point = (checkin.user_lat, checkin.user_lng)
    decision = check_in_allowed(user_point, place_point)

    if not decision.allowed:
        metrics.checkin_requests_total.labels(status="too_far").inc()
        raise HTTPException(
            status_code=400,
            detail={
                "error": f"You must be within {CHECKIN_RADIUS_M} meters of the place to check in",
                "distance_m": round(decision.distance_m, 1),
            }
        )

    saved = store.record_visit(checkin.user_id, checkin.place_id)
    if saved is None:
        metrics.checkin_requests_total.labels(status="error").inc()
        raise HTTPException(status_code=503, detail="Visit could not be stored")

    # The visit is already stored, so a stream failure must not fail the request
    try:
        events.publish_check_in_event(
            redis_client=r,
            user_id=checkin.user_id,
            place_id=checkin.place_id,
            cell_id=latlon_to_cell(*place_point),
            lat=checkin.user_lat,
            lng=checkin.user_lng,
            distance_m=decision.distance_m
        )
        metrics.redis_operations_total.labels(operation="xadd", status="success").inc()

        for achievement in saved["unlocked"]:
            events.publish_achievement_event(r, checkin.user_id, achievement)
            metrics.redis_operations_total.labels(operation="xadd", status="success").inc()
    except RedisError:
        logger.warning("Failed to publish events for visit %s", saved["visit"].get("id"), exc_info=True)
        metrics.redis_operations_total.labels(operation="xadd", status="error").inc()

    for achievement in saved["unlocked"]:
        metrics.achievements_unlocked_total.labels(achievement=achievement).inc()

    metrics.checkin_requests_total.labels(status="success").inc()
    metrics.request_duration_seconds.labels(endpoint="create_visit").observe(time.time() - start_time)

    return {
        "success": True,
        "visit": saved["visit"],
        "distance_m": round(decision.distance_m, 1),
        "achievements_unlocked": saved["unlocked"],
    }


@app.get("/v1/chat/nearby")
def chat_nearby(
    lat: float,
    lng: float,
    radius: float = Query(default=DEFAULT_SEARCH_RADIUS_M, gt=0, description="Search radius in meters")
):
    """
    Find chat rooms discoverable from a location.

    A room matches when the user is within the larger of `radius` and the
    room's own radius from the room's anchor.

    Args:
        lat: User latitude
        lng: User longitude
        radius: Search radius in meters (default 500)

    Returns:
        dict: User location, radius, matching rooms and their count

    Raises:
        HTTPException 400: If lat/lng are out of range
    """
    start_time = time.time()

    try:
        user_point = validate_point((lat, lng))
    except InvalidCoordinate as exc:
        metrics.nearby_chat_requests_total.labels(status="bad_request").inc()
        raise HTTPException(status_code=400, detail=str(exc))

    rooms = nearby_rooms(user_point, store.list_chat_rooms(), radius)

    metrics.nearby_chat_requests_total.labels(status="success").inc()
    metrics.request_duration_seconds.labels(endpoint="chat_nearby").observe(time.time() - start_time)

    return {
        "user_location": {"lat": lat, "lng": lng},
        "radius": radius,
        "chat_rooms": [room.to_dict() for room in rooms],
        "count": len(rooms),
    }


@app.get("/v1/chat/place/{place_id}")
def place_chat_room(place_id: int):
    """
    Get the chat room for a place, creating it on first request.

    Raises:
        HTTPException 404: If the place doesn't exist
    """
    room = store.get_or_create_place_room(place_id)
    if room is None:
        raise HTTPException(status_code=404, detail="Place not found")

    return {"chat_room": room.to_dict(), "place_id": place_id}


@app.post("/v1/chat/rooms", status_code=201)
def create_chat_room(room: ChatRoomCreate):
    """
    Create a location-anchored chat room.

    Raises:
        HTTPException 503: If the room couldn't be stored
    """
    created = store.create_chat_room(
        name=room.name,
        lat=room.lat,
        lng=room.lng,
        radius_meters=room.radius_meters,
        description=room.description,
        place_id=room.place_id,
    )
    if created is None:
        raise HTTPException(status_code=503, detail="Chat room could not be stored")

    logger.info("Created chat room %s at (%s, %s)", created.id, created.lat, created.lng)
    return {"success": True, "chat_room": created.to_dict()}
