"""
Event publishing using Redis Streams.

Check-ins and achievement unlocks are appended to a stream so other
services (notifications, the feed, analytics) can react without the API
waiting on them.

Stream name: "campus:events"
Event types: "check_in", "achievement_unlocked"
"""
import redis
from datetime import datetime, timezone


# Stream configuration
STREAM_NAME = "campus:events"
MAX_STREAM_LENGTH = 10000  # Keep last 10k events (prevents unbounded growth)


def _publish(redis_client: redis.Redis, event_data: dict) -> str:
    event_data["timestamp"] = datetime.now(timezone.utc).isoformat()

    # MAXLEN ~ 10000 trims approximately, which is cheaper for Redis
    return redis_client.xadd(
        STREAM_NAME,
        event_data,
        maxlen=MAX_STREAM_LENGTH,
        approximate=True
    )


def publish_check_in_event(
    redis_client: redis.Redis,
    user_id: int,
    place_id: int,
    cell_id: str,
    lat: float,
    lng: float,
    distance_m: float
) -> str:
    """
    Publish an admitted check-in to the stream.

    Args:
        redis_client: Redis connection
        user_id: User who checked in
        place_id: Place checked in to
        cell_id: H3 cell of the place
        lat: User latitude
        lng: User longitude
        distance_m: Distance from the user to the place

    Returns:
        Event ID assigned by Redis (e.g., "1234567890123-0")
    """
    return _publish(redis_client, {
        "event_type": "check_in",
        "user_id": str(user_id),
        "place_id": str(place_id),
        "cell_id": cell_id,
        "lat": str(lat),
        "lng": str(lng),
        "distance_m": str(round(distance_m, 1)),
    })


def publish_achievement_event(redis_client: redis.Redis, user_id: int, achievement: str) -> str:
    """
    Publish an achievement unlock to the stream.

    Returns:
        Event ID assigned by Redis
    """
    return _publish(redis_client, {
        "event_type": "achievement_unlocked",
        "user_id": str(user_id),
        "achievement": achievement,
    })


def read_events(
    redis_client: redis.Redis,
    last_id: str = "0",
    count: int = 100,
    block_ms: int = None
) -> list:
    """
    Read events from the stream.

    Args:
        redis_client: Redis connection
        last_id: Read events after this ID ("0" for all, "$" for only new)
        count: Maximum number of events to return
        block_ms: If set, block for this many milliseconds waiting for new events

    Returns:
        List of (event_id, event_data) tuples
    """
    if block_ms is not None:
        result = redis_client.xread({STREAM_NAME: last_id}, count=count, block=block_ms)
    else:
        result = redis_client.xread({STREAM_NAME: last_id}, count=count)

    # xread returns: [(stream_name, [(id, data), (id, data), ...])]
    if not result:
        return []

    return result[0][1]


def get_stream_length(redis_client: redis.Redis) -> int:
    """Get the current number of events in the stream."""
    return redis_client.xlen(STREAM_NAME)
