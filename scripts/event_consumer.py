"""
Event Consumer - Listens to the Redis Stream and prints campus events.

Run this in a separate terminal while checking in to see events flow through:
1. Connects to the Redis Stream
2. Listens for new events in real-time
3. Prints check-ins and achievement unlocks

Usage:
    python scripts/event_consumer.py

Press Ctrl+C to stop.
"""
import os
import sys
from datetime import datetime

import redis

# Add project root to path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.campus.config import REDIS_HOST, REDIS_PORT
from src.campus.events import STREAM_NAME, read_events, get_stream_length


def format_timestamp(iso_string: str) -> str:
    """Convert ISO timestamp to readable format."""
    try:
        dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
        return dt.strftime("%H:%M:%S")
    except ValueError:
        return iso_string


def print_event(event_id: str, event_data: dict):
    """Print an event in a readable format."""
    event_type = event_data.get("event_type", "unknown")
    timestamp = format_timestamp(event_data.get("timestamp", ""))

    if event_type == "check_in":
        user = event_data.get("user_id", "?")
        place = event_data.get("place_id", "?")
        cell = event_data.get("cell_id", "?")
        distance = event_data.get("distance_m", "?")
        print(f"  [{timestamp}] CHECK-IN: user={user}, place={place}, cell={cell}, {distance}m away")

    elif event_type == "achievement_unlocked":
        user = event_data.get("user_id", "?")
        achievement = event_data.get("achievement", "?")
        print(f"  [{timestamp}] ACHIEVEMENT: user {user} unlocked '{achievement}'")

    else:
        print(f"  [{timestamp}] {event_type}: {event_data}")


def main():
    """Main consumer loop."""
    print("=" * 60)
    print("CAMPUS GUIDE - Event Consumer")
    print("=" * 60)
    print(f"Connecting to Redis at {REDIS_HOST}:{REDIS_PORT}...")

    try:
        r = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, decode_responses=True)
        r.ping()
        print("Connected!")
    except redis.ConnectionError:
        print("ERROR: Could not connect to Redis.")
        sys.exit(1)

    print(f"Stream '{STREAM_NAME}' has {get_stream_length(r)} events")
    print()
    print("Listening for new events... (press Ctrl+C to stop)")
    print("-" * 60)

    # "$" starts from now; use "0" to replay the whole stream
    last_id = "$"

    try:
        while True:
            events_list = read_events(r, last_id=last_id, count=10, block_ms=1000)

            for event_id, event_data in events_list:
                print_event(event_id, event_data)
                last_id = event_id

    except KeyboardInterrupt:
        print()
        print("-" * 60)
        print("Consumer stopped.")
        print(f"Final stream length: {get_stream_length(r)} events")


if __name__ == "__main__":
    main()
