"""
Demo script to show check-ins feeding the footfall heatmap.

This script:
1. Fetches the heatmap for a city (base grid if nothing has been recorded)
2. Sends check-ins from a user standing near, then too far from, a place
3. Fetches the heatmap again to show the place's cell scoring 100

Run the event_consumer.py in another terminal to see the events:
    Terminal 1: python scripts/event_consumer.py
    Terminal 2: python scripts/demo_checkins.py

Usage:
    python scripts/demo_checkins.py
    python scripts/demo_checkins.py --city 1 --place 1 --count 5
"""
import argparse
import math
from datetime import datetime, timezone

import requests

API_URL = "http://localhost:8000"

EARTH_RADIUS_M = 6_371_000


def offset_north(lat: float, lng: float, meters: float) -> tuple[float, float]:
    return lat + math.degrees(meters / EARTH_RADIUS_M), lng


def summarize(heatmap: dict) -> None:
    print(f"  Source:       {heatmap['data_source']}")
    print(f"  Cells:        {heatmap['count']}")
    print(f"  Total visits: {heatmap['total_visits']}")
    top = sorted(heatmap["cells"], key=lambda c: c["visit_count"], reverse=True)[:3]
    for cell in top:
        print(f"    {cell['cell_id']}  score={cell['score']:3d}  visits={cell['visit_count']}")


def main():
    parser = argparse.ArgumentParser(description="Demo check-ins and the footfall heatmap")
    parser.add_argument("--city", type=int, default=1, help="City ID (default: 1)")
    parser.add_argument("--place", type=int, default=1, help="Place ID to check in at (default: 1)")
    parser.add_argument("--lat", type=float, default=53.4668, help="Place latitude")
    parser.add_argument("--lng", type=float, default=-2.2339, help="Place longitude")
    parser.add_argument("--count", type=int, default=3, help="Number of check-ins to send (default: 3)")
    args = parser.parse_args()

    today = datetime.now(timezone.utc).date().isoformat()

    print("=" * 60)
    print("CAMPUS GUIDE DEMO - Check-ins and Footfall")
    print("=" * 60)

    print(f"\nHeatmap for city {args.city} on {today} (before):")
    summarize(requests.get(f"{API_URL}/v1/cities/{args.city}/heatmap", params={"date": today}).json())

    print(f"\nChecking in {args.count} users ~40m from place {args.place}...")
    near_lat, near_lng = offset_north(args.lat, args.lng, 40)
    for user_id in range(1, args.count + 1):
        response = requests.post(f"{API_URL}/v1/visits", json={
            "user_id": user_id,
            "place_id": args.place,
            "user_lat": near_lat,
            "user_lng": near_lng,
        })
        body = response.json()
        if response.status_code == 201:
            print(f"  user {user_id}: admitted ({body['distance_m']}m)")
        else:
            print(f"  user {user_id}: HTTP {response.status_code} {body.get('detail')}")

    print("\nChecking in from ~250m away (should be refused)...")
    far_lat, far_lng = offset_north(args.lat, args.lng, 250)
    response = requests.post(f"{API_URL}/v1/visits", json={
        "user_id": 99,
        "place_id": args.place,
        "user_lat": far_lat,
        "user_lng": far_lng,
    })
    print(f"  HTTP {response.status_code}: {response.json().get('detail')}")

    print(f"\nHeatmap for city {args.city} on {today} (after):")
    summarize(requests.get(f"{API_URL}/v1/cities/{args.city}/heatmap", params={"date": today}).json())


if __name__ == "__main__":
    main()
