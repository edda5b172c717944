"""
Seed the database with a city, campus places and a week of visits.

Creates the tables if needed, then inserts Manchester with a handful of
campus and city-centre places. Popular places get 20-50 visits a day,
the rest 5-15, spread between 9am and 9pm over the last 7 days. Useful
for eyeballing the heatmap with real-looking footfall.

Requires CAMPUS_DATABASE_URL to be set (see .env).

Usage:
    python scripts/seed_visits.py
    python scripts/seed_visits.py --days 14 --seed 42
"""
import argparse
import os
import random
import sys
from datetime import datetime, timedelta, timezone

# Add project root to path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.campus.achievements import HOTSPOT_EXPLORER, HOTSPOT_EXPLORER_THRESHOLD
from src.campus.database import (
    Base, engine, get_db_session, is_database_configured, Achievement, City, Place, Visit
)

CITY = {"name": "Manchester", "lat": 53.4808, "lng": -2.2426}

# (name, lat, lng, category, popular)
PLACES = [
    ("University of Manchester Main Campus", 53.4668, -2.2339, "campus", True),
    ("Alan Gilbert Learning Commons", 53.4662, -2.2330, "library", True),
    ("John Rylands Library", 53.4802, -2.2489, "library", True),
    ("Manchester Museum", 53.4665, -2.2353, "museum", True),
    ("Students Union", 53.4649, -2.2318, "campus", True),
    ("Northern Quarter", 53.4839, -2.2361, "district", True),
    ("Piccadilly Gardens", 53.4810, -2.2369, "park", True),
    ("Whitworth Art Gallery", 53.4603, -2.2296, "museum", False),
    ("Manchester Central Library", 53.4782, -2.2447, "library", False),
    ("Manchester Piccadilly Station", 53.4774, -2.2309, "transport", False),
]

NUM_USERS = 10


def seed(days: int, rng: random.Random) -> int:
    """Insert the city, places, achievement catalog and visits. Returns the visit count."""
    session = get_db_session()
    try:
        city = session.query(City).filter(City.name == CITY["name"]).first()
        if city is None:
            city = City(**CITY)
            session.add(city)
            session.flush()

        places = []
        for name, lat, lng, category, popular in PLACES:
            place = session.query(Place).filter(Place.name == name).first()
            if place is None:
                place = Place(name=name, lat=lat, lng=lng, category=category, city_id=city.id)
                session.add(place)
                session.flush()
            places.append((place, popular))

        if session.query(Achievement).filter(Achievement.name == HOTSPOT_EXPLORER).first() is None:
            session.add(Achievement(
                name=HOTSPOT_EXPLORER,
                description=f"Check in at {HOTSPOT_EXPLORER_THRESHOLD} different places",
            ))

        today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        total = 0

        for day_offset in range(days):
            day = today - timedelta(days=day_offset)
            for place, popular in places:
                low, high = (20, 50) if popular else (5, 15)
                for _ in range(rng.randint(low, high)):
                    visit_time = day + timedelta(hours=rng.randint(9, 20), minutes=rng.randint(0, 59))
                    session.add(Visit(
                        user_id=rng.randint(1, NUM_USERS),
                        place_id=place.id,
                        timestamp=visit_time,
                    ))
                    total += 1

        session.commit()
        return total
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def main():
    parser = argparse.ArgumentParser(description="Seed cities, places and visits")
    parser.add_argument("--days", type=int, default=7, help="Days of visits to generate (default: 7)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for repeatable data")
    args = parser.parse_args()

    if not is_database_configured():
        print("ERROR: CAMPUS_DATABASE_URL is not set.")
        sys.exit(1)

    Base.metadata.create_all(engine)

    total = seed(args.days, random.Random(args.seed))
    print(f"Seeded {total} visits across {len(PLACES)} places over {args.days} days")


if __name__ == "__main__":
    main()
