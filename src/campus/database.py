"""
Database connection for the campus guide PostgreSQL store.

The footfall and proximity code never talks to the database itself; route
handlers read cities, places, visits and chat rooms through store.py and
pass plain values into the core.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    create_engine, Column, String, Float, Integer, DateTime, Text, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

# Create engine and session factory
# We only create these if DATABASE_URL is set (allows tests to run without DB)
engine = None
SessionLocal = None

if DATABASE_URL:
    engine = create_engine(DATABASE_URL)
    SessionLocal = sessionmaker(bind=engine)

# Base class for our models
Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class City(Base):
    """A city whose anchor coordinate centers the fallback heatmap grid."""
    __tablename__ = "cities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)


class Place(Base):
    """A point of interest users can check in to."""
    __tablename__ = "places"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    category = Column(String(60), nullable=True)
    city_id = Column(Integer, ForeignKey("cities.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Visit(Base):
    """A check-in. The footfall heatmap is built from these rows."""
    __tablename__ = "visits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)
    place_id = Column(Integer, ForeignKey("places.id"), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ChatRoom(Base):
    """
    Proximity chat room anchored at a point.

    Place rooms carry place_id; free-standing rooms only an anchor.
    A NULL radius_meters means the default discovery radius.
    """
    __tablename__ = "chat_rooms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    radius_meters = Column(Integer, nullable=True)
    place_id = Column(Integer, ForeignKey("places.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "lat": self.lat,
            "lng": self.lng,
            "radius_meters": self.radius_meters,
            "place_id": self.place_id,
        }


class Achievement(Base):
    __tablename__ = "achievements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False, unique=True)
    description = Column(Text, nullable=True)


class UserAchievement(Base):
    __tablename__ = "user_achievements"
    __table_args__ = (UniqueConstraint("user_id", "achievement_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)
    achievement_id = Column(Integer, ForeignKey("achievements.id"), nullable=False)
    unlocked_at = Column(DateTime(timezone=True), default=_utcnow)


def get_db_session():
    """
    Get a database session.

    Usage:
        session = get_db_session()
        if session:
            # do database stuff
            session.close()

    Returns None if database is not configured (useful for tests).
    """
    if SessionLocal is None:
        return None
    return SessionLocal()


def is_database_configured():
    """Check if database connection is configured."""
    return DATABASE_URL is not None and engine is not None
