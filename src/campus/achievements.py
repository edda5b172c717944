"""
Achievement threshold rules evaluated after a check-in.

Only "Hotspot Explorer" is awarded here: visit HOTSPOT_EXPLORER_THRESHOLD
distinct places. The achievement catalog itself lives in the database.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import func

from .database import Achievement, UserAchievement, Visit

logger = logging.getLogger(__name__)

HOTSPOT_EXPLORER = "Hotspot Explorer"
HOTSPOT_EXPLORER_THRESHOLD = 5


def qualifies_for_hotspot_explorer(distinct_places: int) -> bool:
    """Whether a user who has visited this many distinct places earns Hotspot Explorer."""
    return distinct_places >= HOTSPOT_EXPLORER_THRESHOLD


def check_achievements(session, user_id: int) -> list[str]:
    """
    Unlock any achievements the user now qualifies for.

    Achievement checks must never break a check-in, so failures are logged
    and reported as "nothing unlocked".

    Args:
        session: Open SQLAlchemy session (caller commits/closes)
        user_id: User who just checked in

    Returns:
        Names of achievements unlocked by this call
    """
    try:
        distinct_places = (
            session.query(func.count(func.distinct(Visit.place_id)))
            .filter(Visit.user_id == user_id)
            .scalar()
        ) or 0

        if not qualifies_for_hotspot_explorer(distinct_places):
            return []

        achievement = (
            session.query(Achievement)
            .filter(Achievement.name == HOTSPOT_EXPLORER)
            .first()
        )
        if achievement is None:
            return []

        existing = (
            session.query(UserAchievement)
            .filter(
                UserAchievement.user_id == user_id,
                UserAchievement.achievement_id == achievement.id,
            )
            .first()
        )
        if existing is not None:
            return []

        session.add(UserAchievement(
            user_id=user_id,
            achievement_id=achievement.id,
            unlocked_at=datetime.now(timezone.utc),
        ))
        session.commit()
        logger.info("Achievement unlocked: %s for user %s", HOTSPOT_EXPLORER, user_id)
        return [HOTSPOT_EXPLORER]
    except Exception:
        logger.exception("Error checking achievements for user %s", user_id)
        session.rollback()
        return []
