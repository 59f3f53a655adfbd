import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.errors import ValidationFailed
from questionair.models import User, UserSettings, utcnow
from questionair.schemas import SettingsOut, SettingsUpdate

logger = logging.getLogger(__name__)


def to_settings_out(prefs: UserSettings) -> SettingsOut:
    return SettingsOut.model_validate(prefs)


async def get_or_create_settings(db: AsyncSession, user: User) -> UserSettings:
    """Settings rows are created lazily on first read."""
    prefs = await db.get(UserSettings, user.id)
    if prefs is not None:
        return prefs
    prefs = UserSettings(user_id=user.id)
    db.add(prefs)
    try:
        await db.commit()
    except IntegrityError:
        # a concurrent request created it first
        await db.rollback()
        prefs = await db.get(UserSettings, user.id)
    else:
        logger.debug("Created default settings for %s", user.username)
    return prefs


async def update_settings(db: AsyncSession, user: User, data: SettingsUpdate) -> UserSettings:
    prefs = await get_or_create_settings(db, user)
    sent = data.model_fields_set
    applied = False

    for field in ("heavy_mode_enabled", "notifications_enabled", "default_depth", "quick_question_max_length"):
        value = getattr(data, field)
        if field in sent and value is not None:
            setattr(prefs, field, value)
            applied = True
    # quiet hours may be cleared with null
    for field in ("quiet_hours_start", "quiet_hours_end"):
        if field in sent:
            setattr(prefs, field, getattr(data, field))
            applied = True

    if not applied:
        raise ValidationFailed("No valid updates provided")

    prefs.updated_at = utcnow()
    await db.commit()
    logger.info("Settings updated for %s: %s", user.username, sorted(sent))
    return prefs


async def toggle_heavy_mode(db: AsyncSession, user: User) -> bool:
    prefs = await get_or_create_settings(db, user)
    prefs.heavy_mode_enabled = not prefs.heavy_mode_enabled
    prefs.updated_at = utcnow()
    await db.commit()
    return prefs.heavy_mode_enabled
