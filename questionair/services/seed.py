"""First-run data: the two accounts, system templates, quick reactions."""
import logging

from fastapi_users.password import PasswordHelper
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.models import QuickReaction, ResponseTemplate, User, UserSettings

logger = logging.getLogger(__name__)

DEFAULT_USERS = (
    ("Adrianna", "AdriannaPass"),
    ("Gerrod", "GerrodPass"),
)

QUICK_REACTIONS = (
    ("Short answer", "✍️"),
    ("I don't know yet", "🤔"),
    ("Not ready", "⏳"),
    ("Let's talk live", "🗣️"),
    ("Voice note coming", "🎙️"),
    ("Need cooldown", "🧊"),
    ("I can answer later", "🕐"),
)

SYSTEM_TEMPLATES = (
    {
        "name": "Rose, Bud, Thorn",
        "description": "Something good, something growing, something hard.",
        "fields": [
            {"key": "rose", "label": "Rose", "type": "text"},
            {"key": "bud", "label": "Bud", "type": "text"},
            {"key": "thorn", "label": "Thorn", "type": "text"},
        ],
    },
    {
        "name": "Pros and cons",
        "description": "Weigh both sides before answering.",
        "fields": [
            {"key": "pros", "label": "Pros", "type": "textarea"},
            {"key": "cons", "label": "Cons", "type": "textarea"},
            {"key": "verdict", "label": "Where I land", "type": "text"},
        ],
    },
    {
        "name": "Feelings check-in",
        "description": "Name it, rate it, say what would help.",
        "fields": [
            {"key": "feeling", "label": "What I'm feeling", "type": "text"},
            {"key": "intensity", "label": "Intensity (1-10)", "type": "number"},
            {"key": "need", "label": "What would help", "type": "textarea"},
        ],
    },
)


async def seed_default_users(db: AsyncSession) -> int:
    count = await db.scalar(select(func.count(User.id)))
    if count:
        return 0
    helper = PasswordHelper()
    for username, password in DEFAULT_USERS:
        user = User(
            username=username,
            display_name=username,
            hashed_password=helper.hash(password),
            is_active=True,
            is_verified=True,
        )
        user.settings = UserSettings()
        db.add(user)
    await db.commit()
    logger.warning(
        "Created default users: %s. Change these passwords.",
        ", ".join(f"{u} / {p}" for u, p in DEFAULT_USERS),
    )
    return len(DEFAULT_USERS)


async def seed_reference_data(db: AsyncSession) -> None:
    if not await db.scalar(select(func.count(QuickReaction.id))):
        for order, (label, emoji) in enumerate(QUICK_REACTIONS, start=1):
            db.add(QuickReaction(label=label, emoji=emoji, sort_order=order))
        logger.info("Seeded %d quick reactions", len(QUICK_REACTIONS))

    existing = set(
        (await db.execute(select(ResponseTemplate.name).where(ResponseTemplate.is_system.is_(True)))).scalars()
    )
    for tpl in SYSTEM_TEMPLATES:
        if tpl["name"] not in existing:
            db.add(ResponseTemplate(is_system=True, is_enabled=True, created_by_user_id=None, **tpl))
            logger.info("Seeded system template %r", tpl["name"])
    await db.commit()
