"""Per-user swipe queue.

Positions only order entries for one user. They grow monotonically and may
have gaps after removals.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from questionair.errors import NotFound, ValidationFailed
from questionair.models import Depth, Question, SwipeQueueEntry, User, utcnow
from questionair.schemas import SwipeItem, SwipeQuestion, SwipeQueueOut
from questionair.services.questions import PENDING_STATUSES, is_surfaceable
from questionair.services.user_settings import get_or_create_settings

logger = logging.getLogger(__name__)


async def _max_position(db: AsyncSession, user_id: str) -> int:
    current = await db.scalar(
        select(func.max(SwipeQueueEntry.position)).where(SwipeQueueEntry.user_id == user_id)
    )
    return current or 0


async def _entry(db: AsyncSession, user_id: str, question_id: str) -> Optional[SwipeQueueEntry]:
    return (
        await db.execute(
            select(SwipeQueueEntry).where(
                SwipeQueueEntry.user_id == user_id, SwipeQueueEntry.question_id == question_id
            )
        )
    ).scalars().first()


async def fetch_queue(db: AsyncSession, user: User, *, include_heavy: bool = False) -> SwipeQueueOut:
    prefs = await get_or_create_settings(db, user)
    show_heavy = include_heavy or prefs.heavy_mode_enabled

    author = aliased(User)
    stmt = (
        select(SwipeQueueEntry, Question, author.display_name)
        .join(Question, Question.id == SwipeQueueEntry.question_id)
        .join(author, author.id == Question.author_user_id)
        .where(SwipeQueueEntry.user_id == user.id, is_surfaceable(utcnow()))
        .order_by(SwipeQueueEntry.position.asc())
    )
    if not show_heavy:
        stmt = stmt.where(Question.is_heavy.is_(False))

    items = [
        SwipeItem(
            queue_id=entry.id,
            position=entry.position,
            question=SwipeQuestion(
                id=q.id,
                title=q.title,
                body=q.body,
                depth=q.depth,
                is_heavy=q.is_heavy,
                cooldown_until=q.cooldown_until,
                status=q.status,
                author_name=author_name,
                created_at=q.created_at,
            ),
        )
        for entry, q, author_name in (await db.execute(stmt)).all()
    ]
    return SwipeQueueOut(queue=items, heavy_mode_enabled=prefs.heavy_mode_enabled)


async def add_to_queue(db: AsyncSession, user: User, question_id: str) -> int:
    q = await db.get(Question, question_id)
    if q is None or q.target_user_id != user.id:
        raise NotFound("Question not found")
    if await _entry(db, user.id, question_id) is not None:
        raise ValidationFailed("Question already in queue")

    position = await _max_position(db, user.id) + 1
    db.add(SwipeQueueEntry(user_id=user.id, question_id=question_id, position=position))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationFailed("Question already in queue")
    return position


async def add_all(
    db: AsyncSession,
    user: User,
    *,
    include_heavy: bool = False,
    depth: Optional[Depth] = None,
) -> int:
    """Queue every pending question not already queued, oldest first."""
    already = select(SwipeQueueEntry.question_id).where(SwipeQueueEntry.user_id == user.id)
    stmt = (
        select(Question.id)
        .where(
            Question.target_user_id == user.id,
            Question.status.in_(PENDING_STATUSES),
            Question.id.not_in(already),
        )
        .order_by(Question.created_at.asc())
    )
    if not include_heavy:
        stmt = stmt.where(Question.is_heavy.is_(False))
    if depth is not None:
        stmt = stmt.where(Question.depth == depth)

    ids = (await db.execute(stmt)).scalars().all()
    if not ids:
        return 0

    position = await _max_position(db, user.id)
    for qid in ids:
        position += 1
        db.add(SwipeQueueEntry(user_id=user.id, question_id=qid, position=position))
    await db.commit()
    logger.info("Queued %d question(s) for %s", len(ids), user.username)
    return len(ids)


async def skip(db: AsyncSession, user: User, question_id: str) -> None:
    entry = await _entry(db, user.id, question_id)
    if entry is None:
        return
    top = await _max_position(db, user.id)
    if entry.position >= top:
        return
    entry.position = top + 1
    await db.commit()


async def remove(db: AsyncSession, user: User, question_id: str) -> None:
    await db.execute(
        delete(SwipeQueueEntry).where(
            SwipeQueueEntry.user_id == user.id, SwipeQueueEntry.question_id == question_id
        )
    )
    await db.commit()


async def clear(db: AsyncSession, user: User) -> None:
    await db.execute(delete(SwipeQueueEntry).where(SwipeQueueEntry.user_id == user.id))
    await db.commit()
