"""Question lifecycle: creation, role-filtered edits, listings and detail."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from questionair.errors import Forbidden, NotFound, ValidationFailed
from questionair.models import (
    Depth,
    EventType,
    Question,
    QuestionStatus,
    QuestionVersion,
    Response,
    ResponseType,
    User,
    new_id,
    utcnow,
)
from questionair.schemas import (
    InboxStats,
    QuestionCreate,
    QuestionDetail,
    QuestionDetailOut,
    QuestionStatsOut,
    QuestionSummary,
    QuestionUpdate,
    QuestionVersionOut,
    SentStats,
)
from questionair.services.notifications import Notifier, record_event
from questionair.services.responses import to_response_out
from questionair.utils import clean_text, get_counterpart

logger = logging.getLogger(__name__)

INBOX_SORTS = ("newest", "oldest", "updated", "needs_attention", "random")
PENDING_STATUSES = (QuestionStatus.new, QuestionStatus.holding)


def cooldown_from_hours(hours: Optional[float], now: Optional[datetime] = None) -> Optional[datetime]:
    if not hours or hours <= 0:
        return None
    return (now or utcnow()) + timedelta(hours=hours)


def is_surfaceable(now: Optional[datetime] = None):
    """Predicate for questions ready to be triaged: pending and out of cooldown."""
    now = now or utcnow()
    return and_(
        Question.status.in_(PENDING_STATUSES),
        or_(Question.cooldown_until.is_(None), Question.cooldown_until <= now),
    )


def _response_count(*conds):
    return (
        select(func.count(Response.id))
        .where(Response.question_id == Question.id, *conds)
        .correlate(Question)
        .scalar_subquery()
    )


def non_draft_count():
    return _response_count(Response.is_draft.is_(False))


# ---------------------------
# Create / update
# ---------------------------
async def create_question(db: AsyncSession, notifier: Notifier, author: User, data: QuestionCreate) -> Question:
    body = clean_text(data.body)
    if not body:
        raise ValidationFailed("Question body required")

    target = await get_counterpart(db, author.id)
    if target is None:
        raise ValidationFailed("No recipient found")

    now = utcnow()
    title = clean_text(data.title)
    q = Question(
        id=new_id(),
        author_user_id=author.id,
        target_user_id=target.id,
        title=title,
        body=body,
        depth=data.depth,
        is_heavy=data.is_heavy,
        cooldown_until=cooldown_from_hours(data.cooldown_hours, now),
        status=QuestionStatus.new,
        created_at=now,
        updated_at=now,
    )
    db.add(q)
    db.add(QuestionVersion(question_id=q.id, title=title, body=body, edited_by_user_id=author.id, created_at=now))
    ev = record_event(db, target.id, EventType.new_question, {"questionId": q.id, "isHeavy": q.is_heavy})
    await db.commit()

    notifier.dispatch(ev)
    logger.info("Question %s created by %s for %s", q.id, author.username, target.username)
    return q


async def update_question(
    db: AsyncSession,
    notifier: Notifier,
    user: User,
    question_id: str,
    data: QuestionUpdate,
) -> Question:
    """Apply the fields the caller's role may touch; the rest are ignored."""
    q = await db.get(Question, question_id)
    if q is None:
        raise NotFound("Question not found")

    is_author = q.author_user_id == user.id
    is_target = q.target_user_id == user.id
    if not (is_author or is_target):
        raise Forbidden("Not authorized")

    sent = data.model_fields_set
    now = utcnow()
    applied = False
    content_changed = False

    if is_author:
        if "title" in sent:
            title = clean_text(data.title)
            content_changed |= title != q.title
            q.title = title
            applied = True
        if "body" in sent:
            body = clean_text(data.body)
            if not body:
                raise ValidationFailed("Question body cannot be empty")
            content_changed |= body != q.body
            q.body = body
            applied = True
        if data.depth is not None:
            q.depth = data.depth
            applied = True
        if data.is_heavy is not None:
            q.is_heavy = data.is_heavy
            applied = True

    if is_target:
        if data.status is not None:
            q.status = data.status
            applied = True
        if "cooldown_hours" in sent:
            # 0 or null clears the window
            q.cooldown_until = cooldown_from_hours(data.cooldown_hours, now)
            applied = True
        if "cooldown_reason" in sent:
            q.cooldown_reason = clean_text(data.cooldown_reason)
            applied = True

    if not applied:
        raise ValidationFailed("No valid updates provided")

    q.updated_at = now
    ev = None
    if content_changed:
        db.add(QuestionVersion(question_id=q.id, title=q.title, body=q.body, edited_by_user_id=user.id, created_at=now))
        answered = await db.scalar(
            select(func.count(Response.id)).where(Response.question_id == q.id, Response.is_draft.is_(False))
        )
        if answered:
            ev = record_event(db, q.target_user_id, EventType.question_edited, {"questionId": q.id})

    await db.commit()
    if ev is not None:
        notifier.dispatch(ev)
    logger.debug("Question %s updated by %s (content_changed=%s)", q.id, user.username, content_changed)
    return q


# ---------------------------
# Listings
# ---------------------------
def _inbox_filters(
    user_id: str,
    depth: Optional[Depth],
    status: Optional[QuestionStatus],
    show_heavy: Optional[str],
) -> list:
    preds = [Question.target_user_id == user_id]
    if depth is not None:
        preds.append(Question.depth == depth)
    if status is not None:
        preds.append(Question.status == status)
    if show_heavy == "false":
        preds.append(Question.is_heavy.is_(False))
    elif show_heavy == "only":
        preds.append(Question.is_heavy.is_(True))
    return preds


def _inbox_order(sort: str) -> list:
    if sort == "oldest":
        return [Question.created_at.asc()]
    if sort == "updated":
        return [Question.updated_at.desc()]
    if sort == "needs_attention":
        rank = case(
            (Question.status == QuestionStatus.new, 0),
            (Question.status == QuestionStatus.holding, 1),
            else_=2,
        )
        return [rank, Question.created_at.desc()]
    if sort == "random":
        return [func.random()]
    return [Question.created_at.desc()]


async def list_inbox(
    db: AsyncSession,
    user: User,
    *,
    depth: Optional[Depth] = None,
    status: Optional[QuestionStatus] = None,
    show_heavy: Optional[str] = None,
    sort: str = "newest",
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[QuestionSummary], int]:
    preds = _inbox_filters(user.id, depth, status, show_heavy)
    author = aliased(User)
    stmt = (
        select(
            Question,
            author.display_name,
            non_draft_count().label("response_count"),
            _response_count(Response.response_type == ResponseType.voice).label("voice_count"),
            _response_count(Response.response_type == ResponseType.template).label("template_count"),
            _response_count(Response.is_draft.is_(True)).label("draft_count"),
        )
        .join(author, author.id == Question.author_user_id)
        .where(*preds)
        .order_by(*_inbox_order(sort))
        .limit(limit)
        .offset(offset)
    )
    rows = (await db.execute(stmt)).all()
    total = await db.scalar(select(func.count(Question.id)).where(*preds))

    items = [
        QuestionSummary(
            **_question_fields(q),
            author_name=author_name,
            response_count=responses,
            has_voice=voice > 0,
            has_template=templates > 0,
            has_draft=drafts > 0,
        )
        for q, author_name, responses, voice, templates, drafts in rows
    ]
    return items, total or 0


async def list_sent(db: AsyncSession, user: User) -> list[QuestionSummary]:
    target = aliased(User)
    rows = (
        await db.execute(
            select(Question, target.display_name, non_draft_count())
            .join(target, target.id == Question.target_user_id)
            .where(Question.author_user_id == user.id)
            .order_by(Question.created_at.desc())
        )
    ).all()
    return [
        QuestionSummary(**_question_fields(q), author_name=user.display_name, target_name=name, response_count=n)
        for q, name, n in rows
    ]


async def question_stats(db: AsyncSession, user: User) -> QuestionStatsOut:
    def _sum(cond):
        return func.coalesce(func.sum(case((cond, 1), else_=0)), 0)

    inbox = (
        await db.execute(
            select(
                func.count(Question.id),
                _sum(Question.status == QuestionStatus.new),
                _sum(Question.status == QuestionStatus.holding),
                _sum(Question.is_heavy.is_(True)),
                _sum(
                    and_(
                        Question.depth == Depth.quick,
                        Question.is_heavy.is_(False),
                        Question.status == QuestionStatus.new,
                    )
                ),
            ).where(Question.target_user_id == user.id)
        )
    ).one()

    sent_total, answered = (
        await db.execute(
            select(func.count(Question.id), _sum(non_draft_count() > 0)).where(Question.author_user_id == user.id)
        )
    ).one()

    return QuestionStatsOut(
        inbox=InboxStats(
            total=inbox[0], new=inbox[1], holding=inbox[2], heavy=inbox[3], quick_available=inbox[4]
        ),
        sent=SentStats(total=sent_total, answered=answered, unanswered=sent_total - answered),
    )


# ---------------------------
# Detail
# ---------------------------
async def get_question_detail(db: AsyncSession, user: User, question_id: str) -> QuestionDetailOut:
    q = (
        await db.execute(
            select(Question)
            .options(
                selectinload(Question.author),
                selectinload(Question.versions).selectinload(QuestionVersion.editor),
                selectinload(Question.responses).selectinload(Response.author),
            )
            .where(
                Question.id == question_id,
                or_(Question.author_user_id == user.id, Question.target_user_id == user.id),
            )
            .execution_options(populate_existing=True)
        )
    ).scalars().first()
    if q is None:
        # unknown ids and other people's questions look the same
        raise NotFound("Question not found")

    # drafts are private to whoever is writing them
    visible = [r for r in q.responses if not r.is_draft or r.author_user_id == user.id]

    return QuestionDetailOut(
        question=QuestionDetail(
            **_question_fields(q),
            author_name=q.author.display_name if q.author else None,
            target_user_id=q.target_user_id,
            response_count=sum(1 for r in q.responses if not r.is_draft),
            has_voice=any(r.response_type is ResponseType.voice for r in q.responses),
            has_template=any(r.response_type is ResponseType.template for r in q.responses),
            has_draft=any(r.is_draft for r in visible),
            is_owner=q.author_user_id == user.id,
            is_target=q.target_user_id == user.id,
        ),
        versions=[
            QuestionVersionOut(
                id=v.id,
                title=v.title,
                body=v.body,
                editor_name=v.editor.display_name if v.editor else None,
                created_at=v.created_at,
            )
            for v in q.versions
        ],
        responses=[to_response_out(r) for r in visible],
    )


def _question_fields(q: Question) -> dict:
    return {
        "id": q.id,
        "title": q.title,
        "body": q.body,
        "depth": q.depth,
        "is_heavy": q.is_heavy,
        "cooldown_until": q.cooldown_until,
        "cooldown_reason": q.cooldown_reason,
        "status": q.status,
        "author_id": q.author_user_id,
        "created_at": q.created_at,
        "updated_at": q.updated_at,
    }


__all__ = [
    "INBOX_SORTS",
    "cooldown_from_hours",
    "create_question",
    "get_question_detail",
    "is_surfaceable",
    "list_inbox",
    "list_sent",
    "non_draft_count",
    "question_stats",
    "update_question",
]
