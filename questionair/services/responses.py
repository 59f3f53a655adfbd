"""Responses: drafts, finals, voice notes and their version history."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.errors import NotFound, ValidationFailed
from questionair.models import (
    EventType,
    Question,
    QuestionStatus,
    QuickReaction,
    Response,
    ResponseType,
    ResponseVersion,
    User,
    new_id,
    utcnow,
)
from questionair.schemas import ResponseCreate, ResponseOut, ResponseUpdate
from questionair.services.notifications import Notifier, record_event
from questionair.storage import FileStore
from questionair.utils import clean_text

logger = logging.getLogger(__name__)


def voice_extension(content_type: str) -> str:
    content_type = (content_type or "").lower()
    if "webm" in content_type:
        return ".webm"
    if "mp4" in content_type:
        return ".m4a"
    return ".ogg"


def parse_duration(raw: Optional[str]) -> Optional[int]:
    try:
        value = int(float(raw)) if raw not in (None, "") else None
    except (TypeError, ValueError):
        return None
    return value if value and value > 0 else None


def to_response_out(r: Response) -> ResponseOut:
    return ResponseOut(
        id=r.id,
        type=r.response_type,
        body_text=r.body_text,
        template_name=r.template_name,
        template_data=r.template_data,
        voice_file_path=r.voice_file_path,
        voice_duration=r.voice_duration_seconds,
        is_draft=r.is_draft,
        answer_budget=r.answer_budget_minutes,
        author_id=r.author_user_id,
        author_name=r.author.display_name if r.author else None,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


async def _question_for_responder(db: AsyncSession, user: User, question_id: str) -> Question:
    q = await db.get(Question, question_id)
    if q is None or q.target_user_id != user.id:
        raise NotFound("Question not found or not authorized")
    return q


async def _open_draft(db: AsyncSession, question_id: str, author_id: str) -> Optional[Response]:
    return (
        await db.execute(
            select(Response).where(
                Response.question_id == question_id,
                Response.author_user_id == author_id,
                Response.is_draft.is_(True),
            )
        )
    ).scalars().first()


def _activate(q: Question, now) -> None:
    q.status = QuestionStatus.active
    q.updated_at = now


def _snapshot(db: AsyncSession, r: Response, now) -> None:
    db.add(ResponseVersion(response_id=r.id, body_text=r.body_text, template_data=r.template_data, created_at=now))


async def create_response(db: AsyncSession, notifier: Notifier, user: User, data: ResponseCreate) -> Response:
    """Create a text/template/quick response, or save into the caller's open draft.

    A caller holds at most one draft per question. Saving another draft
    rewrites it; sending a final while a draft is open turns that draft into
    the final response.
    """
    q = await _question_for_responder(db, user, data.question_id)
    now = utcnow()

    r = await _open_draft(db, q.id, user.id)
    if r is None:
        r = Response(id=new_id(), question_id=q.id, author_user_id=user.id, created_at=now)
        db.add(r)
    r.response_type = data.type
    r.body_text = clean_text(data.body_text)
    r.template_name = clean_text(data.template_name)
    r.template_data = data.template_data
    r.answer_budget_minutes = data.answer_budget
    r.is_draft = data.is_draft
    r.updated_at = now
    _snapshot(db, r, now)

    ev = None
    if not data.is_draft:
        _activate(q, now)
        ev = record_event(db, q.author_user_id, EventType.new_response, {"questionId": q.id, "responseId": r.id})
    await db.commit()

    if ev is not None:
        notifier.dispatch(ev)
    logger.info("Response %s (%s, draft=%s) saved on question %s", r.id, r.response_type.value, r.is_draft, q.id)
    return r


async def create_voice_response(
    db: AsyncSession,
    notifier: Notifier,
    store: FileStore,
    user: User,
    *,
    question_id: str,
    audio: UploadFile,
    duration: Optional[str],
    max_bytes: int,
) -> Response:
    if not (audio.content_type or "").lower().startswith("audio/"):
        raise ValidationFailed("Only audio files allowed")
    q = await _question_for_responder(db, user, question_id)

    stored = await store.save(audio, suffix=voice_extension(audio.content_type), max_bytes=max_bytes)
    now = utcnow()
    try:
        r = Response(
            id=new_id(),
            question_id=q.id,
            author_user_id=user.id,
            response_type=ResponseType.voice,
            voice_file_path=stored.name,
            voice_duration_seconds=parse_duration(duration),
            is_draft=False,
            created_at=now,
            updated_at=now,
        )
        db.add(r)
        _activate(q, now)
        ev = record_event(
            db, q.author_user_id, EventType.new_response, {"questionId": q.id, "responseId": r.id, "isVoice": True}
        )
        await db.commit()
    except Exception:
        await db.rollback()
        store.delete(stored.name)
        raise

    notifier.dispatch(ev)
    logger.info("Voice response %s stored as %s (%d bytes)", r.id, stored.name, stored.size)
    return r


async def update_response(db: AsyncSession, user: User, response_id: str, data: ResponseUpdate) -> Response:
    r = await db.get(Response, response_id)
    if r is None or r.author_user_id != user.id:
        raise NotFound("Response not found or not authorized")

    sent = data.model_fields_set
    applied = False
    publishing = False

    if "body_text" in sent:
        r.body_text = clean_text(data.body_text)
        applied = True
    if "template_data" in sent:
        r.template_data = data.template_data
        applied = True
    if data.is_draft is not None:
        if data.is_draft and not r.is_draft:
            other = await _open_draft(db, r.question_id, user.id)
            if other is not None:
                raise ValidationFailed("A draft already exists for this question")
        publishing = r.is_draft and not data.is_draft
        r.is_draft = data.is_draft
        applied = True

    if not applied:
        raise ValidationFailed("No valid updates provided")

    now = utcnow()
    r.updated_at = now
    _snapshot(db, r, now)
    if publishing:
        q = await db.get(Question, r.question_id)
        _activate(q, now)
    await db.commit()
    logger.debug("Response %s edited (published=%s)", r.id, publishing)
    return r


async def list_quick_reactions(db: AsyncSession) -> list[QuickReaction]:
    rows = await db.execute(select(QuickReaction).order_by(QuickReaction.sort_order.asc()))
    return list(rows.scalars().all())


__all__ = [
    "create_response",
    "create_voice_response",
    "list_quick_reactions",
    "parse_duration",
    "to_response_out",
    "update_response",
    "voice_extension",
]
