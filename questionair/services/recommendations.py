"""Links, videos and files shared between the two partners."""

from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from questionair.errors import NotFound, ValidationFailed
from questionair.models import (
    EventType,
    Recommendation,
    RecommendationStatus,
    RecommendationType,
    User,
    new_id,
    utcnow,
)
from questionair.schemas import RecommendationCreate, RecommendationOut, RecommendationStatsOut
from questionair.services.notifications import Notifier, record_event
from questionair.storage import FileStore, StoredFile
from questionair.utils import clean_text, get_counterpart
from questionair.video_urls import is_web_url, video_id

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    # images
    "image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml",
    # documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain", "text/csv", "text/markdown",
    # archives
    "application/zip", "application/x-rar-compressed", "application/x-7z-compressed",
    # audio / video
    "audio/mpeg", "audio/wav", "audio/ogg", "audio/mp4",
    "video/mp4", "video/webm", "video/quicktime",
})

EXTENSION_MIME_MAP = {
    ".jpg": ("image/jpeg",),
    ".jpeg": ("image/jpeg",),
    ".png": ("image/png",),
    ".gif": ("image/gif",),
    ".webp": ("image/webp",),
    ".svg": ("image/svg+xml",),
    ".pdf": ("application/pdf",),
    ".doc": ("application/msword",),
    ".docx": ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",),
    ".xls": ("application/vnd.ms-excel",),
    ".xlsx": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",),
    ".ppt": ("application/vnd.ms-powerpoint",),
    ".pptx": ("application/vnd.openxmlformats-officedocument.presentationml.presentation",),
    ".txt": ("text/plain",),
    ".csv": ("text/csv", "text/plain"),
    ".md": ("text/markdown", "text/plain"),
    ".zip": ("application/zip",),
    ".rar": ("application/x-rar-compressed",),
    ".7z": ("application/x-7z-compressed",),
    ".mp3": ("audio/mpeg",),
    ".wav": ("audio/wav",),
    ".ogg": ("audio/ogg",),
    ".m4a": ("audio/mp4",),
    ".mp4": ("video/mp4",),
    ".webm": ("video/webm",),
    ".mov": ("video/quicktime",),
}

_PLATFORM_NAMES = {
    RecommendationType.youtube: "YouTube",
    RecommendationType.vimeo: "Vimeo",
    RecommendationType.tiktok: "TikTok",
}


def bare_mime(content_type: Optional[str]) -> str:
    """``text/plain; charset=utf-8`` -> ``text/plain``."""
    return (content_type or "").split(";", 1)[0].strip().lower()


def display_name(filename: Optional[str]) -> Optional[str]:
    # browsers on Windows may send the full client path
    name = (filename or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    return name or None


def check_upload_type(filename: str, content_type: str) -> str:
    """Validate MIME and extension together; returns the normalised extension."""
    content_type = bare_mime(content_type)
    if content_type not in ALLOWED_MIME_TYPES:
        raise ValidationFailed("File type not allowed")
    ext = os.path.splitext(display_name(filename) or "")[1].lower()
    if content_type not in EXTENSION_MIME_MAP.get(ext, ()):
        raise ValidationFailed("File extension does not match content type")
    return ext


def to_recommendation_out(rec: Recommendation, viewer: Optional[User] = None) -> RecommendationOut:
    out = RecommendationOut(
        id=rec.id,
        type=rec.type,
        url=rec.url,
        file_name=rec.file_name,
        file_type=rec.file_type,
        file_size=rec.file_size,
        title=rec.title,
        note=rec.note,
        status=rec.status.value,
        author_id=rec.author_user_id,
        author_name=rec.author.display_name if rec.author else None,
        target_user_id=rec.target_user_id,
        target_name=rec.target.display_name if rec.target else None,
        created_at=rec.created_at,
        updated_at=rec.updated_at,
    )
    if viewer is not None:
        out.is_owner = rec.author_user_id == viewer.id
        out.is_target = rec.target_user_id == viewer.id
    return out


async def _counterpart_or_fail(db: AsyncSession, user: User) -> User:
    target = await get_counterpart(db, user.id)
    if target is None:
        raise ValidationFailed("No recipient found")
    return target


# ---------------------------
# Create
# ---------------------------
async def create_link(db: AsyncSession, notifier: Notifier, user: User, data: RecommendationCreate) -> Recommendation:
    url = (data.url or "").strip()
    if not url:
        raise ValidationFailed("URL is required")
    if not is_web_url(url):
        raise ValidationFailed("Invalid URL format")
    if data.type in _PLATFORM_NAMES and not video_id(data.type, url):
        raise ValidationFailed(f"Invalid {_PLATFORM_NAMES[data.type]} URL")

    target = await _counterpart_or_fail(db, user)
    now = utcnow()
    rec = Recommendation(
        id=new_id(),
        author_user_id=user.id,
        target_user_id=target.id,
        type=data.type,
        url=url,
        title=clean_text(data.title),
        note=clean_text(data.note),
        status=RecommendationStatus.new,
        created_at=now,
        updated_at=now,
    )
    db.add(rec)
    ev = record_event(db, target.id, EventType.new_recommendation, {"recommendationId": rec.id, "type": rec.type.value})
    await db.commit()

    notifier.dispatch(ev)
    logger.info("Recommendation %s (%s) shared by %s", rec.id, rec.type.value, user.username)
    return rec


async def create_upload(
    db: AsyncSession,
    notifier: Notifier,
    store: FileStore,
    user: User,
    *,
    upload: UploadFile,
    title: Optional[str],
    note: Optional[str],
    max_bytes: int,
) -> Recommendation:
    content_type = bare_mime(upload.content_type)
    ext = check_upload_type(upload.filename, content_type)
    target = await _counterpart_or_fail(db, user)

    stored: StoredFile = await store.save(upload, suffix=ext, max_bytes=max_bytes)
    now = utcnow()
    try:
        rec = Recommendation(
            id=new_id(),
            author_user_id=user.id,
            target_user_id=target.id,
            type=RecommendationType.file,
            file_path=stored.name,
            file_name=display_name(upload.filename) or stored.name,
            file_type=content_type,
            file_size=stored.size,
            title=clean_text(title),
            note=clean_text(note),
            status=RecommendationStatus.new,
            created_at=now,
            updated_at=now,
        )
        db.add(rec)
        ev = record_event(db, target.id, EventType.new_recommendation, {"recommendationId": rec.id, "type": "file"})
        await db.commit()
    except Exception:
        await db.rollback()
        store.delete(stored.name)
        raise

    notifier.dispatch(ev)
    logger.info("File recommendation %s stored as %s (%d bytes)", rec.id, stored.name, stored.size)
    return rec


# ---------------------------
# Read
# ---------------------------
def _with_people(stmt):
    return stmt.options(selectinload(Recommendation.author), selectinload(Recommendation.target))


async def list_received(
    db: AsyncSession,
    user: User,
    *,
    status: Optional[RecommendationStatus] = None,
    kind: Optional[RecommendationType] = None,
    sort: str = "newest",
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Recommendation], int]:
    preds = [Recommendation.target_user_id == user.id]
    if status is not None:
        preds.append(Recommendation.status == status)
    if kind is not None:
        preds.append(Recommendation.type == kind)
    order = Recommendation.created_at.asc() if sort == "oldest" else Recommendation.created_at.desc()

    rows = await db.execute(_with_people(select(Recommendation)).where(*preds).order_by(order).limit(limit).offset(offset))
    total = await db.scalar(select(func.count(Recommendation.id)).where(*preds))
    return list(rows.scalars().all()), total or 0


async def list_sent(db: AsyncSession, user: User) -> list[Recommendation]:
    rows = await db.execute(
        _with_people(select(Recommendation))
        .where(Recommendation.author_user_id == user.id)
        .order_by(Recommendation.created_at.desc())
    )
    return list(rows.scalars().all())


async def _visible(db: AsyncSession, user: User, rec_id: str) -> Recommendation:
    rec = (
        await db.execute(
            _with_people(select(Recommendation)).where(
                Recommendation.id == rec_id,
                or_(Recommendation.author_user_id == user.id, Recommendation.target_user_id == user.id),
            )
        )
    ).scalars().first()
    if rec is None:
        raise NotFound("Recommendation not found")
    return rec


async def open_recommendation(db: AsyncSession, user: User, rec_id: str) -> Recommendation:
    """Fetch for display. The target's first read marks it viewed."""
    rec = await _visible(db, user, rec_id)
    if rec.target_user_id == user.id and rec.status is RecommendationStatus.new:
        rec.status = RecommendationStatus.viewed
        rec.updated_at = utcnow()
        await db.commit()
        logger.debug("Recommendation %s viewed by %s", rec.id, user.username)
    return rec


async def stats(db: AsyncSession, user: User) -> RecommendationStatsOut:
    total, new = (
        await db.execute(
            select(
                func.count(Recommendation.id),
                func.coalesce(func.sum(case((Recommendation.status == RecommendationStatus.new, 1), else_=0)), 0),
            ).where(Recommendation.target_user_id == user.id)
        )
    ).one()
    return RecommendationStatsOut(total=total, new=new)


# ---------------------------
# Delete / download
# ---------------------------
async def delete_recommendation(db: AsyncSession, store: FileStore, user: User, rec_id: str) -> None:
    rec = await db.get(Recommendation, rec_id)
    if rec is None or rec.author_user_id != user.id:
        raise NotFound("Recommendation not found")
    file_name = rec.file_path
    await db.delete(rec)
    await db.commit()
    if file_name:
        store.delete(file_name)
    logger.info("Recommendation %s deleted by %s", rec_id, user.username)


async def download_target(db: AsyncSession, store: FileStore, user: User, rec_id: str):
    """Resolve a file recommendation to ``(path, original name, MIME type)``."""
    rec = await _visible(db, user, rec_id)
    if rec.type is not RecommendationType.file or not rec.file_path:
        raise NotFound("File not found")
    path = store.path_for(rec.file_path)
    if not path.is_file():
        raise NotFound("File not found on disk")
    return path, rec.file_name or rec.file_path, rec.file_type or "application/octet-stream"


__all__ = [
    "ALLOWED_MIME_TYPES",
    "EXTENSION_MIME_MAP",
    "bare_mime",
    "check_upload_type",
    "create_link",
    "create_upload",
    "delete_recommendation",
    "display_name",
    "download_target",
    "list_received",
    "list_sent",
    "open_recommendation",
    "stats",
    "to_recommendation_out",
]
