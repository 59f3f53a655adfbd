from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.database import get_db
from questionair.errors import ValidationFailed
from questionair.models import RecommendationStatus, RecommendationType
from questionair.routes_shared import get_settings, get_upload_store
from questionair.schemas import (
    DetectVideoOut,
    DetectVideoRequest,
    IdOut,
    RecommendationCreate,
    RecommendationDetailOut,
    RecommendationListOut,
    RecommendationStatsOut,
    SentRecommendationsOut,
    SuccessOut,
)
from questionair.services import recommendations as svc
from questionair.services.notifications import Notifier, get_notifier
from questionair.settings.config import Settings
from questionair.storage import FileStore
from questionair.utils import require_authenticated_user
from questionair.video_urls import detect_video

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.get("", response_model=RecommendationListOut)
async def received(
    status: Optional[RecommendationStatus] = Query(None),
    type: Optional[RecommendationType] = Query(None),
    sort: Literal["newest", "oldest"] = Query("newest"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await svc.list_received(
        db, user, status=status, kind=type, sort=sort, limit=limit, offset=offset
    )
    return RecommendationListOut(
        recommendations=[svc.to_recommendation_out(r) for r in rows], total=total, limit=limit, offset=offset
    )


@router.get("/sent", response_model=SentRecommendationsOut)
async def sent(
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await svc.list_sent(db, user)
    return SentRecommendationsOut(recommendations=[svc.to_recommendation_out(r) for r in rows])


@router.get("/stats/summary", response_model=RecommendationStatsOut)
async def stats_summary(
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return await svc.stats(db, user)


@router.post("/detect-video", response_model=DetectVideoOut)
async def detect_video_type(
    payload: DetectVideoRequest,
    user=Depends(require_authenticated_user),
):
    url = payload.url.strip()
    if not url:
        raise ValidationFailed("URL is required")
    kind, vid = detect_video(url)
    return DetectVideoOut(type=kind, video_id=vid)


@router.post("", response_model=IdOut, status_code=201)
async def create_recommendation(
    payload: RecommendationCreate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    rec = await svc.create_link(db, notifier, user, payload)
    return IdOut(id=rec.id)


@router.post("/upload", response_model=IdOut, status_code=201)
async def upload_recommendation(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    note: Optional[str] = Form(None),
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    store: FileStore = Depends(get_upload_store),
    cfg: Settings = Depends(get_settings),
):
    rec = await svc.create_upload(
        db, notifier, store, user, upload=file, title=title, note=note, max_bytes=cfg.UPLOAD_MAX_BYTES
    )
    return IdOut(id=rec.id)


@router.get("/download/{rec_id}")
async def download(
    rec_id: str,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
    store: FileStore = Depends(get_upload_store),
):
    path, filename, media_type = await svc.download_target(db, store, user, rec_id)
    return FileResponse(str(path), media_type=media_type, filename=filename)


@router.get("/{rec_id}", response_model=RecommendationDetailOut)
async def recommendation_detail(
    rec_id: str,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    rec = await svc.open_recommendation(db, user, rec_id)
    return RecommendationDetailOut(recommendation=svc.to_recommendation_out(rec, viewer=user))


@router.delete("/{rec_id}", response_model=SuccessOut)
async def delete_recommendation(
    rec_id: str,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
    store: FileStore = Depends(get_upload_store),
):
    await svc.delete_recommendation(db, store, user, rec_id)
    return SuccessOut()
