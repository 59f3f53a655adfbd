from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.database import get_db
from questionair.routes_shared import get_settings, get_voice_store
from questionair.schemas import (
    IdOut,
    QuickReactionOut,
    QuickReactionsOut,
    ResponseCreate,
    ResponseUpdate,
    SuccessOut,
    VoiceResponseOut,
)
from questionair.services import responses as svc
from questionair.services.notifications import Notifier, get_notifier
from questionair.settings.config import Settings
from questionair.storage import FileStore
from questionair.utils import require_authenticated_user

router = APIRouter(prefix="/responses", tags=["responses"])


@router.get("/quick-reactions", response_model=QuickReactionsOut)
async def quick_reactions(
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await svc.list_quick_reactions(db)
    return QuickReactionsOut(reactions=[QuickReactionOut.model_validate(r) for r in rows])


@router.post("", response_model=IdOut, status_code=201)
async def create_response(
    payload: ResponseCreate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    r = await svc.create_response(db, notifier, user, payload)
    return IdOut(id=r.id)


@router.post("/voice", response_model=VoiceResponseOut, status_code=201)
async def create_voice_response(
    question_id: str = Form(..., alias="questionId"),
    duration: Optional[str] = Form(None),
    audio: UploadFile = File(...),
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    store: FileStore = Depends(get_voice_store),
    cfg: Settings = Depends(get_settings),
):
    r = await svc.create_voice_response(
        db,
        notifier,
        store,
        user,
        question_id=question_id,
        audio=audio,
        duration=duration,
        max_bytes=cfg.VOICE_MAX_BYTES,
    )
    return VoiceResponseOut(id=r.id, voice_file_path=r.voice_file_path)


@router.patch("/{response_id}", response_model=SuccessOut)
async def update_response(
    response_id: str,
    payload: ResponseUpdate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    await svc.update_response(db, user, response_id, payload)
    return SuccessOut()
