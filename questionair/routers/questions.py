from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.database import get_db
from questionair.models import Depth, QuestionStatus
from questionair.schemas import (
    IdOut,
    QuestionCreate,
    QuestionDetailOut,
    QuestionListOut,
    QuestionStatsOut,
    QuestionUpdate,
    SentQuestionsOut,
    SuccessOut,
)
from questionair.services import questions as svc
from questionair.services.notifications import Notifier, get_notifier
from questionair.utils import require_authenticated_user

router = APIRouter(prefix="/questions", tags=["questions"])


@router.get("", response_model=QuestionListOut)
async def inbox(
    depth: Optional[Depth] = Query(None),
    status: Optional[QuestionStatus] = Query(None),
    show_heavy: Optional[Literal["true", "false", "only"]] = Query(None, alias="showHeavy"),
    sort: Literal["newest", "oldest", "updated", "needs_attention", "random"] = Query("newest"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    items, total = await svc.list_inbox(
        db, user, depth=depth, status=status, show_heavy=show_heavy, sort=sort, limit=limit, offset=offset
    )
    return QuestionListOut(questions=items, total=total, limit=limit, offset=offset)


@router.get("/sent", response_model=SentQuestionsOut)
async def sent(
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return SentQuestionsOut(questions=await svc.list_sent(db, user))


@router.get("/stats/summary", response_model=QuestionStatsOut)
async def stats_summary(
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return await svc.question_stats(db, user)


@router.get("/{question_id}", response_model=QuestionDetailOut)
async def question_detail(
    question_id: str,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return await svc.get_question_detail(db, user, question_id)


@router.post("", response_model=IdOut, status_code=201)
async def create_question(
    payload: QuestionCreate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    q = await svc.create_question(db, notifier, user, payload)
    return IdOut(id=q.id)


@router.patch("/{question_id}", response_model=SuccessOut)
async def update_question(
    question_id: str,
    payload: QuestionUpdate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    await svc.update_question(db, notifier, user, question_id, payload)
    return SuccessOut()
