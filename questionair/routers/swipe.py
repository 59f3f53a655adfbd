from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.database import get_db
from questionair.schemas import (
    SuccessOut,
    SwipeAddAllRequest,
    SwipeAddedOut,
    SwipeAddRequest,
    SwipePositionOut,
    SwipeQueueOut,
)
from questionair.services import swipe as svc
from questionair.utils import require_authenticated_user

router = APIRouter(prefix="/swipe", tags=["swipe"])


@router.get("", response_model=SwipeQueueOut)
async def queue(
    include_heavy: bool = Query(False, alias="includeHeavy"),
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return await svc.fetch_queue(db, user, include_heavy=include_heavy)


@router.post("/add", response_model=SwipePositionOut, status_code=201)
async def add(
    payload: SwipeAddRequest,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return SwipePositionOut(position=await svc.add_to_queue(db, user, payload.question_id))


@router.post("/add-all", response_model=SwipeAddedOut)
async def add_all(
    payload: SwipeAddAllRequest,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    added = await svc.add_all(db, user, include_heavy=payload.include_heavy, depth=payload.depth_filter)
    return SwipeAddedOut(added=added)


@router.post("/skip/{question_id}", response_model=SuccessOut)
async def skip(
    question_id: str,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    await svc.skip(db, user, question_id)
    return SuccessOut()


@router.delete("/{question_id}", response_model=SuccessOut)
async def remove(
    question_id: str,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    await svc.remove(db, user, question_id)
    return SuccessOut()


@router.delete("", response_model=SuccessOut)
async def clear(
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    await svc.clear(db, user)
    return SuccessOut()
