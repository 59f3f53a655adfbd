from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.database import get_db
from questionair.routes_shared import get_settings
from questionair.schemas import (
    EventOut,
    EventsOut,
    MarkSeenRequest,
    SubscribeRequest,
    SuccessOut,
    UnsubscribeRequest,
    VapidKeyOut,
)
from questionair.services.notifications import (
    list_unseen_events,
    mark_events_seen,
    remove_subscriptions,
    save_subscription,
)
from questionair.settings.config import Settings
from questionair.utils import require_authenticated_user

router = APIRouter(prefix="/push", tags=["push"])


@router.get("/vapid-key", response_model=VapidKeyOut)
async def vapid_key(
    user=Depends(require_authenticated_user),
    cfg: Settings = Depends(get_settings),
):
    return VapidKeyOut(public_key=cfg.VAPID_PUBLIC_KEY)


@router.post("/subscribe", response_model=SuccessOut)
async def subscribe(
    payload: SubscribeRequest,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    sub = payload.subscription
    await save_subscription(db, user.id, sub.endpoint, sub.keys.p256dh, sub.keys.auth)
    return SuccessOut()


@router.post("/unsubscribe", response_model=SuccessOut)
async def unsubscribe(
    payload: Optional[UnsubscribeRequest] = Body(None),
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    await remove_subscriptions(db, user.id, payload.endpoint if payload else None)
    return SuccessOut()


@router.get("/events", response_model=EventsOut)
async def unseen_events(
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await list_unseen_events(db, user.id)
    return EventsOut(
        events=[EventOut(id=e.id, type=e.event_type, payload=e.payload, created_at=e.created_at) for e in rows]
    )


@router.post("/events/seen", response_model=SuccessOut)
async def events_seen(
    payload: MarkSeenRequest,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    await mark_events_seen(db, user.id, payload.event_ids)
    return SuccessOut()
