"""Event recording and gated web-push delivery.

Every event is persisted for the in-app feed; whether a push goes out is
decided later, outside the request, by ``Notifier.deliver``.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Request
from pywebpush import WebPushException, webpush
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.background import TaskSupervisor, run_sync
from questionair.database import Database
from questionair.models import Event, EventType, PushSubscription, UserSettings, new_id, utcnow

logger = logging.getLogger(__name__)

UNSEEN_EVENTS_LIMIT = 50
GONE_STATUS_CODES = (404, 410)


# ---------------------------
# Delivery results
# ---------------------------
class DeliveryStatus(str, enum.Enum):
    sent = "sent"
    gone = "gone"
    transient_failure = "transient_failure"


@dataclass(slots=True)
class DeliveryResult:
    status: DeliveryStatus
    status_code: Optional[int] = None
    detail: str = ""


class WebPushTransport:
    """Blocking pywebpush sender; call it through ``run_sync``."""

    def __init__(self, vapid_private_key: str, claim_email: str, *, ttl: int = 60):
        self.vapid_private_key = vapid_private_key
        self.claim_email = claim_email
        self.ttl = ttl

    def send(self, subscription_info: dict, data: str) -> DeliveryResult:
        try:
            webpush(
                subscription_info=subscription_info,
                data=data,
                vapid_private_key=self.vapid_private_key,
                # pywebpush adds aud/exp to this dict, so build it per call
                vapid_claims={"sub": f"mailto:{self.claim_email}"},
                ttl=self.ttl,
            )
        except WebPushException as e:
            code = getattr(e.response, "status_code", None)
            status = DeliveryStatus.gone if code in GONE_STATUS_CODES else DeliveryStatus.transient_failure
            return DeliveryResult(status=status, status_code=code, detail=str(e))
        return DeliveryResult(status=DeliveryStatus.sent)


# ---------------------------
# Gating helpers
# ---------------------------
def in_quiet_hours(start: Optional[str], end: Optional[str], now_hhmm: str) -> bool:
    """True when ``now_hhmm`` falls inside the [start, end) window.

    All three values are zero-padded ``HH:MM`` strings, so plain string
    comparison orders them correctly. A window with ``start > end`` wraps
    past midnight.
    """
    if not start or not end:
        return False
    if start > end:
        return now_hhmm >= start or now_hhmm < end
    return start <= now_hhmm < end


def _load_zone(name: Optional[str]) -> Optional[ZoneInfo]:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown APP_TZ %r; quiet hours use server local time", name)
        return None


_PUSH_MESSAGES: dict[str, Callable[[dict], tuple[str, str]]] = {
    EventType.new_question.value: lambda p: (
        "New heavy question" if p.get("isHeavy") else "New question",
        "Someone asked you something",
    ),
    EventType.new_response.value: lambda p: (
        "New response",
        "You received a voice note" if p.get("isVoice") else "Your question was answered",
    ),
    EventType.question_edited.value: lambda p: ("Question edited", "A question you answered was updated"),
    EventType.new_recommendation.value: lambda p: ("New recommendation", "Something was shared with you"),
    EventType.cooldown_expired.value: lambda p: ("Ready to revisit", "A held question is ready for you"),
}


def build_push_payload(event: Event) -> dict:
    payload = dict(event.payload or {})
    message = _PUSH_MESSAGES.get(event.event_type)
    title, body = message(payload) if message else ("Questionair", "You have a new notification")
    return {
        "title": title,
        "body": body,
        "icon": "/favicon.svg",
        "badge": "/badge.png",
        "data": {"eventId": event.id, "eventType": event.event_type, **payload},
    }


# ---------------------------
# Event rows
# ---------------------------
def record_event(db: AsyncSession, user_id: str, event_type: EventType, payload: dict[str, Any]) -> Event:
    """Stage an Event row in ``db``; the caller's commit makes it durable."""
    ev = Event(id=new_id(), user_id=user_id, event_type=event_type.value, payload=payload, created_at=utcnow())
    db.add(ev)
    return ev


async def list_unseen_events(db: AsyncSession, user_id: str, limit: int = UNSEEN_EVENTS_LIMIT) -> list[Event]:
    rows = await db.execute(
        select(Event)
        .where(Event.user_id == user_id, Event.seen_at.is_(None))
        .order_by(Event.created_at.desc())
        .limit(limit)
    )
    return list(rows.scalars().all())


async def mark_events_seen(db: AsyncSession, user_id: str, event_ids: Iterable[str]) -> int:
    ids = [i for i in event_ids if i]
    if not ids:
        return 0
    result = await db.execute(
        update(Event)
        .where(Event.id.in_(ids), Event.user_id == user_id, Event.seen_at.is_(None))
        .values(seen_at=utcnow())
    )
    await db.commit()
    return result.rowcount or 0


# ---------------------------
# Subscriptions
# ---------------------------
async def save_subscription(db: AsyncSession, user_id: str, endpoint: str, p256dh: str, auth: str) -> PushSubscription:
    """Register a device. An endpoint seen before is re-bound to ``user_id``."""
    await db.execute(delete(PushSubscription).where(PushSubscription.endpoint == endpoint))
    sub = PushSubscription(id=new_id(), user_id=user_id, endpoint=endpoint, p256dh=p256dh, auth=auth)
    db.add(sub)
    await db.commit()
    logger.info("Push subscription %s registered for %s", sub.id, user_id)
    return sub


async def remove_subscriptions(db: AsyncSession, user_id: str, endpoint: Optional[str] = None) -> None:
    stmt = delete(PushSubscription).where(PushSubscription.user_id == user_id)
    if endpoint:
        stmt = stmt.where(PushSubscription.endpoint == endpoint)
    await db.execute(stmt)
    await db.commit()


# ---------------------------
# Notifier
# ---------------------------
class Notifier:
    """Runs push delivery for committed events off the request path."""

    def __init__(
        self,
        database: Database,
        transport: WebPushTransport,
        supervisor: TaskSupervisor,
        *,
        tz_name: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.database = database
        self.transport = transport
        self.supervisor = supervisor
        self.tz = _load_zone(tz_name)
        self._clock = clock

    def local_hhmm(self) -> str:
        if self._clock is not None:
            now = self._clock()
        else:
            now = datetime.now(self.tz) if self.tz else datetime.now()
        return now.strftime("%H:%M")

    def dispatch(self, event: Event) -> None:
        """Schedule delivery for an event that has already been committed."""
        self.supervisor.spawn(self.deliver(event.id), name=f"push:{event.event_type}:{event.id}")

    async def deliver(self, event_id: str) -> list[DeliveryResult]:
        async with self.database.session() as db:
            event = await db.get(Event, event_id)
            if event is None:
                logger.warning("Push skipped: event %s no longer exists", event_id)
                return []

            prefs = await db.get(UserSettings, event.user_id)
            if prefs is not None:
                if not prefs.notifications_enabled:
                    logger.debug("Push skipped for %s: notifications disabled", event.user_id)
                    return []
                if in_quiet_hours(prefs.quiet_hours_start, prefs.quiet_hours_end, self.local_hhmm()):
                    logger.info("Push suppressed for %s: quiet hours", event.user_id)
                    return []

            subs = (
                await db.execute(select(PushSubscription).where(PushSubscription.user_id == event.user_id))
            ).scalars().all()
            if not subs:
                return []

            data = json.dumps(build_push_payload(event))
            results: list[DeliveryResult] = []
            for sub in subs:
                result = await self._send(sub, data)
                results.append(result)
                if result.status is DeliveryStatus.gone:
                    logger.info("Removing gone push subscription %s (HTTP %s)", sub.id, result.status_code)
                    await db.delete(sub)
                elif result.status is DeliveryStatus.transient_failure:
                    logger.warning(
                        "Push to subscription %s failed (HTTP %s): %s", sub.id, result.status_code, result.detail
                    )
            await db.commit()
            logger.debug("Delivered %s to %d device(s)", event.event_type, len(results))
            return results

    async def _send(self, sub: PushSubscription, data: str) -> DeliveryResult:
        try:
            return await run_sync(self.transport.send, sub.subscription_info(), data)
        except Exception as e:  # noqa: BLE001
            logger.exception("Push transport error for subscription %s", sub.id)
            return DeliveryResult(status=DeliveryStatus.transient_failure, detail=str(e))


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


__all__ = [
    "DeliveryResult",
    "DeliveryStatus",
    "Notifier",
    "WebPushTransport",
    "build_push_payload",
    "get_notifier",
    "in_quiet_hours",
    "list_unseen_events",
    "mark_events_seen",
    "record_event",
    "remove_subscriptions",
    "save_subscription",
]
