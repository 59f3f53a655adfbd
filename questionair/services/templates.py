"""Structured response templates.

System templates ship with the app; their structure is fixed but anyone can
switch them on or off. Custom templates belong to whoever created them.
"""
import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.errors import NotFound, ValidationFailed
from questionair.models import ResponseTemplate, User, new_id, utcnow
from questionair.schemas import TemplateCreate, TemplateOut, TemplateUpdate
from questionair.utils import clean_text

logger = logging.getLogger(__name__)


def to_template_out(t: ResponseTemplate) -> TemplateOut:
    return TemplateOut.model_validate(t)


async def list_templates(db: AsyncSession, user: User) -> list[ResponseTemplate]:
    rows = await db.execute(
        select(ResponseTemplate)
        .where(or_(ResponseTemplate.is_enabled.is_(True), ResponseTemplate.created_by_user_id == user.id))
        .order_by(ResponseTemplate.is_system.desc(), ResponseTemplate.name.asc())
    )
    return list(rows.scalars().all())


async def create_template(db: AsyncSession, user: User, data: TemplateCreate) -> ResponseTemplate:
    name = clean_text(data.name)
    if not name:
        raise ValidationFailed("Name and fields required")
    t = ResponseTemplate(
        id=new_id(),
        name=name,
        description=clean_text(data.description),
        fields=[f.model_dump() for f in data.fields],
        is_system=False,
        is_enabled=True,
        created_by_user_id=user.id,
        created_at=utcnow(),
    )
    db.add(t)
    await db.commit()
    logger.info("Template %r created by %s", t.name, user.username)
    return t


async def update_template(db: AsyncSession, user: User, template_id: str, data: TemplateUpdate) -> ResponseTemplate:
    t = await db.get(ResponseTemplate, template_id)
    if t is None:
        raise NotFound("Template not found")

    sent = data.model_fields_set
    applied = False
    if data.is_enabled is not None:
        t.is_enabled = data.is_enabled
        applied = True

    if not t.is_system and t.created_by_user_id == user.id:
        if "name" in sent:
            name = clean_text(data.name)
            if not name:
                raise ValidationFailed("Template name cannot be empty")
            t.name = name
            applied = True
        if "description" in sent:
            t.description = clean_text(data.description)
            applied = True
        if data.fields is not None:
            if not data.fields:
                raise ValidationFailed("Templates need at least one field")
            t.fields = [f.model_dump() for f in data.fields]
            applied = True

    if not applied:
        raise ValidationFailed("No valid updates provided")
    await db.commit()
    return t


async def delete_template(db: AsyncSession, user: User, template_id: str) -> None:
    t = await db.get(ResponseTemplate, template_id)
    if t is None or t.is_system or t.created_by_user_id != user.id:
        raise NotFound("Template not found or cannot be deleted")
    await db.delete(t)
    await db.commit()
    logger.info("Template %s deleted by %s", template_id, user.username)
