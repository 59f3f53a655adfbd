from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.database import get_db
from questionair.schemas import IdOut, SuccessOut, TemplateCreate, TemplatesOut, TemplateUpdate
from questionair.services import templates as svc
from questionair.utils import require_authenticated_user

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("", response_model=TemplatesOut)
async def list_templates(
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await svc.list_templates(db, user)
    return TemplatesOut(templates=[svc.to_template_out(t) for t in rows])


@router.post("", response_model=IdOut, status_code=201)
async def create_template(
    payload: TemplateCreate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    t = await svc.create_template(db, user, payload)
    return IdOut(id=t.id)


@router.patch("/{template_id}", response_model=SuccessOut)
async def update_template(
    template_id: str,
    payload: TemplateUpdate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    await svc.update_template(db, user, template_id, payload)
    return SuccessOut()


@router.delete("/{template_id}", response_model=SuccessOut)
async def delete_template(
    template_id: str,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    await svc.delete_template(db, user, template_id)
    return SuccessOut()
