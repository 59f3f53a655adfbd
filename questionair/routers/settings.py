from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.database import get_db
from questionair.schemas import HeavyToggleOut, SettingsOut, SettingsUpdate
from questionair.services.user_settings import (
    get_or_create_settings,
    to_settings_out,
    toggle_heavy_mode,
    update_settings,
)
from questionair.utils import require_authenticated_user

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=SettingsOut)
async def read_settings(
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return to_settings_out(await get_or_create_settings(db, user))


@router.patch("", response_model=SettingsOut)
async def patch_settings(
    payload: SettingsUpdate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return to_settings_out(await update_settings(db, user, payload))


@router.post("/toggle-heavy", response_model=HeavyToggleOut)
async def toggle_heavy(
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return HeavyToggleOut(heavy_mode_enabled=await toggle_heavy_mode(db, user))
