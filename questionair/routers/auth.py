import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from questionair.database import get_db
from questionair.errors import Unauthenticated, ValidationFailed
from questionair.schemas import (
    ChangePasswordRequest,
    MeOut,
    PartnerOut,
    ProfileUpdate,
    SuccessOut,
    UserOut,
)
from questionair.services.user_settings import get_or_create_settings, to_settings_out
from questionair.users import UserManager, auth_backend, fastapi_users, get_user_manager
from questionair.utils import clean_text, get_counterpart, require_authenticated_user

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

router = APIRouter(prefix="/auth", tags=["auth"])

# POST /auth/login (form: username, password) and POST /auth/logout
router.include_router(fastapi_users.get_auth_router(auth_backend))


@router.get("/me", response_model=MeOut)
async def me(
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    partner = await get_counterpart(db, user.id)
    prefs = await get_or_create_settings(db, user)
    return MeOut(
        user=UserOut.model_validate(user),
        partner=PartnerOut.model_validate(partner) if partner else None,
        settings=to_settings_out(prefs),
    )


@router.post("/change-password", response_model=SuccessOut)
async def change_password(
    payload: ChangePasswordRequest,
    user=Depends(require_authenticated_user),
    user_manager: UserManager = Depends(get_user_manager),
):
    if not payload.current_password or not payload.new_password:
        raise ValidationFailed("Current and new password required")
    if len(payload.new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    verified, _ = user_manager.password_helper.verify_and_update(payload.current_password, user.hashed_password)
    if not verified:
        raise Unauthenticated("Current password is incorrect")

    await user_manager.user_db.update(user, {"hashed_password": user_manager.password_helper.hash(payload.new_password)})
    logger.info("Password changed for %s", user.username)
    return SuccessOut()


@router.patch("/profile")
async def update_profile(
    payload: ProfileUpdate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    name = clean_text(payload.display_name)
    if not name:
        raise ValidationFailed("Display name required")
    user.display_name = name
    await db.commit()
    return {"success": True, "displayName": name}
