import logging
import uuid
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordRequestForm
from fastapi_users import BaseUserManager, FastAPIUsers, exceptions
from fastapi_users.authentication import AuthenticationBackend, CookieTransport, JWTStrategy
from fastapi_users.db import SQLAlchemyUserDatabase
from sqlalchemy import func, select

from .database import get_db
from .models import User
from .settings.config import settings

logger = logging.getLogger(__name__)


# -------------------------
# Database Dependency
# -------------------------
class UsernameUserDatabase(SQLAlchemyUserDatabase):
    async def get_by_username(self, username: str) -> Optional[User]:
        statement = select(self.user_table).where(
            func.lower(self.user_table.username) == func.lower(username)
        )
        return await self._get_user(statement)


async def get_user_db(session=Depends(get_db)):
    yield UsernameUserDatabase(session, User)


# -------------------------
# User Manager
# -------------------------
class UserManager(BaseUserManager[User, str]):
    """Two fixed accounts that sign in with a username, not an e-mail."""

    def parse_id(self, value) -> str:
        try:
            return str(uuid.UUID(str(value)))
        except ValueError as e:
            raise exceptions.InvalidID() from e

    async def authenticate(self, credentials: OAuth2PasswordRequestForm) -> Optional[User]:
        user = await self.user_db.get_by_username((credentials.username or "").strip())
        if user is None:
            # Run the hasher anyway to blunt timing differences between unknown users and bad passwords
            self.password_helper.hash(credentials.password)
            return None

        verified, updated_password_hash = self.password_helper.verify_and_update(
            credentials.password, user.hashed_password
        )
        if not verified:
            return None
        if updated_password_hash is not None:
            await self.user_db.update(user, {"hashed_password": updated_password_hash})
        return user

    async def on_after_login(self, user: User, request=None, response=None):
        logger.info("User %s logged in", user.username)


async def get_user_manager(request: Request, user_db=Depends(get_user_db)):
    manager = UserManager(user_db)
    secret = request.app.state.settings.SECRET
    manager.reset_password_token_secret = secret
    manager.verification_token_secret = secret
    yield manager


# -------------------------
# Authentication Backend
# -------------------------
cookie_transport = CookieTransport(
    cookie_name="session",
    cookie_max_age=settings.SESSION_LIFETIME_SECONDS,
    cookie_secure=settings.COOKIE_SECURE,
    cookie_httponly=True,
    cookie_samesite="lax",
)


def get_jwt_strategy(request: Request) -> JWTStrategy:
    cfg = request.app.state.settings
    return JWTStrategy(secret=cfg.SECRET, lifetime_seconds=cfg.SESSION_LIFETIME_SECONDS)


auth_backend = AuthenticationBackend(
    name="cookie",
    transport=cookie_transport,
    get_strategy=get_jwt_strategy,
)

# -------------------------
# FastAPI Users instance
# -------------------------
fastapi_users = FastAPIUsers[User, str](
    get_user_manager,
    [auth_backend],
)

# Dependency to get currently active user
current_active_user = fastapi_users.current_user(active=True)
