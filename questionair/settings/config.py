# questionair/settings/config.py  (Pydantic v2)
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    # ---------- Storage ----------
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./data/questionair.db")
    # voice notes and recommendation uploads live under DATA_DIR/voice and DATA_DIR/uploads
    DATA_DIR: str = Field(default="./data")
    RUN_DB_CREATE_ALL: bool = Field(default=True)
    SEED_DEFAULT_USERS: bool = Field(default=True)

    # ---------- Auth ----------
    SECRET: str = Field(default="")
    COOKIE_SECURE: bool = Field(default=False)
    SESSION_LIFETIME_SECONDS: int = Field(default=7 * 24 * 3600)

    # ---------- Web push ----------
    VAPID_PUBLIC_KEY: str = Field(
        default="BEl62iUYgUivxIkv69yViEuiBIa-Ib9-SkvMeAtA3LFgDzkrxZJjSgSnfckjBJuBkr3qBUYIHBQFLXYp5Nksh8U"
    )
    VAPID_PRIVATE_KEY: str = Field(default="UUxI4O8-FbRouAevSmBQ6o18hgE4nSG3qwvJTfKc-ls")
    VAPID_CLAIM_EMAIL: str = Field(default="admin@questionair.local")

    # Local clock for quiet hours, e.g. "Europe/Berlin". Server local time when unset.
    APP_TZ: Optional[str] = Field(default=None)

    # ---------- Upload limits ----------
    VOICE_MAX_BYTES: int = Field(default=10 * 1024 * 1024)
    UPLOAD_MAX_BYTES: int = Field(default=50 * 1024 * 1024)

    # ---------- Runtime ----------
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # ---------- pydantic-settings config ----------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # allow lower/upper env names
        extra="ignore",
    )


settings = Settings()
