from fastapi import Request

from questionair.settings.config import Settings
from questionair.storage import FileStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_voice_store(request: Request) -> FileStore:
    return request.app.state.voice_store


def get_upload_store(request: Request) -> FileStore:
    return request.app.state.upload_store
