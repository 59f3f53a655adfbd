"""Application factory.

Run with ``uvicorn questionair.main:create_app --factory``.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi_users.router.common import ErrorCode
from starlette.exceptions import HTTPException as StarletteHTTPException

from .background import TaskSupervisor
from .database import Database
from .errors import AppError
from .routers import auth, push, questions, recommendations, responses, settings as settings_routes, swipe, templates
from .services.notifications import Notifier, WebPushTransport
from .services.seed import seed_default_users, seed_reference_data
from .settings.config import Settings, settings as default_settings
from .storage import FileStore

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg: Settings = app.state.settings
    db: Database = app.state.db

    if cfg.RUN_DB_CREATE_ALL:
        await db.create_all()
    async with db.session() as session:
        if cfg.SEED_DEFAULT_USERS:
            await seed_default_users(session)
        await seed_reference_data(session)
    logger.info("Questionair ready (db=%s, data=%s)", db.url, cfg.DATA_DIR)

    yield

    await app.state.supervisor.drain(timeout=5)
    await db.dispose()


# ----------------------
# Error envelope
# ----------------------
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _app_error_handler(request: Request, exc: AppError):
    return _error(exc.status_code, exc.message)


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.detail == ErrorCode.LOGIN_BAD_CREDENTIALS:
        return _error(401, "Invalid credentials")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _error(exc.status_code, message)


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        where = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{where}: {first.get('msg')}" if where else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _error(400, message)


def _make_unhandled_handler(debug: bool):
    async def _unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, f"Something went wrong: {exc}" if debug else "Something went wrong")

    return _unhandled_error_handler


# ----------------------
# Factory
# ----------------------
def create_app(cfg: Optional[Settings] = None) -> FastAPI:
    cfg = cfg or default_settings
    logging.basicConfig(level=cfg.LOG_LEVEL.upper())
    if not cfg.SECRET:
        raise RuntimeError("SECRET is not set; refusing to sign sessions with an empty key")

    # Starlette's debug mode swaps the 500 handler for an HTML traceback, so
    # DEBUG only widens the JSON error message below
    app = FastAPI(title="Questionair", lifespan=lifespan)

    data_dir = Path(cfg.DATA_DIR)
    database = Database(cfg.DATABASE_URL, echo=cfg.DEBUG)
    supervisor = TaskSupervisor()
    app.state.settings = cfg
    app.state.db = database
    app.state.supervisor = supervisor
    app.state.voice_store = FileStore(data_dir / "voice")
    app.state.upload_store = FileStore(data_dir / "uploads")
    app.state.notifier = Notifier(
        database,
        WebPushTransport(cfg.VAPID_PRIVATE_KEY, cfg.VAPID_CLAIM_EMAIL),
        supervisor,
        tz_name=cfg.APP_TZ,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _make_unhandled_handler(cfg.DEBUG))

    api = APIRouter(prefix=API_PREFIX)
    for module in (auth, questions, responses, recommendations, swipe, settings_routes, push, templates):
        api.include_router(module.router)

    @api.get("/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    app.include_router(api)
    # voice notes are addressed by their opaque stored name only
    app.mount(f"{API_PREFIX}/voice", StaticFiles(directory=str(app.state.voice_store.root)), name="voice")
    return app
