import io
import tempfile
import unittest
from pathlib import Path

from sqlalchemy import select
from starlette.datastructures import Headers, UploadFile

from questionair.database import Database
from questionair.models import User
from questionair.services.notifications import DeliveryResult, DeliveryStatus
from questionair.services.seed import seed_default_users, seed_reference_data
from questionair.settings.config import Settings

ASKER = "Adrianna"
RESPONDER = "Gerrod"
PASSWORDS = {"Adrianna": "AdriannaPass", "Gerrod": "GerrodPass"}


def make_settings(root: Path, **overrides) -> Settings:
    values = dict(
        DATABASE_URL=f"sqlite+aiosqlite:///{root / 'questionair.db'}",
        DATA_DIR=str(root / "data"),
        SECRET="test-secret-not-for-production",
        RUN_DB_CREATE_ALL=True,
        SEED_DEFAULT_USERS=True,
        LOG_LEVEL="WARNING",
        CORS_ORIGINS=["http://testserver"],
    )
    values.update(overrides)
    return Settings(**values)


def upload(data: bytes, filename: str, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class RecordingNotifier:
    """Stands in for Notifier; remembers what would have been pushed."""

    def __init__(self):
        self.events = []

    def dispatch(self, event):
        self.events.append(event)

    def types(self):
        return [e.event_type for e in self.events]


class FakeTransport:
    """Answers per endpoint; anything unlisted is delivered."""

    def __init__(self, outcomes=None):
        self.outcomes = dict(outcomes or {})
        self.sent = []

    def send(self, subscription_info, data):
        self.sent.append((subscription_info["endpoint"], data))
        status = self.outcomes.get(subscription_info["endpoint"], DeliveryStatus.sent)
        code = {DeliveryStatus.gone: 410, DeliveryStatus.transient_failure: 500}.get(status)
        return DeliveryResult(status=status, status_code=code)


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    """Fresh SQLite file with both default accounts seeded."""

    async def asyncSetUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.database = Database(f"sqlite+aiosqlite:///{self.root / 'questionair.db'}")
        await self.database.create_all()
        async with self.database.session() as s:
            await seed_default_users(s)
            await seed_reference_data(s)

        self.db = self.database.session()
        self.asker = await self.user(ASKER)
        self.responder = await self.user(RESPONDER)
        self.notifier = RecordingNotifier()

    async def asyncTearDown(self):
        await self.db.close()
        await self.database.dispose()
        self.temp_dir.cleanup()

    async def user(self, username: str) -> User:
        return (await self.db.execute(select(User).where(User.username == username))).scalars().one()
