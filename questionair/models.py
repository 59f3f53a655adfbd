import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Text, DateTime, JSON,
    UniqueConstraint, Index, text,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite stores datetimes without an offset."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class Depth(str, enum.Enum):
    quick = "quick"
    medium = "medium"
    deep = "deep"


class QuestionStatus(str, enum.Enum):
    new = "new"
    holding = "holding"
    declined = "declined"
    active = "active"


class ResponseType(str, enum.Enum):
    quick_reaction = "quick_reaction"
    text_short = "text_short"
    text_long = "text_long"
    template = "template"
    voice = "voice"


class RecommendationType(str, enum.Enum):
    link = "link"
    file = "file"
    youtube = "youtube"
    vimeo = "vimeo"
    tiktok = "tiktok"


class RecommendationStatus(str, enum.Enum):
    new = "new"
    viewed = "viewed"


class EventType(str, enum.Enum):
    new_question = "new_question"
    new_response = "new_response"
    question_edited = "question_edited"
    new_recommendation = "new_recommendation"
    cooldown_expired = "cooldown_expired"


def _enum(cls):
    return SAEnum(cls, native_enum=False, length=32)


# ---------------------------
# USERS
# ---------------------------
class User(Base):
    __tablename__ = "user"

    id = Column(String(36), primary_key=True, default=new_id)
    username = Column(String(64), unique=True, index=True, nullable=False)
    # kept for the fastapi-users user protocol; login goes through username
    email = Column(String(320), unique=True, nullable=True)
    hashed_password = Column(String(1024), nullable=False)
    display_name = Column(String(128), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_superuser = Column(Boolean, default=False, nullable=False)
    is_verified = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    settings = relationship(
        "UserSettings", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )


class UserSettings(Base):
    __tablename__ = "user_settings"

    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), primary_key=True)
    heavy_mode_enabled = Column(Boolean, default=False, nullable=False)
    notifications_enabled = Column(Boolean, default=True, nullable=False)
    quiet_hours_start = Column(String(5), nullable=True)  # "HH:MM"
    quiet_hours_end = Column(String(5), nullable=True)
    default_depth = Column(_enum(Depth), default=Depth.medium, nullable=False)
    quick_question_max_length = Column(Integer, default=280, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="settings")


# ---------------------------
# QUESTIONS
# ---------------------------
class Question(Base):
    __tablename__ = "question"

    id = Column(String(36), primary_key=True, default=new_id)
    author_user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    target_user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String(200), nullable=True)
    body = Column(Text, nullable=False)
    depth = Column(_enum(Depth), default=Depth.medium, nullable=False, index=True)
    is_heavy = Column(Boolean, default=False, nullable=False)
    cooldown_until = Column(DateTime, nullable=True)
    cooldown_reason = Column(Text, nullable=True)
    status = Column(_enum(QuestionStatus), default=QuestionStatus.new, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    author = relationship("User", foreign_keys=[author_user_id])
    target = relationship("User", foreign_keys=[target_user_id])
    versions = relationship(
        "QuestionVersion",
        order_by="QuestionVersion.created_at.asc()",
        cascade="all, delete-orphan",
        passive_deletes=True,
        back_populates="question",
    )
    responses = relationship(
        "Response",
        order_by="Response.created_at.asc()",
        cascade="all, delete-orphan",
        passive_deletes=True,
        back_populates="question",
    )


class QuestionVersion(Base):
    __tablename__ = "question_version"

    id = Column(String(36), primary_key=True, default=new_id)
    question_id = Column(String(36), ForeignKey("question.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String(200), nullable=True)
    body = Column(Text, nullable=False)
    edited_by_user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    question = relationship("Question", back_populates="versions")
    editor = relationship("User")


# ---------------------------
# RESPONSES
# ---------------------------
class Response(Base):
    __tablename__ = "response"

    id = Column(String(36), primary_key=True, default=new_id)
    question_id = Column(String(36), ForeignKey("question.id", ondelete="CASCADE"), index=True, nullable=False)
    author_user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    response_type = Column(_enum(ResponseType), default=ResponseType.text_short, nullable=False)
    body_text = Column(Text, nullable=True)
    template_name = Column(String(128), nullable=True)
    template_data = Column(JSON, nullable=True)
    voice_file_path = Column(String(255), nullable=True)  # opaque filename under DATA_DIR/voice
    voice_duration_seconds = Column(Integer, nullable=True)
    is_draft = Column(Boolean, default=False, nullable=False)
    answer_budget_minutes = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    question = relationship("Question", back_populates="responses")
    author = relationship("User")
    versions = relationship(
        "ResponseVersion",
        order_by="ResponseVersion.created_at.asc()",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        # one open draft per (question, author)
        Index(
            "uq_response_single_draft",
            "question_id",
            "author_user_id",
            unique=True,
            sqlite_where=text("is_draft = 1"),
        ),
    )


class ResponseVersion(Base):
    __tablename__ = "response_version"

    id = Column(String(36), primary_key=True, default=new_id)
    response_id = Column(String(36), ForeignKey("response.id", ondelete="CASCADE"), index=True, nullable=False)
    body_text = Column(Text, nullable=True)
    template_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class QuickReaction(Base):
    __tablename__ = "quick_reaction"

    id = Column(String(36), primary_key=True, default=new_id)
    label = Column(String(64), unique=True, nullable=False)
    emoji = Column(String(16), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)


class ResponseTemplate(Base):
    __tablename__ = "response_template"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    fields = Column(JSON, nullable=False)  # [{"key":..,"label":..,"type":..}, ...]
    is_system = Column(Boolean, default=False, nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)
    created_by_user_id = Column(String(36), ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


# ---------------------------
# RECOMMENDATIONS
# ---------------------------
class Recommendation(Base):
    __tablename__ = "recommendation"

    id = Column(String(36), primary_key=True, default=new_id)
    author_user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    target_user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    type = Column(_enum(RecommendationType), nullable=False)
    url = Column(Text, nullable=True)
    file_path = Column(String(255), nullable=True)  # opaque filename under DATA_DIR/uploads
    file_name = Column(String(255), nullable=True)  # original name, display only
    file_type = Column(String(128), nullable=True)
    file_size = Column(Integer, nullable=True)
    title = Column(String(200), nullable=True)
    note = Column(Text, nullable=True)
    status = Column(_enum(RecommendationStatus), default=RecommendationStatus.new, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    author = relationship("User", foreign_keys=[author_user_id])
    target = relationship("User", foreign_keys=[target_user_id])


# ---------------------------
# NOTIFICATIONS
# ---------------------------
class PushSubscription(Base):
    __tablename__ = "push_subscription"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    endpoint = Column(Text, unique=True, nullable=False)
    p256dh = Column(String(255), nullable=False)
    auth = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def subscription_info(self) -> dict:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}


class Event(Base):
    __tablename__ = "event"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    event_type = Column(String(64), nullable=False)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    seen_at = Column(DateTime, nullable=True)

    __table_args__ = (Index("ix_event_user_seen", "user_id", "seen_at"),)


# ---------------------------
# SWIPE QUEUE
# ---------------------------
class SwipeQueueEntry(Base):
    __tablename__ = "swipe_queue"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    question_id = Column(String(36), ForeignKey("question.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_swipe_user_question"),
        UniqueConstraint("user_id", "position", name="uq_swipe_user_position"),
    )
