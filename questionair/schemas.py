from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .models import Depth, QuestionStatus, RecommendationType, ResponseType
from .utils import is_hhmm


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class SuccessOut(CamelModel):
    success: bool = True


class IdOut(CamelModel):
    id: str


# =========================
# USER / AUTH SCHEMAS
# =========================
class UserOut(CamelModel):
    id: str
    username: str
    display_name: str


class PartnerOut(CamelModel):
    id: str
    display_name: str


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str


class ProfileUpdate(CamelModel):
    display_name: str


# =========================
# SETTINGS SCHEMAS
# =========================
class SettingsOut(CamelModel):
    heavy_mode_enabled: bool = False
    notifications_enabled: bool = True
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None
    default_depth: Depth = Depth.medium
    quick_question_max_length: int = 280


class SettingsUpdate(CamelModel):
    heavy_mode_enabled: Optional[bool] = None
    notifications_enabled: Optional[bool] = None
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None
    default_depth: Optional[Depth] = None
    quick_question_max_length: Optional[int] = Field(default=None, gt=0)

    @field_validator("quiet_hours_start", "quiet_hours_end")
    @classmethod
    def _hhmm(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not is_hhmm(value):
            raise ValueError("must be HH:MM (24h)")
        return value


class MeOut(CamelModel):
    user: UserOut
    partner: Optional[PartnerOut] = None
    settings: Optional[SettingsOut] = None


class HeavyToggleOut(CamelModel):
    heavy_mode_enabled: bool


# =========================
# QUESTION SCHEMAS
# =========================
class QuestionCreate(CamelModel):
    title: Optional[str] = None
    body: str = ""
    depth: Depth = Depth.medium
    is_heavy: bool = False
    cooldown_hours: Optional[float] = Field(default=None, ge=0)


class QuestionUpdate(CamelModel):
    # author fields
    title: Optional[str] = None
    body: Optional[str] = None
    depth: Optional[Depth] = None
    is_heavy: Optional[bool] = None
    # target fields
    status: Optional[QuestionStatus] = None
    cooldown_hours: Optional[float] = Field(default=None, ge=0)
    cooldown_reason: Optional[str] = None


class QuestionSummary(CamelModel):
    id: str
    title: Optional[str] = None
    body: str
    depth: Depth
    is_heavy: bool
    cooldown_until: Optional[datetime] = None
    cooldown_reason: Optional[str] = None
    status: QuestionStatus
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    target_name: Optional[str] = None
    response_count: int = 0
    has_voice: bool = False
    has_template: bool = False
    has_draft: bool = False
    created_at: datetime
    updated_at: datetime


class QuestionListOut(CamelModel):
    questions: List[QuestionSummary]
    total: int
    limit: int
    offset: int


class SentQuestionsOut(CamelModel):
    questions: List[QuestionSummary]


class QuestionVersionOut(CamelModel):
    id: str
    title: Optional[str] = None
    body: str
    editor_name: Optional[str] = None
    created_at: datetime


class ResponseOut(CamelModel):
    id: str
    type: ResponseType
    body_text: Optional[str] = None
    template_name: Optional[str] = None
    template_data: Optional[Dict[str, Any]] = None
    voice_file_path: Optional[str] = None
    voice_duration: Optional[int] = None
    is_draft: bool
    answer_budget: Optional[int] = None
    author_id: str
    author_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class QuestionDetail(QuestionSummary):
    target_user_id: str
    is_owner: bool
    is_target: bool


class QuestionDetailOut(CamelModel):
    question: QuestionDetail
    versions: List[QuestionVersionOut]
    responses: List[ResponseOut]


class InboxStats(CamelModel):
    total: int = 0
    new: int = 0
    holding: int = 0
    heavy: int = 0
    quick_available: int = 0


class SentStats(CamelModel):
    total: int = 0
    answered: int = 0
    unanswered: int = 0


class QuestionStatsOut(CamelModel):
    inbox: InboxStats
    sent: SentStats


# =========================
# RESPONSE SCHEMAS
# =========================
class ResponseCreate(CamelModel):
    question_id: str
    type: ResponseType = ResponseType.text_short
    body_text: Optional[str] = None
    template_name: Optional[str] = None
    template_data: Optional[Dict[str, Any]] = None
    is_draft: bool = False
    answer_budget: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_variant(self):
        if self.type is ResponseType.voice:
            raise ValueError("voice responses are uploaded through /responses/voice")
        if self.type is ResponseType.template:
            if not (self.template_name or "").strip():
                raise ValueError("templateName is required for template responses")
            if self.template_data is None:
                self.template_data = {}
        else:
            self.template_name = None
            self.template_data = None
        if self.type is not ResponseType.text_long:
            self.answer_budget = None
        return self


class ResponseUpdate(CamelModel):
    body_text: Optional[str] = None
    template_data: Optional[Dict[str, Any]] = None
    is_draft: Optional[bool] = None


class VoiceResponseOut(CamelModel):
    id: str
    voice_file_path: str


class QuickReactionOut(CamelModel):
    id: str
    label: str
    emoji: Optional[str] = None
    sort_order: int


class QuickReactionsOut(CamelModel):
    reactions: List[QuickReactionOut]


# =========================
# TEMPLATE SCHEMAS
# =========================
class TemplateField(CamelModel):
    key: str = Field(min_length=1)
    label: str = Field(min_length=1)
    type: str = "text"


class TemplateCreate(CamelModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    fields: List[TemplateField] = Field(min_length=1)


class TemplateUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    fields: Optional[List[TemplateField]] = None
    is_enabled: Optional[bool] = None


class TemplateOut(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    fields: List[TemplateField]
    is_system: bool
    is_enabled: bool


class TemplatesOut(CamelModel):
    templates: List[TemplateOut]


# =========================
# RECOMMENDATION SCHEMAS
# =========================
class RecommendationCreate(CamelModel):
    type: RecommendationType
    url: str = ""
    title: Optional[str] = None
    note: Optional[str] = None

    @field_validator("type")
    @classmethod
    def _not_file(cls, value: RecommendationType) -> RecommendationType:
        if value is RecommendationType.file:
            raise ValueError("file recommendations are uploaded through /recommendations/upload")
        return value


class RecommendationOut(CamelModel):
    id: str
    type: RecommendationType
    url: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    title: Optional[str] = None
    note: Optional[str] = None
    status: str
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    target_user_id: Optional[str] = None
    target_name: Optional[str] = None
    is_owner: Optional[bool] = None
    is_target: Optional[bool] = None
    created_at: datetime
    updated_at: datetime


class RecommendationListOut(CamelModel):
    recommendations: List[RecommendationOut]
    total: int
    limit: int
    offset: int


class SentRecommendationsOut(CamelModel):
    recommendations: List[RecommendationOut]


class RecommendationDetailOut(CamelModel):
    recommendation: RecommendationOut


class RecommendationStatsOut(CamelModel):
    total: int
    new: int


class DetectVideoRequest(CamelModel):
    url: str = ""


class DetectVideoOut(CamelModel):
    type: Optional[RecommendationType] = None
    video_id: Optional[str] = None


# =========================
# PUSH / EVENT SCHEMAS
# =========================
class VapidKeyOut(CamelModel):
    public_key: str


class PushKeys(CamelModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class PushSubscriptionIn(CamelModel):
    endpoint: str = Field(min_length=1)
    keys: PushKeys


class SubscribeRequest(CamelModel):
    subscription: PushSubscriptionIn


class UnsubscribeRequest(CamelModel):
    endpoint: Optional[str] = None


class EventOut(CamelModel):
    id: str
    type: str
    payload: Optional[Dict[str, Any]] = None
    created_at: datetime


class EventsOut(CamelModel):
    events: List[EventOut]


class MarkSeenRequest(CamelModel):
    event_ids: List[str]


# =========================
# SWIPE SCHEMAS
# =========================
class SwipeAddRequest(CamelModel):
    question_id: str


class SwipeAddAllRequest(CamelModel):
    include_heavy: bool = False
    depth_filter: Optional[Depth] = None


class SwipeQuestion(CamelModel):
    id: str
    title: Optional[str] = None
    body: str
    depth: Depth
    is_heavy: bool
    cooldown_until: Optional[datetime] = None
    status: QuestionStatus
    author_name: Optional[str] = None
    created_at: datetime


class SwipeItem(CamelModel):
    queue_id: str
    position: int
    question: SwipeQuestion


class SwipeQueueOut(CamelModel):
    queue: List[SwipeItem]
    heavy_mode_enabled: bool


class SwipePositionOut(CamelModel):
    position: int


class SwipeAddedOut(CamelModel):
    added: int
