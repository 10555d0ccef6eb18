from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .utils.time_utils import ensure_utc

ClassStatus = Literal["scheduled", "in-progress", "completed", "cancelled"]
AttendanceStatus = Literal["registered", "attended", "no-show"]
RecurrenceType = Literal["none", "daily", "weekly", "monthly"]
PageState = Literal["waiting", "started", "no_class"]


class ClassTypeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    duration_minutes: int
    audio_url: str
    cover_image_url: Optional[str] = None
    yoga_type: str
    instructor: Optional[str] = None
    active: bool


class ScheduledClassCreate(BaseModel):
    class_type_id: str
    scheduled_start_time: datetime
    recurrence: Optional[RecurrenceType] = None
    recurrence_end_date: Optional[datetime] = None
    max_participants: Optional[int] = Field(default=None, gt=0)
    notes: Optional[str] = None
    zoom_link: Optional[str] = None
    is_public: bool = True
    created_by: Optional[str] = None

    @field_validator("scheduled_start_time", "recurrence_end_date")
    @classmethod
    def _to_utc(cls, value):
        return ensure_utc(value)


class ScheduledClassOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    class_type_id: str
    scheduled_start_time: datetime
    recurrence: Optional[str] = None
    recurrence_end_date: Optional[datetime] = None
    max_participants: Optional[int] = None
    current_participants: int
    notes: Optional[str] = None
    status: ClassStatus
    zoom_link: Optional[str] = None
    is_public: bool
    yoga_class_type: ClassTypeOut

    @field_validator("scheduled_start_time", "recurrence_end_date")
    @classmethod
    def _to_utc(cls, value):
        return ensure_utc(value)


class ScheduledClassListItem(ScheduledClassOut):
    time_until: str


class StatusUpdate(BaseModel):
    status: ClassStatus


class ParticipantCreate(BaseModel):
    user_id: Optional[str] = None
    user_email: Optional[EmailStr] = None
    user_name: Optional[str] = None


class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    scheduled_class_id: str
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    attendance_status: AttendanceStatus


class TimeRemainingOut(BaseModel):
    days: int
    hours: int
    minutes: int
    seconds: int
    total_seconds: int


class ScheduledPageOut(BaseModel):
    state: PageState
    scheduled_class: Optional[ScheduledClassOut] = None
    time_remaining: Optional[TimeRemainingOut] = None
    audio_url: Optional[str] = None
    calendar_url: Optional[str] = None
    setup_url: str = "/yoga/scheduled/setup"


class PlayerSettingsModel(BaseModel):
    enabled: bool = True
    volume: float = Field(default=0.8, ge=0.0, le=1.0)
    language: str = Field(default="en", min_length=2, max_length=8)


class SettingsModel(BaseModel):
    language: str = Field(default="en", min_length=2, max_length=8)
    audio: PlayerSettingsModel = Field(default_factory=PlayerSettingsModel)


class SettingsUpdate(BaseModel):
    language: Optional[str] = Field(default=None, min_length=2, max_length=8)
    audio: Optional[PlayerSettingsModel] = None


class CacheLifecycleOut(BaseModel):
    caches: List[str]
    removed: List[str] = []
    cached_urls: List[str] = []
