# tenantbook/schemas.py

import re
from datetime import datetime, date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .core import to_utc_naive, utcnow

HHMM = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class UserRole(str, Enum):
    user = "user"
    worker = "worker"
    admin = "admin"


class AppointmentStatus(str, Enum):
    confirmed = "confirmed"
    canceled = "canceled"
    completed = "completed"
    no_show = "no_show"


class BlockReason(str, Enum):
    vacation = "vacation"
    maintenance = "maintenance"
    training = "training"
    other = "other"


class NotificationEvent(str, Enum):
    appointment_created = "appointment_created"
    appointment_canceled = "appointment_canceled"
    user_signup = "user_signup"


# ---------- users ----------

class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=5, max_length=30)
    role: UserRole = UserRole.user

    @field_validator("name", "phone")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()


class UserSignup(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=5, max_length=30)
    business_id: int

    @field_validator("name", "phone")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()


class UserPublic(BaseModel):
    id: int
    name: str
    phone: str
    role: UserRole
    business_id: int


class PushTokenUpdate(BaseModel):
    expo_push_token: str = Field(min_length=1, max_length=200)


class PushSettings(BaseModel):
    push_enabled: bool
    push_on_appointment_created: bool
    push_on_appointment_canceled: bool
    push_on_user_signup: bool


class PushSettingsUpdate(BaseModel):
    push_enabled: Optional[bool] = None
    push_on_appointment_created: Optional[bool] = None
    push_on_appointment_canceled: Optional[bool] = None
    push_on_user_signup: Optional[bool] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


# ---------- notifications ----------

BROADCAST_TITLE_MAX = 80
BROADCAST_BODY_MAX = 180


class BroadcastRequest(BaseModel):
    title: str = Field(min_length=1, max_length=1000)
    body: str = Field(min_length=1, max_length=2000)
    data: Dict[str, Any] = {}

    @field_validator("title")
    @classmethod
    def trim_title(cls, v: str) -> str:
        return _trimmed(v, BROADCAST_TITLE_MAX)

    @field_validator("body")
    @classmethod
    def trim_body(cls, v: str) -> str:
        return _trimmed(v, BROADCAST_BODY_MAX)


def _trimmed(value: str, limit: int) -> str:
    value = value.strip()[:limit]
    if not value:
        raise ValueError("must not be blank")
    return value


class BroadcastResult(BaseModel):
    notification_id: int
    requested_tokens: int
    success: int
    failed: int
    invalid_tokens: List[str]


class NotificationPublic(BaseModel):
    id: int
    title: str
    body: str
    data: Dict[str, Any]
    type: str
    created_at: datetime


class NotificationFeed(BaseModel):
    notifications: List[NotificationPublic]
    has_unread: bool
    latest_created_at: Optional[datetime]
    last_seen_notifications_at: Optional[datetime]


# ---------- businesses ----------

class DayHours(BaseModel):
    open: Optional[str] = None
    close: Optional[str] = None

    @field_validator("open", "close")
    @classmethod
    def check_format(cls, v: Optional[str]) -> Optional[str]:
        if v in (None, ""):
            return None
        if not HHMM.match(v):
            raise ValueError("time must be HH:MM")
        return v

    @model_validator(mode="after")
    def check_order(self):
        if (self.open is None) != (self.close is None):
            raise ValueError("open and close must both be set or both be empty")
        if self.open and self.close and _minutes(self.open) >= _minutes(self.close):
            raise ValueError("open must be before close")
        return self


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


class OpeningHours(BaseModel):
    monday: DayHours = DayHours()
    tuesday: DayHours = DayHours()
    wednesday: DayHours = DayHours()
    thursday: DayHours = DayHours()
    friday: DayHours = DayHours()
    saturday: DayHours = DayHours()
    sunday: DayHours = DayHours()


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    duration_minutes: int = Field(ge=1, le=480)
    price: float = Field(ge=0, le=10000)


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    duration_minutes: Optional[int] = Field(default=None, ge=1, le=480)
    price: Optional[float] = Field(default=None, ge=0, le=10000)


class ServicePublic(ServiceCreate):
    id: int


class OwnerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=5, max_length=30)


class BusinessCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    phone: str = Field(default="", max_length=20)
    email: str = Field(max_length=200)
    address: str = Field(default="", max_length=300)
    timezone: Optional[str] = None
    services: List[ServiceCreate] = []
    opening_hours: Optional[OpeningHours] = None
    owner: OwnerCreate


class SchedulingSettings(BaseModel):
    work_day_start_hour: Optional[int] = Field(default=None, ge=0, le=23)
    work_day_end_hour: Optional[int] = Field(default=None, ge=1, le=24)
    slot_step_minutes: Optional[int] = Field(default=None, ge=5, le=240)
    lookahead_days: Optional[int] = Field(default=None, ge=1, le=90)
    nearest_slots_count: Optional[int] = Field(default=None, ge=1, le=50)
    max_confirmed_per_client: Optional[int] = Field(default=None, ge=1, le=100)
    cancel_cutoff_hours: Optional[int] = Field(default=None, ge=0, le=720)
    timezone: Optional[str] = Field(default=None, max_length=64)


class BusinessPublic(BaseModel):
    id: int
    name: str
    phone: str
    email: str
    address: str
    owner_id: Optional[int]
    worker_ids: List[int]
    timezone: str
    opening_hours: Optional[Dict[str, DayHours]]
    work_day_start_hour: int
    work_day_end_hour: int
    slot_step_minutes: int
    lookahead_days: int
    nearest_slots_count: int
    max_confirmed_per_client: int
    cancel_cutoff_hours: int
    services: List[ServicePublic] = []


class BusinessCreated(BaseModel):
    business: BusinessPublic
    owner: UserPublic
    access_token: str
    token_type: str = "bearer"


# ---------- appointments ----------

class ServiceSnapshot(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    duration: int = Field(ge=1, le=480)
    price: float = Field(ge=0, le=10000)


class AppointmentCreate(BaseModel):
    client_id: Optional[int] = None  # defaults to the caller
    worker_id: int
    service: ServiceSnapshot
    starts_at: datetime
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("starts_at")
    @classmethod
    def must_be_future(cls, v: datetime) -> datetime:
        v = to_utc_naive(v)
        if v <= utcnow():
            raise ValueError("starts_at must be in the future")
        return v


class StatusChange(BaseModel):
    status: AppointmentStatus
    notes: Optional[str] = Field(default=None, max_length=1000)


class AppointmentPublic(BaseModel):
    id: int
    business_id: int
    client_id: Optional[int]
    worker_id: int
    service: ServiceSnapshot
    starts_at: datetime
    ends_at: datetime
    status: AppointmentStatus
    notes: Optional[str]
    created_at: datetime

    @classmethod
    def from_row(cls, appt, private: bool = False) -> "AppointmentPublic":
        """``private`` hides the client and their notes."""
        return cls(
            id=appt.id,
            business_id=appt.business_id,
            client_id=None if private else appt.client_id,
            worker_id=appt.worker_id,
            service=ServiceSnapshot(
                name=appt.service_name,
                duration=appt.service_duration,
                price=appt.service_price,
            ),
            starts_at=appt.starts_at,
            ends_at=appt.ends_at,
            status=appt.status,
            notes=None if private else appt.notes,
            created_at=appt.created_at,
        )


class NearestSlotsResponse(BaseModel):
    worker_id: int
    duration: int
    slots: List[datetime]


class AppointmentStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    distinct_clients: int
    upcoming_confirmed: int
    completed_revenue: float


# ---------- blocks ----------

class BlockCreate(BaseModel):
    resource_id: Optional[int] = None
    starts_at: datetime
    ends_at: datetime
    timezone: Optional[str] = None
    reason: BlockReason = BlockReason.other
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("starts_at", "ends_at")
    @classmethod
    def normalize(cls, v: datetime) -> datetime:
        return to_utc_naive(v)

    @model_validator(mode="after")
    def check_range(self):
        if self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class BlockUpdate(BaseModel):
    resource_id: Optional[int] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    timezone: Optional[str] = None
    reason: Optional[BlockReason] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    active: Optional[bool] = None

    @field_validator("starts_at", "ends_at")
    @classmethod
    def normalize(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc_naive(v) if v is not None else None

    @model_validator(mode="after")
    def check_not_empty(self):
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided")
        return self


class BlockPublic(BaseModel):
    id: int
    business_id: int
    resource_id: Optional[int]
    starts_at: datetime
    ends_at: datetime
    timezone: str
    reason: BlockReason
    notes: Optional[str]
    created_by: Optional[int]
    active: bool
    created_at: datetime
    updated_at: datetime


class DayView(BaseModel):
    date: date
    worker_id: Optional[int]
    appointments: List[AppointmentPublic]
    blocks: List[BlockPublic]
