# tenantbook/models.py

from typing import Any, Dict, List, Optional
from datetime import datetime

from sqlalchemy import DateTime, Index, UniqueConstraint, text
from sqlalchemy.types import JSON
from sqlmodel import SQLModel, Field, Column

from . import config
from .core import utcnow

# Timestamp columns hold naive UTC (core.utcnow) and are pinned to a plain DateTime.


class Business(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str
    phone: str = ""
    email: str = Field(default="", index=True)
    address: str = ""
    owner_id: Optional[int] = None
    worker_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    timezone: str = config.DEFAULT_TIMEZONE

    # weekday name -> {"open": "HH:MM" | None, "close": "HH:MM" | None}; None = fall back to work-day hours
    opening_hours: Optional[Dict[str, Dict[str, Optional[str]]]] = Field(default=None, sa_column=Column(JSON))

    # scheduling policy
    work_day_start_hour: int = config.WORK_DAY_START_HOUR
    work_day_end_hour: int = config.WORK_DAY_END_HOUR
    slot_step_minutes: int = config.SLOT_STEP_MINUTES
    lookahead_days: int = config.SLOT_LOOKAHEAD_DAYS
    nearest_slots_count: int = config.NEAREST_SLOTS_COUNT
    max_confirmed_per_client: int = config.MAX_CONFIRMED_PER_CLIENT
    cancel_cutoff_hours: int = config.CANCEL_CUTOFF_HOURS

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    business_id: int = Field(index=True, foreign_key="business.id")
    name: str
    duration_minutes: int
    price: float


class User(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("phone", "business_id", name="uq_user_phone_business"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    name: str
    phone: str
    business_id: int = Field(index=True, foreign_key="business.id")
    role: str = "user"  # user, worker or admin
    expo_push_token: Optional[str] = None
    last_seen_notifications_at: Optional[datetime] = Field(default=None, sa_type=DateTime)

    # only meaningful for admins
    push_enabled: bool = True
    push_on_appointment_created: bool = True
    push_on_appointment_canceled: bool = True
    push_on_user_signup: bool = True

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Block(SQLModel, table=True):
    __table_args__ = (
        Index("ix_block_business_resource_start", "business_id", "resource_id", "starts_at", "active"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    business_id: int = Field(index=True, foreign_key="business.id")
    # None = the whole business is blocked
    resource_id: Optional[int] = Field(default=None, index=True)
    starts_at: datetime = Field(sa_type=DateTime)
    ends_at: datetime = Field(sa_type=DateTime)
    timezone: str = config.DEFAULT_TIMEZONE
    reason: str = "other"
    notes: Optional[str] = None
    created_by: Optional[int] = None
    active: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Appointment(SQLModel, table=True):
    __table_args__ = (
        # last line of defence against two confirmed bookings racing for the same start
        Index(
            "uq_confirmed_worker_start",
            "business_id",
            "worker_id",
            "starts_at",
            unique=True,
            sqlite_where=text("status = 'confirmed'"),
            postgresql_where=text("status = 'confirmed'"),
        ),
        Index("ix_appointment_worker_window", "business_id", "worker_id", "starts_at", "ends_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    business_id: int = Field(index=True, foreign_key="business.id")
    client_id: int = Field(index=True, foreign_key="user.id")
    worker_id: int = Field(foreign_key="user.id")

    # service snapshot, copied at booking time
    service_name: str
    service_duration: int
    service_price: float

    starts_at: datetime = Field(sa_type=DateTime)
    ends_at: datetime = Field(sa_type=DateTime)
    status: str = "confirmed"
    notes: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Notification(SQLModel, table=True):
    __table_args__ = (
        Index("ix_notification_business_created", "business_id", "created_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    business_id: int = Field(foreign_key="business.id")
    title: str
    body: str
    data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    type: str = "admin_broadcast"  # admin_broadcast or system

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
