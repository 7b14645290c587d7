# tenantbook/routers/appointments_routes.py

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlmodel import Session

from tenantbook.auth import get_current_user
from tenantbook.availability import day_conflicts
from tenantbook.db import get_session
from tenantbook.deps import current_business, require_role
from tenantbook.errors import ValidationFailed
from tenantbook.lifecycle import cancel_by_client, change_status, list_client_appointments
from tenantbook.models import Appointment, Business
from tenantbook.notifications import notify_admins
from tenantbook.reports import appointment_stats
from tenantbook.schemas import (
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStats,
    AppointmentStatus,
    BlockPublic,
    DayView,
    NearestSlotsResponse,
    NotificationEvent,
    StatusChange,
)
from tenantbook.slot_finder import find_nearest_slots
from tenantbook.transactions import get_worker, create_appointment as book_appointment

router = APIRouter(
    prefix="/appointments",
    tags=["appointments"],
)

STATUS_FILTERS = tuple(s.value for s in AppointmentStatus) + ("all",)


def _appointment_event(appt: Appointment) -> dict:
    return {
        "appointmentId": appt.id,
        "workerId": appt.worker_id,
        "clientId": appt.client_id,
        "start": appt.starts_at.isoformat(),
    }


@router.post("", response_model=AppointmentPublic, status_code=201)
def create_appointment(
    appt: AppointmentCreate,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    db_appt = book_appointment(session, business, appt, current_user)

    background_tasks.add_task(
        notify_admins,
        business.id,
        NotificationEvent.appointment_created.value,
        "New appointment",
        f"{db_appt.service_name} on {db_appt.starts_at:%Y-%m-%d %H:%M}",
        _appointment_event(db_appt),
    )
    return AppointmentPublic.from_row(db_appt)


@router.get("/by-day", response_model=DayView)
def appointments_by_day(
    on_date: date = Query(alias="date"),
    worker: Optional[int] = None,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    if worker is not None:
        get_worker(session, business.id, worker)

    appts, blocks = day_conflicts(session, business.id, worker, on_date)
    # clients see when others are booked, not who
    is_client = current_user["role"] == "user"
    return DayView(
        date=on_date,
        worker_id=worker,
        appointments=[
            AppointmentPublic.from_row(a, private=is_client and a.client_id != current_user["id"]) for a in appts
        ],
        blocks=[BlockPublic.model_validate(b.model_dump()) for b in blocks],
    )


@router.get("/mine", response_model=List[AppointmentPublic])
def list_my_appointments(
    status: str = "confirmed",
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    if status not in STATUS_FILTERS:
        raise ValidationFailed(f"status must be one of: {', '.join(STATUS_FILTERS)}")

    appts = list_client_appointments(session, current_user["business"], current_user["id"], status)
    return [AppointmentPublic.from_row(a) for a in appts]


@router.get("/nearest-slots", response_model=NearestSlotsResponse)
def nearest_slots(
    worker: int,
    duration: int = Query(ge=1, le=480),
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
):
    get_worker(session, business.id, worker)
    slots = find_nearest_slots(session, business, worker, duration)
    return NearestSlotsResponse(worker_id=worker, duration=duration, slots=slots)


@router.get("/stats", response_model=AppointmentStats)
def admin_stats(
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    return appointment_stats(session, business.id, date_from, date_to)


@router.patch("/{appt_id}/status", response_model=AppointmentPublic)
def update_status(
    appt_id: int,
    change: StatusChange,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    appt, previous = change_status(session, business, appt_id, change.status, change.notes)

    if appt.status == "canceled" and previous != "canceled":
        background_tasks.add_task(
            notify_admins,
            business.id,
            NotificationEvent.appointment_canceled.value,
            "Appointment canceled",
            f"{appt.service_name} on {appt.starts_at:%Y-%m-%d %H:%M} was canceled",
            _appointment_event(appt),
        )
    return AppointmentPublic.from_row(appt)


@router.patch("/{appt_id}/cancel", response_model=AppointmentPublic)
def cancel_appointment(
    appt_id: int,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    appt = cancel_by_client(session, business, current_user["id"], appt_id)

    background_tasks.add_task(
        notify_admins,
        business.id,
        NotificationEvent.appointment_canceled.value,
        "Appointment canceled",
        f"A client canceled {appt.service_name} on {appt.starts_at:%Y-%m-%d %H:%M}",
        _appointment_event(appt),
    )
    return AppointmentPublic.from_row(appt)
