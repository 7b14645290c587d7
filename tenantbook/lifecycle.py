# tenantbook/lifecycle.py

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .availability import find_conflicts
from .core import to_utc_naive, utcnow
from .errors import CannotCancelWithinCutoff, NotFound, OnlyConfirmedCanBeCanceled, SlotTaken
from .locks import worker_guard
from .models import Appointment, Business
from .schemas import AppointmentStatus

logger = logging.getLogger(__name__)


def get_appointment(session: Session, business_id: int, appointment_id: int) -> Appointment:
    appt = session.get(Appointment, appointment_id)
    if appt is None or appt.business_id != business_id:
        raise NotFound("Appointment not found")
    return appt


def change_status(
    session: Session,
    business: Business,
    appointment_id: int,
    status: AppointmentStatus,
    notes: Optional[str] = None,
) -> tuple[Appointment, str]:
    """Admin transition. Returns the updated appointment and its previous status."""
    appt = get_appointment(session, business.id, appointment_id)
    previous = appt.status
    target = AppointmentStatus(status).value

    with worker_guard(session, business.id, appt.worker_id):
        # re-confirming must not resurrect into a slot filled in the meantime
        if target == "confirmed" and previous != "confirmed":
            conflicts = find_conflicts(
                session, business.id, appt.worker_id, appt.starts_at, appt.service_duration, exclude_id=appt.id
            )
            if conflicts:
                raise SlotTaken("The appointment's slot has been taken since it was canceled")

        appt.status = target
        if notes is not None:
            appt.notes = notes
        session.add(appt)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise SlotTaken("Appointment already exists for that start time")

    session.refresh(appt)
    logger.info(f"Appointment {appt.id} status {previous} -> {target}")
    return appt, previous


def cancel_by_client(
    session: Session,
    business: Business,
    client_id: int,
    appointment_id: int,
    now: Optional[datetime] = None,
) -> Appointment:
    appt = session.get(Appointment, appointment_id)
    # other clients' appointments are reported as missing
    if appt is None or appt.business_id != business.id or appt.client_id != client_id:
        raise NotFound("Appointment not found")

    now = to_utc_naive(now) if now is not None else utcnow()
    cutoff = timedelta(hours=business.cancel_cutoff_hours)

    with worker_guard(session, business.id, appt.worker_id):
        session.refresh(appt)
        if appt.status != "confirmed":
            raise OnlyConfirmedCanBeCanceled()
        if appt.starts_at - now <= cutoff:
            raise CannotCancelWithinCutoff(
                f"Appointments can only be canceled more than {business.cancel_cutoff_hours} hours in advance"
            )

        appt.status = "canceled"
        session.add(appt)
        session.commit()

    session.refresh(appt)
    logger.info(f"Appointment {appt.id} canceled by client {client_id}")
    return appt


def list_client_appointments(
    session: Session, business_id: int, client_id: int, status: str = "confirmed"
) -> List[Appointment]:
    stmt = (
        select(Appointment)
        .where(Appointment.business_id == business_id)
        .where(Appointment.client_id == client_id)
    )
    if status != "all":
        stmt = stmt.where(Appointment.status == status)
    return list(session.exec(stmt.order_by(Appointment.starts_at)).all())
