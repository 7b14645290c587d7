# tenantbook/reports.py

from datetime import date
from typing import Optional

from sqlmodel import Session, func, select

from .core import day_bounds, utcnow
from .models import Appointment
from .schemas import AppointmentStatus


def appointment_stats(
    session: Session,
    business_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> dict:
    """Dashboard counters for one business, optionally limited to start dates in [from, to]."""

    def scoped(stmt):
        stmt = stmt.where(Appointment.business_id == business_id)
        if date_from is not None:
            stmt = stmt.where(Appointment.starts_at >= day_bounds(date_from)[0])
        if date_to is not None:
            stmt = stmt.where(Appointment.starts_at < day_bounds(date_to)[1])
        return stmt

    rows = session.exec(
        scoped(select(Appointment.status, func.count()).select_from(Appointment)).group_by(Appointment.status)
    ).all()
    by_status = {s.value: 0 for s in AppointmentStatus}
    for status, count in rows:
        by_status[status] = count

    distinct_clients = session.exec(
        scoped(select(func.count(func.distinct(Appointment.client_id))).select_from(Appointment))
    ).one()

    upcoming = session.exec(
        scoped(select(func.count()).select_from(Appointment))
        .where(Appointment.status == "confirmed")
        .where(Appointment.starts_at >= utcnow())
    ).one()

    revenue = session.exec(
        scoped(select(func.coalesce(func.sum(Appointment.service_price), 0)).select_from(Appointment))
        .where(Appointment.status == "completed")
    ).one()

    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "distinct_clients": distinct_clients,
        "upcoming_confirmed": upcoming,
        "completed_revenue": float(revenue),
    }
