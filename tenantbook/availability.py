# tenantbook/availability.py
"""Which instants are occupied on a worker's schedule.

Only confirmed appointments occupy time. Active blocks occupy time for the
whole business (resource_id is None) or for one worker. Every query filters
by business and selects by interval intersection, never by start alone, so
a record that began the previous day and spills over is still reported.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional, Union

from sqlmodel import Session, col, or_, select

from .core import day_bounds, overlaps
from .models import Appointment, Block

CONFIRMED = "confirmed"


def appointments_for_window(
    session: Session,
    business_id: int,
    worker_id: Optional[int],
    start: datetime,
    end: datetime,
    exclude_id: Optional[int] = None,
) -> List[Appointment]:
    stmt = (
        select(Appointment)
        .where(Appointment.business_id == business_id)
        .where(Appointment.status == CONFIRMED)
        .where(Appointment.starts_at < end)
        .where(Appointment.ends_at > start)
    )
    if worker_id is not None:
        stmt = stmt.where(Appointment.worker_id == worker_id)
    if exclude_id is not None:
        stmt = stmt.where(Appointment.id != exclude_id)
    return list(session.exec(stmt.order_by(Appointment.starts_at)).all())


def blocks_for_window(
    session: Session,
    business_id: int,
    worker_id: Optional[int],
    start: datetime,
    end: datetime,
) -> List[Block]:
    stmt = (
        select(Block)
        .where(Block.business_id == business_id)
        .where(Block.active == True)  # noqa: E712
        .where(Block.starts_at < end)
        .where(Block.ends_at > start)
    )
    # a worker sees its own blocks plus business-wide ones; no worker = business-wide only
    if worker_id is not None:
        stmt = stmt.where(or_(col(Block.resource_id).is_(None), Block.resource_id == worker_id))
    else:
        stmt = stmt.where(col(Block.resource_id).is_(None))
    return list(session.exec(stmt.order_by(Block.starts_at)).all())


def day_conflicts(
    session: Session, business_id: int, worker_id: Optional[int], day: date
) -> tuple[List[Appointment], List[Block]]:
    day_start, day_end = day_bounds(day)
    return (
        appointments_for_window(session, business_id, worker_id, day_start, day_end),
        blocks_for_window(session, business_id, worker_id, day_start, day_end),
    )


def find_conflicts(
    session: Session,
    business_id: int,
    worker_id: int,
    start: datetime,
    duration_minutes: int,
    exclude_id: Optional[int] = None,
) -> List[Union[Appointment, Block]]:
    """Records that make [start, start + duration) unbookable for the worker."""
    end = start + timedelta(minutes=duration_minutes)
    conflicts: List[Union[Appointment, Block]] = []
    conflicts.extend(appointments_for_window(session, business_id, worker_id, start, end, exclude_id))
    conflicts.extend(blocks_for_window(session, business_id, worker_id, start, end))
    return conflicts


def is_slot_free(
    session: Session,
    business_id: int,
    worker_id: int,
    start: datetime,
    duration_minutes: int,
    exclude_id: Optional[int] = None,
) -> bool:
    return not find_conflicts(session, business_id, worker_id, start, duration_minutes, exclude_id)


def is_free_against(start: datetime, end: datetime, busy: List[tuple[datetime, datetime]]) -> bool:
    """In-memory variant used once the busy intervals of a day are pre-fetched."""
    for busy_start, busy_end in busy:
        if overlaps(start, end, busy_start, busy_end):
            return False
    return True


def list_blocks(
    session: Session,
    business_id: int,
    resource: Optional[str] = None,
    worker_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    include_inactive: bool = False,
) -> List[Block]:
    """Admin listing. ``resource`` is a worker id or the string ``"null"`` for business-wide only."""
    stmt = select(Block).where(Block.business_id == business_id)
    if not include_inactive:
        stmt = stmt.where(Block.active == True)  # noqa: E712

    if date_from is not None:
        stmt = stmt.where(Block.starts_at >= day_bounds(date_from)[0])
    if date_to is not None:
        # include the whole 'to' day
        stmt = stmt.where(Block.starts_at < day_bounds(date_to)[1])

    if worker_id is not None:
        stmt = stmt.where(or_(col(Block.resource_id).is_(None), Block.resource_id == worker_id))
    elif resource == "null":
        stmt = stmt.where(col(Block.resource_id).is_(None))
    elif resource is not None and resource.isdigit():
        stmt = stmt.where(Block.resource_id == int(resource))

    return list(session.exec(stmt.order_by(Block.starts_at)).all())
