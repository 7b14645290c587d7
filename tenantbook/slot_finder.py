# tenantbook/slot_finder.py

import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlmodel import Session

from .availability import appointments_for_window, blocks_for_window, is_free_against
from .core import parse_hhmm, to_utc_naive, utcnow
from .models import Business
from .schemas import WEEKDAYS

logger = logging.getLogger(__name__)


def business_day_window(business: Business, day: date) -> Optional[tuple[datetime, datetime]]:
    """Opening and closing instants for ``day``, or None when the business is closed.

    Per-weekday opening hours win when the business has configured them;
    otherwise the work-day start/end hours apply to every day.
    """
    if business.opening_hours:
        hours = business.opening_hours.get(WEEKDAYS[day.weekday()]) or {}
        if not hours.get("open") or not hours.get("close"):
            return None
        return (
            datetime.combine(day, parse_hhmm(hours["open"])),
            datetime.combine(day, parse_hhmm(hours["close"])),
        )

    midnight = datetime.combine(day, time.min)
    open_at = midnight + timedelta(hours=business.work_day_start_hour)
    close_at = midnight + timedelta(hours=business.work_day_end_hour)
    if open_at >= close_at:
        return None
    return open_at, close_at


def find_nearest_slots(
    session: Session,
    business: Business,
    worker_id: int,
    duration_minutes: int,
    now: Optional[datetime] = None,
) -> List[datetime]:
    """Next free start instants for ``worker_id``, at most ``business.nearest_slots_count``.

    Scans from ``now`` day by day for ``business.lookahead_days`` days. On
    each day the first candidate is the later of ``now`` and opening time,
    and candidates advance by ``slot_step_minutes`` from there; a candidate
    must end by closing time. Each scanned day costs one appointment query
    and one block query.
    """
    now = to_utc_naive(now) if now is not None else utcnow()
    if now.second or now.microsecond:
        # whole minutes only, never earlier than now
        now = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
    step = timedelta(minutes=business.slot_step_minutes)
    duration = timedelta(minutes=duration_minutes)
    wanted = business.nearest_slots_count

    slots: List[datetime] = []
    for offset in range(business.lookahead_days):
        day = now.date() + timedelta(days=offset)
        window = business_day_window(business, day)
        if window is None:
            continue
        open_at, close_at = window

        candidate = max(now, open_at)
        if candidate + duration > close_at:
            continue

        busy = [(a.starts_at, a.ends_at) for a in appointments_for_window(session, business.id, worker_id, open_at, close_at)]
        busy.extend((b.starts_at, b.ends_at) for b in blocks_for_window(session, business.id, worker_id, open_at, close_at))

        while candidate + duration <= close_at:
            if is_free_against(candidate, candidate + duration, busy):
                slots.append(candidate)
                if len(slots) >= wanted:
                    return slots
            candidate += step

    logger.debug(f"Slot search for worker {worker_id} found {len(slots)}/{wanted} slots")
    return slots
