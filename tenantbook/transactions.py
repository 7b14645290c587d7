# tenantbook/transactions.py
"""Write path for new appointments.

The overlap check runs under ``worker_guard`` so two requests for the same
worker cannot both pass it; the partial unique index on
(business_id, worker_id, starts_at) for confirmed rows backs it up.
"""

import logging
from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from .availability import find_conflicts
from .errors import Forbidden, MaxConfirmedReached, NotInBusiness, SlotTaken
from .locks import worker_guard
from .models import Appointment, Business, User
from .schemas import AppointmentCreate

logger = logging.getLogger(__name__)

WORKER_ROLES = ("worker", "admin")


def get_worker(session: Session, business_id: int, worker_id: int) -> User:
    worker = session.get(User, worker_id)
    if worker is None or worker.business_id != business_id or worker.role not in WORKER_ROLES:
        raise NotInBusiness(f"Worker {worker_id} does not belong to this business")
    return worker


def get_client(session: Session, business_id: int, client_id: int) -> User:
    client = session.get(User, client_id)
    if client is None or client.business_id != business_id:
        raise NotInBusiness(f"Client {client_id} does not belong to this business")
    return client


def count_confirmed_for_client(session: Session, business_id: int, client_id: int) -> int:
    return session.exec(
        select(func.count())
        .select_from(Appointment)
        .where(Appointment.business_id == business_id)
        .where(Appointment.client_id == client_id)
        .where(Appointment.status == "confirmed")
    ).one()


def create_appointment(
    session: Session,
    business: Business,
    request: AppointmentCreate,
    actor: dict,
) -> Appointment:
    client_id = request.client_id if request.client_id is not None else actor["id"]
    # clients book for themselves only
    if actor["role"] == "user" and client_id != actor["id"]:
        raise Forbidden("Clients can only book appointments for themselves")

    # 1) Both parties belong to this business
    get_client(session, business.id, client_id)
    get_worker(session, business.id, request.worker_id)

    starts_at = request.starts_at
    duration = request.service.duration

    with worker_guard(session, business.id, request.worker_id):
        # 2) Per-client cap
        confirmed = count_confirmed_for_client(session, business.id, client_id)
        if confirmed >= business.max_confirmed_per_client:
            logger.info(f"Booking rejected for client {client_id}: {confirmed} confirmed appointments")
            raise MaxConfirmedReached(
                f"Client already has {confirmed} confirmed appointments (limit {business.max_confirmed_per_client})"
            )

        # 3) Overlaps with confirmed appointments or active blocks
        conflicts = find_conflicts(session, business.id, request.worker_id, starts_at, duration)
        if conflicts:
            logger.info(f"Booking rejected for worker {request.worker_id} at {starts_at}: slot taken")
            raise SlotTaken()

        # 4) Create and save appointment, service copied by value
        db_appt = Appointment(
            business_id=business.id,
            client_id=client_id,
            worker_id=request.worker_id,
            service_name=request.service.name,
            service_duration=duration,
            service_price=request.service.price,
            starts_at=starts_at,
            ends_at=starts_at + timedelta(minutes=duration),
            status="confirmed",
            notes=request.notes,
        )
        session.add(db_appt)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            logger.warning(f"Unique index rejected booking for worker {request.worker_id} at {starts_at}")
            raise SlotTaken("Appointment already exists for that start time")

    session.refresh(db_appt)
    logger.info(
        f"Appointment {db_appt.id} booked: business={business.id} worker={db_appt.worker_id} "
        f"client={client_id} start={starts_at}"
    )
    return db_appt
