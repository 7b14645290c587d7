# tenantbook/routers/businesses_routes.py

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlmodel import Session, select

from tenantbook import config
from tenantbook.auth import create_access_token, get_current_user
from tenantbook.db import get_session
from tenantbook.deps import current_business, require_role
from tenantbook.errors import Forbidden, NotFound, ValidationFailed
from tenantbook.models import Business, Service, User
from tenantbook.schemas import (
    BusinessCreate,
    BusinessCreated,
    BusinessPublic,
    OpeningHours,
    SchedulingSettings,
    ServiceCreate,
    ServicePublic,
    ServiceUpdate,
    UserPublic,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/businesses",
    tags=["businesses"],
)


def business_public(session: Session, business: Business) -> BusinessPublic:
    services = session.exec(
        select(Service).where(Service.business_id == business.id).order_by(Service.id)
    ).all()
    return BusinessPublic.model_validate(
        {**business.model_dump(), "services": [s.model_dump() for s in services]}
    )


@router.post("", response_model=BusinessCreated, status_code=201)
def create_business(
    payload: BusinessCreate,
    x_platform_key: Optional[str] = Header(default=None),
    session: Session = Depends(get_session),
):
    # tenant onboarding is a platform operation, not a tenant one
    if not config.PLATFORM_API_KEY or not x_platform_key or not secrets.compare_digest(
        x_platform_key, config.PLATFORM_API_KEY
    ):
        raise Forbidden("Platform key required")

    business = Business(
        name=payload.name.strip(),
        phone=payload.phone,
        email=payload.email,
        address=payload.address,
        timezone=payload.timezone or config.DEFAULT_TIMEZONE,
        opening_hours=payload.opening_hours.model_dump() if payload.opening_hours else None,
    )
    session.add(business)
    session.flush()

    owner = User(
        name=payload.owner.name.strip(),
        phone=payload.owner.phone.strip(),
        business_id=business.id,
        role="admin",
    )
    session.add(owner)
    session.flush()

    business.owner_id = owner.id
    business.worker_ids = [owner.id]
    for service in payload.services:
        session.add(Service(business_id=business.id, **service.model_dump()))

    session.commit()
    session.refresh(business)
    session.refresh(owner)

    logger.info(f"Business {business.id} created with owner {owner.id}")
    return BusinessCreated(
        business=business_public(session, business),
        owner=UserPublic.model_validate(owner.model_dump()),
        access_token=create_access_token(owner),
    )


@router.get("/me", response_model=BusinessPublic)
def my_business(
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
):
    return business_public(session, business)


@router.patch("/me/settings", response_model=BusinessPublic)
def update_settings(
    settings: SchedulingSettings,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    values = settings.model_dump(exclude_none=True)

    start = values.get("work_day_start_hour", business.work_day_start_hour)
    end = values.get("work_day_end_hour", business.work_day_end_hour)
    if start >= end:
        raise ValidationFailed(f"work_day_start_hour ({start}) must be before work_day_end_hour ({end})")

    for key, value in values.items():
        setattr(business, key, value)

    session.add(business)
    session.commit()
    session.refresh(business)
    return business_public(session, business)


@router.put("/me/opening-hours", response_model=BusinessPublic)
def set_opening_hours(
    hours: OpeningHours,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    business.opening_hours = hours.model_dump()

    session.add(business)
    session.commit()
    session.refresh(business)
    return business_public(session, business)


@router.post("/me/services", response_model=ServicePublic, status_code=201)
def add_service(
    service: ServiceCreate,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    db_service = Service(business_id=business.id, **service.model_dump())
    session.add(db_service)
    session.commit()
    session.refresh(db_service)
    return db_service


def _get_service(session: Session, business_id: int, service_id: int) -> Service:
    service = session.get(Service, service_id)
    if service is None or service.business_id != business_id:
        raise NotFound("Service not found")
    return service


@router.patch("/me/services/{service_id}", response_model=ServicePublic)
def update_service(
    service_id: int,
    changes: ServiceUpdate,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    db_service = _get_service(session, business.id, service_id)
    # booked appointments keep their own snapshot
    for key, value in changes.model_dump(exclude_none=True).items():
        setattr(db_service, key, value)

    session.add(db_service)
    session.commit()
    session.refresh(db_service)
    return db_service


@router.delete("/me/services/{service_id}", status_code=204)
def delete_service(
    service_id: int,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    db_service = _get_service(session, business.id, service_id)
    session.delete(db_service)
    session.commit()
