# tenantbook/routers/blocks_routes.py

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from tenantbook.auth import get_current_user
from tenantbook.availability import blocks_for_window, list_blocks
from tenantbook.core import day_bounds, utcnow
from tenantbook.db import get_session
from tenantbook.deps import current_business, require_role
from tenantbook.errors import NotFound, ValidationFailed
from tenantbook.models import Block, Business
from tenantbook.schemas import BlockCreate, BlockPublic, BlockUpdate
from tenantbook.transactions import get_worker

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/blocks",
    tags=["blocks"],
)


def _get_block(session: Session, business_id: int, block_id: int) -> Block:
    block = session.get(Block, block_id)
    if block is None or block.business_id != business_id:
        raise NotFound("Block not found")
    return block


@router.get("/by-day", response_model=List[BlockPublic])
def blocks_by_day(
    on_date: date = Query(alias="date"),
    worker: Optional[int] = None,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
):
    day_start, day_end = day_bounds(on_date)
    return blocks_for_window(session, business.id, worker, day_start, day_end)


@router.get("/list", response_model=List[BlockPublic])
def blocks_list(
    resource: Optional[str] = None,
    worker: Optional[int] = None,
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
):
    return list_blocks(session, business.id, resource, worker, date_from, date_to, include_inactive)


@router.post("", response_model=BlockPublic, status_code=201)
def create_block(
    block: BlockCreate,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    if block.resource_id is not None:
        get_worker(session, business.id, block.resource_id)

    db_block = Block(
        business_id=business.id,
        resource_id=block.resource_id,
        starts_at=block.starts_at,
        ends_at=block.ends_at,
        timezone=block.timezone or business.timezone,
        reason=block.reason.value,
        notes=block.notes,
        created_by=current_user["id"],
    )
    session.add(db_block)
    session.commit()
    session.refresh(db_block)

    logger.info(f"Block {db_block.id} created for business {business.id} (resource={db_block.resource_id})")
    return db_block


@router.patch("/{block_id}", response_model=BlockPublic)
def update_block(
    block_id: int,
    changes: BlockUpdate,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    db_block = _get_block(session, business.id, block_id)

    values = changes.model_dump(exclude_unset=True)
    if values.get("resource_id") is not None:
        get_worker(session, business.id, values["resource_id"])
    if "reason" in values and values["reason"] is not None:
        values["reason"] = changes.reason.value

    starts_at = values.get("starts_at") or db_block.starts_at
    ends_at = values.get("ends_at") or db_block.ends_at
    if ends_at <= starts_at:
        raise ValidationFailed("ends_at must be after starts_at")

    for key, value in values.items():
        if key in ("starts_at", "ends_at", "timezone", "reason", "active") and value is None:
            continue
        setattr(db_block, key, value)
    db_block.updated_at = utcnow()

    session.add(db_block)
    session.commit()
    session.refresh(db_block)
    return db_block


@router.delete("/{block_id}")
def delete_block(
    block_id: int,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    db_block = _get_block(session, business.id, block_id)

    # soft delete keeps the history
    db_block.active = False
    db_block.updated_at = utcnow()
    session.add(db_block)
    session.commit()
    session.refresh(db_block)

    logger.info(f"Block {db_block.id} deactivated for business {business.id}")
    return {"msg": "Block deleted", "block": BlockPublic.model_validate(db_block.model_dump())}
