# tenantbook/routers/notifications_routes.py

from fastapi import APIRouter, Depends
from sqlmodel import Session

from tenantbook.auth import get_current_user
from tenantbook.db import get_session
from tenantbook.models import User
from tenantbook.notifications import mark_notifications_seen, notification_feed
from tenantbook.schemas import NotificationFeed

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
)


@router.get("/latest", response_model=NotificationFeed)
def latest_notifications(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    return notification_feed(session, session.get(User, current_user["id"]))


@router.post("/mark-seen")
def mark_seen(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    mark_notifications_seen(session, session.get(User, current_user["id"]))
    return {"ok": True}
