# tenantbook/routers/users_routes.py

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlmodel import Session, select

from tenantbook.auth import get_current_user
from tenantbook.db import get_session
from tenantbook.deps import current_business, require_role
from tenantbook.errors import AlreadyExists, NotFound, ValidationFailed
from tenantbook.models import Business, User
from tenantbook.notifications import broadcast, notify_admins, send_test_push
from tenantbook.schemas import (
    BroadcastRequest,
    BroadcastResult,
    NotificationEvent,
    PushSettings,
    PushSettingsUpdate,
    PushTokenUpdate,
    UserCreate,
    UserPublic,
    UserSignup,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["users"],
)


def _public(user: User) -> UserPublic:
    return UserPublic(
        id=user.id,
        name=user.name,
        phone=user.phone,
        role=user.role,
        business_id=user.business_id,
    )


def _ensure_phone_free(session: Session, business_id: int, phone: str):
    existing = session.exec(
        select(User).where(User.business_id == business_id).where(User.phone == phone)
    ).first()
    if existing is not None:
        raise AlreadyExists("A user with this phone already exists in the business")


@router.get("/me", response_model=UserPublic)
def me(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    return _public(session.get(User, current_user["id"]))


@router.post("/users", status_code=201, response_model=UserPublic)
def create_user(
    user: UserCreate,
    session: Session = Depends(get_session),
    business: Business = Depends(current_business),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    _ensure_phone_free(session, business.id, user.phone)

    db_user = User(
        name=user.name,
        phone=user.phone,
        business_id=business.id,
        role=user.role.value,
    )
    session.add(db_user)
    session.flush()

    if db_user.role in ("worker", "admin"):
        business.worker_ids = [*business.worker_ids, db_user.id]
        session.add(business)

    session.commit()
    session.refresh(db_user)

    logger.info(f"User {db_user.id} ({db_user.role}) added to business {business.id}")
    return _public(db_user)


@router.post("/users/signup", status_code=201, response_model=UserPublic)
def signup(
    user: UserSignup,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
):
    if session.get(Business, user.business_id) is None:
        raise NotFound("Business not found")
    _ensure_phone_free(session, user.business_id, user.phone)

    db_user = User(name=user.name, phone=user.phone, business_id=user.business_id, role="user")
    session.add(db_user)
    session.commit()
    session.refresh(db_user)

    background_tasks.add_task(
        notify_admins,
        db_user.business_id,
        NotificationEvent.user_signup.value,
        "New client",
        f"{db_user.name} just signed up",
        {"userId": db_user.id},
    )
    return _public(db_user)


@router.post("/users/me/push-token")
def save_push_token(
    payload: PushTokenUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    user = session.get(User, current_user["id"])
    user.expo_push_token = payload.expo_push_token.strip()
    session.add(user)
    session.commit()
    return {"msg": "Push token saved"}


@router.post("/users/me/test-push")
def send_my_test_push(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    send_test_push(session.get(User, current_user["id"]))
    return {"ok": True}


@router.post("/users/admin/push", response_model=BroadcastResult)
def admin_broadcast(
    message: BroadcastRequest,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    return broadcast(session, current_user["business"], message.title, message.body, message.data)


@router.get("/users/admin/push-settings", response_model=PushSettings)
def get_push_settings(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    user = session.get(User, current_user["id"])
    return PushSettings.model_validate(user.model_dump())


@router.patch("/users/admin/push-settings", response_model=PushSettings)
def update_push_settings(
    changes: PushSettingsUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    values = changes.model_dump(exclude_none=True)
    if not values:
        raise ValidationFailed("No valid boolean fields to update")

    user = session.get(User, current_user["id"])
    for key, value in values.items():
        setattr(user, key, value)
    session.add(user)
    session.commit()
    session.refresh(user)
    return PushSettings.model_validate(user.model_dump())
