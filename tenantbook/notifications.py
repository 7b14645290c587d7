# tenantbook/notifications.py
"""
Push notifications and the per-business notification feed.

Delivery goes through the Expo push HTTP API. Event pushes to admins are
handed to FastAPI ``BackgroundTasks`` so ``notify_admins`` runs after the
response is sent; it opens its own session and never raises, a failed push
only shows up in the logs and in the returned ``ok`` flag. Admin broadcasts
are stored as ``Notification`` rows, which clients read back as a feed.
"""

import logging
from typing import Any, Optional

import httpx
from sqlmodel import Session, col, select

from . import config
from .core import utcnow
from .errors import PushFailed, ValidationFailed
from .models import Notification, User
from .schemas import NotificationEvent

logger = logging.getLogger(__name__)

EXPO_CHUNK_SIZE = 100
FEED_SIZE = 5

EVENT_FLAGS = {
    NotificationEvent.appointment_created.value: "push_on_appointment_created",
    NotificationEvent.appointment_canceled.value: "push_on_appointment_canceled",
    NotificationEvent.user_signup.value: "push_on_user_signup",
}


def admin_push_tokens(session: Session, business_id: int, event_type: str) -> list[str]:
    flag = EVENT_FLAGS[event_type]
    admins = session.exec(
        select(User)
        .where(User.business_id == business_id)
        .where(User.role == "admin")
        .where(User.push_enabled == True)  # noqa: E712
        .where(col(User.expo_push_token).is_not(None))
    ).all()
    tokens = {a.expo_push_token.strip() for a in admins if getattr(a, flag) and a.expo_push_token.strip()}
    return sorted(tokens)


def is_expo_token(token: str) -> bool:
    return (token.startswith("ExponentPushToken[") or token.startswith("ExpoPushToken[")) and token.endswith("]")


def send_push(tokens: list[str], title: str, body: str, data: Optional[dict] = None) -> dict:
    """Send one message to many tokens. Returns success/fail counts and tokens Expo rejected."""
    invalid = [t for t in tokens if not is_expo_token(t)]
    messages = [
        {"to": t, "sound": "default", "title": title, "body": body, "data": data or {}}
        for t in tokens
        if is_expo_token(t)
    ]

    success, failed = 0, 0
    for i in range(0, len(messages), EXPO_CHUNK_SIZE):
        chunk = messages[i : i + EXPO_CHUNK_SIZE]
        try:
            response = httpx.post(config.EXPO_PUSH_URL, json=chunk, timeout=config.PUSH_TIMEOUT_SECONDS)
            response.raise_for_status()
            tickets = response.json().get("data", [])
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Expo push chunk failed: {e}")
            failed += len(chunk)
            continue

        for message, ticket in zip(chunk, tickets):
            if ticket.get("status") == "ok":
                success += 1
                continue
            failed += 1
            if (ticket.get("details") or {}).get("error") == "DeviceNotRegistered":
                invalid.append(message["to"])

    return {"success": success, "failed": failed, "invalid_tokens": invalid}


def _forget_tokens(session: Session, business_id: int, tokens: list[str]) -> None:
    users = session.exec(
        select(User).where(User.business_id == business_id).where(col(User.expo_push_token).in_(tokens))
    ).all()
    for user in users:
        user.expo_push_token = None
        session.add(user)
    session.commit()


def notify_admins(
    business_id: int,
    event_type: str,
    title: str,
    body: str,
    data: Optional[dict[str, Any]] = None,
) -> dict:
    """Push ``title``/``body`` to the business admins subscribed to ``event_type``.

    Returns ``{"ok": bool, "sent": int}``.
    """
    if not config.PUSH_NOTIFICATIONS_ENABLED:
        logger.debug(f"Push disabled, skipping {event_type} for business {business_id}")
        return {"ok": True, "sent": 0}

    from .db import engine

    try:
        with Session(engine) as session:
            tokens = admin_push_tokens(session, business_id, event_type)
            if not tokens:
                return {"ok": True, "sent": 0}

            result = send_push(tokens, title, body, data)
            if result["invalid_tokens"]:
                logger.warning(f"Dropping {len(result['invalid_tokens'])} invalid push tokens for business {business_id}")
                _forget_tokens(session, business_id, result["invalid_tokens"])

        logger.info(
            f"{event_type} push for business {business_id}: sent={result['success']} failed={result['failed']}"
        )
        return {"ok": result["failed"] == 0, "sent": result["success"]}
    except Exception as e:  # noqa: BLE001 - notification must never break the caller
        logger.exception(f"notify_admins failed for business {business_id} ({event_type}): {e}")
        return {"ok": False, "sent": 0}


def business_push_tokens(session: Session, business_id: int) -> list[str]:
    users = session.exec(
        select(User).where(User.business_id == business_id).where(col(User.expo_push_token).is_not(None))
    ).all()
    return sorted({u.expo_push_token.strip() for u in users if u.expo_push_token.strip()})


def broadcast(session: Session, business_id: int, title: str, body: str, data: Optional[dict] = None) -> dict:
    """Record an admin message in the business feed and push it to every device in the business.

    Unlike ``notify_admins`` this runs inside the request: the admin gets the
    delivery counts back. Tokens Expo rejects are cleared.
    """
    notification = Notification(business_id=business_id, title=title, body=body, data=data or {})
    session.add(notification)
    session.commit()
    session.refresh(notification)

    tokens = business_push_tokens(session, business_id)
    result = {"success": 0, "failed": 0, "invalid_tokens": []}
    if tokens and config.PUSH_NOTIFICATIONS_ENABLED:
        payload = {
            **(data or {}),
            "type": notification.type,
            "businessId": business_id,
            "notificationId": notification.id,
        }
        result = send_push(tokens, title, body, payload)
        if result["invalid_tokens"]:
            _forget_tokens(session, business_id, result["invalid_tokens"])

    logger.info(
        f"Broadcast {notification.id} for business {business_id}: "
        f"tokens={len(tokens)} sent={result['success']} failed={result['failed']}"
    )
    return {"notification_id": notification.id, "requested_tokens": len(tokens), **result}


def send_test_push(user: User) -> None:
    if not user.expo_push_token or not user.expo_push_token.strip():
        raise ValidationFailed("User has no push token saved")
    if not config.PUSH_NOTIFICATIONS_ENABLED:
        raise PushFailed("Push notifications are disabled")

    result = send_push([user.expo_push_token.strip()], "Test push", "If you can see this, push works", {"type": "test"})
    if result["success"] == 0:
        raise PushFailed(f"Push send failed for user {user.id}")


def notification_feed(session: Session, user: User, limit: int = FEED_SIZE) -> dict:
    notifications = session.exec(
        select(Notification)
        .where(Notification.business_id == user.business_id)
        .order_by(col(Notification.created_at).desc(), col(Notification.id).desc())
        .limit(limit)
    ).all()

    latest = notifications[0].created_at if notifications else None
    last_seen = user.last_seen_notifications_at
    return {
        "notifications": [n.model_dump() for n in notifications],
        "has_unread": latest is not None and (last_seen is None or latest > last_seen),
        "latest_created_at": latest,
        "last_seen_notifications_at": last_seen,
    }


def mark_notifications_seen(session: Session, user: User) -> None:
    user.last_seen_notifications_at = utcnow()
    session.add(user)
    session.commit()
