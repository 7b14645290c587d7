"""Tests for push notifications and the notification feed."""

from datetime import timedelta

import httpx
import pytest
from sqlmodel import select

from conftest import at, auth, booking_payload
from tenantbook import config, notifications
from tenantbook.core import utcnow
from tenantbook.models import Notification, User


@pytest.fixture
def push_on(monkeypatch):
    monkeypatch.setattr(config, "PUSH_NOTIFICATIONS_ENABLED", True)


@pytest.fixture
def admins(session, tenant):
    main = session.get(User, tenant.admin_id)
    main.expo_push_token = "ExponentPushToken[main]"
    muted = User(
        name="Muted",
        phone="0507777777",
        business_id=tenant.business_id,
        role="admin",
        expo_push_token="ExponentPushToken[muted]",
        push_on_appointment_created=False,
    )
    worker = session.get(User, tenant.worker_id)
    worker.expo_push_token = "ExponentPushToken[worker]"
    session.add_all([main, muted, worker])
    session.commit()
    return tenant


class FakeExpo:
    def __init__(self, tickets=None, error=None):
        self.calls = []
        self.tickets = tickets
        self.error = error

    def __call__(self, url, json=None, timeout=None):
        self.calls.append(json)
        if self.error is not None:
            raise self.error
        tickets = self.tickets or [{"status": "ok", "id": str(i)} for i, _ in enumerate(json)]
        return httpx.Response(200, json={"data": tickets}, request=httpx.Request("POST", url))


def test_recipients_follow_role_and_event_flags(session, admins):
    created = notifications.admin_push_tokens(session, admins.business_id, "appointment_created")
    canceled = notifications.admin_push_tokens(session, admins.business_id, "appointment_canceled")

    assert created == ["ExponentPushToken[main]"]
    assert canceled == ["ExponentPushToken[main]", "ExponentPushToken[muted]"]


def test_disabled_push_sends_nothing(monkeypatch, admins):
    fake = FakeExpo()
    monkeypatch.setattr(notifications.httpx, "post", fake)

    result = notifications.notify_admins(admins.business_id, "appointment_created", "t", "b")

    assert result == {"ok": True, "sent": 0}
    assert fake.calls == []


def test_notify_admins_sends_to_subscribed_admins(monkeypatch, push_on, admins):
    fake = FakeExpo()
    monkeypatch.setattr(notifications.httpx, "post", fake)

    result = notifications.notify_admins(admins.business_id, "appointment_created", "New", "Body", {"id": 1})

    assert result == {"ok": True, "sent": 1}
    assert fake.calls[0] == [
        {"to": "ExponentPushToken[main]", "sound": "default", "title": "New", "body": "Body", "data": {"id": 1}}
    ]


def test_gateway_failure_is_reported_not_raised(monkeypatch, push_on, admins):
    monkeypatch.setattr(notifications.httpx, "post", FakeExpo(error=httpx.ConnectError("down")))

    result = notifications.notify_admins(admins.business_id, "appointment_canceled", "t", "b")

    assert result == {"ok": False, "sent": 0}


def test_unexpected_failure_is_swallowed(monkeypatch, push_on, admins):
    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(notifications, "send_push", explode)

    assert notifications.notify_admins(admins.business_id, "appointment_created", "t", "b") == {"ok": False, "sent": 0}


def test_unregistered_device_token_is_dropped(monkeypatch, session, push_on, admins):
    tickets = [{"status": "error", "details": {"error": "DeviceNotRegistered"}}]
    monkeypatch.setattr(notifications.httpx, "post", FakeExpo(tickets=tickets))

    result = notifications.notify_admins(admins.business_id, "appointment_created", "t", "b")

    assert result == {"ok": False, "sent": 0}
    session.expire_all()
    assert session.get(User, admins.admin_id).expo_push_token is None


def test_malformed_tokens_are_not_sent(monkeypatch):
    fake = FakeExpo()
    monkeypatch.setattr(notifications.httpx, "post", fake)

    result = notifications.send_push(["garbage", "ExpoPushToken[ok]"], "t", "b")

    assert result == {"success": 1, "failed": 0, "invalid_tokens": ["garbage"]}
    assert [m["to"] for m in fake.calls[0]] == ["ExpoPushToken[ok]"]


def test_booking_survives_notification_failure(monkeypatch, client, push_on, admins):
    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(notifications, "send_push", explode)

    response = client.post(
        "/appointments",
        json=booking_payload(admins.worker_id, at(10)),
        headers=auth(admins.client_tokens[0]),
    )

    assert response.status_code == 201


def test_booking_notifies_admins(monkeypatch, client, push_on, admins):
    fake = FakeExpo()
    monkeypatch.setattr(notifications.httpx, "post", fake)

    response = client.post(
        "/appointments",
        json=booking_payload(admins.worker_id, at(10)),
        headers=auth(admins.client_tokens[0]),
    )

    assert response.status_code == 201
    assert len(fake.calls) == 1
    message = fake.calls[0][0]
    assert message["to"] == "ExponentPushToken[main]"
    assert message["data"]["appointmentId"] == response.json()["id"]


def test_admin_broadcast_reaches_every_device_in_the_business(monkeypatch, client, push_on, admins):
    fake = FakeExpo()
    monkeypatch.setattr(notifications.httpx, "post", fake)

    response = client.post(
        "/users/admin/push",
        json={"title": "  " + "T" * 100, "body": "B" * 300, "data": {"screen": "promo"}},
        headers=auth(admins.admin_token),
    )

    assert response.status_code == 200
    result = response.json()
    assert result["requested_tokens"] == 3
    assert result["success"] == 3
    messages = fake.calls[0]
    assert [m["to"] for m in messages] == [
        "ExponentPushToken[main]",
        "ExponentPushToken[muted]",
        "ExponentPushToken[worker]",
    ]
    assert messages[0]["title"] == "T" * 80
    assert messages[0]["body"] == "B" * 180
    assert messages[0]["data"] == {
        "screen": "promo",
        "type": "admin_broadcast",
        "businessId": admins.business_id,
        "notificationId": result["notification_id"],
    }


def test_broadcast_clears_unregistered_tokens(monkeypatch, client, session, push_on, admins):
    tickets = [
        {"status": "ok", "id": "1"},
        {"status": "error", "details": {"error": "DeviceNotRegistered"}},
        {"status": "ok", "id": "3"},
    ]
    monkeypatch.setattr(notifications.httpx, "post", FakeExpo(tickets=tickets))

    result = client.post(
        "/users/admin/push", json={"title": "Hi", "body": "There"}, headers=auth(admins.admin_token)
    ).json()

    assert result["invalid_tokens"] == ["ExponentPushToken[muted]"]
    session.expire_all()
    muted = session.exec(select(User).where(User.phone == "0507777777")).one()
    assert muted.expo_push_token is None
    assert session.get(User, admins.admin_id).expo_push_token == "ExponentPushToken[main]"


def test_broadcast_is_admin_only_and_needs_text(client, admins):
    assert client.post(
        "/users/admin/push", json={"title": "Hi", "body": "There"}, headers=auth(admins.worker_token)
    ).status_code == 403

    blank = client.post("/users/admin/push", json={"title": "   ", "body": "There"}, headers=auth(admins.admin_token))
    assert blank.status_code == 422
    assert blank.json()["code"] == "VALIDATION_ERROR"


def test_broadcast_lands_in_the_feed_without_push(monkeypatch, client, tenant):
    fake = FakeExpo()
    monkeypatch.setattr(notifications.httpx, "post", fake)

    result = client.post(
        "/users/admin/push", json={"title": "Closed Friday", "body": "See you Sunday"}, headers=auth(tenant.admin_token)
    ).json()
    feed = client.get("/notifications/latest", headers=auth(tenant.client_tokens[0])).json()

    assert fake.calls == []
    assert result["success"] == 0
    assert [n["title"] for n in feed["notifications"]] == ["Closed Friday"]
    assert feed["notifications"][0]["type"] == "admin_broadcast"
    assert feed["has_unread"] is True


def test_feed_shows_latest_five_and_tracks_what_was_seen(client, session, tenant):
    for i in range(6):
        session.add(
            Notification(
                business_id=tenant.business_id,
                title=f"n{i}",
                body="b",
                created_at=utcnow() - timedelta(minutes=10 - i),
            )
        )
    session.add(Notification(business_id=tenant.other_business_id, title="elsewhere", body="b"))
    session.commit()
    headers = auth(tenant.client_tokens[0])

    feed = client.get("/notifications/latest", headers=headers).json()
    assert [n["title"] for n in feed["notifications"]] == ["n5", "n4", "n3", "n2", "n1"]
    assert feed["has_unread"] is True
    assert feed["last_seen_notifications_at"] is None

    assert client.post("/notifications/mark-seen", headers=headers).json() == {"ok": True}
    seen = client.get("/notifications/latest", headers=headers).json()
    assert seen["has_unread"] is False
    assert seen["last_seen_notifications_at"] is not None

    session.add(Notification(business_id=tenant.business_id, title="n6", body="b", created_at=utcnow() + timedelta(minutes=1)))
    session.commit()
    assert client.get("/notifications/latest", headers=headers).json()["has_unread"] is True

    # seen state is per user
    assert client.get("/notifications/latest", headers=auth(tenant.client_tokens[1])).json()["has_unread"] is True


def test_empty_feed(client, tenant):
    feed = client.get("/notifications/latest", headers=auth(tenant.other_client_token)).json()

    assert feed == {
        "notifications": [],
        "has_unread": False,
        "latest_created_at": None,
        "last_seen_notifications_at": None,
    }


def test_test_push_goes_to_the_caller(monkeypatch, client, push_on, admins):
    fake = FakeExpo()
    monkeypatch.setattr(notifications.httpx, "post", fake)

    response = client.post("/users/me/test-push", headers=auth(admins.worker_token))

    assert response.json() == {"ok": True}
    assert [m["to"] for m in fake.calls[0]] == ["ExponentPushToken[worker]"]
    assert fake.calls[0][0]["data"] == {"type": "test"}


def test_test_push_failures(monkeypatch, client, push_on, admins):
    no_token = client.post("/users/me/test-push", headers=auth(admins.client_tokens[0]))
    assert no_token.status_code == 422

    rejected = [{"status": "error", "details": {"error": "MessageRateExceeded"}}]
    monkeypatch.setattr(notifications.httpx, "post", FakeExpo(tickets=rejected))
    failed = client.post("/users/me/test-push", headers=auth(admins.worker_token))
    assert failed.status_code == 400
    assert failed.json()["code"] == "PUSH_FAILED"
