"""Notification inbox tests.

Learn: NotificationService is exercised directly for dedup and live push,
and through the API for everything a client can do to its inbox.
"""

import uuid

import pytest

from peerconnect.db.models import NotificationType, UserRole
from peerconnect.realtime.hub import hub
from peerconnect.services.notification_service import NotificationService


async def _notify(db_session, user, type=NotificationType.GENERAL, **extra):
    fields = {"title": "Heads up", "message": "Something happened", **extra}
    return await NotificationService(db_session).create(user.id, type=type, **fields)


# ═══════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_duplicate_within_window_is_reused(db_session, make_user):
    user = await make_user()
    first = await _notify(db_session, user, related_id="meeting-1")
    again = await _notify(db_session, user, related_id="meeting-1")
    other = await _notify(db_session, user, related_id="meeting-2")

    assert again.id == first.id
    assert other.id != first.id


@pytest.mark.asyncio
async def test_dedup_is_per_type(db_session, make_user):
    user = await make_user()
    a = await _notify(db_session, user, type=NotificationType.GROUP_ACTIVITY, related_id="g")
    b = await _notify(db_session, user, type=NotificationType.MEETING_UPDATE, related_id="g")
    assert a.id != b.id


@pytest.mark.asyncio
async def test_bulk_skips_repeated_ids(db_session, make_user):
    a = await make_user()
    b = await make_user()
    created = await NotificationService(db_session).create_bulk(
        [a.id, b.id, a.id],
        title="Maintenance",
        message="Down for 5 minutes tonight",
        type=NotificationType.GENERAL,
    )
    assert [n.user_id for n in created] == [a.id, b.id]


@pytest.mark.asyncio
async def test_new_notification_is_pushed_live(db_session, make_user, fake_socket):
    user = await make_user()
    socket = fake_socket()
    hub.register(user.id, socket)

    notification = await _notify(db_session, user, title="Live one")

    frames = socket.frames("notification")
    assert len(frames) == 1
    assert frames[0]["data"]["id"] == str(notification.id)
    assert frames[0]["data"]["title"] == "Live one"
    assert frames[0]["data"]["isRead"] is False


@pytest.mark.asyncio
async def test_deduplicated_notification_is_not_pushed_again(db_session, make_user, fake_socket):
    user = await make_user()
    socket = fake_socket()
    hub.register(user.id, socket)

    await _notify(db_session, user, related_id="x")
    await _notify(db_session, user, related_id="x")
    assert len(socket.frames("notification")) == 1


# ═══════════════════════════════════════════════════════════
# Inbox API
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_inbox_requires_auth(client):
    r = await client.get("/api/notifications")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_list_and_unread_count(client, db_session, make_user, headers_for):
    user = await make_user()
    for i in range(3):
        await _notify(db_session, user, related_id=f"r{i}")

    headers = headers_for(user)
    r = await client.get("/api/notifications", params={"limit": 2}, headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert len(body["notifications"]) == 2
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    r = await client.get("/api/notifications/unread-count", headers=headers)
    assert r.json() == {"unreadCount": 3}


@pytest.mark.asyncio
async def test_mark_read(client, db_session, make_user, headers_for):
    user = await make_user()
    notification = await _notify(db_session, user)
    headers = headers_for(user)

    r = await client.put(f"/api/notifications/{notification.id}/read", headers=headers)
    assert r.status_code == 200
    assert r.json()["isRead"] is True

    r = await client.get("/api/notifications/unread-count", headers=headers)
    assert r.json() == {"unreadCount": 0}


@pytest.mark.asyncio
async def test_mark_all_read(client, db_session, make_user, headers_for):
    user = await make_user()
    bystander = await make_user()
    for i in range(2):
        await _notify(db_session, user, related_id=f"r{i}")
    await _notify(db_session, bystander)

    r = await client.put("/api/notifications/mark-all-read", headers=headers_for(user))
    assert r.json() == {"count": 2}

    # Only the caller's inbox changes
    r = await client.get("/api/notifications/unread-count", headers=headers_for(bystander))
    assert r.json() == {"unreadCount": 1}


@pytest.mark.asyncio
async def test_stats(client, db_session, make_user, headers_for):
    user = await make_user()
    await _notify(db_session, user, type=NotificationType.GROUP_ACTIVITY, related_id="a")
    await _notify(db_session, user, type=NotificationType.GROUP_ACTIVITY, related_id="b")
    read = await _notify(db_session, user, type=NotificationType.NEW_RESOURCE)
    headers = headers_for(user)
    await client.put(f"/api/notifications/{read.id}/read", headers=headers)

    r = await client.get("/api/notifications/stats", headers=headers)
    assert r.json() == {
        "total": 3,
        "unread": 2,
        "byType": {"GROUP_ACTIVITY": 2, "NEW_RESOURCE": 1},
    }


@pytest.mark.asyncio
async def test_cannot_touch_someone_elses_notification(client, db_session, make_user, headers_for):
    owner = await make_user()
    intruder = await make_user()
    notification = await _notify(db_session, owner)

    r = await client.put(
        f"/api/notifications/{notification.id}/read", headers=headers_for(intruder)
    )
    assert r.status_code == 404
    r = await client.delete(f"/api/notifications/{notification.id}", headers=headers_for(intruder))
    assert r.status_code == 404
    assert r.json()["detail"] == "Notification not found"

    r = await client.delete(f"/api/notifications/{notification.id}", headers=headers_for(owner))
    assert r.status_code == 204
    r = await client.get("/api/notifications", headers=headers_for(owner))
    assert r.json()["notifications"] == []


@pytest.mark.asyncio
async def test_unknown_notification(client, make_user, headers_for):
    user = await make_user()
    r = await client.put(f"/api/notifications/{uuid.uuid4()}/read", headers=headers_for(user))
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Admin creation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_is_admin_only(client, make_user, headers_for):
    user = await make_user()
    body = {
        "userId": str(user.id),
        "title": "Hello",
        "message": "Welcome aboard",
        "type": "GENERAL",
    }
    r = await client.post("/api/notifications", json=body, headers=headers_for(user))
    assert r.status_code == 403

    admin = await make_user(role=UserRole.ADMIN)
    r = await client.post("/api/notifications", json=body, headers=headers_for(admin))
    assert r.status_code == 201
    assert r.json()["userId"] == str(user.id)


@pytest.mark.asyncio
async def test_bulk_create(client, make_user, headers_for):
    admin = await make_user(role=UserRole.ADMIN)
    users = [await make_user() for _ in range(3)]
    r = await client.post(
        "/api/notifications/bulk",
        json={
            "userIds": [str(u.id) for u in users],
            "title": "Community update",
            "message": "New groups this week",
            "type": "GENERAL",
        },
        headers=headers_for(admin),
    )
    assert r.status_code == 201
    assert sorted(n["userId"] for n in r.json()) == sorted(str(u.id) for u in users)


@pytest.mark.asyncio
async def test_create_rejects_unknown_type(client, make_user, headers_for):
    admin = await make_user(role=UserRole.ADMIN)
    r = await client.post(
        "/api/notifications",
        json={"userId": str(admin.id), "title": "x", "message": "y", "type": "GOSSIP"},
        headers=headers_for(admin),
    )
    assert r.status_code == 422
