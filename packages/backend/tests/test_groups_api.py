"""Group, membership and group-message tests."""

import uuid

import pytest
from sqlalchemy import select

from peerconnect.db.models import Group, UserRole


async def _create_group(client, headers, topic, **extra) -> dict:
    r = await client.post(
        "/api/groups",
        json={"name": "Evening circle", "topicId": str(topic.id), **extra},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


async def _deactivate(db_session, group_id: str) -> None:
    group = (
        await db_session.execute(select(Group).where(Group.id == uuid.UUID(group_id)))
    ).scalar_one()
    group.is_active = False
    await db_session.commit()


# ═══════════════════════════════════════════════════════════
# Groups
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_group(client, make_user, headers_for, topics):
    """The creator becomes leader and the first (ADMIN) member."""
    listener = await make_user(role=UserRole.LISTENER)
    group = await _create_group(
        client, headers_for(listener), topics[0], description="Weekly check-in", maxMembers=12
    )
    assert group["leaderId"] == str(listener.id)
    assert group["maxMembers"] == 12
    assert group["isActive"] is True
    assert group["memberCount"] == 1
    assert group["members"][0]["userId"] == str(listener.id)
    assert group["members"][0]["role"] == "ADMIN"
    assert group["members"][0]["user"]["firstName"] == listener.first_name


@pytest.mark.asyncio
async def test_create_group_default_capacity(client, make_user, headers_for, topics):
    admin = await make_user(role=UserRole.ADMIN)
    group = await _create_group(client, headers_for(admin), topics[0])
    assert group["maxMembers"] == 100


@pytest.mark.asyncio
async def test_create_group_unknown_topic(client, make_user, headers_for):
    listener = await make_user(role=UserRole.LISTENER)
    r = await client.post(
        "/api/groups",
        json={"name": "Nowhere", "topicId": str(uuid.uuid4())},
        headers=headers_for(listener),
    )
    assert r.status_code == 404
    assert r.json()["detail"] == "Topic not found"


@pytest.mark.asyncio
async def test_groups_require_auth(client):
    r = await client.get("/api/groups")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_list_groups_by_topic(client, make_user, headers_for, topics):
    listener = await make_user(role=UserRole.LISTENER)
    headers = headers_for(listener)
    a = await _create_group(client, headers, topics[0])
    b = await _create_group(client, headers, topics[1])

    r = await client.get("/api/groups", headers=headers)
    assert {g["id"] for g in r.json()} == {a["id"], b["id"]}

    r = await client.get("/api/groups", params={"topicId": str(topics[1].id)}, headers=headers)
    assert [g["id"] for g in r.json()] == [b["id"]]


@pytest.mark.asyncio
async def test_get_group_not_found(client, make_user, headers_for):
    user = await make_user()
    r = await client.get(f"/api/groups/{uuid.uuid4()}", headers=headers_for(user))
    assert r.status_code == 404
    assert r.json()["detail"] == "Group not found"


# ═══════════════════════════════════════════════════════════
# Memberships
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_join_and_leave(client, make_user, headers_for, topics):
    listener = await make_user(role=UserRole.LISTENER)
    member = await make_user()
    group = await _create_group(client, headers_for(listener), topics[0])
    headers = headers_for(member)

    r = await client.post(f"/api/groups/{group['id']}/join", headers=headers)
    assert r.status_code == 201
    assert r.json()["role"] == "MEMBER"
    assert r.json()["userId"] == str(member.id)

    r = await client.get("/api/groups/mine", headers=headers)
    assert [g["id"] for g in r.json()] == [group["id"]]
    assert r.json()[0]["memberCount"] == 2

    r = await client.post(f"/api/groups/{group['id']}/leave", headers=headers)
    assert r.status_code == 200

    r = await client.post(f"/api/groups/{group['id']}/leave", headers=headers)
    assert r.status_code == 404
    assert r.json()["detail"] == "Membership not found"


@pytest.mark.asyncio
async def test_join_twice(client, make_user, headers_for, topics):
    listener = await make_user(role=UserRole.LISTENER)
    member = await make_user()
    group = await _create_group(client, headers_for(listener), topics[0])

    await client.post(f"/api/groups/{group['id']}/join", headers=headers_for(member))
    r = await client.post(f"/api/groups/{group['id']}/join", headers=headers_for(member))
    assert r.status_code == 409
    assert r.json()["detail"] == "User is already a member of this group"


@pytest.mark.asyncio
async def test_join_full_group(client, make_user, headers_for, topics):
    listener = await make_user(role=UserRole.LISTENER)
    group = await _create_group(client, headers_for(listener), topics[0], maxMembers=2)

    first = await make_user()
    second = await make_user()
    r = await client.post(f"/api/groups/{group['id']}/join", headers=headers_for(first))
    assert r.status_code == 201
    r = await client.post(f"/api/groups/{group['id']}/join", headers=headers_for(second))
    assert r.status_code == 403
    assert r.json()["detail"] == "Group is at maximum capacity"


@pytest.mark.asyncio
async def test_join_inactive_group(client, db_session, make_user, headers_for, topics):
    listener = await make_user(role=UserRole.LISTENER)
    group = await _create_group(client, headers_for(listener), topics[0])
    await _deactivate(db_session, group["id"])

    user = await make_user()
    r = await client.post(f"/api/groups/{group['id']}/join", headers=headers_for(user))
    assert r.status_code == 403
    assert r.json()["detail"] == "Group is not active"


@pytest.mark.asyncio
async def test_join_notifies_existing_members(client, make_user, headers_for, topics):
    listener = await make_user(role=UserRole.LISTENER)
    group = await _create_group(client, headers_for(listener), topics[0])
    member = await make_user(first_name="Noor", last_name="Haddad")
    await client.post(f"/api/groups/{group['id']}/join", headers=headers_for(member))

    r = await client.get("/api/notifications", headers=headers_for(listener))
    notes = r.json()["notifications"]
    assert len(notes) == 1
    assert notes[0]["type"] == "GROUP_ACTIVITY"
    assert "Noor Haddad" in notes[0]["message"]

    # The joiner isn't told about their own arrival
    r = await client.get("/api/notifications", headers=headers_for(member))
    assert r.json()["notifications"] == []


@pytest.mark.asyncio
async def test_can_send_message(client, db_session, make_user, headers_for, topics):
    listener = await make_user(role=UserRole.LISTENER)
    member = await make_user()
    outsider = await make_user()
    group = await _create_group(client, headers_for(listener), topics[0])
    await client.post(f"/api/groups/{group['id']}/join", headers=headers_for(member))

    async def can_send(user) -> bool:
        r = await client.get(
            f"/api/groups/{group['id']}/can-send-message", headers=headers_for(user)
        )
        return r.json()["canSendMessage"]

    assert await can_send(member) is True
    assert await can_send(outsider) is False

    await _deactivate(db_session, group["id"])
    assert await can_send(member) is False
    assert await can_send(listener) is True


# ═══════════════════════════════════════════════════════════
# Messages
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_post_and_list_messages(client, make_user, headers_for, topics):
    listener = await make_user(role=UserRole.LISTENER)
    member = await make_user()
    group = await _create_group(client, headers_for(listener), topics[0])
    await client.post(f"/api/groups/{group['id']}/join", headers=headers_for(member))

    for text in ("first", "second", "third"):
        r = await client.post(
            f"/api/groups/{group['id']}/messages",
            json={"content": text},
            headers=headers_for(member),
        )
        assert r.status_code == 201
        assert r.json()["sender"]["id"] == str(member.id)
        assert r.json()["messageType"] == "TEXT"

    r = await client.get(
        f"/api/groups/{group['id']}/messages",
        params={"limit": 2},
        headers=headers_for(listener),
    )
    assert r.status_code == 200
    body = r.json()
    assert [m["content"] for m in body["messages"]] == ["third", "second"]
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}


@pytest.mark.asyncio
async def test_non_member_cannot_post(client, make_user, headers_for, topics):
    listener = await make_user(role=UserRole.LISTENER)
    outsider = await make_user()
    group = await _create_group(client, headers_for(listener), topics[0])

    r = await client.post(
        f"/api/groups/{group['id']}/messages",
        json={"content": "hello?"},
        headers=headers_for(outsider),
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "User is not a member of this group"

    r = await client.get(f"/api/groups/{group['id']}/messages", headers=headers_for(outsider))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_inactive_group_only_moderators_post(client, db_session, make_user, headers_for, topics):
    listener = await make_user(role=UserRole.LISTENER)
    member = await make_user()
    group = await _create_group(client, headers_for(listener), topics[0])
    await client.post(f"/api/groups/{group['id']}/join", headers=headers_for(member))
    await _deactivate(db_session, group["id"])

    r = await client.post(
        f"/api/groups/{group['id']}/messages",
        json={"content": "anyone here?"},
        headers=headers_for(member),
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Group is inactive. Only admins and leads can send messages."

    r = await client.post(
        f"/api/groups/{group['id']}/messages",
        json={"content": "Group is paused this week."},
        headers=headers_for(listener),
    )
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_scam_message_blocked(client, make_user, headers_for, topics):
    listener = await make_user(role=UserRole.LISTENER)
    group = await _create_group(client, headers_for(listener), topics[0])

    r = await client.post(
        f"/api/groups/{group['id']}/messages",
        json={"content": "Cheap counterfeit watches, DM me"},
        headers=headers_for(listener),
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Message blocked due to scam/illicit content."

    r = await client.get(f"/api/groups/{group['id']}/messages", headers=headers_for(listener))
    assert r.json()["pagination"]["total"] == 0
