"""Meeting scheduling and lifecycle tests.

Learn: status only moves forward: SCHEDULED → ACTIVE → COMPLETED.
Starting or ending out of order is a 403, not a silent no-op.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from peerconnect.db.models import UserRole


def _at(hours: float) -> str:
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).isoformat()


@pytest_asyncio.fixture()
async def group_setup(client, make_user, headers_for, topics):
    """A listener-led group with one ordinary member."""
    listener = await make_user(role=UserRole.LISTENER)
    member = await make_user()
    r = await client.post(
        "/api/groups",
        json={"name": "Grief support", "topicId": str(topics[2].id)},
        headers=headers_for(listener),
    )
    group_id = r.json()["id"]
    await client.post(f"/api/groups/{group_id}/join", headers=headers_for(member))
    return {"group_id": group_id, "listener": listener, "member": member}


async def _schedule(client, headers, group_id, **extra) -> dict:
    body = {
        "groupId": group_id,
        "title": "Weekly session",
        "type": "SUPPORT_GROUP",
        "scheduledStartTime": _at(24),
        "scheduledEndTime": _at(25),
        "agenda": ["Check-in", "Open floor"],
        **extra,
    }
    r = await client.post("/api/meetings", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_create_meeting(client, headers_for, group_setup):
    meeting = await _schedule(
        client, headers_for(group_setup["listener"]), group_setup["group_id"]
    )
    assert meeting["status"] == "SCHEDULED"
    assert meeting["agenda"] == ["Check-in", "Open floor"]
    assert meeting["createdBy"] == str(group_setup["listener"].id)

    # Members hear about it
    r = await client.get("/api/notifications", headers=headers_for(group_setup["member"]))
    types = [n["type"] for n in r.json()["notifications"]]
    assert "MEETING_UPDATE" in types


@pytest.mark.asyncio
async def test_member_cannot_create_meeting(client, headers_for, group_setup):
    r = await client.post(
        "/api/meetings",
        json={
            "groupId": group_setup["group_id"],
            "title": "My own session",
            "type": "DISCUSSION",
            "scheduledStartTime": _at(2),
        },
        headers=headers_for(group_setup["member"]),
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_outside_listener_cannot_create_meeting(client, make_user, headers_for, group_setup):
    stranger = await make_user(role=UserRole.LISTENER)
    r = await client.post(
        "/api/meetings",
        json={
            "groupId": group_setup["group_id"],
            "title": "Drop-in",
            "type": "WORKSHOP",
            "scheduledStartTime": _at(2),
        },
        headers=headers_for(stranger),
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Only group admins and listeners can schedule meetings"


@pytest.mark.asyncio
async def test_end_before_start_rejected(client, headers_for, group_setup):
    r = await client.post(
        "/api/meetings",
        json={
            "groupId": group_setup["group_id"],
            "title": "Backwards",
            "type": "WORKSHOP",
            "scheduledStartTime": _at(3),
            "scheduledEndTime": _at(2),
        },
        headers=headers_for(group_setup["listener"]),
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_meeting_lifecycle(client, headers_for, group_setup):
    headers = headers_for(group_setup["listener"])
    meeting = await _schedule(client, headers, group_setup["group_id"])
    mid = meeting["id"]

    r = await client.post(f"/api/meetings/{mid}/end", headers=headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "Meeting is not active"

    r = await client.post(f"/api/meetings/{mid}/start", headers=headers)
    assert r.status_code == 200
    assert r.json()["status"] == "ACTIVE"
    assert r.json()["actualStartTime"] is not None

    r = await client.post(f"/api/meetings/{mid}/start", headers=headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "Meeting cannot be started in its current status"

    r = await client.post(f"/api/meetings/{mid}/end", headers=headers)
    assert r.status_code == 200
    assert r.json()["status"] == "COMPLETED"
    assert r.json()["actualEndTime"] is not None

    r = await client.post(f"/api/meetings/{mid}/end", headers=headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_member_cannot_start(client, headers_for, group_setup):
    meeting = await _schedule(
        client, headers_for(group_setup["listener"]), group_setup["group_id"]
    )
    r = await client.post(
        f"/api/meetings/{meeting['id']}/start", headers=headers_for(group_setup["member"])
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "You cannot start this meeting"


@pytest.mark.asyncio
async def test_platform_admin_can_manage(client, make_user, headers_for, group_setup):
    admin = await make_user(role=UserRole.ADMIN)
    meeting = await _schedule(
        client, headers_for(group_setup["listener"]), group_setup["group_id"]
    )
    r = await client.post(f"/api/meetings/{meeting['id']}/start", headers=headers_for(admin))
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_update_meeting(client, headers_for, group_setup):
    headers = headers_for(group_setup["listener"])
    meeting = await _schedule(client, headers, group_setup["group_id"])

    r = await client.put(
        f"/api/meetings/{meeting['id']}",
        json={"title": "Renamed session", "agenda": ["Breathing exercise"]},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["title"] == "Renamed session"
    assert r.json()["agenda"] == ["Breathing exercise"]

    r = await client.put(
        f"/api/meetings/{meeting['id']}",
        json={"scheduledEndTime": _at(1)},
        headers=headers,
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_delete_meeting(client, headers_for, group_setup):
    headers = headers_for(group_setup["listener"])
    meeting = await _schedule(client, headers, group_setup["group_id"])

    r = await client.delete(f"/api/meetings/{meeting['id']}", headers=headers)
    assert r.status_code == 204

    r = await client.get(f"/api/meetings/{meeting['id']}", headers=headers)
    assert r.status_code == 404
    assert r.json()["detail"] == "Meeting not found"


@pytest.mark.asyncio
async def test_list_group_meetings_sorted(client, headers_for, group_setup):
    headers = headers_for(group_setup["listener"])
    gid = group_setup["group_id"]
    later = await _schedule(client, headers, gid, scheduledStartTime=_at(48), scheduledEndTime=_at(49))
    sooner = await _schedule(client, headers, gid, scheduledStartTime=_at(5), scheduledEndTime=_at(6))

    r = await client.get(f"/api/meetings/group/{gid}", headers=headers)
    assert r.status_code == 200
    assert [m["id"] for m in r.json()] == [sooner["id"], later["id"]]


@pytest.mark.asyncio
async def test_list_meetings_unknown_group(client, headers_for, group_setup):
    r = await client.get(
        f"/api/meetings/group/{uuid.uuid4()}", headers=headers_for(group_setup["member"])
    )
    assert r.status_code == 404
