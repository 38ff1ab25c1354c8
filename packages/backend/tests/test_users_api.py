"""Role guard and profile tests.

Learn: the probe endpoints exist only to exercise the guards. A guard
answers 403 "Authentication required" when no token is sent at all, and
its own message when the role doesn't match.
"""

import pytest

from peerconnect.db.models import UserRole


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("path", "role", "greeting"),
    [
        ("/api/users/admin-only", UserRole.ADMIN, "Welcome, admin"),
        ("/api/users/listener-only", UserRole.LISTENER, "Welcome, listener"),
        ("/api/users/user-only", UserRole.USER, "Welcome, user"),
    ],
)
async def test_guard_grants_matching_role(client, make_user, headers_for, path, role, greeting):
    user = await make_user(role=role)
    r = await client.get(path, headers=headers_for(user))
    assert r.status_code == 200
    assert r.json()["message"] == greeting
    assert r.json()["user"]["id"] == str(user.id)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("path", "role", "detail"),
    [
        ("/api/users/admin-only", UserRole.USER, "Admin access required"),
        ("/api/users/admin-only", UserRole.LISTENER, "Admin access required"),
        ("/api/users/listener-only", UserRole.ADMIN, "Listener access required"),
        ("/api/users/user-only", UserRole.LISTENER, "User access required"),
    ],
)
async def test_guard_denies_other_roles(client, make_user, headers_for, path, role, detail):
    user = await make_user(role=role)
    r = await client.get(path, headers=headers_for(user))
    assert r.status_code == 403
    assert r.json()["detail"] == detail


@pytest.mark.asyncio
async def test_guard_without_token(client):
    r = await client.get("/api/users/admin-only")
    assert r.status_code == 403
    assert r.json()["detail"] == "Authentication required"


@pytest.mark.asyncio
async def test_guard_with_invalid_token(client):
    """A token that is sent but doesn't verify is still a 401."""
    r = await client.get(
        "/api/users/admin-only", headers={"Authorization": "Bearer not.a.jwt"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_multi_role_guard_message(client, make_user, headers_for, topics):
    """Guards without a preset message list the roles they accept."""
    user = await make_user()
    r = await client.post(
        "/api/groups",
        json={"name": "Evening circle", "topicId": str(topics[0].id)},
        headers=headers_for(user),
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Access denied. Required roles: LISTENER, ADMIN"


# ═══════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_get_profile(client, make_user, headers_for):
    user = await make_user(first_name="Grace", last_name="Hopper")
    r = await client.get("/api/users/profile", headers=headers_for(user))
    assert r.status_code == 200
    assert r.json()["firstName"] == "Grace"
    assert r.json()["lastName"] == "Hopper"


@pytest.mark.asyncio
async def test_update_profile(client, make_user, headers_for):
    user = await make_user()
    r = await client.patch(
        "/api/users/profile",
        json={"firstName": "Renamed", "bio": "Night owl", "status": "BUSY"},
        headers=headers_for(user),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["firstName"] == "Renamed"
    assert body["bio"] == "Night owl"
    assert body["status"] == "BUSY"
    assert body["lastName"] == user.last_name


@pytest.mark.asyncio
async def test_update_profile_email_taken(client, make_user, headers_for):
    first = await make_user()
    second = await make_user()
    r = await client.patch(
        "/api/users/profile", json={"email": first.email}, headers=headers_for(second)
    )
    assert r.status_code == 409
    assert r.json()["detail"] == "User with this email already exists"
