from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlalchemy import select, update

from uaetrail.auth.jwt import hash_refresh_token
from uaetrail.models import RefreshToken, User
from uaetrail.models.user import UserRole, UserStatus


def register(client: TestClient, email: str, password: str = "StrongPass123", name: str = "Test User"):
    return client.post(
        "/v1/auth/register",
        json={"email": email, "password": password, "name": name},
    )


def login(client: TestClient, email: str, password: str = "StrongPass123"):
    return client.post(
        "/v1/auth/login",
        json={"email": email, "password": password},
    )


def set_role(db_session, email: str, role: UserRole) -> None:
    db_session.execute(update(User).where(User.email == email).values(role=role))
    db_session.commit()


def _event_payload(**overrides):
    payload = {
        "title": "Jebel Jais Sunrise Hike",
        "location": "Ras Al Khaimah",
        "starts_at": (datetime.now(timezone.utc) + timedelta(days=3)).isoformat(),
        "capacity": 10,
        "price_aed": 150,
    }
    payload.update(overrides)
    return payload


def test_register_then_login_works(client: TestClient):
    resp = register(client, "reg1@example.com")
    assert resp.status_code == 200
    assert resp.json()["role"] == "USER"

    resp2 = login(client, "reg1@example.com")
    assert resp2.status_code == 200
    body = resp2.json()
    assert "access_token" in body


def test_register_rejects_weak_password(client: TestClient):
    resp = register(client, "weak@example.com", password="onlyletters")
    assert resp.status_code == 422


def test_register_duplicate_email_conflicts(client: TestClient):
    assert register(client, "dup@example.com").status_code == 200
    resp = register(client, "DUP@example.com")
    assert resp.status_code == 409


def test_login_wrong_password_is_unauthorized(client: TestClient):
    register(client, "wrongpw@example.com")
    resp = login(client, "wrongpw@example.com", password="NotThePassword1")
    assert resp.status_code == 401


def test_login_sets_access_and_refresh_cookie(client: TestClient):
    register(client, "reg2@example.com")

    resp = login(client, "reg2@example.com")
    assert resp.status_code == 200
    body = resp.json()
    assert body["access_token"]
    set_cookie = resp.headers.get("set-cookie", "")
    assert "uaetrail_refresh" in set_cookie


def test_me_requires_bearer_token(client: TestClient):
    assert client.get("/v1/me").status_code == 401

    register(client, "me@example.com")
    token = login(client, "me@example.com").json()["access_token"]
    resp = client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["email"] == "me@example.com"


def test_refresh_rotates_token(client: TestClient, db_session):
    register(client, "reg3@example.com")
    resp = login(client, "reg3@example.com")
    assert resp.status_code == 200

    old_raw = client.cookies.get("uaetrail_refresh")
    assert old_raw
    old_hash = hash_refresh_token(old_raw)
    old_token = db_session.scalar(select(RefreshToken).where(RefreshToken.token_hash == old_hash))
    assert old_token is not None
    assert old_token.revoked_at is None
    family_id = old_token.family_id

    refresh_resp = client.post("/v1/auth/refresh")
    assert refresh_resp.status_code == 200
    new_raw = client.cookies.get("uaetrail_refresh")
    assert new_raw
    assert new_raw != old_raw

    db_session.refresh(old_token)
    assert old_token.revoked_at is not None
    assert old_token.revoked_reason == "rotated"
    assert old_token.replaced_by is not None
    new_token = db_session.get(RefreshToken, old_token.replaced_by)
    assert new_token is not None
    assert new_token.family_id == family_id


def test_refresh_replay_revokes_family(client: TestClient, db_session):
    register(client, "reg4@example.com")
    login(client, "reg4@example.com")

    old_raw = client.cookies.get("uaetrail_refresh")
    assert old_raw

    refresh_resp = client.post("/v1/auth/refresh")
    assert refresh_resp.status_code == 200
    new_raw = client.cookies.get("uaetrail_refresh")
    assert new_raw

    # Replay old token
    replay_resp = client.post("/v1/auth/refresh", json={"refresh_token": old_raw})
    assert replay_resp.status_code == 401

    old_hash = hash_refresh_token(old_raw)
    old_token = db_session.scalar(select(RefreshToken).where(RefreshToken.token_hash == old_hash))
    assert old_token is not None
    family_id = old_token.family_id
    assert family_id is not None

    family_tokens = db_session.scalars(
        select(RefreshToken).where(RefreshToken.family_id == family_id)
    ).all()
    assert family_tokens
    assert all(t.revoked_at is not None for t in family_tokens)

    # The rotated-in token died with its family
    assert client.post("/v1/auth/refresh", json={"refresh_token": new_raw}).status_code == 401


def test_logout_revokes_refresh_token(client: TestClient, db_session):
    register(client, "logout@example.com")
    login(client, "logout@example.com")
    raw = client.cookies.get("uaetrail_refresh")
    assert raw

    resp = client.post("/v1/auth/logout")
    assert resp.status_code == 200

    token = db_session.scalar(
        select(RefreshToken).where(RefreshToken.token_hash == hash_refresh_token(raw))
    )
    assert token.revoked_at is not None
    assert token.revoked_reason == "logout"


def test_rbac_user_blocked_from_organizer_route(client: TestClient):
    register(client, "attendee@example.com")
    resp = login(client, "attendee@example.com")
    token = resp.json()["access_token"]

    ev = client.post(
        "/v1/organizer/events",
        json=_event_payload(),
        headers={"Authorization": f"Bearer {token}"},
    )
    assert ev.status_code == 403


def test_rbac_organizer_blocked_from_admin_route(client: TestClient, db_session):
    register(client, "org@example.com")
    set_role(db_session, "org@example.com", UserRole.ORGANIZER)

    resp = login(client, "org@example.com")
    token = resp.json()["access_token"]

    admin_list = client.get(
        "/v1/admin/users",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert admin_list.status_code == 403


def test_rbac_admin_allowed_everywhere(client: TestClient, db_session):
    register(client, "admin@example.com")
    set_role(db_session, "admin@example.com", UserRole.ADMIN)

    resp = login(client, "admin@example.com")
    token = resp.json()["access_token"]

    admin_list = client.get(
        "/v1/admin/users",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert admin_list.status_code == 200

    ev = client.post(
        "/v1/organizer/events",
        json=_event_payload(title="Admin Kayak Trip"),
        headers={"Authorization": f"Bearer {token}"},
    )
    assert ev.status_code == 201
    assert ev.json()["status"] == "DRAFT"


def test_suspended_user_is_locked_out(client: TestClient, db_session):
    register(client, "admin2@example.com")
    set_role(db_session, "admin2@example.com", UserRole.ADMIN)
    admin_token = login(client, "admin2@example.com").json()["access_token"]

    target = register(client, "target@example.com").json()
    target_token = login(client, "target@example.com").json()["access_token"]

    patch = client.patch(
        f"/v1/admin/users/{target['user_id']}",
        json={"status": "SUSPENDED"},
        headers={"Authorization": f"Bearer {admin_token}"},
    )
    assert patch.status_code == 200
    assert patch.json()["status"] == UserStatus.SUSPENDED.value

    assert client.get("/v1/me", headers={"Authorization": f"Bearer {target_token}"}).status_code == 403
    assert login(client, "target@example.com").status_code == 403


def test_admin_cannot_change_own_role(client: TestClient, db_session):
    admin = register(client, "admin3@example.com").json()
    set_role(db_session, "admin3@example.com", UserRole.ADMIN)
    token = login(client, "admin3@example.com").json()["access_token"]

    resp = client.patch(
        f"/v1/admin/users/{admin['user_id']}",
        json={"role": "USER"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 400


def test_admin_revoke_sessions(client: TestClient, db_session):
    register(client, "admin4@example.com")
    set_role(db_session, "admin4@example.com", UserRole.ADMIN)
    admin_token = login(client, "admin4@example.com").json()["access_token"]

    target = register(client, "target2@example.com").json()
    login(client, "target2@example.com")

    resp = client.post(
        f"/v1/admin/users/{target['user_id']}/revoke-sessions",
        headers={"Authorization": f"Bearer {admin_token}"},
    )
    assert resp.status_code == 200
    # register + login each issued one token
    assert resp.json()["revoked"] == 2

    reasons = db_session.scalars(
        select(RefreshToken.revoked_reason).join(User, User.id == RefreshToken.user_id).where(
            User.email == "target2@example.com"
        )
    ).all()
    assert reasons == ["admin", "admin"]
