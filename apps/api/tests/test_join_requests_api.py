from __future__ import annotations

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor

from fastapi.testclient import TestClient
from sqlalchemy import func, select

from uaetrail.main import app
from uaetrail.models import Event, Participant
from tests.test_events_integration import (
    _auth_headers,
    _create_event,
    _make_organizer,
    _make_user,
    _publish,
)


def _published_event(client: TestClient, token: str, **overrides) -> str:
    event_id = _create_event(client, token, **overrides).json()["id"]
    assert _publish(client, token, event_id).status_code == 200
    return event_id


def _request_to_join(client: TestClient, token: str, event_id: str, note: str | None = None):
    body = {"note": note} if note is not None else None
    return client.post(f"/v1/events/{event_id}/requests", json=body, headers=_auth_headers(token))


def _decide(client: TestClient, token: str, request_id: str, status: str, note: str | None = None):
    return client.patch(
        f"/v1/organizer/requests/{request_id}",
        json={"status": status, "organizer_note": note},
        headers=_auth_headers(token),
    )


def test_request_approve_flow(client: TestClient, db_session):
    organizer_token = _make_organizer(client, db_session, "guide1@example.com")
    user_token = _make_user(client, "hiker1@example.com")
    event_id = _published_event(client, organizer_token, capacity=2)

    submitted = _request_to_join(client, user_token, event_id, note="first time in Hatta")
    assert submitted.status_code == 201
    request_id = submitted.json()["id"]
    assert submitted.json()["status"] == "PENDING"

    queue = client.get(
        "/v1/organizer/requests",
        params={"status": "PENDING"},
        headers=_auth_headers(organizer_token),
    )
    assert queue.status_code == 200
    assert [r["id"] for r in queue.json()] == [request_id]
    assert queue.json()[0]["user"]["email"] == "hiker1@example.com"

    decision = _decide(client, organizer_token, request_id, "approved", note="welcome")
    assert decision.status_code == 200
    body = decision.json()
    assert body["message"] == "Request approved."
    assert body["request"]["status"] == "APPROVED"
    assert body["participant_id"]

    event = client.get(f"/v1/events/{event_id}").json()
    assert event["participant_count"] == 1
    assert event["slots_available"] == 1

    trips = client.get("/v1/me/trips", headers=_auth_headers(user_token)).json()
    assert [t["id"] for t in trips] == [event_id]

    mine = client.get("/v1/me/requests", headers=_auth_headers(user_token)).json()
    assert mine[0]["status"] == "APPROVED"
    assert mine[0]["event"]["id"] == event_id

    notes = client.get("/v1/me/notifications", headers=_auth_headers(user_token)).json()
    assert len(notes) == 1
    assert notes[0]["is_read"] is False

    read = client.patch(
        f"/v1/me/notifications/{notes[0]['id']}/read", headers=_auth_headers(user_token)
    )
    assert read.status_code == 200
    assert read.json()["is_read"] is True


def test_reject_then_reject_again_conflicts(client: TestClient, db_session):
    organizer_token = _make_organizer(client, db_session, "guide2@example.com")
    user_token = _make_user(client, "hiker2@example.com")
    event_id = _published_event(client, organizer_token)

    request_id = _request_to_join(client, user_token, event_id).json()["id"]

    first = _decide(client, organizer_token, request_id, "rejected")
    assert first.status_code == 200
    assert first.json()["message"] == "Request rejected."
    assert first.json()["participant_id"] is None

    second = _decide(client, organizer_token, request_id, "rejected")
    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "request_finalized"


def test_foreign_organizer_sees_not_found(client: TestClient, db_session):
    owner_token = _make_organizer(client, db_session, "guide3@example.com")
    rival_token = _make_organizer(client, db_session, "guide4@example.com")
    user_token = _make_user(client, "hiker3@example.com")
    event_id = _published_event(client, owner_token)

    request_id = _request_to_join(client, user_token, event_id).json()["id"]

    resp = _decide(client, rival_token, request_id, "approved")
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "request_not_found"

    rival_queue = client.get("/v1/organizer/requests", headers=_auth_headers(rival_token))
    assert rival_queue.json() == []


def test_user_cannot_decide_requests(client: TestClient, db_session):
    organizer_token = _make_organizer(client, db_session, "guide5@example.com")
    user_token = _make_user(client, "hiker5@example.com")
    event_id = _published_event(client, organizer_token)
    request_id = _request_to_join(client, user_token, event_id).json()["id"]

    resp = _decide(client, user_token, request_id, "approved")
    assert resp.status_code == 403


def test_duplicate_request_conflicts(client: TestClient, db_session):
    organizer_token = _make_organizer(client, db_session, "guide6@example.com")
    user_token = _make_user(client, "hiker6@example.com")
    event_id = _published_event(client, organizer_token)

    assert _request_to_join(client, user_token, event_id).status_code == 201
    again = _request_to_join(client, user_token, event_id)
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "request_exists"


def test_cancel_approved_request_frees_slot(client: TestClient, db_session):
    organizer_token = _make_organizer(client, db_session, "guide7@example.com")
    user_a = _make_user(client, "hiker7a@example.com")
    user_b = _make_user(client, "hiker7b@example.com")
    event_id = _published_event(client, organizer_token, capacity=1)

    request_a = _request_to_join(client, user_a, event_id).json()["id"]
    request_b = _request_to_join(client, user_b, event_id).json()["id"]

    assert _decide(client, organizer_token, request_a, "approved").status_code == 200
    full = _decide(client, organizer_token, request_b, "approved")
    assert full.status_code == 409
    assert full.json()["detail"]["code"] == "event_full"

    cancel = client.patch(
        f"/v1/events/{event_id}/requests/{request_a}/cancel", headers=_auth_headers(user_a)
    )
    assert cancel.status_code == 200
    assert cancel.json()["status"] == "CANCELLED"
    assert client.get(f"/v1/events/{event_id}").json()["participant_count"] == 0

    assert _decide(client, organizer_token, request_b, "approved").status_code == 200


def test_cancel_with_wrong_event_is_not_found(client: TestClient, db_session):
    organizer_token = _make_organizer(client, db_session, "guide8@example.com")
    user_token = _make_user(client, "hiker8@example.com")
    event_id = _published_event(client, organizer_token)
    request_id = _request_to_join(client, user_token, event_id).json()["id"]

    resp = client.patch(
        f"/v1/events/{uuid.uuid4()}/requests/{request_id}/cancel", headers=_auth_headers(user_token)
    )
    assert resp.status_code == 404


def test_lowering_capacity_below_participants_conflicts(client: TestClient, db_session):
    organizer_token = _make_organizer(client, db_session, "guide9@example.com")
    event_id = _published_event(client, organizer_token, capacity=3)

    for i in range(2):
        token = _make_user(client, f"hiker9{i}@example.com")
        request_id = _request_to_join(client, token, event_id).json()["id"]
        assert _decide(client, organizer_token, request_id, "approved").status_code == 200

    resp = client.patch(
        f"/v1/organizer/events/{event_id}",
        json={"capacity": 1},
        headers=_auth_headers(organizer_token),
    )
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "capacity_below_participants"


def test_participants_roster_and_check_in(client: TestClient, db_session):
    organizer_token = _make_organizer(client, db_session, "guide10@example.com")
    user_token = _make_user(client, "hiker10@example.com")
    event_id = _published_event(client, organizer_token)
    request_id = _request_to_join(client, user_token, event_id).json()["id"]
    participant_id = _decide(client, organizer_token, request_id, "approved").json()["participant_id"]

    roster = client.get(
        f"/v1/organizer/events/{event_id}/participants", headers=_auth_headers(organizer_token)
    )
    assert roster.status_code == 200
    assert [p["id"] for p in roster.json()] == [participant_id]
    assert roster.json()[0]["user"]["email"] == "hiker10@example.com"

    check_in_url = f"/v1/organizer/events/{event_id}/participants/{participant_id}/check-in"
    first = client.post(check_in_url, headers=_auth_headers(organizer_token))
    assert first.status_code == 200
    assert first.json()["checked_in_at"] is not None

    second = client.post(check_in_url, headers=_auth_headers(organizer_token))
    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "already_checked_in"


def test_concurrent_approvals_for_last_seat(client: TestClient, db_session):
    organizer_token = _make_organizer(client, db_session, "guide11@example.com")
    event_id = _published_event(client, organizer_token, capacity=1)

    token_a = _make_user(client, "hiker11a@example.com")
    token_b = _make_user(client, "hiker11b@example.com")
    request_a = _request_to_join(client, token_a, event_id).json()["id"]
    request_b = _request_to_join(client, token_b, event_id).json()["id"]

    barrier = threading.Barrier(2)

    def _approve_call(request_id: str):
        with TestClient(app) as local_client:
            barrier.wait()
            return _decide(local_client, organizer_token, request_id, "approved")

    with ThreadPoolExecutor(max_workers=2) as executor:
        futures = [executor.submit(_approve_call, request_a), executor.submit(_approve_call, request_b)]
        responses = [f.result() for f in futures]

    statuses = [resp.status_code for resp in responses]
    assert statuses.count(200) == 1
    assert statuses.count(409) == 1

    conflict = next(resp for resp in responses if resp.status_code == 409)
    assert conflict.json()["detail"]["code"] == "event_full"

    event_uuid = uuid.UUID(event_id)
    count = db_session.scalar(
        select(func.count()).select_from(Participant).where(Participant.event_id == event_uuid)
    )
    assert count == 1
    event = db_session.get(Event, event_uuid, populate_existing=True)
    assert event.participant_count == 1
