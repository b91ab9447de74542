"""
Route-level tests: request parsing, auth and the mapping of service errors
to HTTP status codes. Services are replaced with fakes; no database is used.
"""

import json

from fastapi.testclient import TestClient

from gamekeeper.api.main import app
from gamekeeper.services import (
    auth_service,
    friend_service,
    game_service,
    game_session_service,
    stats_service,
    user_service,
)
from gamekeeper.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)


def make_client_with_auth(monkeypatch, user_id=1, email="player@example.com"):
    def fake_verify_token(token):
        return {"user_id": user_id}

    async def fake_get_user_by_id(session, uid):
        return {
            "id": user_id,
            "email": email,
            "username": "player",
            "password_hash": None,
            "is_private": False,
            "has_completed_onboarding": True,
            "created_at": None,
            "updated_at": None,
        }

    monkeypatch.setattr(auth_service, "verify_token", fake_verify_token, raising=True)
    monkeypatch.setattr(user_service, "get_user_by_id", fake_get_user_by_id, raising=True)
    return TestClient(app), {"Authorization": "Bearer dummy"}


def fake_session(session_id=7, status="ACTIVE"):
    return {"id": session_id, "code": "AB123456", "sessionStatus": status, "participants": []}


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def test_protected_route_requires_token():
    client = TestClient(app)
    r = client.get("/api/sessions/AB123456")
    assert r.status_code == 401
    assert r.json()["detail"] == "Unauthorized"


def test_invalid_token_is_rejected(monkeypatch):
    monkeypatch.setattr(auth_service, "verify_token", lambda token: None, raising=True)
    client = TestClient(app)
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid authentication token"


def test_token_from_cookie(monkeypatch):
    client, _ = make_client_with_auth(monkeypatch, user_id=3)
    client.cookies.set(auth_service.SESSION_COOKIE_NAME, "dummy")
    r = client.get("/api/auth/me")
    assert r.status_code == 200
    body = r.json()
    assert body["id"] == 3
    assert body["hasCompletedOnboarding"] is True
    assert "password_hash" not in body


def test_register_validates_input():
    client = TestClient(app)
    r = client.post("/api/auth/register", json={"email": "no-at-sign", "password": "password123"})
    assert r.status_code == 400
    r = client.post("/api/auth/register", json={"email": "a@example.com", "password": "short"})
    assert r.status_code == 400


def test_register_sets_cookie(monkeypatch):
    async def fake_create_user(session, email, password_hash):
        assert auth_service.verify_password("password123", password_hash)
        return {
            "id": 11,
            "email": email,
            "username": None,
            "password_hash": password_hash,
            "is_private": False,
            "has_completed_onboarding": False,
            "created_at": None,
            "updated_at": None,
        }

    monkeypatch.setattr(user_service, "create_user", fake_create_user, raising=True)
    client = TestClient(app)

    r = client.post("/api/auth/register", json={"email": " New@Example.com", "password": "password123"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "new@example.com"
    assert auth_service.verify_token(body["access_token"])["user_id"] == 11
    assert auth_service.SESSION_COOKIE_NAME in r.cookies


def test_register_duplicate_email(monkeypatch):
    async def fake_create_user(session, email, password_hash):
        raise ConflictError("An account with this email already exists")

    monkeypatch.setattr(user_service, "create_user", fake_create_user, raising=True)
    r = TestClient(app).post(
        "/api/auth/register", json={"email": "a@example.com", "password": "password123"}
    )
    assert r.status_code == 400


def test_login_wrong_password(monkeypatch):
    async def fake_get_user_by_email(session, email):
        return {"id": 1, "password_hash": auth_service.hash_password("right-password")}

    monkeypatch.setattr(user_service, "get_user_by_email", fake_get_user_by_email, raising=True)
    r = TestClient(app).post(
        "/api/auth/login", json={"email": "a@example.com", "password": "wrong-password"}
    )
    assert r.status_code == 401
    assert r.json()["detail"] == "Email or password is incorrect"


def test_onboarding_conflict(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    async def fake_complete_onboarding(session, user_id, username):
        raise ConflictError("Username is already taken")

    monkeypatch.setattr(user_service, "complete_onboarding", fake_complete_onboarding, raising=True)
    r = client.post("/api/auth/onboard", json={"username": "taken"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Username is already taken"


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def test_create_session_accepts_camel_case(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, user_id=5)
    calls = []

    async def fake_create_session(session, user_id, game_id):
        calls.append((user_id, game_id))
        return fake_session()

    monkeypatch.setattr(game_session_service, "create_session", fake_create_session, raising=True)

    r = client.post("/api/sessions", json={"gameId": 2}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["session"]["code"] == "AB123456"
    assert calls == [(5, 2)]


def test_join_messages(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)
    joined = iter([True, False])

    async def fake_join_session(session, user_id, id_or_code):
        return {"session": fake_session(), "joined": next(joined)}

    monkeypatch.setattr(game_session_service, "join_session", fake_join_session, raising=True)

    first = client.post("/api/sessions/ab123456/join", headers=headers)
    second = client.post("/api/sessions/ab123456/join", headers=headers)
    assert first.json()["message"] == "Joined session successfully"
    assert second.json()["message"] == "Already a participant"


def test_service_errors_map_to_status_codes(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)
    errors = iter(
        [
            NotFoundError("Session not found"),
            ForbiddenError("You must be a participant to submit scores"),
            ConflictError("Score has already been submitted for this session"),
            ValidationError("Score data is required"),
        ]
    )

    async def fake_submit_score(session, user_id, id_or_code, score_data):
        raise next(errors)

    monkeypatch.setattr(game_session_service, "submit_score", fake_submit_score, raising=True)

    codes = [
        client.post(
            "/api/sessions/7/submit-score", json={"scoreData": {"winner": "1"}}, headers=headers
        ).status_code
        for _ in range(4)
    ]
    assert codes == [404, 403, 400, 400]


def test_unexpected_error_is_500(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    async def fake_get_session(session, id_or_code):
        raise RuntimeError("boom")

    monkeypatch.setattr(game_session_service, "get_session", fake_get_session, raising=True)
    r = client.get("/api/sessions/7", headers=headers)
    assert r.status_code == 500
    assert r.json()["detail"] == "Error fetching session"


def test_confirm_score_message(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, user_id=2)

    async def fake_confirm_score(session, user_id, id_or_code, action):
        return {"id": 1, "status": "REJECTED", "approvedById": user_id}

    monkeypatch.setattr(game_session_service, "confirm_score", fake_confirm_score, raising=True)
    r = client.post("/api/sessions/7/confirm-score", json={"action": "reject"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Score rejected successfully"
    assert r.json()["result"]["approvedById"] == 2


def test_patch_session_only_supports_end(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    async def fake_end_session(session, user_id, id_or_code):
        return fake_session(status="INACTIVE")

    monkeypatch.setattr(game_session_service, "end_session", fake_end_session, raising=True)

    r = client.patch("/api/sessions/7", json={"action": "pause"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid action"

    r = client.patch("/api/sessions/7", json={"action": "end"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["session"]["sessionStatus"] == "INACTIVE"


def test_delete_session_forbidden(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    async def fake_delete_session(session, user_id, id_or_code):
        raise ForbiddenError("Only the session creator can delete this session")

    monkeypatch.setattr(game_session_service, "delete_session", fake_delete_session, raising=True)
    r = client.delete("/api/sessions/7", headers=headers)
    assert r.status_code == 403


# ---------------------------------------------------------------------------
# Friends, users and profiles
# ---------------------------------------------------------------------------


def test_friend_request_to_self(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    async def fake_send_friend_request(session, from_user_id, to_user_id):
        raise ValidationError("You cannot send a friend request to yourself")

    monkeypatch.setattr(friend_service, "send_friend_request", fake_send_friend_request, raising=True)
    r = client.post("/api/friends/request", json={"toUserId": 1}, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "You cannot send a friend request to yourself"


def test_friend_list_count(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    async def fake_get_friends(session, user_id):
        return [{"id": 2, "username": "bob"}, {"id": 3, "username": "carol"}]

    monkeypatch.setattr(friend_service, "get_friends", fake_get_friends, raising=True)
    r = client.get("/api/friends/list", headers=headers)
    assert r.json()["totalCount"] == 2


def test_search_passes_query_and_limit(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, user_id=4)
    seen = {}

    async def fake_search_users(session, user_id, query, limit=10):
        seen.update(user_id=user_id, query=query, limit=limit)
        return [{"id": 9, "username": "alfred", "friendshipStatus": "NONE"}]

    monkeypatch.setattr(user_service, "search_users", fake_search_users, raising=True)
    r = client.get("/api/users/search", params={"q": "al", "limit": 5}, headers=headers)
    assert r.status_code == 200
    assert r.json()["totalCount"] == 1
    assert seen == {"user_id": 4, "query": "al", "limit": 5}


def test_search_limit_is_bounded(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)
    r = client.get("/api/users/search", params={"q": "al", "limit": 500}, headers=headers)
    assert r.status_code == 422


def test_export_data_is_a_download(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    async def fake_export_user_data(session, user_id):
        return {"user": {"id": user_id}, "gameSessions": [], "participations": [], "friendRequests": {}}

    monkeypatch.setattr(user_service, "export_user_data", fake_export_user_data, raising=True)
    r = client.get("/api/user/export-data", headers=headers)
    assert r.status_code == 200
    assert "attachment; filename=\"gamekeeper-data-" in r.headers["content-disposition"]
    assert json.loads(r.content)["user"]["id"] == 1


def test_public_profile_without_login(monkeypatch):
    seen = {}

    async def fake_get_profile(session, username, viewer_id=None):
        seen["viewer_id"] = viewer_id
        raise NotFoundError("User not found")

    monkeypatch.setattr(stats_service, "get_profile", fake_get_profile, raising=True)
    r = TestClient(app).get("/api/profile/ghost")
    assert r.status_code == 404
    assert seen == {"viewer_id": None}


def test_games_and_health(monkeypatch):
    async def fake_list_active_games(session):
        return [{"id": 1, "name": "Chess"}]

    async def fake_get_table_counts(session):
        return {"userCount": 0}

    monkeypatch.setattr(game_service, "list_active_games", fake_list_active_games, raising=True)
    monkeypatch.setattr(stats_service, "get_table_counts", fake_get_table_counts, raising=True)
    client = TestClient(app)

    assert client.get("/api/games").json() == {"games": [{"id": 1, "name": "Chess"}]}
    health = client.get("/api/health").json()
    assert health["status"] == "healthy"
    assert health["data"] == {"userCount": 0}


def test_health_reports_database_failure(monkeypatch):
    async def failing_counts(session):
        raise RuntimeError("database is down")

    monkeypatch.setattr(stats_service, "get_table_counts", failing_counts, raising=True)
    r = TestClient(app).get("/api/health")
    assert r.status_code == 500
    assert r.json()["status"] == "unhealthy"
