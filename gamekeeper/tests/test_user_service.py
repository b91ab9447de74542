"""
Tests for accounts, onboarding, settings, account deletion, data export,
user search and profiles.
"""

import pytest
import pytest_asyncio
from sqlalchemy import select, func

from gamekeeper.database.models import FriendRequest, Game, GameSession, Participant, Result, User
from gamekeeper.services import (
    auth_service,
    friend_service,
    game_session_service,
    stats_service,
    user_service,
)
from gamekeeper.services.errors import ConflictError, NotFoundError, ValidationError

PASSWORD = "password123"


async def _create_user(db_session, name, onboarded=True, private=False):
    user = User(
        email=f"{name}@example.com",
        username=name if onboarded else None,
        password_hash=auth_service.hash_password(PASSWORD),
        has_completed_onboarding=onboarded,
        is_private=private,
    )
    db_session.add(user)
    await db_session.flush()
    return user.id


async def _count(db_session, model, *criteria):
    result = await db_session.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar_one()


@pytest_asyncio.fixture
async def chess(db_session):
    game = Game(name="Chess", is_active=True)
    db_session.add(game)
    await db_session.flush()
    return game.id


# ---------------------------------------------------------------------------
# Accounts and onboarding
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_and_fetch_user(db_session):
    created = await user_service.create_user(db_session, "new@example.com", "hash")
    assert created["has_completed_onboarding"] is False
    assert created["username"] is None

    by_email = await user_service.get_user_by_email(db_session, " NEW@example.com ")
    assert by_email["id"] == created["id"]
    assert (await user_service.get_user_by_id(db_session, created["id"]))["email"] == "new@example.com"
    assert await user_service.get_user_by_id(db_session, 9999) is None


@pytest.mark.asyncio
async def test_create_user_duplicate_email(db_session):
    await user_service.create_user(db_session, "dup@example.com", "hash")
    with pytest.raises(ConflictError):
        await user_service.create_user(db_session, "dup@example.com", "hash")


@pytest.mark.asyncio
async def test_complete_onboarding(db_session):
    user_id = await _create_user(db_session, "fresh", onboarded=False)

    onboarded = await user_service.complete_onboarding(db_session, user_id, "  fresh_player ")
    assert onboarded["username"] == "fresh_player"
    assert onboarded["hasCompletedOnboarding"] is True


@pytest.mark.asyncio
async def test_onboarding_username_too_short(db_session):
    user_id = await _create_user(db_session, "fresh", onboarded=False)
    with pytest.raises(ValidationError):
        await user_service.complete_onboarding(db_session, user_id, " ab ")


@pytest.mark.asyncio
async def test_onboarding_username_taken(db_session):
    await _create_user(db_session, "taken")
    user_id = await _create_user(db_session, "fresh", onboarded=False)

    with pytest.raises(ConflictError) as exc_info:
        await user_service.complete_onboarding(db_session, user_id, "taken")
    assert exc_info.value.message == "Username is already taken"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_settings(db_session):
    user_id = await _create_user(db_session, "alice")

    updated = await user_service.update_settings(db_session, user_id, True)
    assert updated["isPrivate"] is True
    assert "password_hash" not in updated

    settings = await user_service.get_settings(db_session, user_id)
    assert settings["isPrivate"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize("value", ["true", 1, None])
async def test_update_settings_requires_boolean(db_session, value):
    user_id = await _create_user(db_session, "alice")
    with pytest.raises(ValidationError):
        await user_service.update_settings(db_session, user_id, value)


# ---------------------------------------------------------------------------
# Account deletion and export
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_delete_account_requires_correct_password(db_session):
    user_id = await _create_user(db_session, "alice")

    with pytest.raises(ValidationError):
        await user_service.delete_account(db_session, user_id, "")
    with pytest.raises(ValidationError) as exc_info:
        await user_service.delete_account(db_session, user_id, "wrong-password")
    assert exc_info.value.message == "Incorrect password"


@pytest.mark.asyncio
async def test_delete_account_cascades(db_session, chess):
    alice = await _create_user(db_session, "alice")
    bob = await _create_user(db_session, "bob")
    carol = await _create_user(db_session, "carol")

    # Alice's own session, scored by Alice
    own = await game_session_service.create_session(db_session, alice, chess)
    await game_session_service.join_session(db_session, bob, own["id"])
    await game_session_service.submit_score(db_session, alice, own["id"], {"winner": str(alice)})

    # Bob's session, where Alice only confirmed Bob's score
    other = await game_session_service.create_session(db_session, bob, chess)
    await game_session_service.join_session(db_session, alice, other["id"])
    await game_session_service.submit_score(db_session, bob, other["id"], {"winner": str(bob)})
    await game_session_service.confirm_score(db_session, alice, other["id"], "approve")

    await friend_service.send_friend_request(db_session, alice, carol)

    await user_service.delete_account(db_session, alice, PASSWORD)

    assert await user_service.get_user_by_id(db_session, alice) is None
    assert await _count(db_session, GameSession, GameSession.id == own["id"]) == 0
    assert await _count(db_session, Participant, Participant.user_id == alice) == 0
    assert await _count(db_session, FriendRequest, FriendRequest.from_user_id == alice) == 0

    # The result Alice confirmed survives without its confirmer
    surviving = await db_session.execute(
        select(Result.status, Result.approved_by_id).where(Result.game_session_id == other["id"])
    )
    assert surviving.one() == ("APPROVED", None)


@pytest.mark.asyncio
async def test_export_user_data(db_session, chess):
    alice = await _create_user(db_session, "alice")
    bob = await _create_user(db_session, "bob")
    own = await game_session_service.create_session(db_session, alice, chess)
    other = await game_session_service.create_session(db_session, bob, chess)
    await game_session_service.join_session(db_session, alice, other["code"])
    await friend_service.send_friend_request(db_session, bob, alice)

    export = await user_service.export_user_data(db_session, alice)

    assert export["user"]["username"] == "alice"
    assert "password_hash" not in export["user"]
    assert [s["code"] for s in export["gameSessions"]] == [own["code"]]
    assert {p["sessionCode"] for p in export["participations"]} == {own["code"], other["code"]}
    assert export["friendRequests"]["sent"] == []
    assert export["friendRequests"]["received"][0]["fromUser"]["username"] == "bob"


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_search_users(db_session):
    alice = await _create_user(db_session, "alice")
    alfred = await _create_user(db_session, "alfred")
    await _create_user(db_session, "bob")
    await _create_user(db_session, "alwyn", onboarded=False)
    await friend_service.send_friend_request(db_session, alice, alfred)

    hits = await user_service.search_users(db_session, alice, "AL")

    # Caller and non-onboarded users never appear
    assert [h["username"] for h in hits] == ["alfred"]
    assert hits[0]["friendshipStatus"] == "PENDING"
    assert "password_hash" not in hits[0]


@pytest.mark.asyncio
async def test_search_matches_email_and_respects_limit(db_session):
    caller = await _create_user(db_session, "caller")
    for name in ("player1", "player2", "player3"):
        await _create_user(db_session, name)

    hits = await user_service.search_users(db_session, caller, "example.com", limit=2)
    assert [h["username"] for h in hits] == ["player1", "player2"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(db_session):
    caller = await _create_user(db_session, "caller")
    await _create_user(db_session, "percy")

    assert await user_service.search_users(db_session, caller, "%%") == []


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", " a ", None])
async def test_search_query_too_short(db_session, query):
    caller = await _create_user(db_session, "caller")
    with pytest.raises(ValidationError):
        await user_service.search_users(db_session, caller, query)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_profile_with_stats(db_session, chess):
    alice = await _create_user(db_session, "alice")
    bob = await _create_user(db_session, "bob")

    won = await game_session_service.create_session(db_session, alice, chess)
    await game_session_service.join_session(db_session, bob, won["id"])
    await game_session_service.submit_score(db_session, alice, won["id"], {"winner": str(alice)})
    await game_session_service.confirm_score(db_session, bob, won["id"], "approve")

    pending = await game_session_service.create_session(db_session, alice, chess)
    await game_session_service.join_session(db_session, bob, pending["id"])
    await game_session_service.submit_score(db_session, bob, pending["id"], {"winner": str(bob)})

    profile = await stats_service.get_profile(db_session, "alice", viewer_id=bob)

    assert profile["isPrivate"] is False
    assert profile["totalSessions"] == 2
    assert profile["stats"]["wins"] == 1
    assert profile["stats"]["losses"] == 0
    assert profile["stats"]["gameStats"]["Chess"]["total"] == 2
    outcomes = {s["id"]: s["outcome"] for s in profile["recentSessions"]}
    assert outcomes == {won["id"]: "WIN", pending["id"]: "UNKNOWN"}


@pytest.mark.asyncio
async def test_private_profile(db_session):
    owner = await _create_user(db_session, "hidden", private=True)
    viewer = await _create_user(db_session, "viewer")

    limited = await stats_service.get_profile(db_session, "hidden", viewer_id=viewer)
    assert limited["isPrivate"] is True
    assert limited["message"] == "This profile is private."
    assert "stats" not in limited

    anonymous = await stats_service.get_profile(db_session, "hidden")
    assert "stats" not in anonymous

    own = await stats_service.get_profile(db_session, "hidden", viewer_id=owner)
    assert "stats" in own


@pytest.mark.asyncio
async def test_profile_not_found(db_session):
    with pytest.raises(NotFoundError):
        await stats_service.get_profile(db_session, "ghost")


@pytest.mark.asyncio
async def test_table_counts(db_session, chess):
    alice = await _create_user(db_session, "alice")
    await game_session_service.create_session(db_session, alice, chess)

    counts = await stats_service.get_table_counts(db_session)
    assert counts == {
        "userCount": 1,
        "gameCount": 1,
        "sessionCount": 1,
        "participantCount": 1,
        "resultCount": 0,
    }
