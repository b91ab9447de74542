"""
User service layer for accounts, onboarding, settings and user search.
"""

from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, and_, or_, func
from sqlalchemy.orm import selectinload
from gamekeeper.database.models import (
    FriendRequest,
    GameSession,
    Participant,
    User,
)
from gamekeeper.services import auth_service, friend_service
from gamekeeper.services.errors import ConflictError, NotFoundError, ValidationError
from gamekeeper.utils import constants
from gamekeeper.utils.datetime_utils import isoformat_or_none, utcnow
import logging

logger = logging.getLogger(__name__)


def _user_to_dict(user: User) -> Dict:
    """Internal representation used by auth dependencies and routes."""
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "password_hash": user.password_hash,
        "is_private": user.is_private,
        "has_completed_onboarding": user.has_completed_onboarding,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


def format_account(user: User) -> Dict:
    """Public account shape returned by the API (never includes the hash)."""
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "isPrivate": user.is_private,
        "hasCompletedOnboarding": user.has_completed_onboarding,
        "createdAt": isoformat_or_none(user.created_at),
        "updatedAt": isoformat_or_none(user.updated_at),
    }


async def _require_user(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def create_user(session: AsyncSession, email: str, password_hash: str) -> Dict:
    """
    Create a new user account.

    Args:
        session: Database session
        email: Normalized email address
        password_hash: bcrypt hash of the password

    Returns:
        User dictionary

    Raises:
        ConflictError: If the email is already registered
    """
    result = await session.execute(select(User.id).where(User.email == email))
    if result.scalar_one_or_none():
        raise ConflictError("An account with this email already exists")

    new_user = User(email=email, password_hash=password_hash)
    try:
        async with session.begin_nested():
            session.add(new_user)
    except IntegrityError:
        raise ConflictError("An account with this email already exists")

    await session.refresh(new_user)
    logger.info(f"Created user {new_user.id}")
    return _user_to_dict(new_user)


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[Dict]:
    """
    Get user by email.

    Args:
        session: Database session
        email: Email address (normalized to lowercase)

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(
        select(User).where(User.email == auth_service.normalize_email(email)).limit(1)
    )
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dictionary or None if not found
    """
    user = await session.get(User, user_id)
    return _user_to_dict(user) if user else None


async def complete_onboarding(session: AsyncSession, user_id: int, username: str) -> Dict:
    """
    Set the username once and mark onboarding complete.

    Raises:
        ValidationError: If the trimmed username is too short
        ConflictError: If the username is already taken
    """
    username = (username or "").strip()
    if len(username) < constants.MIN_USERNAME_LENGTH:
        raise ValidationError(
            f"Username must be at least {constants.MIN_USERNAME_LENGTH} characters long"
        )

    user = await _require_user(session, user_id)

    taken = await session.execute(
        select(User.id).where(and_(User.username == username, User.id != user_id))
    )
    if taken.scalar_one_or_none():
        raise ConflictError("Username is already taken")

    try:
        async with session.begin_nested():
            user.username = username
            user.has_completed_onboarding = True
            user.updated_at = utcnow()
    except IntegrityError:
        raise ConflictError("Username is already taken")

    logger.info(f"User {user_id} completed onboarding as {username!r}")
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "hasCompletedOnboarding": user.has_completed_onboarding,
    }


async def get_settings(session: AsyncSession, user_id: int) -> Dict:
    user = await _require_user(session, user_id)
    return format_account(user)


async def update_settings(session: AsyncSession, user_id: int, is_private) -> Dict:
    """
    Update account privacy.

    Raises:
        ValidationError: If is_private is not a boolean
    """
    if not isinstance(is_private, bool):
        raise ValidationError("isPrivate must be a boolean value")

    user = await _require_user(session, user_id)
    user.is_private = is_private
    user.updated_at = utcnow()
    await session.flush()
    logger.info(f"User {user_id} set is_private={is_private}")
    return format_account(user)


async def delete_account(session: AsyncSession, user_id: int, password: Optional[str]) -> None:
    """
    Delete the caller's account and everything it owns.

    Sessions the user created, their participations, the results they entered
    and their friend requests go with it; results they only confirmed stay,
    with approved_by cleared.

    Raises:
        ValidationError: If the password is missing or incorrect
        NotFoundError: If the user does not exist
    """
    if not password:
        raise ValidationError("Password is required to delete account")

    user = await _require_user(session, user_id)
    if user.password_hash and not auth_service.verify_password(password, user.password_hash):
        raise ValidationError("Incorrect password")

    await session.delete(user)
    await session.flush()
    logger.info(f"Deleted account {user_id}")


def _brief_user(user: User) -> Dict:
    return {"id": user.id, "username": user.username, "email": user.email}


def _brief_result(result) -> Optional[Dict]:
    if result is None:
        return None
    return {
        "id": result.id,
        "status": result.status,
        "createdAt": isoformat_or_none(result.created_at),
    }


async def export_user_data(session: AsyncSession, user_id: int) -> Dict:
    """
    Collect everything stored about a user for a data export download.

    Returns:
        Dict with user, gameSessions (created), participations and friendRequests
    """
    user = await _require_user(session, user_id)

    created_result = await session.execute(
        select(GameSession)
        .options(
            selectinload(GameSession.game),
            selectinload(GameSession.participants).selectinload(Participant.user),
            selectinload(GameSession.result),
        )
        .where(GameSession.creator_id == user_id)
        .order_by(GameSession.created_at.desc())
    )
    participation_result = await session.execute(
        select(Participant)
        .options(
            selectinload(Participant.game_session).selectinload(GameSession.game),
            selectinload(Participant.game_session).selectinload(GameSession.result),
        )
        .where(Participant.user_id == user_id)
        .order_by(Participant.joined_at.desc())
    )
    sent_result = await session.execute(
        select(FriendRequest)
        .options(selectinload(FriendRequest.to_user))
        .where(FriendRequest.from_user_id == user_id)
        .order_by(FriendRequest.created_at.desc())
    )
    received_result = await session.execute(
        select(FriendRequest)
        .options(selectinload(FriendRequest.from_user))
        .where(FriendRequest.to_user_id == user_id)
        .order_by(FriendRequest.created_at.desc())
    )

    return {
        "user": format_account(user),
        "gameSessions": [
            {
                "id": gs.id,
                "code": gs.code,
                "gameName": gs.game.name if gs.game else None,
                "isActive": gs.is_active,
                "createdAt": isoformat_or_none(gs.created_at),
                "participants": [
                    {"userId": p.user.id, "username": p.user.username, "email": p.user.email}
                    for p in gs.participants
                ],
                "result": _brief_result(gs.result),
            }
            for gs in created_result.scalars().all()
        ],
        "participations": [
            {
                "sessionId": p.game_session.id,
                "sessionCode": p.game_session.code,
                "gameName": p.game_session.game.name if p.game_session.game else None,
                "isActive": p.game_session.is_active,
                "createdAt": isoformat_or_none(p.game_session.created_at),
                "result": _brief_result(p.game_session.result),
            }
            for p in participation_result.scalars().all()
        ],
        "friendRequests": {
            "sent": [
                {
                    "id": req.id,
                    "status": req.status,
                    "createdAt": isoformat_or_none(req.created_at),
                    "toUser": _brief_user(req.to_user),
                }
                for req in sent_result.scalars().all()
            ],
            "received": [
                {
                    "id": req.id,
                    "status": req.status,
                    "createdAt": isoformat_or_none(req.created_at),
                    "fromUser": _brief_user(req.from_user),
                }
                for req in received_result.scalars().all()
            ],
        },
    }


async def search_users(
    session: AsyncSession, user_id: int, query: Optional[str], limit: int = 10
) -> List[Dict]:
    """
    Search onboarded users by username or email substring (case-insensitive).

    The caller is excluded; each hit carries the caller's friendshipStatus.

    Args:
        session: Database session
        user_id: Current user
        query: Search text (at least two characters once trimmed)
        limit: Max results

    Returns:
        List of user dicts ordered by username

    Raises:
        ValidationError: If the query is shorter than two characters
    """
    term = (query or "").strip()
    if len(term) < constants.MIN_SEARCH_QUERY_LENGTH:
        raise ValidationError(
            f"Search query must be at least {constants.MIN_SEARCH_QUERY_LENGTH} characters long"
        )

    needle = term.lower()
    result = await session.execute(
        select(User)
        .where(
            and_(
                or_(
                    func.lower(User.username).contains(needle, autoescape=True),
                    func.lower(User.email).contains(needle, autoescape=True),
                ),
                User.id != user_id,
                User.has_completed_onboarding == True,  # noqa: E712
            )
        )
        .order_by(User.username.asc())
        .limit(limit)
    )
    users = result.scalars().all()

    statuses = await friend_service.batch_friendship_status(
        session, user_id, [u.id for u in users]
    )
    items = []
    for user in users:
        item = friend_service.format_public_user(user)
        item["friendshipStatus"] = statuses.get(user.id, "NONE")
        items.append(item)
    return items
