"""
Friend service for managing friend requests and friendships.

Handles sending and answering requests, listing friends (derived from
ACCEPTED requests), listing requests, and annotating users with their
friendship status relative to the caller.
"""

from typing import Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from gamekeeper.database.models import (
    FriendRequest,
    FriendRequestStatus,
    FriendshipStatus,
    User,
)
from gamekeeper.services.errors import ConflictError, NotFoundError, ValidationError
from gamekeeper.utils.datetime_utils import isoformat_or_none, utcnow
import logging

logger = logging.getLogger(__name__)

RESPOND_ACTIONS = {
    "accept": FriendRequestStatus.ACCEPTED,
    "reject": FriendRequestStatus.REJECTED,
}


def normalized_pair(user_id: int, other_user_id: int) -> tuple:
    """Return (low, high) for an unordered pair of user ids."""
    return (user_id, other_user_id) if user_id < other_user_id else (other_user_id, user_id)


def format_public_user(user: User) -> Dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "isPrivate": user.is_private,
        "createdAt": isoformat_or_none(user.created_at),
    }


async def get_request_between(
    session: AsyncSession, user_id: int, other_user_id: int
):
    """
    Get the friend request between two users, whichever of them sent it.

    Args:
        session: Database session
        user_id: First user ID
        other_user_id: Second user ID

    Returns:
        FriendRequest or None
    """
    low, high = normalized_pair(user_id, other_user_id)
    result = await session.execute(
        select(FriendRequest).where(
            and_(FriendRequest.user_low_id == low, FriendRequest.user_high_id == high)
        )
    )
    return result.scalar_one_or_none()


async def send_friend_request(
    session: AsyncSession, from_user_id: int, to_user_id: int
) -> Dict:
    """
    Send a friend request from one user to another.

    At most one request may ever exist per pair of users, in either direction.
    The pair is enforced by a unique constraint on the normalized ids.

    Args:
        session: Database session
        from_user_id: User sending the request (the caller)
        to_user_id: User receiving the request

    Returns:
        Dict with friend request data

    Raises:
        ValidationError: If the caller targets themselves
        NotFoundError: If the target user does not exist
        ConflictError: If a request already exists between the two users
    """
    if from_user_id == to_user_id:
        raise ValidationError("You cannot send a friend request to yourself")

    target = await session.get(User, to_user_id)
    if not target:
        raise NotFoundError("User not found")

    if await get_request_between(session, from_user_id, to_user_id):
        raise ConflictError("Friend request already exists")

    low, high = normalized_pair(from_user_id, to_user_id)
    friend_request = FriendRequest(
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        user_low_id=low,
        user_high_id=high,
        status=FriendRequestStatus.PENDING.value,
    )
    try:
        async with session.begin_nested():
            session.add(friend_request)
    except IntegrityError:
        # A concurrent request for the same pair landed first
        raise ConflictError("Friend request already exists")

    await session.refresh(friend_request)
    logger.info(f"User {from_user_id} sent friend request {friend_request.id} to {to_user_id}")

    return {
        "id": friend_request.id,
        "status": friend_request.status,
        "createdAt": isoformat_or_none(friend_request.created_at),
        "toUser": {"id": target.id, "username": target.username, "email": target.email},
    }


async def respond_to_friend_request(
    session: AsyncSession, user_id: int, request_id: int, action: str
) -> Dict:
    """
    Accept or reject a pending friend request addressed to the caller.

    Args:
        session: Database session
        user_id: The caller, who must be the recipient
        request_id: Friend request ID
        action: "accept" or "reject"

    Returns:
        Dict with updated friend request data

    Raises:
        ValidationError: If the action is not accept/reject
        NotFoundError: If no pending request with this id is addressed to the caller
    """
    new_status = RESPOND_ACTIONS.get(action)
    if new_status is None:
        raise ValidationError("Action must be 'accept' or 'reject'")

    result = await session.execute(
        select(FriendRequest)
        .options(selectinload(FriendRequest.from_user))
        .where(
            and_(
                FriendRequest.id == request_id,
                FriendRequest.to_user_id == user_id,
                FriendRequest.status == FriendRequestStatus.PENDING.value,
            )
        )
    )
    friend_request = result.scalar_one_or_none()
    if not friend_request:
        raise NotFoundError("Friend request not found or already processed")

    friend_request.status = new_status.value
    friend_request.updated_at = utcnow()
    await session.flush()

    logger.info(f"User {user_id} {new_status.value.lower()} friend request {request_id}")

    sender = friend_request.from_user
    return {
        "id": friend_request.id,
        "status": friend_request.status,
        "fromUser": {"id": sender.id, "username": sender.username, "email": sender.email},
    }


async def get_friends(session: AsyncSession, user_id: int) -> List[Dict]:
    """
    Get the caller's friends, most recently befriended first.

    A friend is the other party of an ACCEPTED request in either direction.

    Args:
        session: Database session
        user_id: User to get friends for

    Returns:
        List of friend dicts (public user fields plus friendshipDate)
    """
    result = await session.execute(
        select(FriendRequest)
        .options(
            selectinload(FriendRequest.from_user),
            selectinload(FriendRequest.to_user),
        )
        .where(
            and_(
                FriendRequest.status == FriendRequestStatus.ACCEPTED.value,
                or_(
                    FriendRequest.from_user_id == user_id,
                    FriendRequest.to_user_id == user_id,
                ),
            )
        )
        .order_by(FriendRequest.updated_at.desc(), FriendRequest.id.desc())
    )

    friends = []
    for friend_request in result.scalars().all():
        friend = (
            friend_request.to_user
            if friend_request.from_user_id == user_id
            else friend_request.from_user
        )
        item = format_public_user(friend)
        item["friendshipDate"] = isoformat_or_none(friend_request.updated_at)
        friends.append(item)
    return friends


async def get_friend_requests(session: AsyncSession, user_id: int) -> Dict:
    """
    Get received (pending) and sent (any status) requests, newest first.

    Returns:
        Dict with "received" and "sent" lists
    """
    received_result = await session.execute(
        select(FriendRequest)
        .options(selectinload(FriendRequest.from_user))
        .where(
            and_(
                FriendRequest.to_user_id == user_id,
                FriendRequest.status == FriendRequestStatus.PENDING.value,
            )
        )
        .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
    )
    sent_result = await session.execute(
        select(FriendRequest)
        .options(selectinload(FriendRequest.to_user))
        .where(FriendRequest.from_user_id == user_id)
        .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
    )

    return {
        "received": [
            {
                "id": req.id,
                "status": req.status,
                "createdAt": isoformat_or_none(req.created_at),
                "user": format_public_user(req.from_user),
            }
            for req in received_result.scalars().all()
        ],
        "sent": [
            {
                "id": req.id,
                "status": req.status,
                "createdAt": isoformat_or_none(req.created_at),
                "user": format_public_user(req.to_user),
            }
            for req in sent_result.scalars().all()
        ],
    }


def friendship_status_for(friend_request, user_id: int) -> str:
    """
    Derive the caller's friendship status from the request between two users.

    PENDING means the caller asked; PENDING_RECEIVED means the other user asked.
    """
    if friend_request is None:
        return FriendshipStatus.NONE.value
    if friend_request.status == FriendRequestStatus.PENDING.value:
        if friend_request.to_user_id == user_id:
            return FriendshipStatus.PENDING_RECEIVED.value
        return FriendshipStatus.PENDING.value
    return friend_request.status


async def batch_friendship_status(
    session: AsyncSession, user_id: int, target_user_ids: List[int]
) -> Dict[int, str]:
    """
    Get the caller's friendship status toward each of several users.

    Args:
        session: Database session
        user_id: Current user
        target_user_ids: Users to check against

    Returns:
        Dict mapping target user id to a FriendshipStatus value
    """
    if not target_user_ids:
        return {}

    result = await session.execute(
        select(FriendRequest).where(
            or_(
                and_(
                    FriendRequest.from_user_id == user_id,
                    FriendRequest.to_user_id.in_(target_user_ids),
                ),
                and_(
                    FriendRequest.to_user_id == user_id,
                    FriendRequest.from_user_id.in_(target_user_ids),
                ),
            )
        )
    )
    by_other = {}
    for friend_request in result.scalars().all():
        other = (
            friend_request.to_user_id
            if friend_request.from_user_id == user_id
            else friend_request.from_user_id
        )
        by_other[other] = friend_request

    return {
        tid: friendship_status_for(by_other.get(tid), user_id) for tid in target_user_ids
    }
