"""Friend system route handlers."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from gamekeeper.database.db import get_db_session
from gamekeeper.services import friend_service
from gamekeeper.services.errors import GameKeeperError
from gamekeeper.api.auth_dependencies import get_current_user
from gamekeeper.models.schemas import FriendRequestCreate, FriendRequestRespond

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/friends/request", response_model=Dict[str, Any])
async def send_friend_request(
    payload: FriendRequestCreate,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Send a friend request to another user."""
    try:
        friend_request = await friend_service.send_friend_request(
            session, user["id"], payload.to_user_id
        )
        return {"message": "Friend request sent successfully", "friendRequest": friend_request}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error sending friend request: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error sending friend request")


@router.post("/api/friends/respond", response_model=Dict[str, Any])
async def respond_to_friend_request(
    payload: FriendRequestRespond,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Accept or reject a pending friend request addressed to the caller."""
    try:
        friend_request = await friend_service.respond_to_friend_request(
            session, user["id"], payload.request_id, payload.action
        )
        verb = "accepted" if payload.action == "accept" else "rejected"
        return {"message": f"Friend request {verb} successfully", "friendRequest": friend_request}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error responding to friend request: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error responding to friend request")


@router.get("/api/friends/list", response_model=Dict[str, Any])
async def list_friends(
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List the caller's friends, most recent friendship first."""
    try:
        friends = await friend_service.get_friends(session, user["id"])
        return {"friends": friends, "totalCount": len(friends)}
    except Exception as e:
        logger.error(f"Error listing friends: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error listing friends")


@router.get("/api/friends/requests", response_model=Dict[str, Any])
async def list_friend_requests(
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List pending requests received and all requests sent."""
    try:
        return await friend_service.get_friend_requests(session, user["id"])
    except Exception as e:
        logger.error(f"Error listing friend requests: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error listing friend requests")
