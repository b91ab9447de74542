"""Game session route handlers: lifecycle and score confirmation."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from gamekeeper.database.db import get_db_session
from gamekeeper.services import game_session_service
from gamekeeper.services.errors import GameKeeperError
from gamekeeper.api.auth_dependencies import get_current_user
from gamekeeper.models.schemas import (
    SessionCreate,
    SessionAction,
    ScoreSubmission,
    ScoreConfirmation,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/sessions", response_model=Dict[str, Any])
async def create_session(
    payload: SessionCreate,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a session for an active game; the caller joins it as creator."""
    try:
        created = await game_session_service.create_session(session, user["id"], payload.game_id)
        return {"session": created}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error creating session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error creating session")


@router.post("/api/sessions/{id_or_code}/join", response_model=Dict[str, Any])
async def join_session(
    id_or_code: str,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Join an active session by id or code. Re-joining returns the current state."""
    try:
        outcome = await game_session_service.join_session(session, user["id"], id_or_code)
        message = "Joined session successfully" if outcome["joined"] else "Already a participant"
        return {"message": message, "session": outcome["session"]}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error joining session {id_or_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error joining session")


@router.get("/api/sessions/{id_or_code}", response_model=Dict[str, Any])
async def get_session(
    id_or_code: str,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a session, resolving auto-approval or auto-void first when due."""
    try:
        found = await game_session_service.get_session(session, id_or_code)
        return {"session": found}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error fetching session {id_or_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error fetching session")


@router.patch("/api/sessions/{id_or_code}", response_model=Dict[str, Any])
async def update_session(
    id_or_code: str,
    payload: SessionAction,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """End a session (creator only). "end" is the only supported action."""
    try:
        if payload.action != "end":
            raise HTTPException(status_code=400, detail="Invalid action")
        ended = await game_session_service.end_session(session, user["id"], id_or_code)
        return {"message": "Session ended successfully", "session": ended}
    except HTTPException:
        raise
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error updating session {id_or_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error updating session")


@router.delete("/api/sessions/{id_or_code}", response_model=Dict[str, Any])
async def delete_session(
    id_or_code: str,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a session with its participants and result (creator only)."""
    try:
        await game_session_service.delete_session(session, user["id"], id_or_code)
        return {"message": "Session deleted successfully"}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error deleting session {id_or_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error deleting session")


@router.post("/api/sessions/{id_or_code}/submit-score", response_model=Dict[str, Any])
async def submit_score(
    id_or_code: str,
    payload: ScoreSubmission,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Submit the session's score; it stays PENDING until another participant confirms."""
    try:
        result = await game_session_service.submit_score(
            session, user["id"], id_or_code, payload.score_data
        )
        return {"message": "Score submitted successfully", "result": result}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error submitting score for session {id_or_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error submitting score")


@router.post("/api/sessions/{id_or_code}/confirm-score", response_model=Dict[str, Any])
async def confirm_score(
    id_or_code: str,
    payload: ScoreConfirmation,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Approve or reject a pending score. The submitter cannot confirm their own."""
    try:
        result = await game_session_service.confirm_score(
            session, user["id"], id_or_code, payload.action
        )
        verb = "approved" if payload.action == "approve" else "rejected"
        return {"message": f"Score {verb} successfully", "result": result}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error confirming score for session {id_or_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error confirming score")
