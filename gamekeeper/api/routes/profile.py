"""Public profile route handlers."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from gamekeeper.database.db import get_db_session
from gamekeeper.services import stats_service
from gamekeeper.services.errors import GameKeeperError
from gamekeeper.api.auth_dependencies import get_current_user_optional

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/profile/{username}", response_model=Dict[str, Any])
async def get_profile(
    username: str,
    viewer: Optional[dict] = Depends(get_current_user_optional),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Get a user's profile with recent sessions and win/loss statistics.
    Private profiles only show basic details to anyone but their owner.
    """
    try:
        return await stats_service.get_profile(
            session, username, viewer_id=viewer["id"] if viewer else None
        )
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error fetching profile {username!r}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error fetching profile")
