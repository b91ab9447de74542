"""User search, account settings, data export and history route handlers."""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from gamekeeper.database.db import get_db_session
from gamekeeper.services import auth_service, game_session_service, user_service
from gamekeeper.services.errors import GameKeeperError
from gamekeeper.api.auth_dependencies import get_current_user
from gamekeeper.models.schemas import DeleteAccountRequest, SettingsUpdate
from gamekeeper.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/users/search", response_model=Dict[str, Any])
async def search_users(
    q: Optional[str] = None,
    limit: int = Query(10, ge=1, le=50),
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Search onboarded users by username or email, with friendship status."""
    try:
        users = await user_service.search_users(session, user["id"], q, limit)
        return {"users": users, "totalCount": len(users)}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error searching users: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error searching users")


@router.get("/api/user/settings", response_model=Dict[str, Any])
async def get_settings(
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get the caller's account settings."""
    try:
        account = await user_service.get_settings(session, user["id"])
        return {"user": account}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error fetching settings: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error fetching settings")


@router.patch("/api/user/settings", response_model=Dict[str, Any])
async def update_settings(
    payload: SettingsUpdate,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Update the caller's privacy setting."""
    try:
        account = await user_service.update_settings(session, user["id"], payload.is_private)
        return {"message": "Settings updated successfully", "user": account}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error updating settings: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error updating settings")


@router.delete("/api/user/delete-account", response_model=Dict[str, Any])
async def delete_account(
    payload: DeleteAccountRequest,
    response: Response,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete the caller's account after re-checking the password."""
    try:
        await user_service.delete_account(session, user["id"], payload.password)
        response.delete_cookie(auth_service.SESSION_COOKIE_NAME)
        return {"message": "Account deleted successfully"}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error deleting account: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error deleting account")


@router.get("/api/user/export-data")
async def export_data(
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Download everything stored about the caller as a JSON file."""
    try:
        data = await user_service.export_user_data(session, user["id"])
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error exporting user data: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error exporting user data")

    filename = f"gamekeeper-data-{utcnow().date().isoformat()}.json"
    return Response(
        content=json.dumps(data, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/api/user/history", response_model=Dict[str, Any])
async def get_history(
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List every session the caller has taken part in, newest first."""
    try:
        sessions = await game_session_service.get_user_history(session, user["id"])
        return {"sessions": sessions, "totalCount": len(sessions)}
    except Exception as e:
        logger.error(f"Error fetching history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error fetching history")
