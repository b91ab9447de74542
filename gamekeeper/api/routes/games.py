"""Game catalog and health route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from gamekeeper.database.db import get_db_session
from gamekeeper.services import game_service, stats_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/games")
async def list_games(session: AsyncSession = Depends(get_db_session)):
    """List active games, ordered by name."""
    try:
        games = await game_service.list_active_games(session)
        return {"games": games}
    except Exception as e:
        logger.error(f"Error fetching games: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error fetching games")


@router.get("/api/health")
async def health_check(session: AsyncSession = Depends(get_db_session)):
    """
    Health check endpoint.

    Returns:
        dict: Service status plus row counts proving the database answers
    """
    try:
        counts = await stats_service.get_table_counts(session)
        return {"status": "healthy", "message": "Database connection successful", "data": counts}
    except Exception as e:
        logger.error(f"Health check failed: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"status": "unhealthy", "message": "Database connection failed"},
        )
