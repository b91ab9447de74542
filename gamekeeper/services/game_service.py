"""
Game catalog: the activity types sessions are played for.
"""

from typing import Dict, Iterable, List
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gamekeeper.database.models import Game
from gamekeeper.utils.datetime_utils import isoformat_or_none

logger = logging.getLogger(__name__)

DEFAULT_GAMES = ("Chess", "Darts", "FIFA", "Pool", "Table Tennis")


def format_game(game: Game) -> Dict:
    return {
        "id": game.id,
        "name": game.name,
        "isActive": game.is_active,
        "createdAt": isoformat_or_none(game.created_at),
    }


async def list_active_games(session: AsyncSession) -> List[Dict]:
    """Active games ordered by name."""
    result = await session.execute(
        select(Game).where(Game.is_active == True).order_by(Game.name.asc())  # noqa: E712
    )
    return [format_game(g) for g in result.scalars().all()]


async def ensure_games(session: AsyncSession, names: Iterable[str] = DEFAULT_GAMES) -> int:
    """
    Insert any of the given games that do not exist yet.

    Returns:
        Number of games created
    """
    result = await session.execute(select(Game.name))
    existing = set(result.scalars().all())

    created = 0
    for name in names:
        if name not in existing:
            session.add(Game(name=name, is_active=True))
            created += 1
    if created:
        await session.flush()
        logger.info(f"Created {created} default game(s)")
    return created
