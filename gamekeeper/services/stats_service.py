"""
Profile and statistics service.

Builds public profiles with win/loss/draw statistics derived from the
user's most recent sessions, plus the row counts reported by the health
endpoint.
"""

from typing import Dict, List, Optional
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from gamekeeper.database.models import (
    Game,
    GameSession,
    Participant,
    Result,
    ResultStatus,
    User,
)
from gamekeeper.models.score import ScoreData
from gamekeeper.services.errors import NotFoundError
from gamekeeper.utils import constants
from gamekeeper.utils.datetime_utils import isoformat_or_none

logger = logging.getLogger(__name__)

UNKNOWN = "UNKNOWN"


def session_outcome(game_session: GameSession, user_id: int) -> str:
    """
    WIN / LOSS / DRAW for an APPROVED result, UNKNOWN otherwise.

    The submitted winner is taken as given; scores are not compared.
    """
    result = game_session.result
    if result is None or result.status != ResultStatus.APPROVED.value:
        return UNKNOWN
    return ScoreData.from_json(result.score_data).outcome_for(user_id)


def compute_stats(sessions: List[Dict]) -> Dict:
    """
    Aggregate outcomes of formatted sessions into totals and a per-game breakdown.

    Args:
        sessions: Dicts carrying "outcome" and "game" ({"name": ...})

    Returns:
        Dict with totalGames, wins, losses, draws, winRate and gameStats
    """
    total = len(sessions)
    wins = sum(1 for s in sessions if s["outcome"] == "WIN")
    losses = sum(1 for s in sessions if s["outcome"] == "LOSS")
    draws = sum(1 for s in sessions if s["outcome"] == "DRAW")

    game_stats: Dict[str, Dict[str, int]] = {}
    for s in sessions:
        name = s["game"]["name"] if s.get("game") else UNKNOWN
        entry = game_stats.setdefault(name, {"total": 0, "wins": 0, "losses": 0, "draws": 0})
        entry["total"] += 1
        if s["outcome"] == "WIN":
            entry["wins"] += 1
        elif s["outcome"] == "LOSS":
            entry["losses"] += 1
        elif s["outcome"] == "DRAW":
            entry["draws"] += 1

    return {
        "totalGames": total,
        "wins": wins,
        "losses": losses,
        "draws": draws,
        "winRate": round(wins / total * 100, 1) if total else 0.0,
        "gameStats": game_stats,
    }


async def get_profile(
    session: AsyncSession, username: str, viewer_id: Optional[int] = None
) -> Dict:
    """
    Get a user's public profile with recent sessions and statistics.

    Private profiles viewed by anyone but their owner only expose the basics.

    Args:
        session: Database session
        username: Profile owner's username
        viewer_id: The caller, or None when anonymous

    Returns:
        Profile dict

    Raises:
        NotFoundError: If the user does not exist or has not completed onboarding
    """
    result = await session.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    if not user.has_completed_onboarding:
        raise NotFoundError("User profile not available")

    if user.is_private and viewer_id != user.id:
        return {
            "user": {
                "id": user.id,
                "username": user.username,
                "isPrivate": True,
                "createdAt": isoformat_or_none(user.created_at),
            },
            "isPrivate": True,
            "message": "This profile is private.",
        }

    sessions_result = await session.execute(
        select(GameSession)
        .options(
            selectinload(GameSession.game),
            selectinload(GameSession.creator),
            selectinload(GameSession.participants),
            selectinload(GameSession.result),
        )
        .where(
            GameSession.id.in_(
                select(Participant.game_session_id).where(Participant.user_id == user.id)
            )
        )
        .order_by(GameSession.created_at.desc(), GameSession.id.desc())
        .limit(constants.PROFILE_RECENT_SESSIONS)
    )

    recent = []
    for gs in sessions_result.scalars().all():
        recent.append(
            {
                "id": gs.id,
                "code": gs.code,
                "game": {"id": gs.game.id, "name": gs.game.name} if gs.game else None,
                "createdBy": (
                    {"id": gs.creator.id, "username": gs.creator.username} if gs.creator else None
                ),
                "createdAt": isoformat_or_none(gs.created_at),
                "participantCount": len(gs.participants),
                "result": (
                    {
                        "id": gs.result.id,
                        "status": gs.result.status,
                        "scoreData": gs.result.score_data,
                    }
                    if gs.result
                    else None
                ),
                "isCreator": gs.creator_id == user.id,
                "outcome": session_outcome(gs, user.id),
            }
        )

    return {
        "user": {
            "id": user.id,
            "username": user.username,
            "isPrivate": user.is_private,
            "createdAt": isoformat_or_none(user.created_at),
        },
        "isPrivate": False,
        "stats": compute_stats(recent),
        "recentSessions": recent,
        "totalSessions": len(recent),
    }


async def get_table_counts(session: AsyncSession) -> Dict[str, int]:
    """Row counts for the main tables (health reporting)."""
    counts = {}
    for key, model in (
        ("userCount", User),
        ("gameCount", Game),
        ("sessionCount", GameSession),
        ("participantCount", Participant),
        ("resultCount", Result),
    ):
        result = await session.execute(select(func.count()).select_from(model))
        counts[key] = result.scalar_one()
    return counts
