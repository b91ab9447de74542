"""
Game session service: the session lifecycle and score confirmation flow.

Handles creating/joining sessions, score submission and peer confirmation,
lazy time-based resolution on read (auto-approve, auto-void), ending and
deleting sessions, and the per-user session history.

Every function takes the caller's user_id explicitly; nothing reads ambient
request state.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union
import logging

from sqlalchemy import select, update, and_, or_, exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from gamekeeper.database.models import (
    Game,
    GameSession,
    Participant,
    Result,
    ResultStatus,
    SessionStatus,
)
from gamekeeper.services.code_generator import generate_unique_session_code
from gamekeeper.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from gamekeeper.utils import constants
from gamekeeper.utils.datetime_utils import isoformat_or_none, utcnow
from gamekeeper.utils.time_policy import (
    derive_session_status,
    format_time_elapsed,
    hours_elapsed,
    should_auto_approve,
    should_auto_void,
)

logger = logging.getLogger(__name__)

CONFIRM_ACTIONS = {
    "approve": ResultStatus.APPROVED,
    "reject": ResultStatus.REJECTED,
}


# ---------------------------------------------------------------------------
# Lookup helpers
# ---------------------------------------------------------------------------


def session_lookup_clause(id_or_code: Union[int, str]):
    """
    Build the WHERE clause for a session referenced by id or by code.

    All-digit references are ids; anything else is a (case-insensitive) code.
    """
    value = str(id_or_code).strip()
    if value.isdigit():
        return GameSession.id == int(value)
    return GameSession.code == value.upper()


async def _load_session(
    session: AsyncSession, id_or_code: Union[int, str], active_only: bool = False
) -> Optional[GameSession]:
    query = (
        select(GameSession)
        .options(
            selectinload(GameSession.game),
            selectinload(GameSession.creator),
            selectinload(GameSession.participants).selectinload(Participant.user),
            selectinload(GameSession.result),
        )
        .where(session_lookup_clause(id_or_code))
        .execution_options(populate_existing=True)
    )
    if active_only:
        query = query.where(GameSession.is_active == True)  # noqa: E712
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def _require_session(
    session: AsyncSession, id_or_code: Union[int, str], active_only: bool = False
) -> GameSession:
    game_session = await _load_session(session, id_or_code, active_only=active_only)
    if game_session is None:
        if active_only:
            raise NotFoundError("Session not found or inactive")
        raise NotFoundError("Session not found")
    return game_session


def _is_participant(game_session: GameSession, user_id: int) -> bool:
    return any(p.user_id == user_id for p in game_session.participants)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def _format_user(user) -> Optional[Dict]:
    if user is None:
        return None
    return {"id": user.id, "username": user.username, "email": user.email}


def format_result(result: Optional[Result]) -> Optional[Dict]:
    if result is None:
        return None
    return {
        "id": result.id,
        "gameSessionId": result.game_session_id,
        "enteredById": result.entered_by_id,
        "approvedById": result.approved_by_id,
        "scoreData": result.score_data,
        "status": result.status,
        "createdAt": isoformat_or_none(result.created_at),
        "updatedAt": isoformat_or_none(result.updated_at),
    }


def format_session(game_session: GameSession, now: Optional[datetime] = None) -> Dict:
    """
    Format a loaded GameSession into the API shape, including derived status.

    Derivation here is read-only; resolve_session() performs the writes.
    """
    elapsed = hours_elapsed(game_session.created_at, now)
    result = game_session.result
    status = derive_session_status(
        game_session.created_at,
        game_session.is_active,
        result_status=result.status if result else None,
        ended_manually=game_session.ended_at is not None,
        now=now,
    )
    return {
        "id": game_session.id,
        "code": game_session.code,
        "gameId": game_session.game_id,
        "game": (
            {"id": game_session.game.id, "name": game_session.game.name}
            if game_session.game
            else None
        ),
        "creatorId": game_session.creator_id,
        "createdBy": _format_user(game_session.creator),
        "isActive": game_session.is_active,
        "createdAt": isoformat_or_none(game_session.created_at),
        "endedAt": isoformat_or_none(game_session.ended_at),
        "participants": [
            {
                "id": p.id,
                "userId": p.user_id,
                "joinedAt": isoformat_or_none(p.joined_at),
                "user": _format_user(p.user),
            }
            for p in game_session.participants
        ],
        "result": format_result(result),
        "sessionStatus": status,
        "timeElapsed": elapsed,
        "timeElapsedLabel": format_time_elapsed(max(elapsed, 0.0)),
    }


# ---------------------------------------------------------------------------
# Idempotent time-based transitions
# ---------------------------------------------------------------------------


async def _auto_approve_result(session: AsyncSession, result_id: int) -> bool:
    """Flip one result PENDING -> APPROVED, only if it is still PENDING."""
    outcome = await session.execute(
        update(Result)
        .where(and_(Result.id == result_id, Result.status == ResultStatus.PENDING.value))
        .values(status=ResultStatus.APPROVED.value, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return outcome.rowcount > 0


async def _auto_void_session(session: AsyncSession, session_id: int) -> bool:
    """Deactivate one session, only if it is still active and has no result."""
    outcome = await session.execute(
        update(GameSession)
        .where(
            and_(
                GameSession.id == session_id,
                GameSession.is_active == True,  # noqa: E712
                ~exists().where(Result.game_session_id == GameSession.id),
            )
        )
        .values(is_active=False, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return outcome.rowcount > 0


async def _apply_time_transitions(
    session: AsyncSession, game_session: GameSession, now: Optional[datetime] = None
) -> bool:
    """
    Apply auto-approve / auto-void to a loaded session if its window has passed.

    Returns:
        True if a write happened (the caller should reload)
    """
    result = game_session.result
    changed = False

    if result is not None:
        if result.status == ResultStatus.PENDING.value and should_auto_approve(
            game_session.created_at, now
        ):
            if await _auto_approve_result(session, result.id):
                logger.info(
                    f"Auto-approved result {result.id} for session {game_session.code}"
                )
                changed = True
    elif game_session.is_active and should_auto_void(game_session.created_at, now):
        if await _auto_void_session(session, game_session.id):
            logger.info(f"Auto-voided session {game_session.code} (no result submitted)")
            changed = True

    if changed:
        await session.flush()
    return changed


async def _reload(session: AsyncSession, game_session: GameSession) -> GameSession:
    """Re-read a session after bulk writes that bypassed the identity map."""
    session_id = game_session.id
    if game_session.result is not None:
        session.expire(game_session.result)
    session.expire(game_session)
    return await _require_session(session, session_id)


async def _resolve_loaded(
    session: AsyncSession, game_session: GameSession, now: Optional[datetime] = None
) -> GameSession:
    if await _apply_time_transitions(session, game_session, now):
        game_session = await _reload(session, game_session)
    return game_session


async def auto_approve_stale_results(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Bulk form of auto-approval for every PENDING result past the window.

    Returns:
        Number of results approved
    """
    cutoff = (now or utcnow()) - timedelta(hours=constants.RESOLUTION_WINDOW_HOURS)
    stale_sessions = select(GameSession.id).where(GameSession.created_at <= cutoff)
    outcome = await session.execute(
        update(Result)
        .where(
            and_(
                Result.status == ResultStatus.PENDING.value,
                Result.game_session_id.in_(stale_sessions),
            )
        )
        .values(status=ResultStatus.APPROVED.value, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return outcome.rowcount or 0


async def auto_void_stale_sessions(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Bulk form of auto-void for every active, result-less session past the window.

    Returns:
        Number of sessions voided
    """
    cutoff = (now or utcnow()) - timedelta(hours=constants.RESOLUTION_WINDOW_HOURS)
    outcome = await session.execute(
        update(GameSession)
        .where(
            and_(
                GameSession.is_active == True,  # noqa: E712
                GameSession.created_at <= cutoff,
                ~exists().where(Result.game_session_id == GameSession.id),
            )
        )
        .values(is_active=False, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return outcome.rowcount or 0


# ---------------------------------------------------------------------------
# Lifecycle operations
# ---------------------------------------------------------------------------


async def create_session(session: AsyncSession, user_id: int, game_id: int) -> Dict:
    """
    Create a game session for an active game; the creator becomes its first participant.

    Args:
        session: Database session
        user_id: Creating user
        game_id: Game to play

    Returns:
        Formatted session dict

    Raises:
        NotFoundError: If the game does not exist or is inactive
        CodeGenerationError: If no unused code could be generated
    """
    game_result = await session.execute(
        select(Game).where(and_(Game.id == game_id, Game.is_active == True))  # noqa: E712
    )
    game = game_result.scalar_one_or_none()
    if not game:
        raise NotFoundError("Game not found or inactive")

    code = await generate_unique_session_code(session)
    game_session = GameSession(code=code, game_id=game.id, creator_id=user_id, is_active=True)
    game_session.participants.append(Participant(user_id=user_id))
    session.add(game_session)
    await session.flush()

    logger.info(f"User {user_id} created session {code} for game {game.name!r}")
    created = await _require_session(session, game_session.id)
    return format_session(created)


async def join_session(
    session: AsyncSession,
    user_id: int,
    id_or_code: Union[int, str],
    now: Optional[datetime] = None,
) -> Dict:
    """
    Join an active session by id or code. Joining twice is not an error.

    Returns:
        Dict with "session" (formatted) and "joined" (False if already a participant)

    Raises:
        NotFoundError: If the session does not exist or is inactive
    """
    game_session = await _require_session(session, id_or_code, active_only=True)
    # A session past its window without a result is voided before anyone joins
    game_session = await _resolve_loaded(session, game_session, now)
    if not game_session.is_active:
        raise NotFoundError("Session not found or inactive")

    code = game_session.code
    joined = False
    if not _is_participant(game_session, user_id):
        try:
            async with session.begin_nested():
                session.add(Participant(game_session_id=game_session.id, user_id=user_id))
            joined = True
            logger.info(f"User {user_id} joined session {code}")
        except IntegrityError:
            # A concurrent join for the same user won the race; same outcome
            logger.info(f"User {user_id} already joined session {code}")

    game_session = await _reload(session, game_session)
    return {"session": format_session(game_session), "joined": joined}


async def get_session(
    session: AsyncSession, id_or_code: Union[int, str], now: Optional[datetime] = None
) -> Dict:
    """
    Fetch a session, applying any due time-based transition first.

    A PENDING result past the window is approved; an active session with no
    result past the window is deactivated and reported as VOID.

    Raises:
        NotFoundError: If the session does not exist
    """
    game_session = await _require_session(session, id_or_code)
    game_session = await _resolve_loaded(session, game_session, now)
    return format_session(game_session, now)


async def submit_score(
    session: AsyncSession,
    user_id: int,
    id_or_code: Union[int, str],
    score_data: Optional[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> Dict:
    """
    Submit the single score for a session as a PENDING result.

    Raises:
        ValidationError: If score_data is missing or the session is not active
        NotFoundError: If the session does not exist
        ForbiddenError: If the caller is not a participant
        ConflictError: If a result already exists for the session
    """
    if not score_data or not isinstance(score_data, dict):
        raise ValidationError("Score data is required")

    game_session = await _require_session(session, id_or_code)
    game_session = await _resolve_loaded(session, game_session, now)

    if not _is_participant(game_session, user_id):
        raise ForbiddenError("You must be a participant to submit scores")
    if game_session.result is not None:
        raise ConflictError("Score has already been submitted for this session")
    if not game_session.is_active:
        raise ValidationError("Session is not active")

    result = Result(
        game_session_id=game_session.id,
        entered_by_id=user_id,
        score_data=score_data,
        status=ResultStatus.PENDING.value,
    )
    try:
        async with session.begin_nested():
            session.add(result)
    except IntegrityError:
        raise ConflictError("Score has already been submitted for this session")

    await session.refresh(result)
    logger.info(f"User {user_id} submitted score for session {game_session.code}")
    return format_result(result)


async def confirm_score(
    session: AsyncSession,
    user_id: int,
    id_or_code: Union[int, str],
    action: str,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Approve or reject a PENDING result. One-shot; the submitter may not confirm.

    Raises:
        ValidationError: Bad action, no result submitted, or session not active
        NotFoundError: If the session does not exist
        ForbiddenError: Caller is not a participant, or is the submitter
        ConflictError: Result is no longer PENDING
    """
    new_status = CONFIRM_ACTIONS.get(action)
    if new_status is None:
        raise ValidationError("Action must be 'approve' or 'reject'")

    game_session = await _require_session(session, id_or_code)
    game_session = await _resolve_loaded(session, game_session, now)

    if not _is_participant(game_session, user_id):
        raise ForbiddenError("You must be a participant to confirm scores")

    result = game_session.result
    if result is None:
        raise ValidationError("No score has been submitted for this session")
    if result.entered_by_id == user_id:
        raise ForbiddenError("You cannot confirm your own score submission")
    if result.status != ResultStatus.PENDING.value:
        raise ConflictError("This result has already been confirmed")
    if not game_session.is_active:
        raise ValidationError("Session is not active")

    outcome = await session.execute(
        update(Result)
        .where(and_(Result.id == result.id, Result.status == ResultStatus.PENDING.value))
        .values(status=new_status.value, approved_by_id=user_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if outcome.rowcount == 0:
        raise ConflictError("This result has already been confirmed")

    await session.flush()
    await session.refresh(result)
    logger.info(
        f"User {user_id} {new_status.value.lower()} result {result.id} "
        f"for session {game_session.code}"
    )
    return format_result(result)


async def end_session(session: AsyncSession, user_id: int, id_or_code: Union[int, str]) -> Dict:
    """
    Deactivate a session (creator only). Ending an ended session changes nothing.

    Raises:
        NotFoundError: If the session does not exist
        ForbiddenError: If the caller is not the creator
    """
    game_session = await _require_session(session, id_or_code)
    if game_session.creator_id != user_id:
        raise ForbiddenError("Only the session creator can perform this action")

    if game_session.is_active:
        game_session.is_active = False
        game_session.ended_at = utcnow()
        await session.flush()
        logger.info(f"User {user_id} ended session {game_session.code}")

    game_session = await _require_session(session, game_session.id)
    return format_session(game_session)


async def delete_session(session: AsyncSession, user_id: int, id_or_code: Union[int, str]) -> None:
    """
    Delete a session with its participants and result (creator only).

    Raises:
        NotFoundError: If the session does not exist
        ForbiddenError: If the caller is not the creator
    """
    game_session = await _require_session(session, id_or_code)
    if game_session.creator_id != user_id:
        raise ForbiddenError("Only the session creator can delete this session")

    code = game_session.code
    await session.delete(game_session)
    await session.flush()
    logger.info(f"User {user_id} deleted session {code}")


async def get_user_history(
    session: AsyncSession, user_id: int, now: Optional[datetime] = None
) -> List[Dict]:
    """
    List every session the user participates in, newest first.

    Statuses are derived read-only; stale sessions are resolved when opened.
    """
    result = await session.execute(
        select(GameSession)
        .options(
            selectinload(GameSession.game),
            selectinload(GameSession.creator),
            selectinload(GameSession.participants),
            selectinload(GameSession.result),
        )
        .where(
            GameSession.id.in_(
                select(Participant.game_session_id).where(Participant.user_id == user_id)
            )
        )
        .order_by(GameSession.created_at.desc(), GameSession.id.desc())
        .execution_options(populate_existing=True)
    )
    sessions = result.scalars().all()

    history = []
    for game_session in sessions:
        own = next((p for p in game_session.participants if p.user_id == user_id), None)
        result_obj = game_session.result
        history.append(
            {
                "id": game_session.id,
                "code": game_session.code,
                "game": (
                    {"id": game_session.game.id, "name": game_session.game.name}
                    if game_session.game
                    else None
                ),
                "createdBy": _format_user(game_session.creator),
                "createdAt": isoformat_or_none(game_session.created_at),
                "joinedAt": isoformat_or_none(own.joined_at if own else game_session.created_at),
                "participantCount": len(game_session.participants),
                "result": (
                    {
                        "id": result_obj.id,
                        "status": result_obj.status,
                        "createdAt": isoformat_or_none(result_obj.created_at),
                        "enteredById": result_obj.entered_by_id,
                        "approvedById": result_obj.approved_by_id,
                    }
                    if result_obj
                    else None
                ),
                "isActive": game_session.is_active,
                "status": derive_session_status(
                    game_session.created_at,
                    game_session.is_active,
                    result_status=result_obj.status if result_obj else None,
                    ended_manually=game_session.ended_at is not None,
                    now=now,
                ),
                "timeElapsed": hours_elapsed(game_session.created_at, now),
                "isCreator": game_session.creator_id == user_id,
            }
        )
    return history


def session_status_values() -> List[str]:
    return [s.value for s in SessionStatus]
