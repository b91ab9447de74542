"""
Shareable session code generation.

Codes look like "AB123456": two uppercase letters then six digits, each
position drawn independently. Uniqueness is checked against stored sessions.
"""

import logging
import random
import string
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gamekeeper.database.models import GameSession
from gamekeeper.services.errors import CodeGenerationError
from gamekeeper.utils import constants

logger = logging.getLogger(__name__)

_rng = random.SystemRandom()


def generate_session_code() -> str:
    """Generate one random session code (not checked for uniqueness)."""
    letters = "".join(
        _rng.choice(string.ascii_uppercase) for _ in range(constants.SESSION_CODE_LETTERS)
    )
    digits = "".join(_rng.choice(string.digits) for _ in range(constants.SESSION_CODE_DIGITS))
    return f"{letters}{digits}"


async def code_exists(session: AsyncSession, code: str) -> bool:
    result = await session.execute(select(GameSession.id).where(GameSession.code == code))
    return result.scalar_one_or_none() is not None


async def generate_unique_session_code(
    session: AsyncSession, max_attempts: Optional[int] = None
) -> str:
    """
    Generate a session code not used by any stored session.

    Args:
        session: Database session
        max_attempts: Attempts before giving up (defaults to SESSION_CODE_MAX_ATTEMPTS)

    Returns:
        An unused session code

    Raises:
        CodeGenerationError: If every attempt collided with an existing code
    """
    if max_attempts is None:
        max_attempts = constants.SESSION_CODE_MAX_ATTEMPTS

    for attempt in range(1, max_attempts + 1):
        code = generate_session_code()
        if not await code_exists(session, code):
            return code
        logger.debug(f"Session code collision on attempt {attempt}: {code}")

    logger.error(f"Unable to generate unique session code after {max_attempts} attempts")
    raise CodeGenerationError("Unable to generate unique session code after maximum attempts")
