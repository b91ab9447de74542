"""
Authentication dependencies for FastAPI routes.

The caller is identified by a JWT carried either in an
``Authorization: Bearer`` header or in the session cookie.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from gamekeeper.services import auth_service, user_service
from gamekeeper.database.db import get_db_session

security = HTTPBearer(auto_error=False)


def _extract_token(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(auth_service.SESSION_COOKIE_NAME)


async def _resolve_user(session: AsyncSession, token: Optional[str]) -> Optional[dict]:
    if not token:
        return None
    payload = auth_service.verify_token(token)
    if payload is None:
        return None
    user_id = payload.get("user_id")
    if user_id is None:
        return None
    return await user_service.get_user_by_id(session, int(user_id))


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated user from the JWT.

    Args:
        request: Incoming request (for the session cookie)
        session: Database session
        credentials: Optional HTTP Bearer credentials

    Returns:
        User dictionary

    Raises:
        HTTPException: 401 if the token is missing, invalid or names no user
    """
    token = _extract_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await _resolve_user(session, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_user_optional(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[dict]:
    """
    Optional dependency to get the current authenticated user.
    Returns None if no token is provided or the token is invalid.
    """
    return await _resolve_user(session, _extract_token(request, credentials))
