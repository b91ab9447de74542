"""Authentication and onboarding route handlers."""

import logging
from typing import Dict, Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from gamekeeper.api.routes import limiter, INVALID_CREDENTIALS_RESPONSE
from gamekeeper.database.db import get_db_session
from gamekeeper.services import auth_service, user_service
from gamekeeper.services.errors import GameKeeperError
from gamekeeper.api.auth_dependencies import get_current_user
from gamekeeper.models.schemas import (
    RegisterRequest,
    LoginRequest,
    OnboardRequest,
    AccountResponse,
    AuthResponse,
)
from gamekeeper.utils import constants
from gamekeeper.utils.datetime_utils import isoformat_or_none

logger = logging.getLogger(__name__)
router = APIRouter()


def _account(user: dict) -> AccountResponse:
    return AccountResponse(
        id=user["id"],
        email=user["email"],
        username=user.get("username"),
        is_private=user["is_private"],
        has_completed_onboarding=user["has_completed_onboarding"],
        created_at=isoformat_or_none(user.get("created_at")),
        updated_at=isoformat_or_none(user.get("updated_at")),
    )


def _issue_token(response: Response, user: dict) -> AuthResponse:
    access_token = auth_service.create_access_token(data={"user_id": user["id"]})
    response.set_cookie(
        key=auth_service.SESSION_COOKIE_NAME,
        value=access_token,
        max_age=auth_service.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
    )
    return AuthResponse(access_token=access_token, token_type="bearer", user=_account(user))


@router.post("/api/auth/register", response_model=AuthResponse)
async def register(
    payload: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_db_session),
):
    """Create an account with email and password and sign it in."""
    try:
        email = auth_service.normalize_email(payload.email)
        if not email or "@" not in email:
            raise HTTPException(status_code=400, detail="A valid email is required")
        if len(payload.password) < constants.MIN_PASSWORD_LENGTH:
            raise HTTPException(
                status_code=400,
                detail=f"Password must be at least {constants.MIN_PASSWORD_LENGTH} characters long",
            )

        password_hash = auth_service.hash_password(payload.password)
        user = await user_service.create_user(session, email, password_hash)
        return _issue_token(response, user)
    except HTTPException:
        raise
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error during registration: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error during registration")


@router.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    payload: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_db_session),
):
    """Login with email and password."""
    try:
        user = await user_service.get_user_by_email(session, payload.email)
        if not user or not auth_service.verify_password(payload.password, user.get("password_hash")):
            raise INVALID_CREDENTIALS_RESPONSE
        return _issue_token(response, user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error during login: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error during login")


@router.post("/api/auth/logout")
async def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie(auth_service.SESSION_COOKIE_NAME)
    return {"message": "Logged out"}


@router.get("/api/auth/me", response_model=AccountResponse)
async def get_me(user: dict = Depends(get_current_user)):
    """Get the current caller's account."""
    return _account(user)


@router.post("/api/auth/onboard", response_model=Dict[str, Any])
async def onboard(
    payload: OnboardRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Choose a username and complete onboarding."""
    try:
        updated = await user_service.complete_onboarding(session, user["id"], payload.username)
        return {"message": "Onboarding completed successfully", "user": updated}
    except GameKeeperError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error completing onboarding: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error completing onboarding")
