"""
Pydantic models for API request/response validation.

Request bodies use the camelCase keys the web client sends; snake_case
names are accepted as well.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict


class RegisterRequest(BaseModel):
    """Request to create an account with email and password."""

    email: str
    password: str


class LoginRequest(BaseModel):
    """Request to login with email and password."""

    email: str
    password: str


class OnboardRequest(BaseModel):
    """Request to pick a username and finish onboarding."""

    username: Optional[str] = None


class AccountResponse(BaseModel):
    """Account information returned to its owner."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    email: str
    username: Optional[str] = None
    is_private: bool = Field(alias="isPrivate")
    has_completed_onboarding: bool = Field(alias="hasCompletedOnboarding")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


class AuthResponse(BaseModel):
    """Authentication response with JWT token."""

    access_token: str
    token_type: str = "bearer"
    user: AccountResponse


class SessionCreate(BaseModel):
    """Request to create a game session."""

    model_config = ConfigDict(populate_by_name=True)

    game_id: int = Field(alias="gameId")


class SessionAction(BaseModel):
    """Request to change a session (only "end" is supported)."""

    action: Optional[str] = None


class ScoreSubmission(BaseModel):
    """Request to submit the score of a session.

    scoreData is free-form: {"winner": "<user id>" | "DRAW", "scores": {...}, ...}
    """

    model_config = ConfigDict(populate_by_name=True)

    score_data: Optional[Dict[str, Any]] = Field(default=None, alias="scoreData")


class ScoreConfirmation(BaseModel):
    """Request to approve or reject a submitted score."""

    action: Optional[str] = None


class FriendRequestCreate(BaseModel):
    """Request to send a friend request."""

    model_config = ConfigDict(populate_by_name=True)

    to_user_id: int = Field(alias="toUserId")


class FriendRequestRespond(BaseModel):
    """Request to accept or reject a received friend request."""

    model_config = ConfigDict(populate_by_name=True)

    request_id: int = Field(alias="requestId")
    action: Optional[str] = None


class SettingsUpdate(BaseModel):
    """Request to update account settings. isPrivate must be a real boolean."""

    model_config = ConfigDict(populate_by_name=True)

    is_private: Any = Field(default=None, alias="isPrivate")


class DeleteAccountRequest(BaseModel):
    """Request to delete the caller's account."""

    password: Optional[str] = None
