"""
SQLAlchemy ORM models for the GameKeeper score-tracking system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    JSON,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gamekeeper.database.db import Base
from gamekeeper.utils.datetime_utils import utcnow


class ResultStatus(str, enum.Enum):
    """Score confirmation status stored on a Result."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class SessionStatus(str, enum.Enum):
    """Derived status of a game session (never stored)."""

    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    VOID = "VOID"
    INACTIVE = "INACTIVE"


class FriendRequestStatus(str, enum.Enum):
    """Friend request status enum."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class FriendshipStatus(str, enum.Enum):
    """Relationship of a searched user to the caller."""

    NONE = "NONE"
    PENDING = "PENDING"
    PENDING_RECEIVED = "PENDING_RECEIVED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class User(Base):
    """User accounts with email/password authentication."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, unique=True)
    username = Column(String, nullable=True, unique=True)  # Set once at onboarding
    password_hash = Column(String, nullable=True)
    is_private = Column(Boolean, default=False, nullable=False)
    has_completed_onboarding = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships (deleting a user removes everything they own)
    created_sessions = relationship(
        "GameSession", back_populates="creator", cascade="all, delete-orphan"
    )
    participations = relationship(
        "Participant", back_populates="user", cascade="all, delete-orphan"
    )
    entered_results = relationship(
        "Result",
        foreign_keys="Result.entered_by_id",
        back_populates="entered_by",
        cascade="all, delete-orphan",
    )
    approved_results = relationship(
        "Result", foreign_keys="Result.approved_by_id", back_populates="approved_by"
    )
    sent_friend_requests = relationship(
        "FriendRequest",
        foreign_keys="FriendRequest.from_user_id",
        back_populates="from_user",
        cascade="all, delete-orphan",
    )
    received_friend_requests = relationship(
        "FriendRequest",
        foreign_keys="FriendRequest.to_user_id",
        back_populates="to_user",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_users_email", "email"),
        Index("idx_users_username", "username"),
    )


class Game(Base):
    """Activity types a session can be played for (reference data)."""

    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    sessions = relationship("GameSession", back_populates="game")


class GameSession(Base):
    """One play session, shared by its 8-character code."""

    __tablename__ = "game_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(8), nullable=False, unique=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    creator_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    # Set only when the creator ends the session; auto-voided sessions leave it NULL
    ended_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    game = relationship("Game", back_populates="sessions")
    creator = relationship("User", back_populates="created_sessions")
    participants = relationship(
        "Participant",
        back_populates="game_session",
        cascade="all, delete-orphan",
        order_by="Participant.joined_at",
    )
    result = relationship(
        "Result", back_populates="game_session", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_game_sessions_code", "code"),
        Index("idx_game_sessions_creator", "creator_id"),
        Index("idx_game_sessions_active", "is_active"),
    )


class Participant(Base):
    """Join record between a user and a game session."""

    __tablename__ = "participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_session_id = Column(
        Integer, ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    joined_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    game_session = relationship("GameSession", back_populates="participants")
    user = relationship("User", back_populates="participations")

    __table_args__ = (
        UniqueConstraint("game_session_id", "user_id", name="uq_participants_session_user"),
        Index("idx_participants_session", "game_session_id"),
        Index("idx_participants_user", "user_id"),
    )


class Result(Base):
    """The single score record of a game session."""

    __tablename__ = "results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_session_id = Column(
        Integer, ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False
    )
    entered_by_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    approved_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    score_data = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    status = Column(String(20), default=ResultStatus.PENDING.value, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    game_session = relationship("GameSession", back_populates="result")
    entered_by = relationship(
        "User", foreign_keys=[entered_by_id], back_populates="entered_results"
    )
    approved_by = relationship(
        "User", foreign_keys=[approved_by_id], back_populates="approved_results"
    )

    __table_args__ = (
        UniqueConstraint("game_session_id", name="uq_results_game_session"),
        Index("idx_results_status", "status"),
    )


class FriendRequest(Base):
    """Directed friend request; an ACCEPTED request means the two users are friends."""

    __tablename__ = "friend_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    to_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # Normalized pair (user_low_id < user_high_id) so one request exists per unordered pair
    user_low_id = Column(Integer, nullable=False)
    user_high_id = Column(Integer, nullable=False)
    status = Column(String(20), default=FriendRequestStatus.PENDING.value, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    from_user = relationship(
        "User", foreign_keys=[from_user_id], back_populates="sent_friend_requests"
    )
    to_user = relationship(
        "User", foreign_keys=[to_user_id], back_populates="received_friend_requests"
    )

    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_friend_request_pair"),
        CheckConstraint("user_low_id < user_high_id", name="ck_friend_request_pair_order"),
        Index("idx_friend_requests_to_status", "to_user_id", "status"),
        Index("idx_friend_requests_from", "from_user_id"),
    )
