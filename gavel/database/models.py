"""
gavel.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- users          Member profile, point balance, daily + lifetime counters
- cases          Disputes put to the community vote
- votes          One guilty/innocent verdict per (case, user)
- comments       Top-level comments on a case
- replies        Replies to a comment
- point_history  Append-only ledger of point grants
"""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Gavel ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class CaseStatus(enum.StrEnum):
    """Lifecycle of a case.  OPEN → CLOSED only, never back."""
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class VoteType(enum.StrEnum):
    GUILTY = "guilty"
    INNOCENT = "innocent"


class MissionType(enum.StrEnum):
    """Claimable missions."""
    LEVEL_0 = "LEVEL_0"  # lifetime: vote + comment + post in one day
    LEVEL_1 = "LEVEL_1"  # daily: 5 votes
    LEVEL_2 = "LEVEL_2"  # daily: 3 comments
    LEVEL_3 = "LEVEL_3"  # per case: closed case on the hot list


class PointHistoryType(enum.StrEnum):
    EARN = "EARN"


# ---------------------------------------------------------------------------
# Users: one row per member, keyed by the external user key
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    nickname: Mapped[str] = mapped_column(String(50), nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_level0_claimed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Daily stats: only meaningful while last_active_date is today
    last_active_date: Mapped[date | None] = mapped_column(Date, default=None)
    daily_vote_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    daily_comment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    daily_post_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_level1_claimed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_level2_claimed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Lifetime totals
    total_vote_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_comment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_post_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    point_history: Mapped[list[PointHistory]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
        Index("ix_users_nickname", "nickname", unique=True),
    )

    # Every flush of a User compares-and-bumps ``version``; a concurrent
    # writer makes the UPDATE match zero rows and raises StaleDataError.
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<User id={self.id!r} nickname={self.nickname!r} points={self.points}>"


# ---------------------------------------------------------------------------
# Cases: disputes put to the vote
# ---------------------------------------------------------------------------
class Case(Base):
    __tablename__ = "cases"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    author_id: Mapped[str | None] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=CaseStatus.OPEN.value
    )
    guilty_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    innocent_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    hot_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_hot_listed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    vote_end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    comments: Mapped[list[Comment]] = relationship(
        back_populates="case", cascade="all, delete-orphan"
    )

    __table_args__ = (
        # Scheduler scan: status = OPEN AND vote_end_at <= now
        Index("ix_cases_status_vote_end", "status", "vote_end_at"),
        # LEVEL_3 eligibility lookup
        Index("ix_cases_author_hot", "author_id", "status", "is_hot_listed"),
        Index("ix_cases_hot_score", "hot_score"),
    )

    def __repr__(self) -> str:
        return f"<Case id={self.id!r} status={self.status} hot={self.hot_score}>"


# ---------------------------------------------------------------------------
# Votes: immutable, one per (case, user)
# ---------------------------------------------------------------------------
class Vote(Base):
    __tablename__ = "votes"

    case_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("cases.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    vote: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Vote case={self.case_id!r} user={self.user_id!r} vote={self.vote}>"


# ---------------------------------------------------------------------------
# Comments & replies
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    case_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(String(128), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    vote: Mapped[str | None] = mapped_column(String(10), default=None)
    likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    case: Mapped[Case] = relationship(back_populates="comments")
    replies: Mapped[list[Reply]] = relationship(
        back_populates="comment", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_comments_case_time", "case_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Comment id={self.id!r} case={self.case_id!r}>"


class Reply(Base):
    __tablename__ = "replies"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    # Denormalized so hot score recompute can count per case without a join
    case_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False
    )
    comment_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("comments.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(String(128), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    vote: Mapped[str | None] = mapped_column(String(10), default=None)
    likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    comment: Mapped[Comment] = relationship(back_populates="replies")

    __table_args__ = (
        Index("ix_replies_comment_time", "comment_id", "created_at"),
        Index("ix_replies_case", "case_id"),
    )

    def __repr__(self) -> str:
        return f"<Reply id={self.id!r} comment={self.comment_id!r}>"


# ---------------------------------------------------------------------------
# PointHistory: append-only audit ledger
# ---------------------------------------------------------------------------
class PointHistory(Base):
    __tablename__ = "point_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(
        String(10), nullable=False, default=PointHistoryType.EARN.value
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="point_history")

    __table_args__ = (
        Index("ix_point_history_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<PointHistory id={self.id} user={self.user_id!r} "
            f"amount={self.amount} reason={self.reason!r}>"
        )
