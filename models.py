"""
ORM models

Club -> Member、Round -> Recommendation -> Vote / Completion，
成員的回合筆記 MemberNote，以及記錄 domain event 的 EventLog
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from database import Base
from core.club_config import ClubConfig, TieBreakingMethod, TurnOrder, parse_club_config

__all__ = [
    "Club",
    "ClubType",
    "Member",
    "Round",
    "RoundStatus",
    "Recommendation",
    "Vote",
    "Completion",
    "MemberNote",
    "EventLog",
    "TurnOrder",
    "TieBreakingMethod",
]


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ClubType(str, enum.Enum):
    BOOK = "book"
    MOVIE = "movie"
    RESTAURANT = "restaurant"
    TRAVEL = "travel"
    GAMING = "gaming"
    LEARNING = "learning"
    EVENT = "event"
    PODCAST = "podcast"
    TV_SHOW = "tv_show"
    MUSIC = "music"
    OTHER = "other"


class RoundStatus(str, enum.Enum):
    RECOMMENDING = "recommending"
    VOTING = "voting"
    COMPLETING = "completing"
    FINISHED = "finished"


class Club(Base):
    __tablename__ = "clubs"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False)
    type = Column(Enum(ClubType), nullable=False, default=ClubType.BOOK)
    config = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    members = relationship(
        "Member", back_populates="club", order_by="Member.created_at", cascade="all, delete-orphan"
    )
    rounds = relationship("Round", back_populates="club", cascade="all, delete-orphan")

    def get_config(self) -> ClubConfig:
        return parse_club_config(self.config)


class Member(Base):
    __tablename__ = "members"

    id = Column(String(36), primary_key=True, default=_uuid)
    club_id = Column(String(36), ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    is_club_manager = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    club = relationship("Club", back_populates="members")
    # 移除成員時一併刪除他的選票、完成紀錄與筆記
    votes = relationship("Vote", back_populates="member", cascade="all, delete-orphan")
    completions = relationship(
        "Completion", back_populates="member", cascade="all, delete-orphan"
    )
    notes = relationship("MemberNote", back_populates="member", cascade="all, delete-orphan")


class Round(Base):
    __tablename__ = "rounds"
    __table_args__ = (
        # 每個 Club 最多一個 RECOMMENDING 回合
        Index(
            "uq_rounds_club_recommending",
            "club_id",
            unique=True,
            sqlite_where=text("status = 'RECOMMENDING'"),
            postgresql_where=text("status = 'RECOMMENDING'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    club_id = Column(String(36), ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False, index=True)
    current_recommender_id = Column(String(36), ForeignKey("members.id", ondelete="SET NULL"), nullable=True)
    status = Column(Enum(RoundStatus), nullable=False, default=RoundStatus.RECOMMENDING)
    winning_recommendation_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    club = relationship("Club", back_populates="rounds")
    current_recommender = relationship("Member", foreign_keys=[current_recommender_id])
    recommendations = relationship(
        "Recommendation",
        back_populates="round",
        order_by="Recommendation.position",
        cascade="all, delete-orphan"
    )
    notes = relationship("MemberNote", back_populates="round", cascade="all, delete-orphan")
    winning_recommendation = relationship(
        "Recommendation",
        primaryjoin="foreign(Round.winning_recommendation_id) == Recommendation.id",
        viewonly=True
    )


class Recommendation(Base):
    __tablename__ = "recommendations"

    id = Column(String(36), primary_key=True, default=_uuid)
    round_id = Column(String(36), ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False, index=True)
    recommender_id = Column(String(36), ForeignKey("members.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    round = relationship("Round", back_populates="recommendations")
    recommender = relationship("Member")
    votes = relationship("Vote", back_populates="recommendation", cascade="all, delete-orphan")


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("member_id", "recommendation_id", name="uq_votes_member_recommendation"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    member_id = Column(String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    recommendation_id = Column(
        String(36), ForeignKey("recommendations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    points = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    member = relationship("Member", back_populates="votes")
    recommendation = relationship("Recommendation", back_populates="votes")


class Completion(Base):
    __tablename__ = "completions"
    __table_args__ = (
        UniqueConstraint("member_id", "recommendation_id", name="uq_completions_member_recommendation"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    member_id = Column(String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    recommendation_id = Column(
        String(36), ForeignKey("recommendations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    member = relationship("Member", back_populates="completions")


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    club_id = Column(String(36), ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False, index=True)
    round_id = Column(String(36), nullable=True)
    event_type = Column(String(50), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class MemberNote(Base):
    """成員對某個回合的私人筆記，每人每回合一則"""
    __tablename__ = "member_notes"
    __table_args__ = (
        UniqueConstraint("member_id", "round_id", name="uq_member_notes_member_round"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    member_id = Column(String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    round_id = Column(String(36), ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=True)
    content = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    member = relationship("Member", back_populates="notes")
    round = relationship("Round", back_populates="notes")

    def can_access(self, member_id: str) -> bool:
        return self.member_id == member_id
