"""
HTTP 層的 Request / Response models
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import ClubType, RoundStatus
from core.club_config import ClubConfig


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ============ Club / Member ============

class ClubCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: ClubType = ClubType.BOOK
    # 由 ClubManager 驗證成 ClubConfig，錯誤會回 400
    config: Optional[Dict[str, Any]] = None


class ClubUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[ClubType] = None
    config: Optional[Dict[str, Any]] = None


class ClubResponse(ORMModel):
    id: str
    name: str
    type: ClubType
    config: ClubConfig
    created_at: datetime


class MemberCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = None
    is_club_manager: bool = False


class MemberUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = None
    is_club_manager: Optional[bool] = None


class MemberResponse(ORMModel):
    id: str
    club_id: str
    name: str
    email: Optional[str] = None
    is_club_manager: bool
    created_at: datetime


# ============ Round ============

class RoundStart(BaseModel):
    current_recommender_id: str


class RoundResponse(ORMModel):
    id: str
    club_id: str
    status: RoundStatus
    current_recommender_id: Optional[str] = None
    winning_recommendation_id: Optional[str] = None
    created_at: datetime


class FinishRoundResponse(BaseModel):
    finished_round: RoundResponse
    next_round: Optional[RoundResponse] = None


class RoundHistoryEntry(BaseModel):
    round_id: str
    status: RoundStatus
    recommender_id: Optional[str] = None
    recommender_name: Optional[str] = None
    winning_recommendation_id: str
    winning_title: Optional[str] = None
    totals: Dict[str, int]
    created_at: datetime


# ============ Recommendation ============

class RecommendationItem(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class RecommendationsAdd(BaseModel):
    recommendations: List[RecommendationItem] = Field(..., min_length=1)


class RecommendationUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None


class RecommendationResponse(ORMModel):
    id: str
    round_id: str
    recommender_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    position: int


# ============ Vote ============

class BallotEntrySubmit(BaseModel):
    recommendation_id: str
    points: int


class BallotSubmit(BaseModel):
    member_id: str
    # 空選票交給選票規則檢查，錯誤訊息才會一致
    votes: List[BallotEntrySubmit]


class VoteResponse(ORMModel):
    id: str
    member_id: str
    recommendation_id: str
    points: int


class ParticipationResponse(BaseModel):
    voted: int
    total: int
    percentage: float


class CloseVotingResponse(BaseModel):
    round: RoundResponse
    winner: RecommendationResponse
    totals: Dict[str, int]
    participation: ParticipationResponse
    tied_ids: List[str] = []


# ============ Completion ============

class CompletionMark(BaseModel):
    member_id: str
    is_completed: bool


class CompletionResponse(ORMModel):
    id: str
    member_id: str
    recommendation_id: str
    is_completed: bool
    updated_at: datetime


class MemberCompletionResponse(ORMModel):
    member_id: str
    member_name: str
    is_completed: bool
    completed_at: Optional[datetime] = None


class CompletionSummaryResponse(ORMModel):
    completed: int
    total: int
    all_completed: bool
    percentage: float


class CompletionStatusResponse(ORMModel):
    round_id: str
    winning_recommendation_id: str
    members: List[MemberCompletionResponse]
    summary: CompletionSummaryResponse


# ============ Note ============

class MemberNoteUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None


class MemberNoteResponse(ORMModel):
    id: str
    member_id: str
    round_id: str
    title: Optional[str] = None
    content: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ============ Events ============

class EventResponse(ORMModel):
    id: int
    club_id: str
    round_id: Optional[str] = None
    event_type: str
    data: Dict[str, Any]
    created_at: datetime
