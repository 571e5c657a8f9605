"""
Round API Endpoints

重點：
1. 所有業務邏輯集中在 RoundManager，endpoint 只負責轉換
2. 重複的「結束投票」或「結束回合」會在行級鎖下看到新狀態並得到 400
3. WebSocket 全面移除，前端靠 /api/clubs/{club_id}/events 輪詢
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import (
    RoundResponse,
    FinishRoundResponse,
    RecommendationsAdd,
    RecommendationResponse,
    BallotSubmit,
    VoteResponse,
    CloseVotingResponse,
    ParticipationResponse,
    CompletionMark,
    CompletionResponse,
    CompletionStatusResponse
)
from core.round_manager import RoundManager, RecommendationDraft
from core.exceptions import ConsensusException
from services.ballot_service import BallotEntry
from api.deps import Actor, get_actor, get_round_manager, may_act_for, to_http_exception

router = APIRouter(prefix="/api/rounds", tags=["rounds"])
logger = logging.getLogger(__name__)


@router.get("/{round_id}", response_model=RoundResponse)
def get_round(round_id: str, db: Session = Depends(get_db)):
    try:
        return RoundManager.get_round_by_id(db, round_id)
    except ConsensusException as e:
        raise to_http_exception(e)


# ============ Recommendations ============

@router.post("/{round_id}/recommendations", response_model=List[RecommendationResponse], status_code=201)
def add_recommendations(
    round_id: str,
    payload: RecommendationsAdd,
    db: Session = Depends(get_db),
    rounds: RoundManager = Depends(get_round_manager)
):
    """
    以回合目前推薦人的身分新增推薦

    前置條件：
    - Round 狀態是 RECOMMENDING
    - 總數不超過社團的 max_recommendations
    """
    try:
        drafts = [RecommendationDraft(title=r.title, description=r.description) for r in payload.recommendations]
        return rounds.add_recommendations(db, round_id, drafts)
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to add recommendations: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{round_id}/recommendations", response_model=List[RecommendationResponse])
def list_recommendations(round_id: str, db: Session = Depends(get_db)):
    try:
        RoundManager.get_round_by_id(db, round_id)
        return RoundManager.list_recommendations(db, round_id)
    except ConsensusException as e:
        raise to_http_exception(e)


# ============ Phase transitions ============

@router.post("/{round_id}/voting/start", response_model=RoundResponse)
def start_voting(
    round_id: str,
    db: Session = Depends(get_db),
    rounds: RoundManager = Depends(get_round_manager)
):
    """RECOMMENDING -> VOTING，需達到 min_recommendations"""
    try:
        return rounds.start_voting(db, round_id)
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to start voting: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{round_id}/voting/close", response_model=CloseVotingResponse)
def close_voting(
    round_id: str,
    db: Session = Depends(get_db),
    rounds: RoundManager = Depends(get_round_manager)
):
    """
    結束投票（VOTING -> COMPLETING）

    計票、依社團設定處理平手並寫入贏家

    錯誤：
        400: 狀態不是 VOTING、沒有選票，或參與率低於社團門檻
    """
    try:
        outcome = rounds.close_voting(db, round_id)
        logger.info(f"Voting closed for round {round_id}, winner {outcome.winner.id}")
        return CloseVotingResponse(
            round=RoundResponse.model_validate(outcome.round),
            winner=RecommendationResponse.model_validate(outcome.winner),
            totals=outcome.totals,
            participation=ParticipationResponse(
                voted=outcome.participation.voted,
                total=outcome.participation.total,
                percentage=outcome.participation.percentage
            ),
            tied_ids=outcome.tie_break.tied_ids if outcome.tie_break.was_tie else []
        )
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to close voting: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{round_id}/finish", response_model=FinishRoundResponse)
def finish_round(
    round_id: str,
    db: Session = Depends(get_db),
    rounds: RoundManager = Depends(get_round_manager)
):
    """
    結束回合（COMPLETING -> FINISHED），並由下一位推薦人開始下一回合

    完成度不需要達到 100% 才能結束
    """
    try:
        finished, next_round = rounds.finish_round(db, round_id)
        return FinishRoundResponse(
            finished_round=RoundResponse.model_validate(finished),
            next_round=RoundResponse.model_validate(next_round) if next_round else None
        )
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to finish round: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


# ============ Votes ============

@router.post("/{round_id}/votes", response_model=List[VoteResponse], status_code=201)
def submit_ballot(
    round_id: str,
    ballot: BallotSubmit,
    db: Session = Depends(get_db),
    rounds: RoundManager = Depends(get_round_manager),
    actor: Actor = Depends(get_actor)
):
    """
    送出成員的選票

    呼叫者可以替自己投票；admin 和社團管理者可以代替其他人投票
    """
    try:
        round_obj = RoundManager.get_round_by_id(db, round_id)
        allowed = may_act_for(actor, round_obj.club_id, ballot.member_id, db)
        entries = [BallotEntry(recommendation_id=v.recommendation_id, points=v.points) for v in ballot.votes]
        return rounds.submit_ballot(db, round_id, ballot.member_id, entries, allowed=allowed)
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to submit ballot: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{round_id}/votes", response_model=List[VoteResponse])
def list_votes(round_id: str, db: Session = Depends(get_db)):
    try:
        RoundManager.get_round_by_id(db, round_id)
        return RoundManager.list_votes_for_round(db, round_id)
    except ConsensusException as e:
        raise to_http_exception(e)


# ============ Completions ============

@router.post("/{round_id}/completions", response_model=CompletionResponse, status_code=201)
def mark_completion(
    round_id: str,
    payload: CompletionMark,
    db: Session = Depends(get_db),
    rounds: RoundManager = Depends(get_round_manager),
    actor: Actor = Depends(get_actor)
):
    """標記（或取消）成員完成贏家推薦"""
    try:
        round_obj = RoundManager.get_round_by_id(db, round_id)
        allowed = may_act_for(actor, round_obj.club_id, payload.member_id, db)
        return rounds.mark_completion(
            db, round_id, payload.member_id, payload.is_completed, allowed=allowed
        )
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to mark completion: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{round_id}/completions", response_model=List[CompletionResponse])
def list_completions(round_id: str, db: Session = Depends(get_db)):
    try:
        return RoundManager.list_completions(db, round_id)
    except ConsensusException as e:
        raise to_http_exception(e)


@router.get("/{round_id}/completions/status", response_model=CompletionStatusResponse)
def get_completion_status(round_id: str, db: Session = Depends(get_db)):
    """每位成員的完成狀態與統計，僅供參考"""
    try:
        return RoundManager.get_completion_status(db, round_id)
    except ConsensusException as e:
        raise to_http_exception(e)
