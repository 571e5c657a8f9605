"""
Club API Endpoints

職責：
1. 建立 / 查詢 / 更新 / 刪除社團
2. 開始回合、查詢社團的回合、進行中的回合與歷史紀錄
3. 給短輪詢前端用的事件 feed（取代 socket 推播）
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from models import EventLog
from schemas import (
    ClubCreate,
    ClubUpdate,
    ClubResponse,
    RoundStart,
    RoundResponse,
    RoundHistoryEntry,
    EventResponse
)
from core.club_manager import ClubManager
from core.round_manager import RoundManager
from core.exceptions import ConsensusException
from services.history_service import get_club_round_history
from api.deps import get_club_manager, get_round_manager, to_http_exception

router = APIRouter(prefix="/api/clubs", tags=["clubs"])
logger = logging.getLogger(__name__)


@router.post("", response_model=ClubResponse, status_code=201)
def create_club(
    club_data: ClubCreate,
    db: Session = Depends(get_db),
    clubs: ClubManager = Depends(get_club_manager)
):
    """
    建立社團

    `config` 可省略；沒給的 key 用預設值，未知的 key 或 enum 值回 400
    """
    try:
        return clubs.create_club(db, club_data.name, club_data.type, club_data.config)
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create club: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("", response_model=List[ClubResponse])
def list_clubs(db: Session = Depends(get_db)):
    return ClubManager.list_clubs(db)


@router.get("/{club_id}", response_model=ClubResponse)
def get_club(club_id: str, db: Session = Depends(get_db)):
    try:
        return ClubManager.get_club_by_id(db, club_id)
    except ConsensusException as e:
        raise to_http_exception(e)


@router.patch("/{club_id}", response_model=ClubResponse)
def update_club(
    club_id: str,
    club_data: ClubUpdate,
    db: Session = Depends(get_db),
    clubs: ClubManager = Depends(get_club_manager)
):
    """
    更新社團

    `config` 是部分更新，會合併進目前的 config
    """
    try:
        return clubs.update_club(
            db,
            club_id,
            name=club_data.name,
            club_type=club_data.type,
            config_changes=club_data.config
        )
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to update club: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{club_id}", status_code=204)
def delete_club(
    club_id: str,
    db: Session = Depends(get_db),
    clubs: ClubManager = Depends(get_club_manager)
):
    """刪除社團，連同成員、回合與事件紀錄"""
    try:
        clubs.delete_club(db, club_id)
        return Response(status_code=204)
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to delete club: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{club_id}/rounds", response_model=RoundResponse, status_code=201)
def start_round(
    club_id: str,
    round_data: RoundStart,
    db: Session = Depends(get_db),
    rounds: RoundManager = Depends(get_round_manager)
):
    """
    開始回合（RECOMMENDING）

    錯誤：
        404: 社團或推薦人不存在
        409: 社團已有推薦中的回合
        400: 社團沒有成員
    """
    try:
        round_obj = rounds.start_round(db, club_id, round_data.current_recommender_id)
        logger.info(f"Round {round_obj.id} started for club {club_id}")
        return round_obj
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to start round: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{club_id}/rounds", response_model=List[RoundResponse])
def list_rounds(club_id: str, db: Session = Depends(get_db)):
    """社團所有回合，最新的在前"""
    try:
        return RoundManager.list_club_rounds(db, club_id)
    except ConsensusException as e:
        raise to_http_exception(e)


@router.get("/{club_id}/rounds/active", response_model=RoundResponse)
def get_active_round(club_id: str, db: Session = Depends(get_db)):
    try:
        ClubManager.get_club_by_id(db, club_id)
    except ConsensusException as e:
        raise to_http_exception(e)

    round_obj = RoundManager.find_active_round(db, club_id)
    if not round_obj:
        raise HTTPException(status_code=404, detail="No active round")
    return round_obj


@router.get("/{club_id}/rounds/history", response_model=List[RoundHistoryEntry])
def get_round_history(club_id: str, db: Session = Depends(get_db)):
    """已有贏家的回合（含計票結果），最新的在前"""
    try:
        ClubManager.get_club_by_id(db, club_id)
        return get_club_round_history(club_id, db)
    except ConsensusException as e:
        raise to_http_exception(e)


@router.get("/{club_id}/events", response_model=List[EventResponse])
def list_events(
    club_id: str,
    after: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """
    取得 id 大於 `after` 的事件，舊的在前

    前端帶著看過的最後一個 event id 輪詢
    """
    try:
        ClubManager.get_club_by_id(db, club_id)
    except ConsensusException as e:
        raise to_http_exception(e)

    return (
        db.query(EventLog)
        .filter(EventLog.club_id == club_id, EventLog.id > after)
        .order_by(EventLog.id)
        .limit(limit)
        .all()
    )
