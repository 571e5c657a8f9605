"""
Member API Endpoints

職責：
1. 成員加入社團
2. 查詢成員（列表依輪替順序）
3. 更新 / 移除成員
"""
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import MemberCreate, MemberResponse, MemberUpdate
from core.club_manager import ClubManager
from core.exceptions import ConsensusException
from api.deps import get_club_manager, to_http_exception

router = APIRouter(prefix="/api/clubs", tags=["members"])
logger = logging.getLogger(__name__)


@router.post("/{club_id}/members", response_model=MemberResponse, status_code=201)
def add_member(
    club_id: str,
    member_data: MemberCreate,
    db: Session = Depends(get_db),
    clubs: ClubManager = Depends(get_club_manager)
):
    try:
        return clubs.add_member(
            db,
            club_id,
            member_data.name,
            email=member_data.email,
            is_club_manager=member_data.is_club_manager
        )
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to add member: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{club_id}/members", response_model=List[MemberResponse])
def list_members(club_id: str, db: Session = Depends(get_db)):
    """依加入時間排序，也就是依序輪替的順序"""
    try:
        ClubManager.get_club_by_id(db, club_id)
        return ClubManager.list_members(db, club_id)
    except ConsensusException as e:
        raise to_http_exception(e)


@router.get("/{club_id}/members/{member_id}", response_model=MemberResponse)
def get_member(club_id: str, member_id: str, db: Session = Depends(get_db)):
    try:
        return ClubManager.get_member(db, club_id, member_id)
    except ConsensusException as e:
        raise to_http_exception(e)


@router.patch("/{club_id}/members/{member_id}", response_model=MemberResponse)
def update_member(
    club_id: str,
    member_id: str,
    member_data: MemberUpdate,
    db: Session = Depends(get_db),
    clubs: ClubManager = Depends(get_club_manager)
):
    """沒給的欄位保持不變"""
    try:
        return clubs.update_member(
            db,
            club_id,
            member_id,
            name=member_data.name,
            email=member_data.email,
            is_club_manager=member_data.is_club_manager
        )
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to update member: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{club_id}/members/{member_id}", status_code=204)
def remove_member(
    club_id: str,
    member_id: str,
    db: Session = Depends(get_db),
    clubs: ClubManager = Depends(get_club_manager)
):
    try:
        clubs.remove_member(db, club_id, member_id)
        return Response(status_code=204)
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to remove member: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
