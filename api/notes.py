"""
Member Note API Endpoints

筆記永遠屬於呼叫者本人（X-Member-Id），admin 身分也不能讀寫別人的筆記
"""
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import MemberNoteResponse, MemberNoteUpdate
from core.note_manager import NoteManager
from core.exceptions import ConsensusException
from api.deps import Actor, get_actor, get_note_manager, to_http_exception

router = APIRouter(prefix="/api/notes", tags=["notes"])
logger = logging.getLogger(__name__)


def _member_id(actor: Actor) -> str:
    if not actor.member_id:
        raise HTTPException(status_code=401, detail="Member identity required")
    return actor.member_id


@router.get("", response_model=List[MemberNoteResponse])
def list_my_notes(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    """呼叫者所有的筆記，最近更新的在前"""
    return NoteManager.list_member_notes(db, _member_id(actor))


@router.get("/rounds/{round_id}", response_model=MemberNoteResponse)
def get_round_note(
    round_id: str,
    db: Session = Depends(get_db),
    notes: NoteManager = Depends(get_note_manager),
    actor: Actor = Depends(get_actor)
):
    """
    取得呼叫者在這個回合的筆記，第一次讀取時建立空白筆記

    錯誤：
        404: 回合或成員不存在
        403: 呼叫者不屬於回合所在的社團
    """
    member_id = _member_id(actor)
    try:
        return notes.get_or_create_note(db, round_id, member_id)
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to load note: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("/{note_id}", response_model=MemberNoteResponse)
def update_note(
    note_id: str,
    payload: MemberNoteUpdate,
    db: Session = Depends(get_db),
    notes: NoteManager = Depends(get_note_manager),
    actor: Actor = Depends(get_actor)
):
    member_id = _member_id(actor)
    try:
        return notes.update_note(
            db,
            note_id,
            member_id,
            title=payload.title,
            content=payload.content
        )
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to update note: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{note_id}", status_code=204)
def delete_note(
    note_id: str,
    db: Session = Depends(get_db),
    notes: NoteManager = Depends(get_note_manager),
    actor: Actor = Depends(get_actor)
):
    member_id = _member_id(actor)
    try:
        notes.delete_note(db, note_id, member_id)
        return Response(status_code=204)
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to delete note: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
