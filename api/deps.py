"""
Routers 共用的 dependency

- Manager factory（測試時可 override）
- 從 request header 取得呼叫者身分
- ConsensusException -> HTTPException 轉換
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from models import Member
from core.club_manager import ClubManager
from core.note_manager import NoteManager
from core.exceptions import ConsensusException, ErrorKind
from core.round_manager import RoundManager

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.FORBIDDEN: 403,
}


def to_http_exception(e: ConsensusException) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_KIND.get(e.kind, 400),
        detail={"error": e.kind.value, "message": str(e)}
    )


def get_club_manager() -> ClubManager:
    return ClubManager()


def get_round_manager() -> RoundManager:
    return RoundManager()


def get_note_manager() -> NoteManager:
    return NoteManager()


@dataclass(frozen=True)
class Actor:
    member_id: Optional[str]
    is_admin: bool = False


def get_actor(
    x_member_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None)
) -> Actor:
    """
    取得呼叫者身分

    驗證在上游（gateway / auth middleware）完成，請求到這裡時
    呼叫者的 member id 和角色已經是單純的 header
    """
    actor = Actor(member_id=x_member_id, is_admin=(x_user_role or "").lower() == "admin")
    if not actor.member_id and not actor.is_admin:
        raise HTTPException(status_code=401, detail="Authentication required")
    return actor


def may_act_for(actor: Actor, club_id: str, member_id: str, db: Session) -> bool:
    """
    `actor` 能否代替 `member_id` 投票 / 標記完成

    允許：本人、admin、同一社團的管理者
    """
    if actor.is_admin or actor.member_id == member_id:
        return True
    acting = db.query(Member).filter(
        Member.id == actor.member_id,
        Member.club_id == club_id
    ).first()
    return bool(acting and acting.is_club_manager)
