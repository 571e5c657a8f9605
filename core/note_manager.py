"""
Note Manager：成員的回合筆記

每位成員在每個回合最多一則私人筆記（標題 + 內容，都可以為空），
只有筆記的主人能讀寫

筆記是私人的，不發出 domain event，也不會出現在社團的事件 feed
"""
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from models import Member, MemberNote
from core.exceptions import MemberNotFound, NoteNotFound, PermissionDenied, RoundNotFound
from core.locks import with_round_lock
from database import transactional

logger = logging.getLogger(__name__)


class NoteManager:

    @transactional
    def get_or_create_note(self, db: Session, round_id: str, member_id: str) -> MemberNote:
        """
        取得成員在這個回合的筆記，沒有就建立一則空白筆記

        流程：
        1. 鎖定 Round（兩個並發請求不會各建一則）
        2. 確認成員屬於回合所在的社團
        3. 找現有筆記，沒有就新增

        異常：
            RoundNotFound: 回合不存在
            MemberNotFound: 成員不存在
            PermissionDenied: 成員不屬於這個社團
        """
        round_obj = with_round_lock(round_id, db).first()
        if not round_obj:
            raise RoundNotFound(round_id)

        member = db.query(Member).filter(Member.id == member_id).first()
        if not member:
            raise MemberNotFound(member_id)
        if member.club_id != round_obj.club_id:
            raise PermissionDenied("You are not a member of this club")

        note = db.query(MemberNote).filter(
            MemberNote.member_id == member_id,
            MemberNote.round_id == round_id
        ).first()
        if note:
            return note

        note = MemberNote(member_id=member_id, round_id=round_id)
        db.add(note)
        db.flush()

        logger.info(f"Created note {note.id} for member {member_id} in round {round_id}")
        return note

    @transactional
    def update_note(
        self,
        db: Session,
        note_id: str,
        member_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None
    ) -> MemberNote:
        """
        更新筆記，參數為 None 的欄位保持不變

        異常：
            NoteNotFound, PermissionDenied（不是自己的筆記）
        """
        note = self._owned_note(db, note_id, member_id, "You can only edit your own notes")

        if title is not None:
            note.title = title
        if content is not None:
            note.content = content
        db.flush()

        logger.info(f"Updated note {note_id}")
        return note

    @transactional
    def delete_note(self, db: Session, note_id: str, member_id: str) -> None:
        note = self._owned_note(db, note_id, member_id, "You can only delete your own notes")
        db.delete(note)
        logger.info(f"Deleted note {note_id}")

    @staticmethod
    def list_member_notes(db: Session, member_id: str) -> List[MemberNote]:
        """成員所有的筆記，最近更新的在前"""
        return (
            db.query(MemberNote)
            .filter(MemberNote.member_id == member_id)
            .order_by(MemberNote.updated_at.desc(), MemberNote.id)
            .all()
        )

    @staticmethod
    def _owned_note(db: Session, note_id: str, member_id: str, denied_message: str) -> MemberNote:
        note = db.query(MemberNote).filter(MemberNote.id == note_id).first()
        if not note:
            raise NoteNotFound(note_id)
        if not note.can_access(member_id):
            raise PermissionDenied(denied_message)
        return note
