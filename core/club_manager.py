"""
Club Manager：管理社團、社團設定與成員

職責：
1. 建立 / 更新 / 刪除社團（config 先驗證成 ClubConfig）
2. 新增 / 更新 / 移除成員
3. 查詢社團與成員

原則：
- 單一職責：只管 Club，不管 Round
"""
from sqlalchemy.orm import Session
from typing import Any, List, Mapping, Optional
import logging

from models import Club, ClubType, Member
from core.club_config import parse_club_config
from core.events import DomainEvent, EventSink, EventType, sink_for
from core.exceptions import ClubNotFound, InvalidClubConfig, InvalidMemberData, MemberNotFound
from database import transactional

logger = logging.getLogger(__name__)


class ClubManager:
    """Club 生命週期管理器"""

    def __init__(self, sink: Optional[EventSink] = None):
        self.sink = sink

    @transactional
    def create_club(
        self,
        db: Session,
        name: str,
        club_type: ClubType = ClubType.BOOK,
        config: Optional[Mapping[str, Any]] = None
    ) -> Club:
        """
        建立社團

        沒有給 config 就用預設值：
        - 推薦數 3-5
        - 計分 [3, 2, 1]
        - 依序輪替、平手隨機、參與率 80%

        參數：
            db: SQLAlchemy Session
            name: 社團名稱
            club_type: 社團類型
            config: 原始 config（可以只給部分 key）

        返回：
            新建立的 Club

        異常：
            InvalidClubConfig: 名稱為空、config 有未知 key 或值超出範圍
        """
        if not name or not name.strip():
            raise InvalidClubConfig("Club name cannot be empty")

        club_config = parse_club_config(config)
        club = Club(
            name=name.strip(),
            type=club_type,
            config=club_config.model_dump(mode="json")
        )
        db.add(club)
        db.flush()

        logger.info(f"Created club {club.id} ({club.name})")

        sink_for(db, self.sink).emit(DomainEvent(
            event_type=EventType.CLUB_CREATED,
            club_id=club.id,
            data={"name": club.name, "type": club.type.value}
        ))
        return club

    @transactional
    def update_club(
        self,
        db: Session,
        club_id: str,
        name: Optional[str] = None,
        club_type: Optional[ClubType] = None,
        config_changes: Optional[Mapping[str, Any]] = None
    ) -> Club:
        """
        更新名稱、類型或 config

        config 的變更會合併進目前的 config 再整體驗證，
        例如把 min_recommendations 調到比現有 max_recommendations 還大會被拒絕
        """
        club = self.get_club_by_id(db, club_id)

        if name is not None:
            if not name.strip():
                raise InvalidClubConfig("Club name cannot be empty")
            club.name = name.strip()
        if club_type is not None:
            club.type = club_type
        if config_changes:
            club.config = club.get_config().merged(config_changes).model_dump(mode="json")

        logger.info(f"Updated club {club_id}")

        sink_for(db, self.sink).emit(DomainEvent(
            event_type=EventType.CLUB_UPDATED,
            club_id=club.id,
            data={"name": club.name, "type": club.type.value, "config": club.config}
        ))
        return club

    @transactional
    def delete_club(self, db: Session, club_id: str) -> None:
        """
        刪除社團

        成員、回合（含推薦、選票、完成紀錄、筆記）與事件紀錄全部一起刪除，
        所以不會再發出事件
        """
        club = self.get_club_by_id(db, club_id)
        db.delete(club)
        logger.info(f"Deleted club {club_id}")

    @transactional
    def add_member(
        self,
        db: Session,
        club_id: str,
        name: str,
        email: Optional[str] = None,
        is_club_manager: bool = False
    ) -> Member:
        club = self.get_club_by_id(db, club_id)

        member = Member(
            club_id=club.id,
            name=name,
            email=email,
            is_club_manager=is_club_manager
        )
        db.add(member)
        db.flush()

        logger.info(f"Member {member.id} ({member.name}) joined club {club_id}")

        sink_for(db, self.sink).emit(DomainEvent(
            event_type=EventType.MEMBER_ADDED,
            club_id=club_id,
            data={"member_id": member.id, "name": member.name}
        ))
        return member

    @transactional
    def update_member(
        self,
        db: Session,
        club_id: str,
        member_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        is_club_manager: Optional[bool] = None
    ) -> Member:
        """
        更新成員資料

        參數為 None 的欄位保持不變

        異常：
            MemberNotFound: 成員不存在或屬於其他社團
            InvalidMemberData: 名稱為空
        """
        member = self.get_member(db, club_id, member_id)

        changes = {}
        if name is not None:
            if not name.strip():
                raise InvalidMemberData("Member name cannot be empty")
            member.name = name.strip()
            changes["name"] = member.name
        if email is not None:
            member.email = email
            changes["email"] = email
        if is_club_manager is not None:
            member.is_club_manager = is_club_manager
            changes["is_club_manager"] = is_club_manager

        logger.info(f"Updated member {member_id} in club {club_id}: {sorted(changes)}")

        sink_for(db, self.sink).emit(DomainEvent(
            event_type=EventType.MEMBER_UPDATED,
            club_id=club_id,
            data={"member_id": member_id, **changes}
        ))
        return member

    @transactional
    def remove_member(self, db: Session, club_id: str, member_id: str) -> None:
        """
        移除成員

        成員的選票、完成紀錄與筆記一起刪除，之後計算參與率時分子分母都不含他
        回合的推薦人欄位變成 NULL，依序輪替時會退回第一位成員
        """
        member = self.get_member(db, club_id, member_id)
        db.delete(member)

        logger.info(f"Member {member_id} removed from club {club_id}")

        sink_for(db, self.sink).emit(DomainEvent(
            event_type=EventType.MEMBER_REMOVED,
            club_id=club_id,
            data={"member_id": member_id}
        ))

    @staticmethod
    def get_club_by_id(db: Session, club_id: str) -> Club:
        club = db.query(Club).filter(Club.id == club_id).first()
        if not club:
            raise ClubNotFound(club_id)
        return club

    @staticmethod
    def list_clubs(db: Session) -> List[Club]:
        return db.query(Club).order_by(Club.created_at.desc()).all()

    @staticmethod
    def list_members(db: Session, club_id: str) -> List[Member]:
        """依加入時間排序的成員（也就是依序輪替的順序）"""
        return (
            db.query(Member)
            .filter(Member.club_id == club_id)
            .order_by(Member.created_at, Member.id)
            .all()
        )

    @staticmethod
    def get_member(db: Session, club_id: str, member_id: str) -> Member:
        """
        異常：
            MemberNotFound: 成員不存在或屬於其他社團
        """
        member = db.query(Member).filter(
            Member.id == member_id,
            Member.club_id == club_id
        ).first()
        if not member:
            raise MemberNotFound(
                member_id, "Member not found or does not belong to this club"
            )
        return member
