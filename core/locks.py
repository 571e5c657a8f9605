"""
並發控制工具

提供 Database-level 的鎖定機制，防止競態條件（Race Condition）

主要使用 PostgreSQL 的 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）
SQLite 會忽略 FOR UPDATE，改由單一寫入連線讓 transaction 排隊
"""
from sqlalchemy.orm import Session, Query

from models import Club, Round


def with_club_lock(club_id: str, db: Session) -> Query:
    """
    鎖定一個 Club（行級鎖）

    使用場景：
    - 建立 Round 時：「是否已有推薦中的回合」的檢查和新回合的 insert
      必須在同一把鎖內，否則兩個並發請求可能都看到「沒有進行中的回合」

    範例：
        club = with_club_lock(club_id, db).first()
        if not club:
            raise ClubNotFound(club_id)

    參數：
        club_id: Club ID
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）
    """
    return db.query(Club).filter(
        Club.id == club_id
    ).with_for_update(nowait=False)


def with_round_lock(round_id: str, db: Session) -> Query:
    """
    鎖定一個 Round（行級鎖）

    使用場景：
    - 所有狀態轉換
    - 依回合階段決定能不能做的操作（投票、標記完成）
    - 結束投票時（防止重複計算贏家）
    - 結束回合時（防止建立兩個下一回合）

    範例：
        round_obj = with_round_lock(round_id, db).first()
        if round_obj and round_obj.status == RoundStatus.VOTING:
            # 計票...
            round_obj.status = RoundStatus.COMPLETING

    參數：
        round_id: Round ID
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(Round).filter(
        Round.id == round_id
    ).with_for_update(nowait=False)
