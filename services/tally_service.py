"""
計票服務：每個推薦的總分與投票參與率

純計算邏輯，不負責狀態轉換（由 RoundManager 負責）
"""
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence

from models import Vote


@dataclass(frozen=True)
class Participation:
    voted: int
    total: int
    percentage: float


def tally_votes(votes: Iterable[Vote], order: Optional[Sequence[str]] = None) -> Dict[str, int]:
    """
    加總每個推薦的得分

    沒人投的推薦不會出現在結果裡

    參數：
        votes: Vote（任何有 recommendation_id 和 points 的物件）
        order: 依建立順序的推薦 ID；有給的話結果依此排序，平手處理就不受投票順序影響

    返回：
        {recommendation_id: total_points}

    範例：
        R1 得 3, 3, 2、R2 得 2, 2, 3 -> {"R1": 8, "R2": 7}
    """
    totals: Dict[str, int] = {}
    for vote in votes:
        totals[vote.recommendation_id] = totals.get(vote.recommendation_id, 0) + vote.points

    if order is None:
        return totals

    ordered = {rec_id: totals[rec_id] for rec_id in order if rec_id in totals}
    # 不在 `order` 裡的 ID 依第一次出現的順序排在最後
    for rec_id, total in totals.items():
        ordered.setdefault(rec_id, total)
    return ordered


def calculate_participation(votes: Iterable[Vote], member_count: int) -> Participation:
    """
    有投票的成員比例

    不論選票有幾筆，每位成員只算一次；沒有成員的社團參與率為 0%
    """
    voters = {vote.member_id for vote in votes}
    percentage = len(voters) * 100 / member_count if member_count > 0 else 0.0
    return Participation(voted=len(voters), total=member_count, percentage=percentage)
