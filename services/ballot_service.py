"""
選票服務：依社團的計分表驗證一位成員的選票

純計算邏輯，不碰資料庫。規則依固定順序檢查，回報第一條不符合的規則
"""
from dataclasses import dataclass
from typing import Collection, Iterable, List, Sequence

from core.exceptions import InvalidBallot


@dataclass(frozen=True)
class BallotEntry:
    recommendation_id: str
    points: int


def validate_ballot(
    entries: Sequence[BallotEntry],
    voting_points: Iterable[int],
    round_recommendation_ids: Collection[str]
) -> List[BallotEntry]:
    """
    驗證選票

    規則（依序檢查，第一條失敗即回報）：
    1. 選票不能是空的
    2. 每一筆都要指向這個回合的推薦
    3. 每一筆的分數都要在社團的計分表裡
    4. 同一個推薦不能出現兩次
    5. 同一個分數不能出現兩次

    沒投到的推薦不影響，只檢查選票上有的項目

    參數：
        entries: 送出的選票
        voting_points: 社團允許的分數，例如 [3, 2, 1]
        round_recommendation_ids: 這個回合的推薦 ID

    返回：
        原本的 entries

    異常：
        InvalidBallot
    """
    if not entries:
        raise InvalidBallot("votes array required")

    round_ids = set(round_recommendation_ids)
    for entry in entries:
        if entry.recommendation_id not in round_ids:
            raise InvalidBallot(
                f"recommendation {entry.recommendation_id} not found in this round"
            )

    allowed = list(voting_points)
    for entry in entries:
        if entry.points not in allowed:
            raise InvalidBallot(
                f"invalid points {entry.points}. Valid points are: "
                f"{', '.join(str(p) for p in allowed)}"
            )

    recommendation_ids = [e.recommendation_id for e in entries]
    if len(set(recommendation_ids)) != len(recommendation_ids):
        raise InvalidBallot("cannot vote for same recommendation multiple times")

    points = [e.points for e in entries]
    if len(set(points)) != len(points):
        raise InvalidBallot("cannot assign same points to multiple recommendations")

    return list(entries)
