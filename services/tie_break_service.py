"""
平手服務：從計票結果選出唯一的贏家

純計算邏輯，亂數來源可注入
"""
from dataclasses import dataclass
from typing import List, Mapping, Optional
import random

from core.club_config import TieBreakingMethod


@dataclass(frozen=True)
class TieBreakResult:
    winner_id: str
    max_points: int
    tied_ids: List[str]
    # 只有一個最高分時為 None
    method: Optional[TieBreakingMethod] = None

    @property
    def was_tie(self) -> bool:
        return len(self.tied_ids) > 1


def top_scorers(totals: Mapping[str, int]) -> List[str]:
    """同為最高分的 ID，維持 mapping 的順序"""
    if not totals:
        return []
    max_points = max(totals.values())
    return [rec_id for rec_id, points in totals.items() if points == max_points]


def resolve_winner(
    totals: Mapping[str, int],
    method: TieBreakingMethod,
    rng: Optional[random.Random] = None
) -> TieBreakResult:
    """
    決定贏家推薦

    規則：
    - 只有一個最高分：直接勝出，忽略 `method`
    - RANDOM：在平手的推薦中均勻隨機挑選
    - RECOMMENDER_DECIDES：取第一個平手的推薦（目前沒有讓推薦人互動選擇的流程）
    - 其他（RE_VOTE）：同 RANDOM

    參數：
        totals: tally_votes 的結果，依推薦建立順序排列
        method: 社團的 tie_breaking_method
        rng: 亂數來源（測試可注入）

    異常：
        ValueError: totals 為空（close_voting 會先擋掉）
    """
    winners = top_scorers(totals)
    if not winners:
        raise ValueError("Cannot resolve a winner without any votes")

    max_points = totals[winners[0]]
    if len(winners) == 1:
        return TieBreakResult(winner_id=winners[0], max_points=max_points, tied_ids=winners)

    if method == TieBreakingMethod.RECOMMENDER_DECIDES:
        winner_id = winners[0]
    else:
        winner_id = (rng or random).choice(winners)

    return TieBreakResult(winner_id=winner_id, max_points=max_points, tied_ids=winners, method=method)
