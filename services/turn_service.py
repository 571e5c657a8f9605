"""
輪替服務：決定下一回合由誰推薦
"""
from typing import Optional, Sequence
import random

from core.club_config import TurnOrder


def next_recommender_id(
    turn_order: TurnOrder,
    member_ids: Sequence[str],
    outgoing_id: Optional[str],
    rng: Optional[random.Random] = None
) -> str:
    """
    選出下一位推薦人

    SEQUENTIAL：
        上一位推薦人的下一位，到底再從頭開始
        成員 [A, B, C]：B -> C，C -> A
        上一位推薦人已離開社團時 index 為 -1，(-1 + 1) % n == 0，由第一位成員接手

    RANDOM：
        在所有成員中均勻隨機挑選，不排除上一位推薦人（可能連續兩輪）

    參數：
        turn_order: 社團的 turn_order
        member_ids: 依加入時間排序的成員 ID（最早的在前）
        outgoing_id: 剛結束的回合的推薦人
        rng: 亂數來源（測試可注入）

    異常：
        ValueError: 沒有成員
    """
    if not member_ids:
        raise ValueError("Cannot pick a recommender from an empty club")

    if turn_order == TurnOrder.RANDOM:
        return (rng or random).choice(list(member_ids))

    try:
        index = list(member_ids).index(outgoing_id)
    except ValueError:
        index = -1
    return member_ids[(index + 1) % len(member_ids)]
