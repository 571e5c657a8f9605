"""
完成度服務：誰已經完成了贏家推薦
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from models import Completion, Member


@dataclass(frozen=True)
class MemberCompletion:
    member_id: str
    member_name: str
    is_completed: bool
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class CompletionSummary:
    completed: int
    total: int
    all_completed: bool
    percentage: float


@dataclass(frozen=True)
class CompletionStatus:
    round_id: str
    winning_recommendation_id: str
    members: List[MemberCompletion]
    summary: CompletionSummary


def build_completion_status(
    round_id: str,
    winning_recommendation_id: str,
    members: Iterable[Member],
    completions: Iterable[Completion]
) -> CompletionStatus:
    """
    每位成員對贏家推薦的完成狀態

    沒有 Completion 紀錄的成員視為未完成，已離開社團的成員的紀錄會被忽略
    summary 只是參考，結束回合不依賴它
    """
    by_member = {c.member_id: c for c in completions}

    rows: List[MemberCompletion] = []
    for member in members:
        completion = by_member.get(member.id)
        done = bool(completion and completion.is_completed)
        rows.append(MemberCompletion(
            member_id=member.id,
            member_name=member.name,
            is_completed=done,
            completed_at=completion.updated_at if done else None
        ))

    completed = sum(1 for r in rows if r.is_completed)
    total = len(rows)
    summary = CompletionSummary(
        completed=completed,
        total=total,
        all_completed=total > 0 and completed == total,
        percentage=completed * 100 / total if total > 0 else 0.0
    )
    return CompletionStatus(
        round_id=round_id,
        winning_recommendation_id=winning_recommendation_id,
        members=rows,
        summary=summary
    )
