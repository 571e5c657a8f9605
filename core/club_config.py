"""
社團設定（Club Config）

config 以 JSON 存在 clubs 表，但一律透過 ClubConfig 讀回，
回合邏輯不會拿到未驗證的輪替方式、平手處理方式或計分表。
未知的 key 和未知的 enum 值都會被拒絕。
"""
from enum import Enum
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from core.exceptions import InvalidClubConfig


class TurnOrder(str, Enum):
    SEQUENTIAL = "sequential"
    RANDOM = "random"


class TieBreakingMethod(str, Enum):
    RANDOM = "random"
    RECOMMENDER_DECIDES = "recommender_decides"
    RE_VOTE = "re_vote"


class ClubConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    min_recommendations: int = Field(3, ge=1)
    max_recommendations: int = Field(5, ge=1)
    voting_points: List[int] = Field(default_factory=lambda: [3, 2, 1])
    turn_order: TurnOrder = TurnOrder.SEQUENTIAL
    tie_breaking_method: TieBreakingMethod = TieBreakingMethod.RANDOM
    minimum_participation: float = Field(80, ge=0, le=100)

    @field_validator("voting_points")
    @classmethod
    def _check_points(cls, value: List[int]) -> List[int]:
        if not value:
            raise ValueError("voting_points must not be empty")
        if any(p <= 0 for p in value):
            raise ValueError("voting_points must be positive integers")
        if len(set(value)) != len(value):
            raise ValueError("voting_points must be distinct")
        return value

    @model_validator(mode="after")
    def _check_bounds(self) -> "ClubConfig":
        if self.min_recommendations > self.max_recommendations:
            raise ValueError("min_recommendations cannot exceed max_recommendations")
        return self

    def merged(self, changes: Mapping[str, Any]) -> "ClubConfig":
        """套用 `changes` 後重新驗證，回傳新的 config"""
        return parse_club_config({**self.model_dump(mode="json"), **changes})


def parse_club_config(raw: Optional[Mapping[str, Any]]) -> ClubConfig:
    """
    驗證原始 config

    None 回傳預設值。驗證失敗轉成 InvalidClubConfig，
    呼叫端看到的是 BadRequest 而不是 pydantic 的錯誤。
    """
    if raw is None:
        return ClubConfig()
    try:
        return ClubConfig.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidClubConfig(f"Invalid club config: {problems}") from e
