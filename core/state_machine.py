"""
回合狀態機

所有回合狀態變更都經過 RoundStateMachine.transition()，
合法的轉換只定義在一張表裡：

    RECOMMENDING -> VOTING -> COMPLETING -> FINISHED

只能往前走。FINISHED 的回合不會重開，下一輪是全新的 Round。
"""
import logging

from models import Round, RoundStatus
from core.events import DomainEvent, EventSink, EventType
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class RoundStateMachine:

    TRANSITIONS = {
        RoundStatus.RECOMMENDING: {RoundStatus.VOTING},
        RoundStatus.VOTING: {RoundStatus.COMPLETING},
        RoundStatus.COMPLETING: {RoundStatus.FINISHED},
        RoundStatus.FINISHED: set(),
    }

    # 操作要求的回合狀態，以及不符合時的訊息
    REQUIRED_STATUS_MESSAGES = {
        RoundStatus.RECOMMENDING: "Round is not in recommending status",
        RoundStatus.VOTING: "Round is not in voting status",
        RoundStatus.COMPLETING: "Round is not in completing status",
    }

    @classmethod
    def can_transition(cls, current: RoundStatus, target: RoundStatus) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def require_status(cls, round_obj: Round, expected: RoundStatus, message: str = None) -> None:
        """
        守衛：回合不在 `expected` 狀態就拋出 InvalidStateTransition

        使用場景：任何受階段限制的修改之前（新增推薦、投票、標記完成）
        """
        if round_obj.status != expected:
            raise InvalidStateTransition(
                message or cls.REQUIRED_STATUS_MESSAGES.get(
                    expected, f"Round is not in {expected.value} status"
                )
            )

    @classmethod
    def transition(cls, round_obj: Round, target: RoundStatus, sink: EventSink) -> Round:
        """
        把（已鎖定的）回合轉換到 `target`

        注意：
            - 呼叫者必須持有行級鎖（core.locks.with_round_lock）
            - 呼叫者必須先檢查完所有業務前置條件，這裡只驗證轉換本身
            - 會記錄 ROUND_STATUS_CHANGED 事件

        異常：
            InvalidStateTransition: 轉換不在 TRANSITIONS 裡
        """
        current = round_obj.status
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(
                cls.REQUIRED_STATUS_MESSAGES.get(
                    _source_of(target),
                    f"Cannot move round from {current.value} to {target.value}"
                )
            )

        round_obj.status = target
        logger.info(f"Round {round_obj.id} {current.value} -> {target.value}")

        sink.emit(DomainEvent(
            event_type=EventType.ROUND_STATUS_CHANGED,
            club_id=round_obj.club_id,
            round_id=round_obj.id,
            data={
                "from": current.value,
                "to": target.value,
                "winning_recommendation_id": round_obj.winning_recommendation_id
            }
        ))
        return round_obj


def _source_of(target: RoundStatus):
    for source, targets in RoundStateMachine.TRANSITIONS.items():
        if target in targets:
            return source
    return None
