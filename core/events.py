"""
Domain Events

核心邏輯不直接碰 socket，每個重要的變更都交給 EventSink，
事件要怎麼（或要不要）送到前端由 sink 決定。

Sinks：
- EventLogSink：在當前 transaction 內寫入 event_logs 表，
  業務操作 rollback 時事件也一起 rollback
- InMemoryEventSink：把事件放在 list 裡（測試、腳本用）
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol
import logging

from sqlalchemy.orm import Session

from models import EventLog

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    CLUB_CREATED = "CLUB_CREATED"
    CLUB_UPDATED = "CLUB_UPDATED"
    MEMBER_ADDED = "MEMBER_ADDED"
    MEMBER_UPDATED = "MEMBER_UPDATED"
    MEMBER_REMOVED = "MEMBER_REMOVED"
    ROUND_STARTED = "ROUND_STARTED"
    ROUND_STATUS_CHANGED = "ROUND_STATUS_CHANGED"
    RECOMMENDATIONS_ADDED = "RECOMMENDATIONS_ADDED"
    RECOMMENDATION_UPDATED = "RECOMMENDATION_UPDATED"
    RECOMMENDATION_DELETED = "RECOMMENDATION_DELETED"
    VOTE_CAST = "VOTE_CAST"
    VOTING_CLOSED = "VOTING_CLOSED"
    COMPLETION_UPDATED = "COMPLETION_UPDATED"
    TURN_CHANGED = "TURN_CHANGED"


@dataclass(frozen=True)
class DomainEvent:
    event_type: EventType
    club_id: str
    round_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


class EventSink(Protocol):
    def emit(self, event: DomainEvent) -> None:
        ...


class EventLogSink:
    """在呼叫者的 transaction 內寫入 EventLog"""

    def __init__(self, db: Session):
        self.db = db

    def emit(self, event: DomainEvent) -> None:
        self.db.add(EventLog(
            club_id=event.club_id,
            round_id=event.round_id,
            event_type=event.event_type.value,
            data=event.data
        ))
        logger.debug(f"Queued {event.event_type.value} for club {event.club_id}")


class InMemoryEventSink:
    def __init__(self):
        self.events: List[DomainEvent] = []

    def emit(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> List[DomainEvent]:
        return [e for e in self.events if e.event_type == event_type]


def sink_for(db: Session, sink: Optional[EventSink] = None) -> EventSink:
    """有注入的 sink 就用它，否則寫入 `db` 的 event log"""
    return sink if sink is not None else EventLogSink(db)
