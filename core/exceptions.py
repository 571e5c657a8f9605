"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理
每個異常都帶一個 ErrorKind，HTTP status code 由 kind 決定，而不是類別名稱
"""
from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    BAD_REQUEST = "BadRequest"
    FORBIDDEN = "Forbidden"


class ConsensusException(Exception):
    """所有業務異常的基類"""
    kind = ErrorKind.BAD_REQUEST


# ============ NotFound ============

class EntityNotFound(ConsensusException):
    kind = ErrorKind.NOT_FOUND
    entity = "Entity"

    def __init__(self, entity_id, message=None):
        self.entity_id = entity_id
        super().__init__(message or f"{self.entity} {entity_id} not found")


class ClubNotFound(EntityNotFound):
    """社團不存在"""
    entity = "Club"


class RoundNotFound(EntityNotFound):
    """回合不存在"""
    entity = "Round"


class MemberNotFound(EntityNotFound):
    """成員不存在，或不屬於這個社團"""
    entity = "Member"


class RecommendationNotFound(EntityNotFound):
    """推薦不存在"""
    entity = "Recommendation"


class NoteNotFound(EntityNotFound):
    """筆記不存在"""
    entity = "Note"


# ============ Conflict ============

class ActiveRoundExists(ConsensusException):
    """社團已經有一個推薦中（RECOMMENDING）的回合"""
    kind = ErrorKind.CONFLICT

    def __init__(self, club_id):
        self.club_id = club_id
        super().__init__("There is already an active round for this club")


# ============ BadRequest ============

class InvalidStateTransition(ConsensusException):
    """回合不在操作要求的階段"""
    pass


class EmptyClub(ConsensusException):
    """社團沒有成員，無法開始回合"""
    pass


class InvalidRecommendations(ConsensusException):
    """推薦數量超出社團的 min/max，或推薦內容不完整"""
    pass


class InvalidBallot(ConsensusException):
    """選票不符合計分規則"""
    pass


class AlreadyVoted(ConsensusException):
    """成員在這個回合已經投過票"""
    def __init__(self, member_id):
        self.member_id = member_id
        super().__init__("Member has already voted for this round")


class NoVotesCast(ConsensusException):
    """沒有任何選票，無法結束投票"""
    pass


class ParticipationNotMet(ConsensusException):
    """投票參與率低於社團設定的門檻"""
    def __init__(self, percentage: float, required: float):
        self.percentage = percentage
        self.required = required
        super().__init__(
            f"Minimum participation not met. {percentage:.1f}% voted, "
            f"but {required:g}% required"
        )


class InvalidClubConfig(ConsensusException):
    """社團設定不合法"""
    pass


class InvalidMemberData(ConsensusException):
    """成員資料不合法（例如名稱為空）"""
    pass


# ============ Forbidden ============

class PermissionDenied(ConsensusException):
    """呼叫者不能代替這個成員操作"""
    kind = ErrorKind.FORBIDDEN
