"""
Round Manager：管理社團回合的完整生命週期

    start_round -> add_recommendations -> start_voting -> submit_ballot
    -> close_voting -> mark_completion -> finish_round (-> 下一回合)

Linus 原則：
- 資料結構優先：先檢查資料是否符合要求，再執行操作（失敗時 @transactional 整個 rollback）
- 消除特殊情況：所有狀態變更經過 RoundStateMachine
- 受階段限制的操作都持有 Round 的行級鎖，兩個並發的「結束投票」不會都算出贏家，
  兩個並發的「結束回合」也不會都建立下一回合
- 純計算（選票規則、計票、平手、輪替、完成度）放在 services/
"""
from dataclasses import dataclass
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import random

from models import Club, Completion, Member, Recommendation, Round, RoundStatus, Vote
from core.club_manager import ClubManager
from core.events import DomainEvent, EventSink, EventType, sink_for
from core.exceptions import (
    ActiveRoundExists,
    AlreadyVoted,
    ClubNotFound,
    EmptyClub,
    InvalidRecommendations,
    InvalidStateTransition,
    NoVotesCast,
    ParticipationNotMet,
    PermissionDenied,
    RecommendationNotFound,
    RoundNotFound,
)
from core.locks import with_club_lock, with_round_lock
from core.state_machine import RoundStateMachine
from services.ballot_service import BallotEntry, validate_ballot
from services.completion_service import CompletionStatus, build_completion_status
from services.tally_service import Participation, calculate_participation, tally_votes
from services.tie_break_service import TieBreakResult, resolve_winner
from services.turn_service import next_recommender_id
from database import transactional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecommendationDraft:
    title: str
    description: Optional[str] = None


@dataclass(frozen=True)
class VotingOutcome:
    round: Round
    winner: Recommendation
    totals: Dict[str, int]
    participation: Participation
    tie_break: TieBreakResult


class RoundManager:
    """
    Round 生命週期管理器

    參數：
        sink: domain event 的去處，預設寫入每次呼叫所用 session 的 event log
        rng: 平手隨機與隨機輪替用的亂數來源
    """

    def __init__(self, sink: Optional[EventSink] = None, rng: Optional[random.Random] = None):
        self.sink = sink
        self.rng = rng or random.Random()

    # ============ Round creation ============

    @transactional
    def start_round(self, db: Session, club_id: str, recommender_id: str) -> Round:
        """
        開始新回合（RECOMMENDING）

        前置條件：
        1. Club 必須存在
        2. Club 沒有 RECOMMENDING 的回合
        3. Club 至少有一位成員
        4. 推薦人是這個 Club 的成員

        參數：
            db: SQLAlchemy Session
            club_id: Club ID
            recommender_id: 這一輪的推薦人

        返回：
            新建立的 Round

        異常：
            ClubNotFound: Club 不存在
            ActiveRoundExists: 已有推薦中的回合
            EmptyClub: Club 沒有成員
            MemberNotFound: 推薦人不屬於這個 Club
        """
        # 1. 鎖定 Club，讓「檢查進行中回合」和 insert 是原子操作
        club = with_club_lock(club_id, db).first()
        if not club:
            raise ClubNotFound(club_id)

        # 2. 每個 Club 只能有一個推薦中的回合
        if self.find_active_round(db, club_id):
            raise ActiveRoundExists(club_id)

        # 3. 至少要有人能推薦
        member_count = db.query(Member).filter(Member.club_id == club_id).count()
        if member_count == 0:
            raise EmptyClub("Cannot start a round in a club without members")

        # 4. 推薦人屬於這個 Club
        ClubManager.get_member(db, club_id, recommender_id)

        return self._create_round(db, club, recommender_id)

    def _create_round(self, db: Session, club: Club, recommender_id: str) -> Round:
        round_obj = Round(
            club_id=club.id,
            current_recommender_id=recommender_id,
            status=RoundStatus.RECOMMENDING
        )
        db.add(round_obj)
        try:
            db.flush()
        except IntegrityError as e:
            # partial unique index 擋下了並發的 start
            raise ActiveRoundExists(club.id) from e

        logger.info(
            f"Started round {round_obj.id} for club {club.id}, recommender {recommender_id}"
        )

        sink_for(db, self.sink).emit(DomainEvent(
            event_type=EventType.ROUND_STARTED,
            club_id=club.id,
            round_id=round_obj.id,
            data={"recommender_id": recommender_id}
        ))
        return round_obj

    # ============ RECOMMENDING ============

    @transactional
    def add_recommendations(
        self,
        db: Session,
        round_id: str,
        items: Sequence[RecommendationDraft]
    ) -> List[Recommendation]:
        """
        以回合目前推薦人的身分新增推薦

        前置條件：
        1. Round 狀態必須是 RECOMMENDING
        2. 至少一筆，每筆都要有標題
        3. 現有 + 新增 <= 社團的 max_recommendations

        返回：
            新增的 Recommendation（依建立順序）

        異常：
            RoundNotFound, InvalidStateTransition, InvalidRecommendations
        """
        round_obj = self._lock_round(db, round_id)
        RoundStateMachine.require_status(round_obj, RoundStatus.RECOMMENDING)

        if not items:
            raise InvalidRecommendations("At least one recommendation is required")
        if any(not item.title or not item.title.strip() for item in items):
            raise InvalidRecommendations("All recommendations must have a title")
        if not round_obj.current_recommender_id:
            raise InvalidRecommendations("No current recommender set for this round")

        config = round_obj.club.get_config()
        existing = self.count_recommendations(db, round_id)
        if existing + len(items) > config.max_recommendations:
            raise InvalidRecommendations(
                f"Adding {len(items)} recommendations would exceed the maximum of "
                f"{config.max_recommendations} (currently have {existing})"
            )

        last_position = db.query(func.max(Recommendation.position)).filter(
            Recommendation.round_id == round_id
        ).scalar()
        next_position = 0 if last_position is None else last_position + 1

        created = []
        for offset, item in enumerate(items):
            recommendation = Recommendation(
                round_id=round_id,
                recommender_id=round_obj.current_recommender_id,
                title=item.title.strip(),
                description=item.description,
                position=next_position + offset
            )
            db.add(recommendation)
            created.append(recommendation)
        db.flush()

        logger.info(f"Added {len(created)} recommendation(s) to round {round_id}")

        sink_for(db, self.sink).emit(DomainEvent(
            event_type=EventType.RECOMMENDATIONS_ADDED,
            club_id=round_obj.club_id,
            round_id=round_id,
            data={"recommendation_ids": [r.id for r in created]}
        ))
        return created

    @transactional
    def update_recommendation(
        self,
        db: Session,
        recommendation_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None
    ) -> Recommendation:
        recommendation, round_obj = self._lock_recommendation(db, recommendation_id)
        RoundStateMachine.require_status(
            round_obj,
            RoundStatus.RECOMMENDING,
            "Cannot update recommendation after round has moved to voting phase"
        )

        if title is not None:
            if not title.strip():
                raise InvalidRecommendations("Recommendation title cannot be empty")
            recommendation.title = title.strip()
        if description is not None:
            recommendation.description = description

        sink_for(db, self.sink).emit(DomainEvent(
            event_type=EventType.RECOMMENDATION_UPDATED,
            club_id=round_obj.club_id,
            round_id=round_obj.id,
            data={"recommendation_id": recommendation_id}
        ))
        return recommendation

    @transactional
    def delete_recommendation(self, db: Session, recommendation_id: str) -> None:
        recommendation, round_obj = self._lock_recommendation(db, recommendation_id)
        RoundStateMachine.require_status(
            round_obj,
            RoundStatus.RECOMMENDING,
            "Cannot delete recommendation after round has moved to voting phase"
        )

        db.delete(recommendation)
        logger.info(f"Deleted recommendation {recommendation_id} from round {round_obj.id}")

        sink_for(db, self.sink).emit(DomainEvent(
            event_type=EventType.RECOMMENDATION_DELETED,
            club_id=round_obj.club_id,
            round_id=round_obj.id,
            data={"recommendation_id": recommendation_id}
        ))

    @transactional
    def start_voting(self, db: Session, round_id: str) -> Round:
        """
        開始投票（狀態轉換 RECOMMENDING -> VOTING）

        異常：
            RoundNotFound: Round 不存在
            InvalidStateTransition: Round 狀態不是 RECOMMENDING
            InvalidRecommendations: 推薦數少於 min_recommendations
        """
        round_obj = self._lock_round(db, round_id)
        RoundStateMachine.require_status(round_obj, RoundStatus.RECOMMENDING)

        config = round_obj.club.get_config()
        count = self.count_recommendations(db, round_id)
        if count < config.min_recommendations:
            raise InvalidRecommendations(
                f"Minimum number of recommendations ({config.min_recommendations}) "
                f"not met. Current: {count}"
            )

        return RoundStateMachine.transition(round_obj, RoundStatus.VOTING, sink_for(db, self.sink))

    # ============ VOTING ============

    @transactional
    def submit_ballot(
        self,
        db: Session,
        round_id: str,
        member_id: str,
        entries: Sequence[BallotEntry],
        allowed: bool = True
    ) -> List[Vote]:
        """
        記錄一位成員的選票

        前置條件：
        1. Round 狀態必須是 VOTING
        2. 成員屬於這個 Club
        3. 呼叫者可以代這位成員投票（`allowed`，由授權層決定：本人、admin 或社團管理者）
        4. 成員在這個回合還沒投過票
        5. 選票通過 validate_ballot()

        異常：
            RoundNotFound, InvalidStateTransition, MemberNotFound,
            PermissionDenied, AlreadyVoted, InvalidBallot
        """
        round_obj = self._lock_round(db, round_id)
        RoundStateMachine.require_status(round_obj, RoundStatus.VOTING)

        member = ClubManager.get_member(db, round_obj.club_id, member_id)

        if not allowed:
            raise PermissionDenied(
                "You can only vote for yourself. Club managers and admins can vote for others."
            )

        already_voted = db.query(Vote).join(
            Recommendation, Vote.recommendation_id == Recommendation.id
        ).filter(
            Vote.member_id == member_id,
            Recommendation.round_id == round_id
        ).first()
        if already_voted:
            raise AlreadyVoted(member_id)

        config = round_obj.club.get_config()
        recommendation_ids = [r.id for r in self.list_recommendations(db, round_id)]
        validate_ballot(entries, config.voting_points, recommendation_ids)

        votes = []
        for entry in entries:
            vote = Vote(
                member_id=member_id,
                recommendation_id=entry.recommendation_id,
                points=entry.points
            )
            db.add(vote)
            votes.append(vote)
        db.flush()

        logger.info(f"Member {member_id} cast {len(votes)} vote(s) in round {round_id}")

        sink_for(db, self.sink).emit(DomainEvent(
            event_type=EventType.VOTE_CAST,
            club_id=round_obj.club_id,
            round_id=round_id,
            data={
                "member_id": member_id,
                "member_name": member.name,
                "votes": [
                    {"recommendation_id": v.recommendation_id, "points": v.points} for v in votes
                ]
            }
        ))
        return votes

    @transactional
    def close_voting(self, db: Session, round_id: str) -> VotingOutcome:
        """
        結束投票（狀態轉換 VOTING -> COMPLETING，並決定贏家）

        流程：
        1. 鎖定 Round，檢查狀態是 VOTING
        2. 至少要有一張票
        3. 參與率 >= minimum_participation
        4. 計票，依社團設定處理平手
        5. 寫入贏家並轉換狀態

        返回：
            VotingOutcome

        異常：
            RoundNotFound: Round 不存在
            InvalidStateTransition: Round 狀態不是 VOTING
            NoVotesCast: 沒有人投票
            ParticipationNotMet: 參與率不足
        """
        # 1. 鎖定：並發的第二次 close 會看到 COMPLETING 而在這裡失敗
        round_obj = self._lock_round(db, round_id)
        RoundStateMachine.require_status(round_obj, RoundStatus.VOTING)

        # 2. 選票
        votes = self.list_votes_for_round(db, round_id)
        if not votes:
            raise NoVotesCast("No votes found for this round")

        # 3. 參與率
        config = round_obj.club.get_config()
        member_count = db.query(Member).filter(Member.club_id == round_obj.club_id).count()
        participation = calculate_participation(votes, member_count)
        if participation.percentage < config.minimum_participation:
            raise ParticipationNotMet(participation.percentage, config.minimum_participation)

        # 4. 計票 + 平手處理，平手順序依推薦建立順序
        recommendations = self.list_recommendations(db, round_id)
        totals = tally_votes(votes, order=[r.id for r in recommendations])
        result = resolve_winner(totals, config.tie_breaking_method, self.rng)
        if result.was_tie:
            logger.info(
                f"Round {round_id} tie between {result.tied_ids} at {result.max_points} "
                f"points, resolved by {config.tie_breaking_method.value}"
            )

        # 5. 寫入贏家 + 狀態轉換
        round_obj.winning_recommendation_id = result.winner_id
        sink = sink_for(db, self.sink)
        RoundStateMachine.transition(round_obj, RoundStatus.COMPLETING, sink)

        winner = next(r for r in recommendations if r.id == result.winner_id)
        sink.emit(DomainEvent(
            event_type=EventType.VOTING_CLOSED,
            club_id=round_obj.club_id,
            round_id=round_id,
            data={
                "winner_id": winner.id,
                "winner_title": winner.title,
                "totals": totals,
                "tied_ids": result.tied_ids if result.was_tie else [],
                "participation": {
                    "voted": participation.voted,
                    "total": participation.total,
                    "percentage": participation.percentage
                }
            }
        ))

        return VotingOutcome(
            round=round_obj,
            winner=winner,
            totals=totals,
            participation=participation,
            tie_break=result
        )

    # ============ COMPLETING ============

    @transactional
    def mark_completion(
        self,
        db: Session,
        round_id: str,
        member_id: str,
        is_completed: bool,
        allowed: bool = True
    ) -> Completion:
        """
        記錄成員是否完成了贏家推薦（upsert）

        這裡只檢查階段；誰能替誰標記由授權層決定，以 `allowed` 傳入

        異常：
            RoundNotFound, InvalidStateTransition, MemberNotFound, PermissionDenied
        """
        round_obj = self._lock_round(db, round_id)
        RoundStateMachine.require_status(round_obj, RoundStatus.COMPLETING)
        if not round_obj.winning_recommendation_id:
            raise InvalidStateTransition("No winning recommendation found for this round")

        member = ClubManager.get_member(db, round_obj.club_id, member_id)

        if not allowed:
            raise PermissionDenied(
                "You can only mark completion for yourself. "
                "Club managers and admins can mark completion for others."
            )

        completion = db.query(Completion).filter(
            Completion.member_id == member_id,
            Completion.recommendation_id == round_obj.winning_recommendation_id
        ).first()
        if completion:
            completion.is_completed = is_completed
        else:
            completion = Completion(
                member_id=member_id,
                recommendation_id=round_obj.winning_recommendation_id,
                is_completed=is_completed
            )
            db.add(completion)
        db.flush()

        sink_for(db, self.sink).emit(DomainEvent(
            event_type=EventType.COMPLETION_UPDATED,
            club_id=round_obj.club_id,
            round_id=round_id,
            data={"member_id": member_id, "member_name": member.name, "completed": is_completed}
        ))
        return completion

    @transactional
    def finish_round(self, db: Session, round_id: str) -> Tuple[Round, Optional[Round]]:
        """
        結束回合（狀態轉換 COMPLETING -> FINISHED），並建立下一回合

        不要求完成度達到 100%：完成度只是參考，COMPLETING 狀態下隨時可以結束

        只有在 Club 還沒有 RECOMMENDING 回合（而且還有成員可以輪替）時才會建立下一回合

        返回：
            (結束的 Round, 下一回合或 None)

        異常：
            RoundNotFound: Round 不存在
            InvalidStateTransition: Round 狀態不是 COMPLETING（包含已經結束）
        """
        round_obj = self._lock_round(db, round_id)
        RoundStateMachine.require_status(round_obj, RoundStatus.COMPLETING)

        RoundStateMachine.transition(round_obj, RoundStatus.FINISHED, sink_for(db, self.sink))

        next_round = self._seed_next_round(db, round_obj)
        return round_obj, next_round

    def _seed_next_round(self, db: Session, finished: Round) -> Optional[Round]:
        club = with_club_lock(finished.club_id, db).one()

        if self.find_active_round(db, club.id):
            logger.info(f"Club {club.id} already has a recommending round, not seeding another")
            return None

        members = ClubManager.list_members(db, club.id)
        if not members:
            logger.warning(f"Club {club.id} has no members, no next round created")
            return None

        config = club.get_config()
        recommender_id = next_recommender_id(
            config.turn_order,
            [m.id for m in members],
            finished.current_recommender_id,
            self.rng
        )
        next_round = self._create_round(db, club, recommender_id)

        sink_for(db, self.sink).emit(DomainEvent(
            event_type=EventType.TURN_CHANGED,
            club_id=club.id,
            round_id=next_round.id,
            data={
                "previous_recommender_id": finished.current_recommender_id,
                "new_recommender_id": recommender_id
            }
        ))
        return next_round

    # ============ Queries ============

    @staticmethod
    def get_round_by_id(db: Session, round_id: str) -> Round:
        round_obj = db.query(Round).filter(Round.id == round_id).first()
        if not round_obj:
            raise RoundNotFound(round_id)
        return round_obj

    @staticmethod
    def find_active_round(db: Session, club_id: str) -> Optional[Round]:
        """Club 目前 RECOMMENDING 的回合（沒有則為 None）"""
        return db.query(Round).filter(
            Round.club_id == club_id,
            Round.status == RoundStatus.RECOMMENDING
        ).first()

    @staticmethod
    def list_club_rounds(db: Session, club_id: str) -> List[Round]:
        ClubManager.get_club_by_id(db, club_id)
        return (
            db.query(Round)
            .filter(Round.club_id == club_id)
            .order_by(Round.created_at.desc())
            .all()
        )

    @staticmethod
    def count_recommendations(db: Session, round_id: str) -> int:
        return db.query(Recommendation).filter(Recommendation.round_id == round_id).count()

    @staticmethod
    def list_recommendations(db: Session, round_id: str) -> List[Recommendation]:
        """依建立順序排列的推薦"""
        return (
            db.query(Recommendation)
            .filter(Recommendation.round_id == round_id)
            .order_by(Recommendation.position)
            .all()
        )

    @staticmethod
    def list_votes_for_round(db: Session, round_id: str) -> List[Vote]:
        return (
            db.query(Vote)
            .join(Recommendation, Vote.recommendation_id == Recommendation.id)
            .filter(Recommendation.round_id == round_id)
            .order_by(Vote.created_at)
            .all()
        )

    @staticmethod
    def list_completions(db: Session, round_id: str) -> List[Completion]:
        round_obj = RoundManager.get_round_by_id(db, round_id)
        if not round_obj.winning_recommendation_id:
            raise RoundNotFound(round_id, "Round not found or no winning recommendation")
        return db.query(Completion).filter(
            Completion.recommendation_id == round_obj.winning_recommendation_id
        ).all()

    @staticmethod
    def get_completion_status(db: Session, round_id: str) -> CompletionStatus:
        """
        每位成員對贏家推薦的完成狀態

        異常：
            RoundNotFound: Round 不存在或還沒結束投票
        """
        round_obj = db.query(Round).filter(Round.id == round_id).first()
        if not round_obj or not round_obj.winning_recommendation_id:
            raise RoundNotFound(round_id, "Round not found or no winning recommendation")

        members = ClubManager.list_members(db, round_obj.club_id)
        completions = db.query(Completion).filter(
            Completion.recommendation_id == round_obj.winning_recommendation_id
        ).all()
        return build_completion_status(
            round_obj.id, round_obj.winning_recommendation_id, members, completions
        )

    # ============ Helpers ============

    @staticmethod
    def _lock_round(db: Session, round_id: str) -> Round:
        round_obj = with_round_lock(round_id, db).first()
        if not round_obj:
            raise RoundNotFound(round_id)
        return round_obj

    @staticmethod
    def _lock_recommendation(db: Session, recommendation_id: str) -> Tuple[Recommendation, Round]:
        recommendation = db.query(Recommendation).filter(
            Recommendation.id == recommendation_id
        ).first()
        if not recommendation:
            raise RecommendationNotFound(recommendation_id)
        round_obj = RoundManager._lock_round(db, recommendation.round_id)
        return recommendation, round_obj
