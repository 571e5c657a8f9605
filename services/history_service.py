"""
Club history service.

Builds a per-club list of past rounds so the frontend can render the
club's record (who recommended, what won, by how many points) directly
from the server.
"""
from typing import List, Dict, Any

from sqlalchemy.orm import Session

from models import Round, RoundStatus, Recommendation, Vote
from services.tally_service import tally_votes


def get_club_round_history(club_id: str, db: Session) -> List[Dict[str, Any]]:
    """
    Return rounds that already have a winner, newest first.

    Each entry carries the recommender, the winner and the full tally so
    the frontend does not need to fetch votes separately.
    """
    rounds = (
        db.query(Round)
        .filter(
            Round.club_id == club_id,
            Round.status.in_([RoundStatus.COMPLETING, RoundStatus.FINISHED])
        )
        .order_by(Round.created_at.desc())
        .all()
    )

    history: List[Dict[str, Any]] = []

    for round_obj in rounds:
        if round_obj.winning_recommendation_id is None:
            # Closed without a winner should not happen, skip rather than guess.
            continue

        recommendations = round_obj.recommendations
        votes = (
            db.query(Vote)
            .join(Recommendation, Vote.recommendation_id == Recommendation.id)
            .filter(Recommendation.round_id == round_obj.id)
            .all()
        )
        titles = {rec.id: rec.title for rec in recommendations}
        totals = tally_votes(votes, order=[rec.id for rec in recommendations])

        recommender = round_obj.current_recommender
        history.append({
            "round_id": round_obj.id,
            "status": round_obj.status,
            "recommender_id": round_obj.current_recommender_id,
            "recommender_name": recommender.name if recommender else None,
            "winning_recommendation_id": round_obj.winning_recommendation_id,
            "winning_title": titles.get(round_obj.winning_recommendation_id),
            "totals": totals,
            "created_at": round_obj.created_at,
        })

    return history
