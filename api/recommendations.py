"""
Recommendation API Endpoints

編輯 / 刪除單一推薦，只能在回合還是 RECOMMENDING 時進行
"""
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
import logging

from database import get_db
from models import Recommendation
from schemas import RecommendationUpdate, RecommendationResponse
from core.round_manager import RoundManager
from core.exceptions import ConsensusException, RecommendationNotFound
from api.deps import get_round_manager, to_http_exception

router = APIRouter(prefix="/api/recommendations", tags=["recommendations"])
logger = logging.getLogger(__name__)


@router.get("/{recommendation_id}", response_model=RecommendationResponse)
def get_recommendation(recommendation_id: str, db: Session = Depends(get_db)):
    recommendation = db.query(Recommendation).filter(Recommendation.id == recommendation_id).first()
    if not recommendation:
        raise to_http_exception(RecommendationNotFound(recommendation_id))
    return recommendation


@router.patch("/{recommendation_id}", response_model=RecommendationResponse)
def update_recommendation(
    recommendation_id: str,
    payload: RecommendationUpdate,
    db: Session = Depends(get_db),
    rounds: RoundManager = Depends(get_round_manager)
):
    try:
        return rounds.update_recommendation(
            db, recommendation_id, title=payload.title, description=payload.description
        )
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to update recommendation: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{recommendation_id}", status_code=204)
def delete_recommendation(
    recommendation_id: str,
    db: Session = Depends(get_db),
    rounds: RoundManager = Depends(get_round_manager)
):
    try:
        rounds.delete_recommendation(db, recommendation_id)
        return Response(status_code=204)
    except ConsensusException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to delete recommendation: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
