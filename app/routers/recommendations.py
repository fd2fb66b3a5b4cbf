import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.catalog import SubscriptionService
from app.models.user import User
from app.schemas.recommendations import RecommendationRequest, RecommendationResponse
from app.services import recommendations
from app.auth.dependencies import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recommendations", tags=["Recommendations"])


@router.post("", response_model=RecommendationResponse)
def recommend(
    data: RecommendationRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Suggest subscriptions from the user's viewing history and preferences."""
    catalog = [name for (name,) in db.query(SubscriptionService.name).order_by(SubscriptionService.name).all()]
    try:
        return recommendations.recommend(data, catalog)
    except recommendations.RecommendationError as e:
        logger.warning("Unusable recommendation answer for user %s: %s", current_user.id, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except Exception as e:
        logger.error("Recommendation provider call failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Não foi possível gerar recomendações agora. Tente novamente.",
        )
