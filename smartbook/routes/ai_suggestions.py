"""
AI assistant routes: generate, list and consume slot recommendations.
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from smartbook.db import get_db
from smartbook.deps import get_current_user
from smartbook.models import User, UserRole
from smartbook.schemas import AiSuggestionPublic, SuggestionGenerateRequest
from smartbook.services.recommender import RecommendationError
from smartbook.services.storage import AiSuggestionRepository
from smartbook.services.suggestions import SuggestionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai-suggestions", tags=["ai-suggestions"])


def get_suggestion_service(db: Session = Depends(get_db)) -> SuggestionService:
    return SuggestionService(db)


@router.get("", response_model=List[AiSuggestionPublic])
async def list_suggestions(
    service: SuggestionService = Depends(get_suggestion_service),
    user: User = Depends(get_current_user),
):
    return service.list_for_user(user)


@router.post("/generate", response_model=AiSuggestionPublic)
async def generate_suggestions(
    request: SuggestionGenerateRequest,
    service: SuggestionService = Depends(get_suggestion_service),
    user: User = Depends(get_current_user),
):
    """Recommend slots for a day and store the result unused."""
    try:
        return await service.generate_for_user(user, request.date)
    except RecommendationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error generating suggestions for user {user.id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate AI suggestions")


@router.post("/{suggestion_id}/use", response_model=AiSuggestionPublic)
async def use_suggestion(
    suggestion_id: int,
    service: SuggestionService = Depends(get_suggestion_service),
    user: User = Depends(get_current_user),
):
    suggestion = AiSuggestionRepository.get_suggestion(service.db, suggestion_id)
    if not suggestion:
        raise HTTPException(status_code=404, detail="AI suggestion not found")
    if suggestion.user_id != user.id and user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Not authorized to use this suggestion")

    return service.mark_used(suggestion)
