"""
AI assistant suggestions: generate, store and consume slot recommendations.
"""
import asyncio
import logging
import random
from datetime import date, datetime
from typing import List, Optional, Sequence, Union
from sqlalchemy.orm import Session

from smartbook.config import get_settings
from smartbook.models import User, UserRole, AiSuggestion
from smartbook.schemas import RecommendationResult
from smartbook.services.ai_client import AiRecommendationClient, build_ai_client
from smartbook.services.recommender import (
    BusinessHours, SlotRecommender, appointments_on_day, normalize_role, validate_appointments
)
from smartbook.services.storage import AppointmentRepository, AiSuggestionRepository
from smartbook.utils.time import to_local, window_around

logger = logging.getLogger(__name__)

CONTEXT_WINDOW_DAYS = 7


def build_recommender(settings=None) -> SlotRecommender:
    """Heuristic engine configured from settings."""
    settings = settings or get_settings()
    rng = random.Random(settings.recommendation_seed)
    return SlotRecommender(BusinessHours.from_settings(settings), rng)


async def generate_recommendation(
    user_id: int,
    target_date: Union[date, datetime],
    appointments: Sequence,
    user_role: Union[UserRole, str],
    recommender: Optional[SlotRecommender] = None,
    ai_client: Optional[AiRecommendationClient] = None,
    timeout: Optional[float] = None,
) -> RecommendationResult:
    """
    Recommend slots for one user and day.

    Delegates to the language model when one is configured; any failure there
    falls back to the heuristic engine and is only logged.

    Args:
        user_id: Requesting user
        target_date: Day to plan
        appointments: Appointments visible to the user around the day
        user_role: Role of the requesting user
        recommender: Heuristic engine (built from settings when omitted)
        ai_client: Language model client (built from settings when omitted)
        timeout: Seconds allowed for the language model call

    Returns:
        RecommendationResult: Ranked slots, insights and no-show risks

    Raises:
        InvalidAppointmentError: If an appointment ends before it starts
    """
    settings = get_settings()
    recommender = recommender or build_recommender(settings)
    if ai_client is None:
        ai_client = build_ai_client(settings)
    if timeout is None:
        timeout = settings.ai_timeout_seconds

    if isinstance(target_date, datetime):
        target_date = to_local(target_date).date()
    role = normalize_role(user_role)
    validate_appointments(appointments)

    if ai_client is not None:
        day_appointments = appointments_on_day(appointments, target_date)
        try:
            return await asyncio.wait_for(
                ai_client.recommend(target_date, day_appointments, role, recommender.business_hours),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"AI recommendation for user {user_id} timed out after {timeout}s, using heuristics")
        except Exception as e:
            logger.warning(f"AI recommendation for user {user_id} failed, using heuristics: {e}")

    return recommender.recommend(target_date, appointments, role)


class SuggestionService:
    """Generates recommendations for users and keeps them."""

    def __init__(self, db: Session, recommender: Optional[SlotRecommender] = None,
                 ai_client: Optional[AiRecommendationClient] = None):
        self.db = db
        self.recommender = recommender
        self.ai_client = ai_client

    def context_appointments(self, user: User, target: datetime) -> List:
        """
        Appointments the user may see within a week either side of ``target``.

        Customers see their own bookings, staff the bookings assigned to them
        and admins everything.
        """
        start, end = window_around(target.date(), CONTEXT_WINDOW_DAYS)
        filters = {"start_date": start, "end_date": end}
        if user.role == UserRole.CUSTOMER:
            filters["client_id"] = user.id
        elif user.role == UserRole.STAFF:
            filters["staff_id"] = user.id
        return AppointmentRepository.list_appointments(self.db, **filters)

    async def generate_for_user(self, user: User, target: datetime) -> AiSuggestion:
        """Generate a recommendation and store it unused."""
        target = to_local(target)
        appointments = self.context_appointments(user, target)
        result = await generate_recommendation(
            user.id, target, appointments, user.role,
            recommender=self.recommender, ai_client=self.ai_client,
        )
        suggestion = AiSuggestionRepository.create_suggestion(
            self.db, user_id=user.id, date=target, suggestion=result.to_wire()
        )
        logger.info(
            f"Stored suggestion {suggestion.id} for user {user.id} on {target.date()} "
            f"with {len(result.recommended_slots)} slots"
        )
        return suggestion

    def list_for_user(self, user: User) -> List[AiSuggestion]:
        return AiSuggestionRepository.list_by_user(self.db, user.id)

    def mark_used(self, suggestion: AiSuggestion) -> AiSuggestion:
        if suggestion.used:
            return suggestion
        updated = AiSuggestionRepository.mark_used(self.db, suggestion)
        logger.info(f"Suggestion {suggestion.id} marked as used")
        return updated
