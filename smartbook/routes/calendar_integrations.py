"""
Calendar integration routes. Tokens are stored but never returned.
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from smartbook.db import get_db
from smartbook.deps import get_current_user
from smartbook.models import User, UserRole
from smartbook.schemas import CalendarIntegrationCreate, CalendarIntegrationPublic, MessageResponse
from smartbook.services.storage import CalendarIntegrationRepository
from smartbook.utils.time import to_local

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/calendar-integrations", tags=["calendar"])


@router.get("", response_model=List[CalendarIntegrationPublic])
async def list_integrations(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return CalendarIntegrationRepository.list_by_user(db, user.id)


@router.post("", response_model=CalendarIntegrationPublic, status_code=201)
async def create_integration(
    integration_data: CalendarIntegrationCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Connect a calendar for the current user."""
    try:
        integration = CalendarIntegrationRepository.create_integration(
            db,
            user_id=user.id,
            provider=integration_data.provider,
            access_token=integration_data.access_token,
            refresh_token=integration_data.refresh_token,
            expires_at=to_local(integration_data.expires_at) if integration_data.expires_at else None,
            connected=integration_data.connected,
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating calendar integration for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create calendar integration")

    logger.info(f"User {user.id} connected {integration.provider.value} calendar {integration.id}")
    return integration


@router.delete("/{integration_id}", response_model=MessageResponse)
async def delete_integration(
    integration_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    integration = CalendarIntegrationRepository.get_integration(db, integration_id)
    if not integration:
        raise HTTPException(status_code=404, detail="Calendar integration not found")
    if integration.user_id != user.id and user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Not authorized to delete this integration")

    CalendarIntegrationRepository.delete_integration(db, integration)
    return {"message": "Calendar integration deleted successfully"}
