"""
Notification routes.
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from smartbook.db import get_db
from smartbook.deps import get_current_user
from smartbook.models import User
from smartbook.schemas import NotificationPublic
from smartbook.services.notifications import NotificationService

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationPublic])
async def list_notifications(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return NotificationService(db).list_for_user(user.id)
