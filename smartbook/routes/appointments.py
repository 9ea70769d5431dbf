"""
Appointment routes.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from smartbook.db import get_db
from smartbook.deps import get_current_user
from smartbook.models import User, AppointmentStatus
from smartbook.schemas import (
    Appointment, AppointmentCreate, AppointmentUpdate, MessageResponse
)
from smartbook.services.appointments import AppointmentManager, SchedulingError
from smartbook.services.storage import AppointmentRepository
from smartbook.utils.time import parse_date_param

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appointments", tags=["appointments"])


def _get_owned_appointment(db: Session, appointment_id: int, user: User, action: str):
    appointment = AppointmentRepository.get_appointment(db, appointment_id)
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")
    if not AppointmentManager.can_modify(user, appointment):
        raise HTTPException(status_code=403, detail=f"Not authorized to {action} this appointment")
    return appointment


@router.get("", response_model=List[Appointment])
async def list_appointments(
    start: Optional[str] = Query(None, alias="startDate"),
    end: Optional[str] = Query(None, alias="endDate"),
    status: Optional[AppointmentStatus] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Appointments visible to the current user, optionally within a date range."""
    try:
        start_date = parse_date_param(start)
        end_date = parse_date_param(end)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date range")

    try:
        return AppointmentManager(db).list_for_user(user, start_date, end_date, status)
    except Exception as e:
        logger.error(f"Error listing appointments for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve appointments")


@router.post("", response_model=Appointment, status_code=201)
async def create_appointment(
    appointment_data: AppointmentCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        return AppointmentManager(db).create_appointment(appointment_data)
    except SchedulingError as e:
        logger.error(f"User {user.id} could not create appointment: {e}")
        raise HTTPException(status_code=500, detail="Failed to create appointment")


@router.put("/{appointment_id}", response_model=Appointment)
async def update_appointment(
    appointment_id: int,
    updates: AppointmentUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    appointment = _get_owned_appointment(db, appointment_id, user, "update")
    try:
        return AppointmentManager(db).update_appointment(appointment, updates)
    except SchedulingError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{appointment_id}", response_model=MessageResponse)
async def delete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    appointment = _get_owned_appointment(db, appointment_id, user, "delete")
    try:
        AppointmentManager(db).delete_appointment(appointment)
    except SchedulingError as e:
        logger.error(f"User {user.id} could not delete appointment {appointment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete appointment")
    return {"message": "Appointment deleted successfully"}
