"""
Appointment lifecycle: create, update and delete with notifications and calendar sync.
"""
import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from smartbook.models import (
    User, UserRole, Appointment, AppointmentStatus, NotificationType
)
from smartbook.schemas import AppointmentCreate, AppointmentUpdate
from smartbook.services.calendar_sync import sync_staff_calendars
from smartbook.services.notifications import NotificationService
from smartbook.services.storage import AppointmentRepository, NotificationRepository
from smartbook.utils.time import to_local

logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """Exception raised when scheduling operations fail."""
    pass


class AppointmentManager:
    """Handles appointment booking, rescheduling, and cancellation."""

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    def list_for_user(self, user: User, start_date: Optional[datetime] = None,
                      end_date: Optional[datetime] = None,
                      status: Optional[AppointmentStatus] = None) -> List[Appointment]:
        """
        Appointments visible to a user.

        Customers see bookings they are the client of, staff the bookings
        assigned to them and admins everything.
        """
        filters = {
            "start_date": to_local(start_date) if start_date else None,
            "end_date": to_local(end_date) if end_date else None,
            "status": status,
        }
        if user.role == UserRole.CUSTOMER:
            filters["client_id"] = user.id
        elif user.role == UserRole.STAFF:
            filters["staff_id"] = user.id
        return AppointmentRepository.list_appointments(self.db, **filters)

    @staticmethod
    def can_modify(user: User, appointment: Appointment) -> bool:
        """Admins may change anything, others only appointments they take part in."""
        if user.role == UserRole.ADMIN:
            return True
        return user.id in (appointment.client_id, appointment.staff_id)

    def create_appointment(self, data: AppointmentCreate) -> Appointment:
        """
        Book an appointment, confirm it to the client and sync the staff calendars.

        Raises:
            SchedulingError: If the appointment cannot be stored
        """
        try:
            appointment = AppointmentRepository.create_appointment(
                self.db,
                title=data.title,
                start_time=to_local(data.start_time),
                end_time=to_local(data.end_time),
                client_id=data.client_id,
                staff_id=data.staff_id,
                location=data.location,
                notes=data.notes,
                status=data.status,
                color=data.color,
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create appointment: {e}")
            raise SchedulingError(f"Failed to create appointment: {str(e)}")

        if appointment.client_id is not None:
            self.notifications.notify(
                appointment.client_id, appointment.id, NotificationType.CONFIRMATION
            )
        sync_staff_calendars(self.db, "create", appointment)

        logger.info(f"Booked appointment {appointment.id} \"{appointment.title}\" at {appointment.start_time}")
        return appointment

    def update_appointment(self, appointment: Appointment, data: AppointmentUpdate) -> Appointment:
        """
        Apply a partial update.

        A change of start or end time drops pending reminders and sends a
        rescheduled notification.

        Raises:
            SchedulingError: If the resulting times are invalid or the update fails
        """
        updates = data.model_dump(exclude_unset=True)
        for key in ("start_time", "end_time"):
            if updates.get(key) is not None:
                updates[key] = to_local(updates[key])

        new_start = updates.get("start_time") or appointment.start_time
        new_end = updates.get("end_time") or appointment.end_time
        if new_end <= new_start:
            raise SchedulingError("endTime must be after startTime")

        old_start, old_end = appointment.start_time, appointment.end_time
        try:
            appointment = AppointmentRepository.update_appointment(self.db, appointment, **updates)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update appointment {appointment.id}: {e}")
            raise SchedulingError(f"Failed to update appointment: {str(e)}")

        rescheduled = (appointment.start_time, appointment.end_time) != (old_start, old_end)
        if rescheduled:
            logger.info(
                f"Rescheduled appointment {appointment.id} from {old_start} to {appointment.start_time}"
            )
            # the next reminder scan creates one for the new start time
            dropped = NotificationRepository.delete_unsent(
                self.db, appointment.id, NotificationType.REMINDER
            )
            if dropped:
                logger.info(f"Dropped {dropped} pending reminders for appointment {appointment.id}")
            if appointment.client_id is not None:
                self.notifications.notify(
                    appointment.client_id, appointment.id, NotificationType.RESCHEDULED
                )
        sync_staff_calendars(self.db, "update", appointment)

        return appointment

    def delete_appointment(self, appointment: Appointment) -> bool:
        """
        Cancel and remove an appointment.

        The cancellation is delivered before the row goes away so the message
        can still name the appointment.
        """
        appointment_id = appointment.id
        if appointment.client_id is not None:
            self.notifications.notify(
                appointment.client_id, appointment_id, NotificationType.CANCELLATION,
                deliver_now=True,
            )
        sync_staff_calendars(self.db, "delete", appointment)

        try:
            AppointmentRepository.delete_appointment(self.db, appointment)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to delete appointment {appointment_id}: {e}")
            raise SchedulingError(f"Failed to delete appointment: {str(e)}")

        logger.info(f"Deleted appointment {appointment_id}")
        return True
