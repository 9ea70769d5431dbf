"""
Notification delivery.

No email/SMS provider is wired in; delivery logs the message that would be
sent and marks the notification as sent.
"""
import logging
from datetime import timedelta
from typing import Optional
from sqlalchemy.orm import Session

from smartbook.db import SessionLocal
from smartbook.models import Appointment, Notification, NotificationType, User
from smartbook.services.storage import (
    AppointmentRepository, NotificationRepository, UserRepository
)
from smartbook.utils.time import format_datetime_for_user

logger = logging.getLogger(__name__)

REMINDER_LEAD = timedelta(hours=1)

MESSAGE_TEMPLATES = {
    NotificationType.CONFIRMATION: 'Your appointment "{title}" is confirmed for {when}.',
    NotificationType.REMINDER: 'Reminder: "{title}" starts {when}.',
    NotificationType.RESCHEDULED: 'Your appointment "{title}" has been moved to {when}.',
    NotificationType.CANCELLATION: 'Your appointment "{title}" on {when} has been cancelled.',
}


def render_message(notification: Notification, appointment: Appointment, user: User) -> str:
    """
    Build the message text for a notification.

    Args:
        notification: Notification record
        appointment: Appointment it refers to
        user: Recipient

    Returns:
        str: Message body
    """
    template = MESSAGE_TEMPLATES[notification.type]
    body = template.format(
        title=appointment.title,
        when=format_datetime_for_user(appointment.start_time),
    )
    return f"Hi {user.name}! {body}"


def reminder_is_current(reminder: Notification, appointment: Appointment) -> bool:
    """
    Whether a reminder still belongs to the appointment's start time.

    A reminder is due between one hour before the start and the start
    itself. One scheduled outside that window was made for times the
    appointment no longer has.
    """
    if reminder.scheduled_for is None:
        return False
    return appointment.start_time - REMINDER_LEAD <= reminder.scheduled_for <= appointment.start_time


def deliver_notification(notification_id: int, db: Optional[Session] = None) -> bool:
    """
    Deliver a stored notification.

    Runs inside the request when given ``db``, otherwise opens its own
    session (as an rq job does).

    Returns:
        bool: True if the notification was delivered
    """
    owns_session = db is None
    db = db or SessionLocal()
    try:
        notification = NotificationRepository.get_notification(db, notification_id)
        if not notification:
            logger.error(f"Notification {notification_id} not found for delivery")
            return False

        if notification.sent:
            logger.info(f"Notification {notification_id} already sent, skipping")
            return True

        user = UserRepository.get_user(db, notification.user_id)
        appointment = (
            AppointmentRepository.get_appointment(db, notification.appointment_id)
            if notification.appointment_id is not None else None
        )
        if not user or not appointment:
            logger.error(
                f"User or appointment not found for notification {notification_id} "
                f"(user={notification.user_id}, appointment={notification.appointment_id})"
            )
            return False

        if notification.type == NotificationType.REMINDER and not reminder_is_current(notification, appointment):
            logger.info(
                f"Reminder {notification_id} was due {notification.scheduled_for} but appointment "
                f"{appointment.id} now starts {appointment.start_time}, skipping"
            )
            return False

        message = render_message(notification, appointment, user)
        recipient = user.email if notification.method.value == "email" else user.phone
        logger.info(f"WOULD SEND {notification.method.value} {notification.type.value} to {recipient}:")
        logger.info(f"MESSAGE: {message}")

        NotificationRepository.mark_sent(db, notification)
        return True

    except Exception as e:
        logger.error(f"Error delivering notification {notification_id}: {e}")
        db.rollback()
        return False
    finally:
        if owns_session:
            db.close()
