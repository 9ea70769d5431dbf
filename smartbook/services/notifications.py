"""
Notification records for appointment lifecycle events.
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session

from smartbook.models import Notification, NotificationType, NotificationMethod
from smartbook.services.background_jobs import BackgroundJobManager
from smartbook.services.messaging import deliver_notification
from smartbook.services.storage import NotificationRepository
from smartbook.utils.time import now_local

logger = logging.getLogger(__name__)


class NotificationService:
    """Creates notifications and hands them to delivery."""

    def __init__(self, db: Session, jobs: Optional[BackgroundJobManager] = None):
        self.db = db
        self.jobs = jobs or BackgroundJobManager(db)

    def notify(self, user_id: int, appointment_id: int, notification_type: NotificationType,
               method: NotificationMethod = NotificationMethod.EMAIL,
               deliver_now: bool = False) -> Notification:
        """
        Record a notification and dispatch it.

        Args:
            user_id: Recipient
            appointment_id: Appointment the notification is about
            notification_type: Lifecycle event
            method: Delivery channel
            deliver_now: Deliver synchronously, e.g. before the appointment is deleted

        Returns:
            Notification: The stored record
        """
        notification = NotificationRepository.create_notification(
            self.db,
            user_id=user_id,
            notification_type=notification_type,
            appointment_id=appointment_id,
            method=method,
            scheduled_for=now_local(),
        )

        if deliver_now:
            delivered = deliver_notification(notification.id, db=self.db)
            outcome = "delivered" if delivered else "failed"
        else:
            outcome = self.jobs.dispatch_notification(notification.id)

        logger.info(
            f"{notification_type.value} notification {notification.id} for appointment "
            f"{appointment_id}: {outcome}"
        )
        return notification

    def list_for_user(self, user_id: int):
        return NotificationRepository.list_by_user(self.db, user_id)
