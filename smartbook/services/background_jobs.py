"""
Background job system for notification delivery and appointment reminders.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.orm import Session
from redis import Redis
from rq import Queue

from smartbook.config import get_settings
from smartbook.db import SessionLocal
from smartbook.models import AppointmentStatus, NotificationType
from smartbook.services.messaging import REMINDER_LEAD, deliver_notification, reminder_is_current
from smartbook.services.storage import AppointmentRepository, NotificationRepository
from smartbook.utils.time import now_local, get_business_timezone

logger = logging.getLogger(__name__)
settings = get_settings()

NOTIFICATION_QUEUE = "notifications"
REMINDER_HORIZON = timedelta(hours=24)


class BackgroundJobManager:
    """Queues notification deliveries and creates reminders."""

    def __init__(self, db: Session, queue: Optional[Queue] = None,
                 queue_enabled: Optional[bool] = None):
        self.db = db
        self._queue = queue
        self.queue_enabled = settings.job_queue_enabled if queue_enabled is None else queue_enabled

    @property
    def queue(self) -> Queue:
        if self._queue is None:
            # rq stores pickled payloads, so no decode_responses here
            redis_conn = Redis.from_url(settings.redis_url)
            self._queue = Queue(NOTIFICATION_QUEUE, connection=redis_conn)
        return self._queue

    def dispatch_notification(self, notification_id: int,
                              deliver_at: Optional[datetime] = None) -> str:
        """
        Hand a notification to the queue, delivering inline when that is not possible.

        Args:
            notification_id: Stored notification
            deliver_at: Business-local time to deliver at; now when omitted

        Returns:
            str: "queued", "delivered" or "failed"
        """
        if self.queue_enabled:
            try:
                if deliver_at is not None and deliver_at > now_local():
                    aware = deliver_at.replace(tzinfo=get_business_timezone())
                    self.queue.enqueue_at(aware, deliver_notification, notification_id, job_timeout='5m')
                    logger.info(f"Scheduled notification {notification_id} for {deliver_at}")
                else:
                    self.queue.enqueue(deliver_notification, notification_id, job_timeout='5m')
                    logger.info(f"Queued notification {notification_id}")
                return "queued"
            except Exception as e:
                logger.error(f"Error queueing notification {notification_id}, delivering inline: {e}")

        if deliver_notification(notification_id, db=self.db):
            return "delivered"
        return "failed"

    def schedule_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Create reminders for upcoming appointments.

        Looks at scheduled appointments starting within the next 24 hours that
        have a client and no reminder for their current start time. Each
        reminder is due one hour before the appointment, or immediately when
        less time is left.

        Returns:
            int: Number of reminders created
        """
        now = now or now_local()
        upcoming = AppointmentRepository.list_appointments(
            self.db,
            start_date=now,
            end_date=now + REMINDER_HORIZON,
            status=AppointmentStatus.SCHEDULED,
        )

        created = 0
        for appointment in upcoming:
            if appointment.client_id is None:
                continue

            existing = NotificationRepository.find_for_appointment(
                self.db, appointment.id, NotificationType.REMINDER
            )
            if any(reminder_is_current(r, appointment) for r in existing):
                continue

            due = max(now, appointment.start_time - REMINDER_LEAD)
            reminder = NotificationRepository.create_notification(
                self.db,
                user_id=appointment.client_id,
                notification_type=NotificationType.REMINDER,
                appointment_id=appointment.id,
                scheduled_for=due,
            )
            self.dispatch_notification(reminder.id, deliver_at=due)
            created += 1
            logger.info(f"Created reminder {reminder.id} for appointment {appointment.id} due {due}")

        return created


def run_reminder_scan() -> int:
    """One reminder scan with its own database session."""
    db = SessionLocal()
    try:
        return BackgroundJobManager(db).schedule_reminders()
    except Exception as e:
        logger.error(f"Error scanning for reminders: {e}")
        db.rollback()
        return 0
    finally:
        db.close()


async def reminder_loop(interval_minutes: Optional[int] = None):
    """Scan for reminders on a fixed cadence until cancelled."""
    interval_minutes = interval_minutes or settings.reminder_interval_minutes
    logger.info(f"Reminder scheduler running every {interval_minutes} minutes")
    while True:
        created = await asyncio.to_thread(run_reminder_scan)
        if created:
            logger.info(f"Reminder scan created {created} reminders")
        await asyncio.sleep(interval_minutes * 60)
