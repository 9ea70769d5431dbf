"""
Tests for notification delivery, reminder scheduling and calendar sync.
"""
from datetime import datetime, timedelta, timezone

from smartbook.models import (
    AppointmentStatus, CalendarIntegration, CalendarProvider, NotificationType
)
from smartbook.schemas import AppointmentUpdate
from smartbook.services.appointments import AppointmentManager
from smartbook.services.background_jobs import BackgroundJobManager, REMINDER_LEAD
from smartbook.services.calendar_sync import sync_calendar, sync_staff_calendars
from smartbook.services.messaging import deliver_notification, render_message
from smartbook.services.notifications import NotificationService
from smartbook.services.storage import AppointmentRepository, NotificationRepository
from smartbook.utils.time import get_business_timezone, now_local


class RecordingQueue:
    """Stands in for an rq queue and records what was enqueued."""

    def __init__(self, fail=False):
        self.fail = fail
        self.enqueued = []
        self.scheduled = []

    def enqueue(self, func, *args, **kwargs):
        if self.fail:
            raise ConnectionError("Redis unavailable")
        self.enqueued.append((func, args))

    def enqueue_at(self, when, func, *args, **kwargs):
        if self.fail:
            raise ConnectionError("Redis unavailable")
        self.scheduled.append((when, func, args))


def add_appointment(db, users, starts_in, status=AppointmentStatus.SCHEDULED, client="customer"):
    start = now_local().replace(microsecond=0) + starts_in
    return AppointmentRepository.create_appointment(
        db,
        title="Follow-up",
        start_time=start,
        end_time=start + timedelta(minutes=30),
        client_id=users[client].id if client else None,
        staff_id=users["staff"].id,
        status=status,
    )


def test_reminders_are_created_once(db, users):
    appointment = add_appointment(db, users, timedelta(hours=3))
    jobs = BackgroundJobManager(db, queue_enabled=False)
    now = now_local()

    assert jobs.schedule_reminders(now) == 1
    assert jobs.schedule_reminders(now) == 0

    reminders = NotificationRepository.find_for_appointment(db, appointment.id, NotificationType.REMINDER)
    assert len(reminders) == 1
    assert reminders[0].user_id == users["customer"].id
    assert reminders[0].scheduled_for == appointment.start_time - REMINDER_LEAD
    assert reminders[0].sent is True


def test_reminders_skip_ineligible_appointments(db, users):
    add_appointment(db, users, timedelta(hours=30))
    add_appointment(db, users, timedelta(hours=2), status=AppointmentStatus.CANCELLED)
    add_appointment(db, users, timedelta(hours=2), client=None)
    add_appointment(db, users, -timedelta(hours=2))

    assert BackgroundJobManager(db, queue_enabled=False).schedule_reminders() == 0


def test_imminent_appointment_is_reminded_now(db, users):
    appointment = add_appointment(db, users, timedelta(minutes=20))
    now = now_local()

    BackgroundJobManager(db, queue_enabled=False).schedule_reminders(now)

    reminder = NotificationRepository.find_for_appointment(db, appointment.id, NotificationType.REMINDER)[0]
    assert reminder.scheduled_for == now


def test_future_reminders_are_scheduled_on_the_queue(db, users):
    appointment = add_appointment(db, users, timedelta(hours=5))
    queue = RecordingQueue()

    BackgroundJobManager(db, queue=queue, queue_enabled=True).schedule_reminders()

    assert queue.enqueued == []
    when, func, args = queue.scheduled[0]
    assert func is deliver_notification
    assert when.tzinfo is not None
    assert when.replace(tzinfo=None) == appointment.start_time - REMINDER_LEAD
    reminder = NotificationRepository.get_notification(db, args[0])
    assert reminder.sent is False


def test_dispatch_queues_immediate_delivery(db, users):
    appointment = add_appointment(db, users, timedelta(days=2))
    notification = NotificationRepository.create_notification(
        db, users["customer"].id, NotificationType.CONFIRMATION, appointment.id
    )
    queue = RecordingQueue()

    outcome = BackgroundJobManager(db, queue=queue, queue_enabled=True).dispatch_notification(notification.id)

    assert outcome == "queued"
    assert queue.enqueued == [(deliver_notification, (notification.id,))]


def test_dispatch_falls_back_to_inline_delivery(db, users):
    appointment = add_appointment(db, users, timedelta(days=2))
    notification = NotificationRepository.create_notification(
        db, users["customer"].id, NotificationType.CONFIRMATION, appointment.id
    )
    jobs = BackgroundJobManager(db, queue=RecordingQueue(fail=True), queue_enabled=True)

    assert jobs.dispatch_notification(notification.id) == "delivered"
    db.refresh(notification)
    assert notification.sent is True


def test_deliver_missing_notification(db, users):
    assert deliver_notification(12345, db=db) is False


def test_deliver_without_appointment_fails(db, users):
    notification = NotificationRepository.create_notification(
        db, users["customer"].id, NotificationType.REMINDER, appointment_id=None
    )

    assert deliver_notification(notification.id, db=db) is False
    db.refresh(notification)
    assert notification.sent is False


def test_notify_delivers_now_when_asked(db, users):
    appointment = add_appointment(db, users, timedelta(days=1))
    queue = RecordingQueue()
    service = NotificationService(db, BackgroundJobManager(db, queue=queue, queue_enabled=True))

    cancellation = service.notify(
        users["customer"].id, appointment.id, NotificationType.CANCELLATION, deliver_now=True
    )
    confirmation = service.notify(users["customer"].id, appointment.id, NotificationType.CONFIRMATION)

    assert cancellation.sent is True
    assert confirmation.sent is False
    assert queue.enqueued == [(deliver_notification, (confirmation.id,))]
    assert [n.id for n in service.list_for_user(users["customer"].id)] == [confirmation.id, cancellation.id]


def test_render_message_names_the_appointment(db, users):
    appointment = add_appointment(db, users, timedelta(days=3))
    notification = NotificationRepository.create_notification(
        db, users["customer"].id, NotificationType.RESCHEDULED, appointment.id
    )

    message = render_message(notification, appointment, users["customer"])

    assert message.startswith("Hi Michael Thompson!")
    assert '"Follow-up" has been moved to' in message


def test_calendar_sync(db, users):
    appointment = add_appointment(db, users, timedelta(days=1))
    connected = CalendarIntegration(
        user_id=users["staff"].id, provider=CalendarProvider.GOOGLE, access_token="t", connected=True
    )
    disconnected = CalendarIntegration(
        user_id=users["staff"].id, provider=CalendarProvider.OUTLOOK, access_token="t", connected=False
    )
    db.add_all([connected, disconnected])
    db.commit()

    assert sync_calendar("create", connected, appointment) is True
    assert sync_calendar("delete", connected, appointment) is True
    assert sync_calendar("archive", connected, appointment) is False
    assert sync_calendar("update", disconnected, appointment) is False
    assert sync_staff_calendars(db, "update", appointment) == {connected.id: True, disconnected.id: False}


def test_queue_times_are_timezone_aware(db, users):
    appointment = add_appointment(db, users, timedelta(hours=6))
    queue = RecordingQueue()

    BackgroundJobManager(db, queue=queue, queue_enabled=True).schedule_reminders()

    when = queue.scheduled[0][0]
    assert when.utcoffset() is not None
    expected = (appointment.start_time - REMINDER_LEAD).replace(tzinfo=get_business_timezone())
    assert when.astimezone(timezone.utc) == expected.astimezone(timezone.utc)


def reschedule(db, appointment, start, jobs):
    manager = AppointmentManager(db, NotificationService(db, jobs))
    return manager.update_appointment(
        appointment, AppointmentUpdate(start_time=start, end_time=start + timedelta(minutes=30))
    )


def test_rescheduled_appointment_gets_a_new_reminder(db, users):
    appointment = AppointmentRepository.create_appointment(
        db,
        title="Follow-up",
        start_time=datetime(2024, 5, 1, 13, 0),
        end_time=datetime(2024, 5, 1, 13, 30),
        client_id=users["customer"].id,
        staff_id=users["staff"].id,
    )
    jobs = BackgroundJobManager(db, queue_enabled=False)

    assert jobs.schedule_reminders(datetime(2024, 5, 1, 8, 0)) == 1
    reschedule(db, appointment, datetime(2024, 5, 2, 4, 0), jobs)
    assert jobs.schedule_reminders(datetime(2024, 5, 1, 18, 0)) == 1
    assert jobs.schedule_reminders(datetime(2024, 5, 1, 18, 15)) == 0

    reminders = NotificationRepository.find_for_appointment(db, appointment.id, NotificationType.REMINDER)
    assert sorted((r.scheduled_for, r.sent) for r in reminders) == [
        (datetime(2024, 5, 1, 12, 0), True),
        (datetime(2024, 5, 2, 3, 0), True),
    ]


def test_reschedule_drops_pending_reminder(db, users):
    appointment = add_appointment(db, users, timedelta(hours=5))
    queue = RecordingQueue()
    jobs = BackgroundJobManager(db, queue=queue, queue_enabled=True)
    jobs.schedule_reminders()
    old_reminder_id = queue.scheduled[0][2][0]

    appointment = reschedule(db, appointment, appointment.start_time + timedelta(hours=3), jobs)

    assert NotificationRepository.find_for_appointment(db, appointment.id, NotificationType.REMINDER) == []
    assert deliver_notification(old_reminder_id, db=db) is False

    assert jobs.schedule_reminders() == 1
    when, func, args = queue.scheduled[-1]
    assert when.replace(tzinfo=None) == appointment.start_time - REMINDER_LEAD


def test_stale_reminder_is_not_delivered(db, users):
    appointment = add_appointment(db, users, timedelta(hours=3))
    reminder = NotificationRepository.create_notification(
        db, users["customer"].id, NotificationType.REMINDER, appointment.id,
        scheduled_for=appointment.start_time - REMINDER_LEAD,
    )
    AppointmentRepository.update_appointment(
        db, appointment,
        start_time=appointment.start_time + timedelta(days=1),
        end_time=appointment.end_time + timedelta(days=1),
    )

    assert deliver_notification(reminder.id, db=db) is False
    db.refresh(reminder)
    assert reminder.sent is False
