"""
Repositories - database operations for every stored entity.
"""
from datetime import datetime
from typing import Optional, List

from sqlalchemy.orm import Session

from smartbook.models import (
    User, UserRole, Appointment, AppointmentStatus, CalendarIntegration,
    AiSuggestion, Notification, NotificationType, NotificationMethod
)


class UserRepository:
    """Repository for user database operations"""

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.get(User, user_id)

    @staticmethod
    def get_user_by_username(db: Session, username: str) -> Optional[User]:
        return db.query(User).filter(User.username == username).first()

    @staticmethod
    def list_users(db: Session, role: Optional[UserRole] = None) -> List[User]:
        """List users, optionally only one role"""
        query = db.query(User)
        if role is not None:
            query = query.filter(User.role == role)
        return query.order_by(User.id).all()

    @staticmethod
    def create_user(db: Session, **user_data) -> User:
        user = User(**user_data)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Optional[Appointment]:
        return db.get(Appointment, appointment_id)

    @staticmethod
    def list_appointments(
        db: Session,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        staff_id: Optional[int] = None,
        client_id: Optional[int] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        """
        Appointments whose start lies in [start_date, end_date], ordered by start.
        Every filter is optional.
        """
        query = db.query(Appointment)
        if start_date is not None:
            query = query.filter(Appointment.start_time >= start_date)
        if end_date is not None:
            query = query.filter(Appointment.start_time <= end_date)
        if staff_id is not None:
            query = query.filter(Appointment.staff_id == staff_id)
        if client_id is not None:
            query = query.filter(Appointment.client_id == client_id)
        if status is not None:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.start_time, Appointment.id).all()

    @staticmethod
    def create_appointment(db: Session, **appointment_data) -> Appointment:
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def update_appointment(db: Session, appointment: Appointment, **updates) -> Appointment:
        """Update an appointment with the provided fields"""
        for key, value in updates.items():
            if hasattr(appointment, key):
                setattr(appointment, key, value)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def delete_appointment(db: Session, appointment: Appointment) -> None:
        db.delete(appointment)
        db.commit()


class CalendarIntegrationRepository:
    """Repository for calendar integration database operations"""

    @staticmethod
    def get_integration(db: Session, integration_id: int) -> Optional[CalendarIntegration]:
        return db.get(CalendarIntegration, integration_id)

    @staticmethod
    def list_by_user(db: Session, user_id: int) -> List[CalendarIntegration]:
        return (
            db.query(CalendarIntegration)
            .filter(CalendarIntegration.user_id == user_id)
            .order_by(CalendarIntegration.id)
            .all()
        )

    @staticmethod
    def create_integration(db: Session, **integration_data) -> CalendarIntegration:
        integration = CalendarIntegration(**integration_data)
        db.add(integration)
        db.commit()
        db.refresh(integration)
        return integration

    @staticmethod
    def delete_integration(db: Session, integration: CalendarIntegration) -> None:
        db.delete(integration)
        db.commit()


class AiSuggestionRepository:
    """Repository for stored recommendations"""

    @staticmethod
    def get_suggestion(db: Session, suggestion_id: int) -> Optional[AiSuggestion]:
        return db.get(AiSuggestion, suggestion_id)

    @staticmethod
    def list_by_user(db: Session, user_id: int) -> List[AiSuggestion]:
        """Newest first"""
        return (
            db.query(AiSuggestion)
            .filter(AiSuggestion.user_id == user_id)
            .order_by(AiSuggestion.created_at.desc(), AiSuggestion.id.desc())
            .all()
        )

    @staticmethod
    def create_suggestion(db: Session, user_id: int, date: datetime, suggestion: dict) -> AiSuggestion:
        record = AiSuggestion(user_id=user_id, date=date, suggestion=suggestion, used=False)
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    def mark_used(db: Session, suggestion: AiSuggestion) -> AiSuggestion:
        suggestion.used = True
        db.commit()
        db.refresh(suggestion)
        return suggestion


class NotificationRepository:
    """Repository for notification database operations"""

    @staticmethod
    def get_notification(db: Session, notification_id: int) -> Optional[Notification]:
        return db.get(Notification, notification_id)

    @staticmethod
    def list_by_user(db: Session, user_id: int) -> List[Notification]:
        return (
            db.query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .all()
        )

    @staticmethod
    def find_for_appointment(db: Session, appointment_id: int,
                             notification_type: NotificationType) -> List[Notification]:
        return (
            db.query(Notification)
            .filter(
                Notification.appointment_id == appointment_id,
                Notification.type == notification_type,
            )
            .all()
        )

    @staticmethod
    def create_notification(
        db: Session,
        user_id: int,
        notification_type: NotificationType,
        appointment_id: Optional[int] = None,
        method: NotificationMethod = NotificationMethod.EMAIL,
        scheduled_for: Optional[datetime] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            appointment_id=appointment_id,
            type=notification_type,
            method=method,
            sent=False,
            scheduled_for=scheduled_for,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        return notification

    @staticmethod
    def delete_unsent(db: Session, appointment_id: int,
                      notification_type: NotificationType) -> int:
        pending = (
            db.query(Notification)
            .filter(
                Notification.appointment_id == appointment_id,
                Notification.type == notification_type,
                Notification.sent.is_(False),
            )
            .all()
        )
        for notification in pending:
            db.delete(notification)
        db.commit()
        return len(pending)

    @staticmethod
    def mark_sent(db: Session, notification: Notification) -> Notification:
        notification.sent = True
        db.commit()
        db.refresh(notification)
        return notification
