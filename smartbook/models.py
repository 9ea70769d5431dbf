"""
SQLAlchemy models for the appointment scheduling service.
"""
from datetime import datetime
from typing import Optional, List
from sqlalchemy import (
    Integer, String, DateTime, Boolean, Text, JSON, Enum, ForeignKey, Index, CheckConstraint
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
import enum

from smartbook.db import Base
from smartbook.utils.time import now_local


class UserRole(enum.Enum):
    """Access roles."""
    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"


class AppointmentStatus(enum.Enum):
    """Appointment status options."""
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class CalendarProvider(enum.Enum):
    """External calendar providers."""
    GOOGLE = "google"
    OUTLOOK = "outlook"
    APPLE = "apple"


class NotificationType(enum.Enum):
    """Why a notification is sent."""
    REMINDER = "reminder"
    CONFIRMATION = "confirmation"
    CANCELLATION = "cancellation"
    RESCHEDULED = "rescheduled"


class NotificationMethod(enum.Enum):
    """Notification delivery channel."""
    EMAIL = "email"
    SMS = "sms"
    IN_APP = "in-app"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class User(Base):
    """Admin, staff member or customer."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=_enum_values), nullable=False, default=UserRole.CUSTOMER
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_local)

    # Relationships
    calendar_integrations: Mapped[List["CalendarIntegration"]] = relationship(
        "CalendarIntegration", back_populates="user", cascade="all, delete-orphan"
    )
    ai_suggestions: Mapped[List["AiSuggestion"]] = relationship(
        "AiSuggestion", back_populates="user", cascade="all, delete-orphan"
    )
    notifications: Mapped[List["Notification"]] = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role={self.role.value})>"


class Appointment(Base):
    """Booked appointment between a client and a staff member."""
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    client_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    staff_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus, values_callable=_enum_values),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#3b82f6")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_local)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=now_local, onupdate=now_local
    )

    # Relationships
    client: Mapped[Optional["User"]] = relationship("User", foreign_keys=[client_id])
    staff: Mapped[Optional["User"]] = relationship("User", foreign_keys=[staff_id])

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_end_after_start"),
        Index("idx_appointment_start", "start_time"),
        Index("idx_staff_start", "staff_id", "start_time"),
        Index("idx_client_start", "client_id", "start_time"),
    )

    def __repr__(self):
        return f"<Appointment(id={self.id}, title='{self.title}', start={self.start_time})>"


class CalendarIntegration(Base):
    """Link between a user and an external calendar provider."""
    __tablename__ = "calendar_integrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    provider: Mapped[CalendarProvider] = mapped_column(
        Enum(CalendarProvider, values_callable=_enum_values), nullable=False
    )
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    connected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_local)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="calendar_integrations")

    def __repr__(self):
        return f"<CalendarIntegration(id={self.id}, user_id={self.user_id}, provider={self.provider.value})>"


class AiSuggestion(Base):
    """Stored slot recommendation for a user and day."""
    __tablename__ = "ai_suggestions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    suggestion: Mapped[dict] = mapped_column(JSON, nullable=False)  # recommendation wire JSON
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_local)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="ai_suggestions")

    __table_args__ = (
        Index("idx_suggestion_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<AiSuggestion(id={self.id}, user_id={self.user_id}, used={self.used})>"


class Notification(Base):
    """Notification record; delivery is simulated."""
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    appointment_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, values_callable=_enum_values), nullable=False
    )
    method: Mapped[NotificationMethod] = mapped_column(
        Enum(NotificationMethod, values_callable=_enum_values), nullable=False
    )
    sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_local)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="notifications")

    __table_args__ = (
        Index("idx_notification_user", "user_id"),
        Index("idx_notification_appointment_type", "appointment_id", "type"),
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, type={self.type.value}, sent={self.sent})>"
