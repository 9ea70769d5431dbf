"""
Pydantic schemas for API request/response models.

Entity payloads use the camelCase keys of the existing web client; the
recommendation result keeps its snake_case top-level keys.
"""
from datetime import datetime, date
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, validator

from smartbook.models import (
    UserRole, AppointmentStatus, CalendarProvider, NotificationType, NotificationMethod
)


# Base schemas
class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    class Config:
        from_attributes = True
        populate_by_name = True


# Auth schemas
class LoginRequest(BaseSchema):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


# User schemas
class UserBase(BaseSchema):
    username: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    role: UserRole = Field(default=UserRole.CUSTOMER)


class UserCreate(UserBase):
    password: str = Field(..., min_length=6, max_length=128)


class UserPublic(UserBase):
    id: int
    created_at: Optional[datetime] = Field(None, alias="createdAt")


class SessionInfo(BaseSchema):
    is_authenticated: bool = Field(..., alias="isAuthenticated")
    user: Optional[UserPublic] = None


# Appointment schemas
class AppointmentBase(BaseSchema):
    title: str = Field(..., min_length=1, max_length=200)
    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime = Field(..., alias="endTime")
    client_id: Optional[int] = Field(None, alias="clientId")
    staff_id: Optional[int] = Field(None, alias="staffId")
    location: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = None
    status: AppointmentStatus = Field(default=AppointmentStatus.SCHEDULED)
    color: str = Field(default="#3b82f6", max_length=20)

    @validator('end_time')
    def validate_end_after_start(cls, v, values):
        if 'start_time' in values and v <= values['start_time']:
            raise ValueError('endTime must be after startTime')
        return v


class AppointmentCreate(AppointmentBase):
    pass


class AppointmentUpdate(BaseSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    start_time: Optional[datetime] = Field(None, alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    client_id: Optional[int] = Field(None, alias="clientId")
    staff_id: Optional[int] = Field(None, alias="staffId")
    location: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    color: Optional[str] = Field(None, max_length=20)


class Appointment(AppointmentBase):
    id: int
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


# Calendar integration schemas
class CalendarIntegrationCreate(BaseSchema):
    provider: CalendarProvider
    access_token: str = Field(..., min_length=1, alias="accessToken")
    refresh_token: Optional[str] = Field(None, alias="refreshToken")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")
    connected: bool = Field(default=True)


class CalendarIntegrationPublic(BaseSchema):
    """Integration without its tokens."""
    id: int
    provider: CalendarProvider
    connected: bool
    created_at: Optional[datetime] = Field(None, alias="createdAt")


# Notification schemas
class NotificationPublic(BaseSchema):
    id: int
    user_id: int = Field(..., alias="userId")
    appointment_id: Optional[int] = Field(None, alias="appointmentId")
    type: NotificationType
    method: NotificationMethod
    sent: bool
    scheduled_for: Optional[datetime] = Field(None, alias="scheduledFor")
    created_at: Optional[datetime] = Field(None, alias="createdAt")


# Recommendation schemas
class TimeSlot(BaseSchema):
    """Candidate bookable window with its heuristic score."""
    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime = Field(..., alias="endTime")
    score: float = Field(..., ge=0, le=1)
    reason: str

    @validator('end_time')
    def validate_end_after_start(cls, v, values):
        if 'start_time' in values and v <= values['start_time']:
            raise ValueError('endTime must be after startTime')
        return v


class NoShowRisk(BaseSchema):
    appointment_id: int = Field(..., alias="appointmentId")
    risk: float = Field(..., ge=0.3, le=1.0)
    reason: str


class RecommendationResult(BaseSchema):
    """Engine output in the wire shape the web client consumes."""
    recommended_slots: List[TimeSlot] = Field(default_factory=list, alias="recommended_slots")
    insights: List[str] = Field(default_factory=list)
    no_show_risks: List[NoShowRisk] = Field(default_factory=list, alias="no_show_risks")

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with ISO-8601 timestamps."""
        return self.model_dump(mode="json", by_alias=True)


class SuggestionGenerateRequest(BaseSchema):
    date: datetime

    @validator('date', pre=True)
    def parse_plain_date(cls, v):
        # Accept "2024-05-01" as well as full timestamps
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, datetime.min.time())
        if isinstance(v, str) and len(v) == 10:
            return f"{v}T00:00:00"
        return v


class AiSuggestionPublic(BaseSchema):
    id: int
    user_id: int = Field(..., alias="userId")
    date: datetime
    suggestion: RecommendationResult
    used: bool
    created_at: Optional[datetime] = Field(None, alias="createdAt")


class MessageResponse(BaseSchema):
    message: str
