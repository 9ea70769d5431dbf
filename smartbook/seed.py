"""
Demo data: one user per role, today's sample appointments and two calendars.

Run with ``python -m smartbook.seed`` or set SEED_DEMO_DATA=true.
"""
import logging
from datetime import datetime, time, timedelta
from typing import Optional
from sqlalchemy.orm import Session

from smartbook.db import SessionLocal, init_db
from smartbook.deps import hash_password
from smartbook.models import (
    User, UserRole, Appointment, AppointmentStatus, CalendarIntegration, CalendarProvider
)
from smartbook.services.storage import UserRepository
from smartbook.utils.time import now_local

logger = logging.getLogger(__name__)

DEMO_USERS = [
    {"username": "admin", "password": "admin123", "name": "Sarah Johnson",
     "email": "sarah@example.com", "phone": "555-123-4567", "role": UserRole.ADMIN},
    {"username": "staff", "password": "staff123", "name": "John Davis",
     "email": "john@example.com", "phone": "555-987-6543", "role": UserRole.STAFF},
    {"username": "customer", "password": "customer123", "name": "Michael Thompson",
     "email": "michael@example.com", "phone": "555-555-5555", "role": UserRole.CUSTOMER},
]


def _demo_appointments(users):
    admin, staff, customer = users["admin"], users["staff"], users["customer"]
    return [
        {"title": "Client Consultation", "start": time(9, 0), "end": time(9, 45),
         "client": customer, "staff": staff, "location": "Video Call",
         "notes": "Initial consultation", "color": "#3b82f6"},
        {"title": "Team Meeting", "start": time(11, 0), "end": time(12, 0),
         "client": None, "staff": staff, "location": "Conference Room",
         "notes": "All staff required", "color": "#8b5cf6"},
        {"title": "Project Review", "start": time(14, 0), "end": time(14, 30),
         "client": customer, "staff": admin, "location": "Office",
         "notes": "Review progress on current project", "color": "#10b981"},
    ]


def seed_demo_data(db: Optional[Session] = None) -> bool:
    """
    Insert demo data unless users already exist.

    Returns:
        bool: True if data was added
    """
    owns_session = db is None
    db = db or SessionLocal()
    try:
        if db.query(User).count():
            logger.info("Users already present, skipping demo data")
            return False

        users = {}
        for user_data in DEMO_USERS:
            fields = {k: v for k, v in user_data.items() if k != "password"}
            users[user_data["username"]] = UserRepository.create_user(
                db, password_hash=hash_password(user_data["password"]), **fields
            )
            logger.info(f"Added {fields['role'].value} user {fields['username']}")

        today = now_local().date()
        for apt in _demo_appointments(users):
            db.add(Appointment(
                title=apt["title"],
                start_time=datetime.combine(today, apt["start"]),
                end_time=datetime.combine(today, apt["end"]),
                client_id=apt["client"].id if apt["client"] else None,
                staff_id=apt["staff"].id,
                location=apt["location"],
                notes=apt["notes"],
                status=AppointmentStatus.SCHEDULED,
                color=apt["color"],
            ))

        expires_at = now_local() + timedelta(hours=1)
        for provider in (CalendarProvider.GOOGLE, CalendarProvider.OUTLOOK):
            db.add(CalendarIntegration(
                user_id=users["admin"].id,
                provider=provider,
                access_token="mock-access-token",
                refresh_token="mock-refresh-token",
                expires_at=expires_at,
                connected=True,
            ))

        db.commit()
        logger.info(f"Demo data added: {len(users)} users, 3 appointments, 2 calendar integrations")
        return True

    except Exception as e:
        logger.error(f"Error adding demo data: {e}")
        db.rollback()
        return False
    finally:
        if owns_session:
            db.close()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    init_db()
    seed_demo_data()
