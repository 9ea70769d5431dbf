"""
Calendar provider sync.

Provider APIs are not called; each sync is logged and reported as successful.
"""
import logging
from typing import Dict
from sqlalchemy.orm import Session

from smartbook.models import Appointment, CalendarIntegration
from smartbook.services.storage import CalendarIntegrationRepository

logger = logging.getLogger(__name__)

SYNC_ACTIONS = ("create", "update", "delete")


def sync_calendar(action: str, integration: CalendarIntegration, appointment: Appointment) -> bool:
    """
    Mirror one appointment change to an external calendar.

    Args:
        action: "create", "update" or "delete"
        integration: Connected calendar
        appointment: Appointment that changed

    Returns:
        bool: True if the provider accepted the change
    """
    try:
        if action not in SYNC_ACTIONS:
            raise ValueError(f"Unknown calendar sync action: {action}")

        provider = integration.provider.value
        if not integration.connected:
            logger.info(f"Skipping {action} sync to disconnected {provider} calendar {integration.id}")
            return False

        verb = {"create": "Creating", "update": "Updating", "delete": "Deleting"}[action]
        preposition = "from" if action == "delete" else "in"
        logger.info(
            f"{verb} event \"{appointment.title}\" {preposition} {provider} calendar "
            f"(appointment {appointment.id}, {appointment.start_time} - {appointment.end_time})"
        )
        return True

    except Exception as e:
        logger.error(f"Error syncing appointment {appointment.id} with calendar {integration.id}: {e}")
        return False


def sync_staff_calendars(db: Session, action: str, appointment: Appointment) -> Dict[int, bool]:
    """
    Sync an appointment to every calendar of its staff member.

    Returns:
        Dict[int, bool]: Sync outcome per integration id
    """
    if appointment.staff_id is None:
        return {}

    integrations = CalendarIntegrationRepository.list_by_user(db, appointment.staff_id)
    return {
        integration.id: sync_calendar(action, integration, appointment)
        for integration in integrations
    }
