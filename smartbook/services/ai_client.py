"""
OpenAI-compatible client that asks a language model for slot recommendations.

Every failure mode (transport, HTTP status, malformed or out-of-range
content) surfaces as :class:`AiServiceError` so the caller can fall back to
the heuristic engine.
"""
import json
import logging
from datetime import date
from typing import Optional, List, Dict, Sequence
import httpx
from pydantic import ValidationError

from smartbook.config import get_settings
from smartbook.models import UserRole
from smartbook.schemas import RecommendationResult
from smartbook.services.recommender import (
    BusinessHours, SlotRecommender, busy_ranges_for, has_conflict
)
from smartbook.utils.time import hours_since_midnight, stamp_date, format_hour, to_local

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a scheduling assistant for an appointment booking system.
Given one day's existing appointments and the business hours, propose the best open
time slots, short insights about the schedule, and appointments at risk of a no-show.

Rules:
- Slots must fall entirely within business hours and must not overlap existing appointments.
- Offer at most 3 slots, best first, each with a score between 0 and 1 and a one-sentence reason.
- No-show risks may only reference the appointment ids you were given, with risk between 0.3 and 1.0.

Respond with ONLY a JSON object of this shape:
{
  "recommended_slots": [{"startTime": "YYYY-MM-DDTHH:MM:SS", "endTime": "YYYY-MM-DDTHH:MM:SS", "score": 0.0, "reason": "string"}],
  "insights": ["string"],
  "no_show_risks": [{"appointmentId": 0, "risk": 0.0, "reason": "string"}]
}"""


class AiServiceError(Exception):
    """Raised when the language model cannot provide a usable recommendation."""
    pass


class AiRecommendationClient:
    """Chat-completions client for slot recommendations."""

    def __init__(self, api_key: str, model: str, base_url: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def build_messages(self, target_date: date, day_appointments: Sequence,
                       user_role: UserRole, business_hours: BusinessHours) -> List[Dict[str, str]]:
        """Chat messages describing the day to plan."""
        booked = [
            {
                "id": a.id,
                "startTime": a.start_time.isoformat(),
                "endTime": a.end_time.isoformat(),
                "status": getattr(getattr(a, "status", None), "value", None),
            }
            for a in day_appointments
        ]
        request = {
            "date": target_date.isoformat(),
            "businessHours": {
                "start": format_hour(business_hours.start_hour),
                "end": format_hour(business_hours.end_hour),
            },
            "userRole": user_role.value,
            "appointments": booked,
        }
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": json.dumps(request)},
        ]

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """
        Send a chat-completions request and return the message content.

        Raises:
            AiServiceError: On transport errors, HTTP errors or unexpected bodies
        """
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": 0.3,
            "response_format": {"type": "json_object"},
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions", json=payload, headers=headers
                )
        except httpx.TimeoutException as e:
            raise AiServiceError("Timed out waiting for the language model") from e
        except httpx.RequestError as e:
            raise AiServiceError(f"Request to the language model failed: {e}") from e

        if response.status_code != 200:
            raise AiServiceError(
                f"Language model returned status {response.status_code}: {response.text[:200]}"
            )

        try:
            return response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AiServiceError("Unexpected chat-completions response body") from e

    def parse_result(self, content: str, target_date: date, day_appointments: Sequence,
                     business_hours: BusinessHours) -> RecommendationResult:
        """
        Validate model output against the recommendation contract.

        Bare times are stamped with ``target_date``. Risks for unknown
        appointments are dropped; slots are re-ranked and truncated.

        Raises:
            AiServiceError: If the content is not a valid recommendation
        """
        try:
            data = json.loads(content)
        except (TypeError, ValueError) as e:
            raise AiServiceError("Language model did not return JSON") from e

        if not isinstance(data, dict):
            raise AiServiceError("Language model returned a non-object JSON value")

        for key in ("recommended_slots", "insights", "no_show_risks"):
            if not isinstance(data.get(key), list):
                raise AiServiceError(f"Language model answer is missing the {key} list")
        slots = data["recommended_slots"]
        risks = data["no_show_risks"]

        for slot in slots:
            if not isinstance(slot, dict):
                raise AiServiceError("Slot entries must be objects")
            for key in ("startTime", "endTime"):
                if isinstance(slot.get(key), str):
                    slot[key] = stamp_date(slot[key], target_date)

        known_ids = {a.id for a in day_appointments}
        day_risks = []
        for risk in risks:
            if not isinstance(risk, dict):
                continue
            appointment_id = risk.get("appointmentId")
            if isinstance(appointment_id, str) and appointment_id.strip().isdigit():
                appointment_id = int(appointment_id)
                risk["appointmentId"] = appointment_id
            if appointment_id in known_ids:
                day_risks.append(risk)
        data["no_show_risks"] = day_risks

        try:
            result = RecommendationResult.model_validate(data)
        except ValidationError as e:
            raise AiServiceError(f"Language model output failed validation: {e}") from e

        busy_ranges = busy_ranges_for(day_appointments, target_date)
        for slot in result.recommended_slots:
            slot.start_time = to_local(slot.start_time)
            slot.end_time = to_local(slot.end_time)
            if slot.start_time.date() != target_date:
                raise AiServiceError(f"Slot {slot.start_time} is not on {target_date}")
            start = hours_since_midnight(slot.start_time, target_date)
            end = hours_since_midnight(slot.end_time, target_date)
            if start < business_hours.start_hour or end > business_hours.end_hour:
                raise AiServiceError(f"Slot {slot.start_time}-{slot.end_time} is outside business hours")
            if has_conflict(start, end, busy_ranges):
                raise AiServiceError(f"Slot {slot.start_time}-{slot.end_time} overlaps a booked appointment")

        result.recommended_slots = SlotRecommender.rank(result.recommended_slots)
        return result

    async def recommend(self, target_date: date, day_appointments: Sequence,
                        user_role: UserRole, business_hours: BusinessHours) -> RecommendationResult:
        """Ask the model for a recommendation for one day."""
        messages = self.build_messages(target_date, day_appointments, user_role, business_hours)
        content = await self.complete(messages)
        result = self.parse_result(content, target_date, day_appointments, business_hours)
        logger.info(f"Language model proposed {len(result.recommended_slots)} slots for {target_date}")
        return result


def build_ai_client(settings=None) -> Optional[AiRecommendationClient]:
    """Client from configuration, or None when the assistant is disabled."""
    settings = settings or get_settings()
    if not settings.ai_enabled or not settings.openai_api_key:
        return None
    return AiRecommendationClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout=settings.ai_timeout_seconds,
    )
