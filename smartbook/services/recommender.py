"""
Slot recommendation engine.

Enumerates half-hour aligned candidate slots for one day, rejects the ones
that collide with existing appointments, scores the rest with a handful of
scheduling heuristics and keeps the best three. The same pass produces
generic schedule insights and a placeholder no-show risk estimate.
"""
import logging
import random
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple, Union

from smartbook.models import UserRole
from smartbook.schemas import TimeSlot, NoShowRisk, RecommendationResult
from smartbook.utils.time import hours_since_midnight, at_fractional_hour, to_local

logger = logging.getLogger(__name__)

SLOT_STEP_HOURS = 0.5
CANDIDATE_DURATIONS = (0.5, 1.0, 1.5)
STANDARD_DURATIONS = (0.5, 1.0)
MAX_RECOMMENDATIONS = 3
BUFFER_HOURS = 0.25
BASE_SCORE = 0.5
MAX_JITTER = 0.2

MORNING_END = 12
LUNCH_START = 12
LUNCH_END = 13.5
LATE_DAY_HOUR = 16

NO_SHOW_SELECTION_THRESHOLD = 0.7
NO_SHOW_MIN_RISK = 0.3
NO_SHOW_REASON = "Client has missed previous appointments"
DEFAULT_REASON = "Open slot within business hours."

BASE_INSIGHTS = (
    "Your meeting load is optimally balanced this week",
    "Consider scheduling focused work time in the mornings",
    "You have several meetings scheduled without proper breaks",
)

ROLE_INSIGHTS = {
    UserRole.ADMIN: "Consider delegating routine appointments to staff members to free up time for planning",
    UserRole.STAFF: "Block time after appointments to document client notes and schedule follow-ups",
}


class RecommendationError(Exception):
    """Base exception for the recommendation engine."""
    pass


class InvalidAppointmentError(RecommendationError, ValueError):
    """Raised when an input appointment breaks the end-after-start invariant."""
    pass


@dataclass(frozen=True)
class BusinessHours:
    """Bookable window of the day, in hours since midnight."""
    start_hour: float = 8
    end_hour: float = 18

    def __post_init__(self):
        if not 0 <= self.start_hour < self.end_hour <= 24:
            raise ValueError(
                f"Invalid business hours {self.start_hour}-{self.end_hour}: "
                f"expected 0 <= start < end <= 24"
            )

    @classmethod
    def from_settings(cls, settings) -> "BusinessHours":
        return cls(start_hour=settings.business_start_hour, end_hour=settings.business_end_hour)


@dataclass(frozen=True)
class BusyRange:
    """An existing appointment in fractional hours since midnight."""
    start: float
    end: float

    def overlaps(self, start: float, end: float) -> bool:
        # Half-open: touching endpoints are not a conflict
        return start < self.end and end > self.start


@dataclass(frozen=True)
class ScoreContribution:
    """One heuristic's effect on a slot score."""
    delta: float
    reason: str


def normalize_role(user_role: Union[UserRole, str]) -> UserRole:
    """Coerce a role name into :class:`UserRole`."""
    if isinstance(user_role, UserRole):
        return user_role
    try:
        return UserRole(str(user_role).lower())
    except ValueError:
        raise RecommendationError(f"Unknown user role: {user_role!r}")


def validate_appointments(appointments: Sequence) -> None:
    """
    Check the end-after-start invariant of every appointment.

    Raises:
        InvalidAppointmentError: On the first offending appointment
    """
    for appointment in appointments:
        if to_local(appointment.end_time) <= to_local(appointment.start_time):
            raise InvalidAppointmentError(
                f"Appointment {appointment.id} ends at {appointment.end_time} "
                f"which is not after its start {appointment.start_time}"
            )


def appointments_on_day(appointments: Sequence, target_date: date) -> List:
    """Appointments whose local start falls on ``target_date``."""
    return [a for a in appointments if to_local(a.start_time).date() == target_date]


def busy_ranges_for(day_appointments: Sequence, target_date: date) -> List[BusyRange]:
    """Convert a day's appointments into busy ranges."""
    return [
        BusyRange(
            start=hours_since_midnight(a.start_time, target_date),
            end=hours_since_midnight(a.end_time, target_date),
        )
        for a in day_appointments
    ]


def has_conflict(hour: float, slot_end: float, busy_ranges: Sequence[BusyRange]) -> bool:
    return any(r.overlaps(hour, slot_end) for r in busy_ranges)


def has_buffer(hour: float, slot_end: float, busy_ranges: Sequence[BusyRange]) -> bool:
    """True when nothing ends just before the slot or starts just after it."""
    ends_just_before = any(0 <= hour - r.end < BUFFER_HOURS for r in busy_ranges)
    starts_just_after = any(0 <= r.start - slot_end < BUFFER_HOURS for r in busy_ranges)
    return not ends_just_before and not starts_just_after


def score_contributions(hour: float, duration: float,
                        busy_ranges: Sequence[BusyRange]) -> List[ScoreContribution]:
    """
    Heuristic contributions for a conflict-free slot, in evaluation order.

    Args:
        hour: Slot start in hours since midnight
        duration: Slot length in hours
        busy_ranges: The day's busy ranges

    Returns:
        List[ScoreContribution]: Contributions of the rules that fired
    """
    slot_end = hour + duration
    contributions = []

    if hour < MORNING_END:
        contributions.append(ScoreContribution(
            0.2, "Morning slots are typically better for focused work."
        ))

    if LUNCH_START <= hour < LUNCH_END:
        contributions.append(ScoreContribution(
            -0.3, "This is around typical lunch time, which might be inconvenient."
        ))

    if duration > 1 and slot_end > LATE_DAY_HOUR:
        contributions.append(ScoreContribution(
            -0.2, "Longer meetings late in the day can be less productive."
        ))

    if duration in STANDARD_DURATIONS:
        contributions.append(ScoreContribution(
            0.1, f"{int(duration * 60)} minute meetings are standard and typically efficient."
        ))

    if has_buffer(hour, slot_end, busy_ranges):
        contributions.append(ScoreContribution(
            0.3, "This slot has buffer time before and after, reducing stress between meetings."
        ))

    return contributions


def explain(contributions: Sequence[ScoreContribution]) -> str:
    """The reason shown for a slot: the last rule that fired wins."""
    if not contributions:
        return DEFAULT_REASON
    return contributions[-1].reason


class SlotRecommender:
    """Scores open slots for a day and ranks them."""

    def __init__(self, business_hours: Optional[BusinessHours] = None,
                 rng: Optional[random.Random] = None):
        self.business_hours = business_hours or BusinessHours()
        self.rng = rng or random.Random()

    def recommend(self, target_date: Union[date, datetime], appointments: Sequence,
                  user_role: Union[UserRole, str]) -> RecommendationResult:
        """
        Produce ranked slots, insights and no-show risks for a day.

        Args:
            target_date: Day to plan; a time component is ignored
            appointments: Appointments visible to the caller around the day
            user_role: Role of the requesting user (affects insights only)

        Returns:
            RecommendationResult: Top slots, insights and risks

        Raises:
            InvalidAppointmentError: If an appointment ends before it starts
            RecommendationError: If the role is unknown
        """
        if isinstance(target_date, datetime):
            target_date = to_local(target_date).date()
        role = normalize_role(user_role)
        validate_appointments(appointments)

        day_appointments = appointments_on_day(appointments, target_date)
        busy_ranges = busy_ranges_for(day_appointments, target_date)

        slots = self.candidate_slots(target_date, busy_ranges)
        recommended = self.rank(slots)

        result = RecommendationResult(
            recommended_slots=recommended,
            insights=self.build_insights(role),
            no_show_risks=self.estimate_no_show_risks(day_appointments),
        )
        logger.info(
            f"Recommended {len(recommended)} of {len(slots)} open slots for {target_date} "
            f"({len(day_appointments)} booked, role={role.value})"
        )
        return result

    def candidate_hours(self) -> List[float]:
        """Half-hour boundaries from opening (inclusive) to closing (exclusive)."""
        hours = []
        step = 0
        while True:
            hour = self.business_hours.start_hour + step * SLOT_STEP_HOURS
            if hour >= self.business_hours.end_hour:
                return hours
            hours.append(hour)
            step += 1

    def candidate_slots(self, target_date: date,
                        busy_ranges: Sequence[BusyRange]) -> List[TimeSlot]:
        """Every conflict-free (start, duration) slot, scored."""
        slots = []
        for hour in self.candidate_hours():
            for duration in CANDIDATE_DURATIONS:
                slot_end = hour + duration
                if slot_end > self.business_hours.end_hour:
                    continue
                if has_conflict(hour, slot_end, busy_ranges):
                    continue

                score, reason = self.score_slot(hour, duration, busy_ranges)
                slots.append(TimeSlot(
                    start_time=at_fractional_hour(target_date, hour),
                    end_time=at_fractional_hour(target_date, slot_end),
                    score=score,
                    reason=reason,
                ))
        return slots

    def score_slot(self, hour: float, duration: float,
                   busy_ranges: Sequence[BusyRange]) -> Tuple[float, str]:
        """Clamped score and explanation for one slot."""
        contributions = score_contributions(hour, duration, busy_ranges)
        raw = sum(c.delta for c in contributions)
        raw += self.rng.random() * MAX_JITTER
        score = min(1.0, max(0.0, BASE_SCORE + raw))
        return score, explain(contributions)

    @staticmethod
    def rank(slots: Sequence[TimeSlot], limit: int = MAX_RECOMMENDATIONS) -> List[TimeSlot]:
        """Best slots first; equal scores go to the earlier, then shorter, slot."""
        ordered = sorted(slots, key=lambda s: (-s.score, s.start_time, s.end_time))
        return ordered[:limit]

    @staticmethod
    def build_insights(role: UserRole) -> List[str]:
        insights = list(BASE_INSIGHTS)
        if role in ROLE_INSIGHTS:
            insights.append(ROLE_INSIGHTS[role])
        return insights

    def estimate_no_show_risks(self, day_appointments: Sequence) -> List[NoShowRisk]:
        """
        Flag a pseudo-random subset of the day's appointments.

        Each appointment is picked with probability 0.3 and given a risk
        drawn uniformly from [0.3, 1.0].
        """
        risks = []
        for appointment in day_appointments:
            if self.rng.random() > NO_SHOW_SELECTION_THRESHOLD:
                risk = self.rng.random() * (1 - NO_SHOW_MIN_RISK) + NO_SHOW_MIN_RISK
                risks.append(NoShowRisk(
                    appointment_id=appointment.id,
                    risk=min(1.0, risk),
                    reason=NO_SHOW_REASON,
                ))
        return risks


def recommend_slots(target_date: Union[date, datetime], appointments: Sequence,
                    user_role: Union[UserRole, str],
                    business_hours: Optional[BusinessHours] = None,
                    rng: Optional[random.Random] = None) -> RecommendationResult:
    """Run the heuristic engine once."""
    recommender = SlotRecommender(business_hours, rng)
    return recommender.recommend(target_date, appointments, user_role)
