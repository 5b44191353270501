"""Slot generator for a therapist's day."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from dateutil.relativedelta import relativedelta, SU

from ..models import Appointment, AppointmentStatus, BusySlot, CalendarDay, TimeSlot
from ..utils.helpers import get_timezone

logger = logging.getLogger(__name__)

MONTH_GRID_DAYS = 42  # six weeks


class SlotGenerator:
    """Builds half-hour day grids and marks them against busy intervals."""

    def __init__(
        self,
        day_start_hour: int = 8,
        day_end_hour: int = 20,
        slot_step_minutes: int = 30,
        appointment_minutes: int = 30,
        timezone: str = "UTC",
        buffer_minutes: Optional[int] = None,
    ):
        """
        Initialize slot generator.

        Args:
            day_start_hour: First mark of the day (24-hour format), default 8 AM
            day_end_hour: Marks stop before this hour, default 8 PM
            slot_step_minutes: Distance between marks
            appointment_minutes: Length of a booked appointment
            timezone: Timezone the grid is laid out in
            buffer_minutes: When set, marks this close to an appointment
                start are treated as occupied
        """
        if day_end_hour <= day_start_hour:
            raise ValueError("day_end_hour must be after day_start_hour")
        if slot_step_minutes <= 0:
            raise ValueError("slot_step_minutes must be positive")

        self.day_start_hour = day_start_hour
        self.day_end_hour = day_end_hour
        self.slot_step = timedelta(minutes=slot_step_minutes)
        self.appointment_length = timedelta(minutes=appointment_minutes)
        self.tz = get_timezone(timezone)
        self.buffer = timedelta(minutes=buffer_minutes) if buffer_minutes else None

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """Start and end of the bookable part of a day."""
        start = datetime.combine(day, time(self.day_start_hour), tzinfo=self.tz)
        end = datetime.combine(day, time(self.day_end_hour), tzinfo=self.tz)
        return start, end

    def day_slots(self, day: date) -> List[datetime]:
        """Every mark from day start (inclusive) to day end (exclusive)."""
        start, end = self.day_bounds(day)
        marks = []
        current = start
        while current < end:
            marks.append(current)
            current = current + self.slot_step
        return marks

    def appointment_end(self, start: datetime) -> datetime:
        return start + self.appointment_length

    def is_occupied(self, ts: datetime, busy: Iterable[BusySlot]) -> bool:
        """
        Check a mark against busy intervals.

        A mark is occupied when it equals an interval start or falls strictly
        inside an interval. With a buffer configured, it is also occupied when
        it lies strictly within the buffer of a non-blocked interval start.
        """
        for slot in busy:
            if ts == slot.start_at or slot.start_at < ts < slot.end_at:
                return True
            if self.buffer and not slot.is_blocked:
                if slot.start_at - self.buffer < ts < slot.start_at + self.buffer:
                    return True
        return False

    def build_day(
        self,
        day: date,
        busy: List[BusySlot],
        own_appointments: Optional[List[Appointment]] = None,
    ) -> List[TimeSlot]:
        """
        Build the slot grid for a day.

        Args:
            day: The day to lay out
            busy: Busy intervals fetched for the therapist
            own_appointments: Appointment details, only for the caller's own agenda

        Returns:
            List of TimeSlot objects, one per mark
        """
        by_start = {}
        for apt in own_appointments or []:
            if apt.status == AppointmentStatus.CANCELLED.value:
                continue
            by_start.setdefault(apt.start_at, apt)

        slots = []
        for mark in self.day_slots(day):
            occupied = self.is_occupied(mark, busy)
            details = by_start.get(mark) if occupied else None
            slots.append(TimeSlot(
                start_at=mark,
                label=mark.strftime("%H:%M"),
                is_available=not occupied,
                appointment=details,
            ))

        return slots

    def available_marks(self, day: date, busy: List[BusySlot]) -> List[datetime]:
        """Only the free marks of a day."""
        return [mark for mark in self.day_slots(day) if not self.is_occupied(mark, busy)]

    def validate_start(self, start: datetime) -> tuple[bool, str]:
        """
        Validate that a timestamp is a mark on the grid.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if start.tzinfo is None:
            return False, "Start time needs a timezone offset."

        local = start.astimezone(self.tz)
        if local not in self.day_slots(local.date()):
            return False, (
                f"Appointments start on the {int(self.slot_step.total_seconds() // 60)}-minute grid "
                f"between {self.day_start_hour}:00 and {self.day_end_hour}:00."
            )
        return True, ""

    def month_grid(
        self,
        month: date,
        selected: Optional[date] = None,
        today: Optional[date] = None,
    ) -> List[CalendarDay]:
        """
        Six-week calendar grid for a month, weeks starting on Sunday.

        Args:
            month: Any day of the month to show
            selected: Day to flag as selected
            today: Day to flag as today (defaults to the practice's today)
        """
        if today is None:
            today = datetime.now(self.tz).date()

        first = month.replace(day=1)
        grid_start = first + relativedelta(weekday=SU(-1))

        days = []
        for offset in range(MONTH_GRID_DAYS):
            current = grid_start + timedelta(days=offset)
            days.append(CalendarDay(
                date=current,
                in_month=current.month == first.month,
                is_today=current == today,
                is_selected=current == selected,
            ))
        return days
