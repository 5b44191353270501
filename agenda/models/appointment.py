"""Appointment data models."""

from datetime import datetime, date as date_type
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field


class AppointmentStatus(str, Enum):
    """Possible appointment statuses."""
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    BLOCKED = "blocked"


class BodyMapPoint(BaseModel):
    """A mark on the Byosen body sheet, normalized to the sheet size."""
    x: float = Field(..., ge=0.0, le=1.0, description="Horizontal position, 0..1")
    y: float = Field(..., ge=0.0, le=1.0, description="Vertical position, 0..1")
    view: Optional[str] = Field(default=None, description="Sheet view, e.g. front or back")


class BusySlot(BaseModel):
    """An interval during which a therapist is unavailable."""
    start_at: datetime
    end_at: datetime
    status: str = Field(default=AppointmentStatus.SCHEDULED.value)
    therapist_id: Optional[str] = Field(default=None)

    @property
    def is_blocked(self) -> bool:
        return self.status == AppointmentStatus.BLOCKED.value


class Appointment(BaseModel):
    """Represents an appointment row."""
    model_config = ConfigDict(use_enum_values=True)

    id: Optional[str] = Field(default=None, description="Unique appointment ID")
    therapist_id: str = Field(..., description="Therapist profile ID")
    patient_id: Optional[str] = Field(default=None, description="Patient ID, if assigned")
    start_at: datetime
    end_at: datetime
    status: AppointmentStatus = Field(default=AppointmentStatus.SCHEDULED)
    service: Optional[str] = Field(default=None)
    note: Optional[str] = Field(default=None)
    visit_observations: Optional[str] = Field(default=None, description="Free-text visit notes")
    byosen_points: Optional[List[BodyMapPoint]] = Field(default=None)
    created_by: Optional[str] = Field(default=None)

    def to_row(self) -> dict:
        """Serialize for an insert, leaving out server-owned columns."""
        row = self.model_dump(mode="json", exclude={"id"}, exclude_none=True)
        return row


class TimeSlot(BaseModel):
    """A half-hour mark in a therapist's day."""
    start_at: datetime
    label: str = Field(..., description="Time in HH:MM format (24-hour)")
    is_available: bool = Field(default=True)
    appointment: Optional[Appointment] = Field(default=None, description="Own appointment at this mark")

    @property
    def is_bookable(self) -> bool:
        """Free marks, or own marks with details to open."""
        return self.is_available or self.appointment is not None


class CalendarDay(BaseModel):
    """A cell in the month grid."""
    date: date_type
    in_month: bool
    is_today: bool = False
    is_selected: bool = False
