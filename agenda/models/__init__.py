"""Data models package."""

from .appointment import (
    Appointment,
    AppointmentStatus,
    BodyMapPoint,
    BusySlot,
    CalendarDay,
    TimeSlot,
)
from .patient import MedicalHistory, Patient
from .profile import Profile, Role, Therapist
from .session import AuthSession

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "BodyMapPoint",
    "BusySlot",
    "CalendarDay",
    "TimeSlot",
    "MedicalHistory",
    "Patient",
    "Profile",
    "Role",
    "Therapist",
    "AuthSession",
]
