"""Public booking view: pick a therapist, a day and a free mark."""

import logging
from datetime import date, datetime
from typing import Optional

from ..models import BusySlot
from ..services.slot_generator import SlotGenerator
from ..services.supabase_service import SupabaseService
from ..utils.helpers import clean_text, format_datetime, sanitize_phone
from .results import ViewResult, invalid

logger = logging.getLogger(__name__)


def serialize_slots(slots, include_details: bool = False) -> list:
    """Slot grid as JSON-ready dicts."""
    rows = []
    for slot in slots:
        row = {
            "start_at": slot.start_at.isoformat(),
            "label": slot.label,
            "is_available": slot.is_available,
        }
        if include_details:
            apt = slot.appointment
            row["appointment"] = None if apt is None else {
                "id": apt.id,
                "service": apt.service,
                "status": apt.status,
                "has_patient": apt.patient_id is not None,
                "note": apt.note,
            }
        rows.append(row)
    return rows


class PublicBookingView:
    """
    Operations behind the public booking page.

    Anyone can list therapists, see occupancy and request a booking;
    the booking itself is decided by the server-side procedure.
    """

    def __init__(
        self,
        supabase_service: SupabaseService,
        slot_generator: SlotGenerator,
        default_service: str = "Reiki",
        check_phone: bool = False,
    ):
        self.db = supabase_service
        self.slots = slot_generator
        self.default_service = default_service
        self.check_phone = check_phone

    async def list_therapists(self) -> ViewResult:
        """Therapists with the first one preselected."""
        try:
            therapists = await self.db.list_therapists()
        except Exception as e:
            logger.error(f"Error listing therapists: {e}")
            return ViewResult(
                success=False,
                error="Backend unavailable",
                message="Could not load therapists.",
                status_code=502,
            )

        return ViewResult(
            success=True,
            data={
                "therapists": [
                    {"id": t.id, "full_name": t.display_name, "color": t.color}
                    for t in therapists
                ],
                "selected": therapists[0].id if therapists else None,
            },
            message=f"Found {len(therapists)} therapists",
        )

    def calendar(self, month: date, selected: Optional[date] = None) -> ViewResult:
        """Six-week month grid."""
        days = self.slots.month_grid(month, selected=selected)
        return ViewResult(
            success=True,
            data={
                "month": month.strftime("%Y-%m"),
                "label": month.strftime("%B %Y"),
                "days": [
                    {
                        "date": d.date.isoformat(),
                        "in_month": d.in_month,
                        "is_today": d.is_today,
                        "is_selected": d.is_selected,
                    }
                    for d in days
                ],
            },
        )

    async def day_availability(self, therapist_id: str, day: date) -> ViewResult:
        """Free and occupied marks of a therapist's day."""
        if not therapist_id:
            return invalid("A therapist is required.")

        try:
            busy = await self.db.get_busy_slots(therapist_id, day)
        except Exception as e:
            logger.error(f"Error loading availability for {therapist_id}: {e}")
            return ViewResult(
                success=False,
                error="Backend unavailable",
                message="Could not load availability.",
                status_code=502,
            )

        slots = self.slots.build_day(day, busy)
        return ViewResult(
            success=True,
            data={
                "therapist_id": therapist_id,
                "day": day.isoformat(),
                "slots": serialize_slots(slots),
            },
            message=f"{sum(1 for s in slots if s.is_available)} free slots",
        )

    async def book(
        self,
        therapist_id: str,
        start_at: datetime,
        phone: Optional[str],
        patient_name: Optional[str] = None,
        service: Optional[str] = None,
        note: Optional[str] = None,
    ) -> ViewResult:
        """
        Book a mark for a patient.

        Args:
            therapist_id: Therapist to book with
            start_at: Mark to book (timezone-aware)
            phone: Contact phone, required
            patient_name: Optional patient name
            service: Service name, defaults to the practice default
            note: Optional note

        Returns:
            ViewResult with the refreshed day grid
        """
        if not therapist_id:
            return invalid("A therapist is required.")

        phone = sanitize_phone(phone)
        if not phone:
            return invalid("Phone is required.")

        is_valid, error_msg = self.slots.validate_start(start_at)
        if not is_valid:
            return invalid(error_msg)

        local_start = start_at.astimezone(self.slots.tz)
        day = local_start.date()

        try:
            busy = await self.db.get_busy_slots(therapist_id, day)
            if self.slots.is_occupied(start_at, busy):
                return ViewResult(
                    success=False,
                    error="Slot already taken",
                    message="That time is no longer available. Please pick another one.",
                    status_code=409,
                )

            result = await self.db.book_appointment(
                therapist_id=therapist_id,
                start=start_at,
                patient_name=clean_text(patient_name),
                phone=phone,
                service=clean_text(service) or self.default_service,
                note=clean_text(note),
                check_phone=self.check_phone,
            )
        except Exception as e:
            logger.error(f"Booking rejected for {therapist_id}: {e}")
            return ViewResult(
                success=False,
                error="Booking rejected",
                message="Could not book (is the time taken?). Please try another time.",
                status_code=409,
            )

        # Refresh the day after the write
        try:
            busy = await self.db.get_busy_slots(therapist_id, day)
        except Exception as e:
            logger.warning(f"Could not refresh busy slots after booking: {e}")
            busy = busy + [BusySlot(start_at=start_at, end_at=self.slots.appointment_end(start_at))]

        return ViewResult(
            success=True,
            data={
                "booking": result,
                "start_at": start_at.isoformat(),
                "slots": serialize_slots(self.slots.build_day(day, busy)),
            },
            message=f"Appointment booked for {format_datetime(local_start, 'short')}!",
            status_code=201,
        )
