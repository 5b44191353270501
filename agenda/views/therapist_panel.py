"""Therapist panel view: own agenda, patient files and visit notes."""

import logging
from datetime import date, datetime
from typing import List, Optional

from pydantic import ValidationError

from ..models import (
    Appointment,
    AppointmentStatus,
    AuthSession,
    BodyMapPoint,
    Patient,
    Profile,
)
from ..services import body_map
from ..services.slot_generator import SlotGenerator
from ..services.supabase_service import SupabaseService
from ..utils.helpers import clean_text, format_datetime, sanitize_phone
from .public_booking import serialize_slots
from .results import ViewResult, forbidden, invalid, not_found, unauthorized

logger = logging.getLogger(__name__)

# Statuses a therapist may set on an existing appointment
SETTABLE_STATUSES = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
)


def _patient_dict(patient: Patient) -> dict:
    return patient.model_dump(mode="json")


def _appointment_dict(apt: Appointment) -> dict:
    return apt.model_dump(mode="json")


class TherapistPanelView:
    """
    Operations behind the therapist panel.

    Every operation first resolves the caller and requires the
    therapist or admin role; anything else gets a forbidden result.
    """

    def __init__(
        self,
        supabase_service: SupabaseService,
        slot_generator: SlotGenerator,
        default_service: str = "Reiki",
    ):
        self.db = supabase_service
        self.slots = slot_generator
        self.default_service = default_service
        self.user: Optional[AuthSession] = None
        self.profile: Optional[Profile] = None

    async def _authorize(self) -> Optional[ViewResult]:
        """Resolve the caller. Returns an error result when not allowed."""
        if self.profile is not None:
            return None

        user = await self.db.get_user()
        if not user or not user.is_authenticated:
            return unauthorized()

        try:
            profile = await self.db.get_profile(user.user_id)
        except Exception:
            return forbidden()

        if not profile or not profile.can_use_panel:
            logger.info(f"User {user.user_id} denied therapist panel")
            return forbidden()

        self.user = user
        self.profile = profile
        return None

    @property
    def therapist_id(self) -> str:
        return self.profile.id

    # ==================== Agenda ====================

    async def me(self) -> ViewResult:
        """Profile shown in the panel header."""
        denied = await self._authorize()
        if denied:
            return denied

        return ViewResult(
            success=True,
            data={"profile": self.profile.model_dump(mode="json")},
            message=f"Therapist: {self.profile.display_name}",
        )

    async def agenda(self, day: date, therapist_id: Optional[str] = None) -> ViewResult:
        """
        Day grid for a therapist.

        Args:
            day: The day to show
            therapist_id: Whose agenda; defaults to the caller. Other
                therapists' agendas only show occupancy.
        """
        denied = await self._authorize()
        if denied:
            return denied

        target = therapist_id or self.therapist_id
        is_own = target == self.therapist_id

        try:
            busy = await self.db.get_busy_slots(target, day)
            own = []
            if is_own:
                start, end = self.slots.day_bounds(day)
                own = await self.db.get_appointments_between(target, start, end)
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Could not load the agenda.",
                status_code=502,
            )

        slots = self.slots.build_day(day, busy, own if is_own else None)
        return ViewResult(
            success=True,
            data={
                "therapist_id": target,
                "day": day.isoformat(),
                "is_own_agenda": is_own,
                "slots": serialize_slots(slots, include_details=is_own),
            },
        )

    async def _check_free(self, start_at: datetime) -> Optional[ViewResult]:
        is_valid, error_msg = self.slots.validate_start(start_at)
        if not is_valid:
            return invalid(error_msg)

        day = start_at.astimezone(self.slots.tz).date()
        busy = await self.db.get_busy_slots(self.therapist_id, day)
        if self.slots.is_occupied(start_at, busy):
            return ViewResult(
                success=False,
                error="Slot already taken",
                message="That time is already occupied.",
                status_code=409,
            )
        return None

    async def create_appointment(
        self,
        start_at: datetime,
        patient_name: Optional[str] = None,
        phone: Optional[str] = None,
        service: Optional[str] = None,
        note: Optional[str] = None,
    ) -> ViewResult:
        """
        Create an appointment on the caller's own agenda.

        The patient is looked up by name (case-insensitive) among the
        caller's patients and created when missing.
        """
        denied = await self._authorize()
        if denied:
            return denied

        try:
            taken = await self._check_free(start_at)
            if taken:
                return taken

            patient_id = None
            name = clean_text(patient_name)
            if name:
                patient_id = await self.db.find_patient_by_name(self.therapist_id, name)
                if patient_id is None:
                    created_patient = await self.db.create_patient(
                        Patient(full_name=name, phone=sanitize_phone(phone) or None),
                        self.therapist_id,
                    )
                    patient_id = created_patient.id

            appointment = Appointment(
                therapist_id=self.therapist_id,
                patient_id=patient_id,
                start_at=start_at,
                end_at=self.slots.appointment_end(start_at),
                status=AppointmentStatus.SCHEDULED,
                service=clean_text(service) or self.default_service,
                note=clean_text(note),
                created_by=self.therapist_id,
            )
            created = await self.db.create_appointment(appointment)
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Error saving the appointment. Check that the time is free.",
                status_code=409,
            )

        local_start = start_at.astimezone(self.slots.tz)
        return ViewResult(
            success=True,
            data={"appointment": _appointment_dict(created)},
            message=f"New appointment - {format_datetime(local_start, 'short')}",
            status_code=201,
        )

    async def block_slot(self, start_at: datetime, note: Optional[str] = None) -> ViewResult:
        """Mark a free mark on the caller's agenda as unavailable."""
        denied = await self._authorize()
        if denied:
            return denied

        try:
            taken = await self._check_free(start_at)
            if taken:
                return taken

            created = await self.db.create_appointment(Appointment(
                therapist_id=self.therapist_id,
                start_at=start_at,
                end_at=self.slots.appointment_end(start_at),
                status=AppointmentStatus.BLOCKED,
                note=clean_text(note),
                created_by=self.therapist_id,
            ))
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Could not block that time.",
                status_code=409,
            )

        return ViewResult(
            success=True,
            data={"appointment": _appointment_dict(created)},
            message="Time blocked",
            status_code=201,
        )

    async def set_status(self, appointment_id: str, status: str) -> ViewResult:
        """Cancel, mark as no-show, or restore an appointment."""
        denied = await self._authorize()
        if denied:
            return denied

        try:
            new_status = AppointmentStatus(status)
        except ValueError:
            return invalid(f"Unknown status: {status}")
        if new_status not in SETTABLE_STATUSES:
            return invalid(f"Status {status} cannot be set here.")

        try:
            updated = await self.db.set_appointment_status(appointment_id, new_status)
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Could not update the appointment.",
                status_code=502,
            )

        if updated is None:
            return not_found("Appointment not found.")

        return ViewResult(
            success=True,
            data={"appointment": _appointment_dict(updated)},
            message=f"Appointment {new_status.value.replace('_', ' ')}",
        )

    # ==================== Patients ====================

    async def patients(self, query: str = "") -> ViewResult:
        """The caller's patients, filtered by a name search."""
        denied = await self._authorize()
        if denied:
            return denied

        try:
            patients = await self.db.list_patients(self.therapist_id)
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Could not load patients.",
                status_code=502,
            )

        q = query.strip().lower()
        if q:
            patients = [p for p in patients if q in p.full_name.lower()]

        return ViewResult(
            success=True,
            data={"patients": [_patient_dict(p) for p in patients]},
            message=f"Found {len(patients)} patients" if patients else "No patients found.",
        )

    async def save_patient(self, payload: dict, patient_id: Optional[str] = None) -> ViewResult:
        """Create a patient file, or update it when patient_id is given."""
        denied = await self._authorize()
        if denied:
            return denied

        try:
            patient = Patient(**payload)
        except ValidationError as e:
            return invalid(f"Invalid patient file: {e.errors()[0]['msg']}")

        try:
            if patient_id:
                saved = await self.db.update_patient(patient_id, patient, self.therapist_id)
                if saved is None:
                    return not_found("Patient not found.")
            else:
                saved = await self.db.create_patient(patient, self.therapist_id)
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Error saving the patient file.",
                status_code=502,
            )

        return ViewResult(
            success=True,
            data={"patient": _patient_dict(saved)},
            message="Patient file saved",
            status_code=200 if patient_id else 201,
        )

    async def delete_patient(self, patient_id: str) -> ViewResult:
        denied = await self._authorize()
        if denied:
            return denied

        try:
            await self.db.delete_patient(patient_id)
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Error deleting the patient.",
                status_code=502,
            )

        return ViewResult(success=True, data={"deleted": patient_id}, message="Patient deleted")

    async def patient_file(self, patient_id: str) -> ViewResult:
        """Patient file with medical history and visit history, newest first."""
        denied = await self._authorize()
        if denied:
            return denied

        try:
            patient = await self.db.get_patient(patient_id)
            if patient is None:
                return not_found("Patient not found.")
            appointments = await self.db.get_patient_appointments(patient_id)
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Could not load the patient file.",
                status_code=502,
            )

        return ViewResult(
            success=True,
            data={
                "patient": _patient_dict(patient),
                "history": [
                    {"label": label, "value": value}
                    for label, value in patient.medical_history.filled_items()
                ],
                "appointments": [_appointment_dict(a) for a in appointments],
            },
            message=(
                f"{len(appointments)} visits"
                if appointments else "No visits recorded for this patient yet."
            ),
        )

    # ==================== Visits ====================

    async def save_visit(
        self,
        appointment_id: str,
        observations: Optional[str] = None,
        points: Optional[List[dict]] = None,
        edits: Optional[List[dict]] = None,
    ) -> ViewResult:
        """
        Save visit observations and body-map points.

        Args:
            appointment_id: The visit
            observations: Free-text notes
            points: Full point list; when omitted the stored list is used
            edits: Operations applied on top of the points, in order:
                {"op": "toggle", "x": .., "y": .., "view": ..},
                {"op": "undo"} or {"op": "clear"}
        """
        denied = await self._authorize()
        if denied:
            return denied

        try:
            if points is None:
                current = await self.db.get_appointment(appointment_id)
                if current is None:
                    return not_found("Appointment not found.")
                marks = list(current.byosen_points or [])
            else:
                marks = [BodyMapPoint(**p) for p in points]
            marks = self._apply_edits(marks, edits or [])
        except (ValidationError, ValueError, TypeError, KeyError) as e:
            return invalid(f"Invalid body map: {e}")
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Error saving the visit.",
                status_code=502,
            )

        try:
            updated = await self.db.update_visit(appointment_id, observations, marks)
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Error saving the visit.",
                status_code=502,
            )

        if updated is None:
            return not_found("Appointment not found.")

        return ViewResult(
            success=True,
            data={"appointment": _appointment_dict(updated)},
            message="Visit saved",
        )

    @staticmethod
    def _apply_edits(marks: List[BodyMapPoint], edits: List[dict]) -> List[BodyMapPoint]:
        for edit in edits:
            if not isinstance(edit, dict):
                raise ValueError(f"edit must be an object, got {edit!r}")
            op = edit.get("op")
            if op == "toggle":
                marks = body_map.toggle_point(
                    marks, float(edit["x"]), float(edit["y"]), edit.get("view")
                )
            elif op == "undo":
                marks = body_map.undo_point(marks)
            elif op == "clear":
                marks = body_map.clear_points()
            else:
                raise ValueError(f"unknown edit {op!r}")
        return marks
