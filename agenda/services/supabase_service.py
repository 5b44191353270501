"""Supabase service for auth, table access and remote procedures."""

import logging
from datetime import date, datetime
from typing import Any, Callable, List, Optional
from supabase import create_client, Client

from ..models import (
    Appointment,
    AppointmentStatus,
    AuthSession,
    BodyMapPoint,
    BusySlot,
    Patient,
    Profile,
    Role,
    Therapist,
)

logger = logging.getLogger(__name__)


class SupabaseService:
    """Service for all Supabase operations made on behalf of one caller."""

    def __init__(
        self,
        url: str,
        key: str,
        access_token: Optional[str] = None,
        client: Optional[Client] = None,
    ):
        """
        Initialize Supabase client.

        Args:
            url: Supabase project URL
            key: Anonymous (publishable) key
            access_token: Caller's JWT; row-level security evaluates as this user
            client: Pre-built client, used instead of creating one
        """
        self.client: Client = client if client is not None else create_client(url, key)
        self.access_token = access_token
        if access_token:
            self.client.postgrest.auth(access_token)
        logger.debug("Supabase client initialized")

    # ==================== Auth Operations ====================

    async def sign_up(self, email: str, password: str) -> AuthSession:
        """Create an account. The session is empty until the email is confirmed."""
        try:
            response = self.client.auth.sign_up({"email": email, "password": password})
            return AuthSession.from_auth(response.session, response.user)
        except Exception as e:
            logger.error(f"Error signing up: {e}")
            raise

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Password sign-in."""
        try:
            response = self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
            session = AuthSession.from_auth(response.session, response.user)
            logger.info(f"User {session.user_id} signed in")
            return session
        except Exception as e:
            logger.error(f"Error signing in: {e}")
            raise

    async def get_session(self) -> AuthSession:
        """Current stored session, empty when signed out."""
        try:
            session = self.client.auth.get_session()
            return AuthSession.from_auth(session)
        except Exception as e:
            logger.warning(f"Error reading session: {e}")
            return AuthSession()

    def on_auth_state_change(self, callback: Callable[[str, AuthSession], None]) -> Any:
        """
        Subscribe to session changes.

        Args:
            callback: Called with (event name, session) on every change

        Returns:
            Subscription handle with an unsubscribe() method
        """
        def _forward(event, session):
            name = getattr(event, "value", event)
            callback(str(name), AuthSession.from_auth(session))

        return self.client.auth.on_auth_state_change(_forward)

    async def sign_out(self, refresh_token: Optional[str] = None) -> None:
        """End the session; with a refresh token the caller's tokens are revoked."""
        try:
            if self.access_token and refresh_token:
                self.client.auth.set_session(self.access_token, refresh_token)
            self.client.auth.sign_out()
            logger.info("User signed out")
        except Exception as e:
            logger.error(f"Error signing out: {e}")
            raise

    async def get_user(self) -> Optional[AuthSession]:
        """Resolve the caller from the access token, None when anonymous or invalid."""
        if not self.access_token:
            return None
        try:
            response = self.client.auth.get_user(self.access_token)
            if response and response.user:
                return AuthSession.from_auth(user=response.user)
            return None
        except Exception as e:
            logger.warning(f"Error resolving user from token: {e}")
            return None

    # ==================== Profile Operations ====================

    async def list_profiles(self) -> List[Profile]:
        """All profiles ordered by name (admin view; RLS limits the rows)."""
        try:
            response = (
                self.client.table("profiles")
                .select("id, full_name, role, is_active, color, phone")
                .order("full_name", desc=False)
                .execute()
            )
            return [Profile(**row) for row in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching profiles: {e}")
            raise

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        """Get a profile by user ID."""
        try:
            response = (
                self.client.table("profiles")
                .select("*")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
            if response.data:
                return Profile(**response.data[0])
            return None
        except Exception as e:
            logger.error(f"Error fetching profile: {e}")
            raise

    async def set_profile_active(self, user_id: str, is_active: bool) -> None:
        try:
            self.client.table("profiles").update({"is_active": is_active}).eq("id", user_id).execute()
            logger.info(f"Profile {user_id} active={is_active}")
        except Exception as e:
            logger.error(f"Error updating profile state: {e}")
            raise

    # ==================== Patient Operations ====================

    async def list_patients(self, therapist_id: str) -> List[Patient]:
        """Patients of a therapist ordered by name."""
        try:
            response = (
                self.client.table("patients")
                .select("*")
                .eq("therapist_id", therapist_id)
                .order("full_name", desc=False)
                .execute()
            )
            return [Patient(**row) for row in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching patients: {e}")
            raise

    async def get_patient(self, patient_id: str) -> Optional[Patient]:
        try:
            response = (
                self.client.table("patients")
                .select("*")
                .eq("id", patient_id)
                .limit(1)
                .execute()
            )
            if response.data:
                return Patient(**response.data[0])
            return None
        except Exception as e:
            logger.error(f"Error fetching patient: {e}")
            raise

    async def find_patient_by_name(self, therapist_id: str, name: str) -> Optional[str]:
        """Case-insensitive exact name lookup. Returns the patient ID."""
        try:
            response = (
                self.client.table("patients")
                .select("id")
                .eq("therapist_id", therapist_id)
                .ilike("full_name", name)
                .limit(1)
                .execute()
            )
            if response.data:
                return response.data[0]["id"]
            return None
        except Exception as e:
            logger.error(f"Error looking up patient: {e}")
            raise

    async def create_patient(self, patient: Patient, therapist_id: str) -> Patient:
        try:
            response = self.client.table("patients").insert(patient.to_row(therapist_id)).execute()
            created = Patient(**response.data[0])
            logger.info(f"Created patient {created.id} for therapist {therapist_id}")
            return created
        except Exception as e:
            logger.error(f"Error creating patient: {e}")
            raise

    async def update_patient(self, patient_id: str, patient: Patient, therapist_id: str) -> Optional[Patient]:
        try:
            response = (
                self.client.table("patients")
                .update(patient.to_row(therapist_id))
                .eq("id", patient_id)
                .execute()
            )
            if response.data:
                return Patient(**response.data[0])
            return None
        except Exception as e:
            logger.error(f"Error updating patient: {e}")
            raise

    # ==================== Appointment Operations ====================

    async def get_appointments_between(
        self,
        therapist_id: str,
        start: datetime,
        end: datetime,
    ) -> List[Appointment]:
        """Appointments of a therapist starting in [start, end), ordered by start."""
        try:
            response = (
                self.client.table("appointments")
                .select("*")
                .eq("therapist_id", therapist_id)
                .gte("start_at", start.isoformat())
                .lt("start_at", end.isoformat())
                .order("start_at", desc=False)
                .execute()
            )
            return [Appointment(**row) for row in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching appointments: {e}")
            raise

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        try:
            response = (
                self.client.table("appointments")
                .select("*")
                .eq("id", appointment_id)
                .limit(1)
                .execute()
            )
            if response.data:
                return Appointment(**response.data[0])
            return None
        except Exception as e:
            logger.error(f"Error fetching appointment: {e}")
            raise

    async def get_patient_appointments(self, patient_id: str) -> List[Appointment]:
        """Visit history for a patient, newest first."""
        try:
            response = (
                self.client.table("appointments")
                .select("*")
                .eq("patient_id", patient_id)
                .order("start_at", desc=True)
                .execute()
            )
            return [Appointment(**row) for row in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching patient appointments: {e}")
            raise

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        """Insert an appointment row. Overlaps are rejected server-side."""
        try:
            response = self.client.table("appointments").insert(appointment.to_row()).execute()
            created = Appointment(**response.data[0])
            logger.info(f"Created appointment {created.id} for therapist {created.therapist_id}")
            return created
        except Exception as e:
            logger.error(f"Error creating appointment: {e}")
            raise

    async def update_visit(
        self,
        appointment_id: str,
        observations: Optional[str],
        points: List[BodyMapPoint],
    ) -> Optional[Appointment]:
        """Save visit observations and body-map points."""
        try:
            updates = {
                "visit_observations": observations,
                "byosen_points": [p.model_dump(exclude_none=True) for p in points],
            }
            response = (
                self.client.table("appointments")
                .update(updates)
                .eq("id", appointment_id)
                .execute()
            )
            if response.data:
                return Appointment(**response.data[0])
            return None
        except Exception as e:
            logger.error(f"Error saving visit: {e}")
            raise

    async def set_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
    ) -> Optional[Appointment]:
        try:
            response = (
                self.client.table("appointments")
                .update({"status": status.value})
                .eq("id", appointment_id)
                .execute()
            )
            if response.data:
                return Appointment(**response.data[0])
            return None
        except Exception as e:
            logger.error(f"Error updating appointment status: {e}")
            raise

    # ==================== Remote Procedures ====================

    async def list_therapists(self) -> List[Therapist]:
        try:
            response = self.client.rpc("list_therapists").execute()
            return [Therapist(**row) for row in response.data or []]
        except Exception as e:
            logger.error(f"Error listing therapists: {e}")
            raise

    async def get_busy_slots(self, therapist_id: str, day: date) -> List[BusySlot]:
        """Busy intervals for one therapist on a day (visible to anyone)."""
        try:
            response = self.client.rpc(
                "get_busy_slots",
                {"t_id": therapist_id, "day": day.isoformat()},
            ).execute()
            return [BusySlot(**row) for row in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching busy slots: {e}")
            raise

    async def get_all_busy_slots(self, day: date) -> List[BusySlot]:
        """Busy intervals for every therapist on a day."""
        try:
            response = self.client.rpc("get_all_busy_slots", {"day": day.isoformat()}).execute()
            return [BusySlot(**row) for row in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching practice busy slots: {e}")
            raise

    async def book_appointment(
        self,
        therapist_id: str,
        start: datetime,
        patient_name: Optional[str],
        phone: str,
        service: str,
        note: Optional[str],
        check_phone: bool = False,
    ) -> Any:
        """
        Book through the server-side procedure, which owns collision checks.

        Args:
            check_phone: Use the procedure variant that validates the phone

        Raises:
            Exception: Whatever the procedure reports, e.g. a taken slot
        """
        procedure = "book_appointment_with_phone_check" if check_phone else "book_appointment"
        params = {
            "t_id": therapist_id,
            "start_at": start.isoformat(),
            "patient_name": patient_name,
            "phone": phone,
            "service": service,
            "note": note,
        }
        try:
            response = self.client.rpc(procedure, params).execute()
            logger.info(f"Booked {start.isoformat()} with therapist {therapist_id} via {procedure}")
            return response.data
        except Exception as e:
            logger.error(f"Error booking appointment: {e}")
            raise

    async def is_admin(self, user_id: str) -> bool:
        """Admin check. Any failure counts as not admin."""
        try:
            response = self.client.rpc("is_admin", {"uid": user_id}).execute()
            return bool(response.data)
        except Exception as e:
            logger.warning(f"Error checking admin role: {e}")
            return False

    async def is_therapist(self) -> bool:
        """Therapist check for the caller. Any failure counts as not therapist."""
        try:
            response = self.client.rpc("is_therapist").execute()
            return bool(response.data)
        except Exception as e:
            logger.warning(f"Error checking therapist role: {e}")
            return False

    async def admin_set_role(self, target_user: str, new_role: Role) -> None:
        try:
            self.client.rpc(
                "admin_set_role",
                {"target_user": target_user, "new_role": new_role.value},
            ).execute()
            logger.info(f"Role of {target_user} set to {new_role.value}")
        except Exception as e:
            logger.error(f"Error setting role: {e}")
            raise

    async def delete_patient(self, patient_id: str) -> None:
        """Delete a patient file and its history (cascade is server-side)."""
        try:
            self.client.rpc("delete_patient", {"patient_id_to_delete": patient_id}).execute()
            logger.info(f"Deleted patient {patient_id}")
        except Exception as e:
            logger.error(f"Error deleting patient: {e}")
            raise
