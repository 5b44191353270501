"""Tests for SupabaseService against the in-memory client."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from agenda.models import AppointmentStatus, BodyMapPoint, Patient, Role
from tests.conftest import (
    ADMIN_ID,
    OTHER_THERAPIST_ID,
    PATIENT_ID,
    THERAPIST_ID,
    THERAPIST_TOKEN,
)

TZ = ZoneInfo("America/Argentina/Buenos_Aires")


@pytest.fixture
def service(make_service):
    return make_service(THERAPIST_TOKEN)


class TestAuth:

    async def test_access_token_forwarded_to_postgrest(self, service, fake_client):
        assert fake_client.postgrest.token == THERAPIST_TOKEN

    async def test_sign_in_returns_tokens(self, make_service):
        session = await make_service().sign_in("ana@example.com", "secret")

        assert session.user_id == THERAPIST_ID
        assert session.access_token == THERAPIST_TOKEN
        assert session.refresh_token == f"refresh-{THERAPIST_ID}"

    async def test_sign_in_with_wrong_password_raises(self, make_service):
        with pytest.raises(RuntimeError):
            await make_service().sign_in("ana@example.com", "wrong")

    async def test_sign_up_has_no_session_until_confirmed(self, make_service):
        session = await make_service().sign_up("new@example.com", "secret")

        assert session.user_id is not None
        assert session.access_token is None

    async def test_get_user_from_token(self, service):
        user = await service.get_user()
        assert user.user_id == THERAPIST_ID

    async def test_get_user_without_token_is_none(self, make_service):
        assert await make_service().get_user() is None

    async def test_get_user_with_bad_token_is_none(self, make_service):
        assert await make_service("forged").get_user() is None

    async def test_sign_out_with_refresh_token_restores_then_ends_session(self, service, fake_client):
        events = []
        service.on_auth_state_change(lambda event, session: events.append((event, session.user_id)))

        await service.sign_out(refresh_token="refresh")

        assert fake_client.auth.session is None
        assert events == [("SIGNED_OUT", None)]


class TestTables:

    async def test_list_profiles_ordered_by_name(self, service):
        profiles = await service.list_profiles()

        assert [p.full_name for p in profiles] == ["Ana Reiki", "Bruno Luz", "Carla Admin"]
        assert profiles[2].role == Role.ADMIN

    async def test_get_profile(self, service):
        profile = await service.get_profile(THERAPIST_ID)

        assert profile.full_name == "Ana Reiki"
        assert profile.color == "#aa77ff"

    async def test_get_missing_profile(self, service):
        assert await service.get_profile("missing") is None

    async def test_set_profile_active(self, service, fake_client):
        await service.set_profile_active(OTHER_THERAPIST_ID, False)

        row = next(p for p in fake_client.tables["profiles"] if p["id"] == OTHER_THERAPIST_ID)
        assert row["is_active"] is False

    async def test_find_patient_by_name_is_case_insensitive(self, service):
        assert await service.find_patient_by_name(THERAPIST_ID, "marta GOMEZ") == PATIENT_ID

    async def test_find_patient_scoped_to_therapist(self, service):
        assert await service.find_patient_by_name(OTHER_THERAPIST_ID, "Marta Gomez") is None

    async def test_create_patient_sets_owner(self, service, fake_client):
        created = await service.create_patient(
            Patient(full_name="Lucia Paz", medical_history={"surgeries": "Apendicitis"}),
            THERAPIST_ID,
        )

        row = fake_client.tables["patients"][-1]
        assert created.id == row["id"]
        assert row["therapist_id"] == THERAPIST_ID
        assert row["medical_history"]["surgeries"] == "Apendicitis"

    async def test_appointments_between_filters_and_orders(self, service):
        start = datetime(2025, 3, 10, 8, tzinfo=TZ)
        end = datetime(2025, 3, 10, 20, tzinfo=TZ)

        appointments = await service.get_appointments_between(THERAPIST_ID, start, end)

        assert [a.id for a in appointments] == ["apt-1"]

    async def test_update_visit_serializes_points(self, service, fake_client):
        updated = await service.update_visit(
            "apt-1",
            "Calor en zona lumbar",
            [BodyMapPoint(x=0.4, y=0.6), BodyMapPoint(x=0.5, y=0.5, view="back")],
        )

        row = fake_client.tables["appointments"][0]
        assert row["byosen_points"] == [{"x": 0.4, "y": 0.6}, {"x": 0.5, "y": 0.5, "view": "back"}]
        assert updated.visit_observations == "Calor en zona lumbar"

    async def test_set_appointment_status(self, service):
        updated = await service.set_appointment_status("apt-1", AppointmentStatus.NO_SHOW)
        assert updated.status == "no_show"

    async def test_read_failure_propagates(self, service, fake_client):
        fake_client.failing_tables.add("patients")
        with pytest.raises(RuntimeError):
            await service.list_patients(THERAPIST_ID)


class TestRemoteProcedures:

    async def test_list_therapists(self, service):
        therapists = await service.list_therapists()
        assert [t.id for t in therapists] == [THERAPIST_ID, OTHER_THERAPIST_ID]

    async def test_get_busy_slots_params(self, service, fake_client):
        slots = await service.get_busy_slots(THERAPIST_ID, date(2025, 3, 10))

        assert fake_client.rpc_calls[-1] == ("get_busy_slots", {"t_id": THERAPIST_ID, "day": "2025-03-10"})
        assert len(slots) == 1
        assert slots[0].start_at == datetime(2025, 3, 10, 10, tzinfo=TZ)

    async def test_get_all_busy_slots(self, service):
        slots = await service.get_all_busy_slots(date(2025, 3, 10))
        assert {s.therapist_id for s in slots} == {THERAPIST_ID, OTHER_THERAPIST_ID}

    async def test_book_appointment_params(self, service, fake_client):
        start = datetime(2025, 3, 10, 11, tzinfo=TZ)
        await service.book_appointment(THERAPIST_ID, start, None, "1155550000", "Reiki", None)

        name, params = fake_client.rpc_calls[-1]
        assert name == "book_appointment"
        assert params == {
            "t_id": THERAPIST_ID,
            "start_at": "2025-03-10T11:00:00-03:00",
            "patient_name": None,
            "phone": "1155550000",
            "service": "Reiki",
            "note": None,
        }

    async def test_book_with_phone_check_uses_other_procedure(self, service, fake_client):
        start = datetime(2025, 3, 10, 11, tzinfo=TZ)
        await service.book_appointment(THERAPIST_ID, start, "Ana", "1155550000", "Reiki", None, check_phone=True)

        assert fake_client.rpc_calls[-1][0] == "book_appointment_with_phone_check"

    async def test_booking_error_propagates(self, service, fake_client):
        fake_client.procedures["book_appointment"] = RuntimeError("slot taken")

        with pytest.raises(RuntimeError, match="slot taken"):
            await service.book_appointment(
                THERAPIST_ID, datetime(2025, 3, 10, 10, tzinfo=TZ), None, "1", "Reiki", None
            )

    async def test_is_admin(self, service):
        assert await service.is_admin(ADMIN_ID) is True
        assert await service.is_admin(THERAPIST_ID) is False

    async def test_is_admin_failure_means_false(self, service, fake_client):
        fake_client.procedures["is_admin"] = RuntimeError("permission denied")
        assert await service.is_admin(ADMIN_ID) is False

    async def test_is_therapist(self, service, fake_client):
        fake_client.procedures["is_therapist"] = True
        assert await service.is_therapist() is True

        del fake_client.procedures["is_therapist"]
        assert await service.is_therapist() is False

    async def test_admin_set_role_params(self, service, fake_client):
        await service.admin_set_role(OTHER_THERAPIST_ID, Role.ADMIN)
        assert fake_client.rpc_calls[-1] == (
            "admin_set_role", {"target_user": OTHER_THERAPIST_ID, "new_role": "admin"}
        )

    async def test_delete_patient_params(self, service, fake_client):
        await service.delete_patient(PATIENT_ID)
        assert fake_client.rpc_calls[-1] == ("delete_patient", {"patient_id_to_delete": PATIENT_ID})
