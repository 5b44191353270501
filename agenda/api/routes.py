"""
API routes for the booking backend.
Provides endpoints for:
- Health checks
- Sign-up, sign-in and sign-out
- Public booking (therapists, calendar, availability, bookings)
- Therapist panel (agenda, patients, visits)
- Admin panel (profiles, roles, practice overview)
"""

import json
import logging
from datetime import date, datetime
from typing import Callable, Optional

from aiohttp import web

from config.settings import Settings
from ..services.slot_generator import SlotGenerator
from ..services.supabase_service import SupabaseService
from ..utils.helpers import parse_day, parse_month, parse_timestamp
from ..views import AdminPanelView, PublicBookingView, TherapistPanelView, ViewResult

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[Optional[str]], SupabaseService]


def create_app(
    settings: Settings,
    slot_generator: SlotGenerator,
    service_factory: Optional[ServiceFactory] = None,
) -> web.Application:
    """
    Create the aiohttp application with routes.

    Args:
        settings: Application settings
        slot_generator: Day grid builder shared by all views
        service_factory: Builds a SupabaseService for an optional access
            token; defaults to a new client per request

    Returns:
        Configured aiohttp Application
    """
    app = web.Application(middlewares=[cors_middleware])

    if service_factory is None:
        def service_factory(access_token: Optional[str] = None) -> SupabaseService:
            return SupabaseService(
                url=settings.supabase_url,
                key=settings.supabase_anon_key,
                access_token=access_token,
            )

    # Store services in app
    app["settings"] = settings
    app["slots"] = slot_generator
    app["service_factory"] = service_factory

    # Health and auth
    app.router.add_get("/health", health_check)
    app.router.add_post("/api/auth/signup", sign_up)
    app.router.add_post("/api/auth/signin", sign_in)
    app.router.add_post("/api/auth/signout", sign_out)
    app.router.add_get("/api/auth/session", get_session)

    # Public booking
    app.router.add_get("/api/therapists", list_therapists)
    app.router.add_get("/api/calendar", get_calendar)
    app.router.add_get("/api/therapists/{therapist_id}/slots", get_day_slots)
    app.router.add_post("/api/bookings", create_booking)

    # Therapist panel
    app.router.add_get("/api/panel/me", panel_me)
    app.router.add_get("/api/panel/agenda", panel_agenda)
    app.router.add_post("/api/panel/appointments", panel_create_appointment)
    app.router.add_post("/api/panel/blocks", panel_block_slot)
    app.router.add_post("/api/panel/appointments/{appointment_id}/status", panel_set_status)
    app.router.add_put("/api/panel/appointments/{appointment_id}/visit", panel_save_visit)
    app.router.add_get("/api/panel/patients", panel_patients)
    app.router.add_post("/api/panel/patients", panel_create_patient)
    app.router.add_get("/api/panel/patients/{patient_id}/appointments", panel_patient_file)
    app.router.add_put("/api/panel/patients/{patient_id}", panel_update_patient)
    app.router.add_delete("/api/panel/patients/{patient_id}", panel_delete_patient)

    # Admin panel
    app.router.add_get("/api/admin/profiles", admin_profiles)
    app.router.add_post("/api/admin/profiles/{user_id}/role", admin_set_role)
    app.router.add_post("/api/admin/profiles/{user_id}/active", admin_set_active)
    app.router.add_get("/api/admin/busy", admin_busy)

    return app


CORS_METHODS = "GET, POST, PUT, DELETE, OPTIONS"


def _add_cors_headers(request: web.Request, response: web.StreamResponse) -> None:
    settings: Settings = request.app["settings"]
    response.headers["Access-Control-Allow-Origin"] = settings.cors_origin or request.headers.get("Origin", "*")
    response.headers["Access-Control-Allow-Methods"] = CORS_METHODS
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Allow-Credentials"] = "true"


@web.middleware
async def cors_middleware(request: web.Request, handler):
    """Attach CORS headers to every response, errors included."""
    if request.method == "OPTIONS":
        response = web.Response()
    else:
        try:
            response = await handler(request)
        except web.HTTPException as e:
            _add_cors_headers(request, e)
            raise

    _add_cors_headers(request, response)
    return response


# ==================== Request helpers ====================

def _bearer_token(request: web.Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def _service(request: web.Request) -> SupabaseService:
    return request.app["service_factory"](_bearer_token(request))


def _bad_request(message: str) -> web.HTTPBadRequest:
    return web.HTTPBadRequest(
        text=json.dumps({"success": False, "error": message, "message": message}),
        content_type="application/json",
    )


async def _json_body(request: web.Request) -> dict:
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise _bad_request("Request body must be JSON")
    if not isinstance(data, dict):
        raise _bad_request("Request body must be a JSON object")
    return data


def _text_fields(data: dict, *names: str) -> None:
    """Reject non-string values in free-text fields."""
    for name in names:
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            raise _bad_request(f"{name} must be a string")


def _today(request: web.Request) -> date:
    """Today in the practice timezone."""
    return datetime.now(request.app["slots"].tz).date()


def _day_param(request: web.Request, name: str = "day"):
    try:
        return parse_day(request.query.get(name), _today(request))
    except ValueError as e:
        raise _bad_request(str(e))


def _start_param(data: dict) -> datetime:
    value = data.get("start_at")
    if not value:
        raise _bad_request("start_at is required")
    try:
        return parse_timestamp(value)
    except ValueError as e:
        raise _bad_request(str(e))


def _respond(result: ViewResult) -> web.Response:
    return web.json_response(result.to_dict(), status=result.status_code)


def _public_view(request: web.Request) -> PublicBookingView:
    settings: Settings = request.app["settings"]
    return PublicBookingView(
        _service(request),
        request.app["slots"],
        default_service=settings.default_service,
        check_phone=settings.booking_phone_check,
    )


def _panel_view(request: web.Request) -> TherapistPanelView:
    settings: Settings = request.app["settings"]
    return TherapistPanelView(
        _service(request),
        request.app["slots"],
        default_service=settings.default_service,
    )


def _admin_view(request: web.Request) -> AdminPanelView:
    return AdminPanelView(_service(request))


# ==================== Health & Auth ====================

async def health_check(request: web.Request) -> web.Response:
    """Health check endpoint."""
    return web.json_response({
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "service": "reiki-agenda",
    })


async def sign_up(request: web.Request) -> web.Response:
    """
    Create an account.

    Request body:
    {
        "email": "therapist@example.com",
        "password": "secret"
    }
    """
    data = await _json_body(request)
    _text_fields(data, "email", "password")
    email, password = data.get("email"), data.get("password")
    if not email or not password:
        raise _bad_request("Email and password are required")

    try:
        session = await _service(request).sign_up(email, password)
    except Exception:
        return web.json_response(
            {"success": False, "error": "Could not create the account."}, status=400
        )

    return web.json_response({
        "success": True,
        "message": "Account created! Check your email to confirm it.",
        "session": session.to_display_dict(),
    }, status=201)


async def sign_in(request: web.Request) -> web.Response:
    """Password sign-in; returns the session tokens."""
    data = await _json_body(request)
    _text_fields(data, "email", "password")
    email, password = data.get("email"), data.get("password")
    if not email or not password:
        raise _bad_request("Email and password are required")

    try:
        session = await _service(request).sign_in(email, password)
    except Exception:
        return web.json_response(
            {"success": False, "error": "Invalid email or password."}, status=401
        )

    return web.json_response({"success": True, "session": session.to_display_dict()})


async def sign_out(request: web.Request) -> web.Response:
    """
    Sign out.

    Request body (optional):
    {
        "refresh_token": "..."
    }
    """
    data = {}
    if request.can_read_body:
        data = await _json_body(request)
        _text_fields(data, "refresh_token")

    try:
        await _service(request).sign_out(data.get("refresh_token"))
    except Exception:
        return web.json_response({"success": False, "error": "Could not sign out."}, status=502)

    return web.json_response({"success": True})


async def get_session(request: web.Request) -> web.Response:
    """Who the bearer token belongs to."""
    user = await _service(request).get_user()
    if user is None:
        return web.json_response({"authenticated": False})
    return web.json_response({
        "authenticated": True,
        "user_id": user.user_id,
        "email": user.email,
    })


# ==================== Public booking ====================

async def list_therapists(request: web.Request) -> web.Response:
    return _respond(await _public_view(request).list_therapists())


async def get_calendar(request: web.Request) -> web.Response:
    """
    Month grid.

    Query params:
    - month: YYYY-MM (default current month)
    - selected: YYYY-MM-DD (optional)
    """
    try:
        today = _today(request)
        month = parse_month(request.query.get("month"), today)
        selected = request.query.get("selected")
        selected_day = parse_day(selected, today) if selected else None
    except ValueError as e:
        raise _bad_request(str(e))

    return _respond(_public_view(request).calendar(month, selected_day))


async def get_day_slots(request: web.Request) -> web.Response:
    """
    Availability of a therapist's day.

    Query params:
    - day: YYYY-MM-DD (default today)
    """
    therapist_id = request.match_info["therapist_id"]
    day = _day_param(request)
    return _respond(await _public_view(request).day_availability(therapist_id, day))


async def create_booking(request: web.Request) -> web.Response:
    """
    Book an appointment.

    Request body:
    {
        "therapist_id": "uuid",
        "start_at": "2025-03-10T14:30:00-03:00",
        "phone": "+54 11 5555-5555",
        "patient_name": "optional",
        "service": "Reiki",
        "note": "optional"
    }
    """
    data = await _json_body(request)
    _text_fields(data, "therapist_id", "start_at", "phone", "patient_name", "service", "note")
    start_at = _start_param(data)
    result = await _public_view(request).book(
        therapist_id=data.get("therapist_id", ""),
        start_at=start_at,
        phone=data.get("phone"),
        patient_name=data.get("patient_name"),
        service=data.get("service"),
        note=data.get("note"),
    )
    return _respond(result)


# ==================== Therapist panel ====================

async def panel_me(request: web.Request) -> web.Response:
    return _respond(await _panel_view(request).me())


async def panel_agenda(request: web.Request) -> web.Response:
    """
    Agenda for a day.

    Query params:
    - day: YYYY-MM-DD (default today)
    - therapist_id: whose agenda (default the caller)
    """
    day = _day_param(request)
    therapist_id = request.query.get("therapist_id")
    return _respond(await _panel_view(request).agenda(day, therapist_id))


async def panel_create_appointment(request: web.Request) -> web.Response:
    data = await _json_body(request)
    _text_fields(data, "start_at", "patient_name", "phone", "service", "note")
    start_at = _start_param(data)
    result = await _panel_view(request).create_appointment(
        start_at=start_at,
        patient_name=data.get("patient_name"),
        phone=data.get("phone"),
        service=data.get("service"),
        note=data.get("note"),
    )
    return _respond(result)


async def panel_block_slot(request: web.Request) -> web.Response:
    data = await _json_body(request)
    _text_fields(data, "start_at", "note")
    start_at = _start_param(data)
    return _respond(await _panel_view(request).block_slot(start_at, data.get("note")))


async def panel_set_status(request: web.Request) -> web.Response:
    data = await _json_body(request)
    _text_fields(data, "status")
    result = await _panel_view(request).set_status(
        request.match_info["appointment_id"],
        data.get("status", ""),
    )
    return _respond(result)


async def panel_save_visit(request: web.Request) -> web.Response:
    """
    Save visit observations and the body map.

    Request body:
    {
        "visit_observations": "text",
        "points": [{"x": 0.5, "y": 0.2, "view": "front"}],
        "edits": [{"op": "toggle", "x": 0.1, "y": 0.1}, {"op": "undo"}]
    }
    """
    data = await _json_body(request)
    _text_fields(data, "visit_observations")
    result = await _panel_view(request).save_visit(
        request.match_info["appointment_id"],
        observations=data.get("visit_observations"),
        points=data.get("points"),
        edits=data.get("edits"),
    )
    return _respond(result)


async def panel_patients(request: web.Request) -> web.Response:
    return _respond(await _panel_view(request).patients(request.query.get("q", "")))


async def panel_create_patient(request: web.Request) -> web.Response:
    data = await _json_body(request)
    return _respond(await _panel_view(request).save_patient(data))


async def panel_update_patient(request: web.Request) -> web.Response:
    data = await _json_body(request)
    result = await _panel_view(request).save_patient(data, request.match_info["patient_id"])
    return _respond(result)


async def panel_delete_patient(request: web.Request) -> web.Response:
    return _respond(await _panel_view(request).delete_patient(request.match_info["patient_id"]))


async def panel_patient_file(request: web.Request) -> web.Response:
    return _respond(await _panel_view(request).patient_file(request.match_info["patient_id"]))


# ==================== Admin panel ====================

async def admin_profiles(request: web.Request) -> web.Response:
    """
    Profiles list.

    Query params:
    - q: name or ID fragment (optional)
    """
    return _respond(await _admin_view(request).profiles(request.query.get("q", "")))


async def admin_set_role(request: web.Request) -> web.Response:
    """
    Change a profile's role.

    Request body:
    {
        "role": "admin" | "therapist"
    }
    """
    data = await _json_body(request)
    _text_fields(data, "role")
    result = await _admin_view(request).set_role(
        request.match_info["user_id"],
        data.get("role", ""),
    )
    return _respond(result)


async def admin_set_active(request: web.Request) -> web.Response:
    data = await _json_body(request)
    is_active = data.get("is_active")
    if not isinstance(is_active, bool):
        raise _bad_request("is_active must be true or false")
    result = await _admin_view(request).set_active(request.match_info["user_id"], is_active)
    return _respond(result)


async def admin_busy(request: web.Request) -> web.Response:
    day = _day_param(request)
    return _respond(await _admin_view(request).busy_overview(day))
