"""
Pytest configuration and fixtures.

Sets up import paths and an in-memory stand-in for the Supabase client
so services and routes run without a backend.
"""

import re
import sys
import uuid
from datetime import timedelta
from pathlib import Path
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest
from dateutil import parser as date_parser

# Add project root to Python path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from config.settings import Settings  # noqa: E402
from agenda.services.slot_generator import SlotGenerator  # noqa: E402
from agenda.services.supabase_service import SupabaseService  # noqa: E402

TZ = "America/Argentina/Buenos_Aires"

THERAPIST_ID = "11111111-1111-1111-1111-111111111111"
OTHER_THERAPIST_ID = "22222222-2222-2222-2222-222222222222"
ADMIN_ID = "33333333-3333-3333-3333-333333333333"
PATIENT_ID = "44444444-4444-4444-4444-444444444444"

THERAPIST_TOKEN = "token-therapist"
ADMIN_TOKEN = "token-admin"
STRANGER_TOKEN = "token-stranger"


def _comparable(value):
    """Timestamps compare as instants, everything else as-is."""
    if isinstance(value, str) and "T" in value:
        try:
            return date_parser.isoparse(value)
        except ValueError:
            return value
    return value


class FakeQuery:
    """Records a PostgREST-style call chain and runs it against rows in memory."""

    def __init__(self, db: "FakeSupabaseClient", table: str):
        self.db = db
        self.table_name = table
        self.action = "select"
        self.payload = None
        self.filters = []
        self.order_by = []
        self.limit_n = None

    # builders
    def select(self, columns="*", count=None):
        self.action = "select"
        self.columns = columns
        return self

    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.action = "update"
        self.payload = payload
        return self

    def eq(self, column, value):
        self.filters.append((column, lambda v, value=value: v == value))
        return self

    def gte(self, column, value):
        self.filters.append((column, lambda v, value=value: v is not None and _comparable(v) >= _comparable(value)))
        return self

    def lt(self, column, value):
        self.filters.append((column, lambda v, value=value: v is not None and _comparable(v) < _comparable(value)))
        return self

    def ilike(self, column, pattern):
        regex = "^" + ".*".join(re.escape(part) for part in pattern.split("%")) + "$"
        self.filters.append((column, lambda v: v is not None and re.match(regex, v, re.IGNORECASE) is not None))
        return self

    def order(self, column, desc=False):
        self.order_by.append((column, desc))
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def _matching(self, rows):
        return [r for r in rows if all(check(r.get(col)) for col, check in self.filters)]

    def execute(self):
        self.db.calls.append(self)
        if self.table_name in self.db.failing_tables:
            raise RuntimeError(f"{self.table_name} unavailable")

        rows = self.db.tables.setdefault(self.table_name, [])

        if self.action == "insert":
            row = dict(self.payload)
            row.setdefault("id", str(uuid.uuid4()))
            rows.append(row)
            return SimpleNamespace(data=[dict(row)], count=None)

        if self.action == "update":
            updated = []
            for row in self._matching(rows):
                row.update(self.payload)
                updated.append(dict(row))
            return SimpleNamespace(data=updated, count=None)

        result = [dict(r) for r in self._matching(rows)]
        for column, desc in reversed(self.order_by):
            result.sort(key=lambda r: (r.get(column) is None, _comparable(r.get(column)) or ""), reverse=desc)
        if self.limit_n is not None:
            result = result[: self.limit_n]
        return SimpleNamespace(data=result, count=len(result))


class FakeRpc:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params or {}

    def execute(self):
        self.db.rpc_calls.append((self.name, self.params))
        handler = self.db.procedures.get(self.name)
        if handler is None:
            raise RuntimeError(f"function {self.name} does not exist")
        if isinstance(handler, Exception):
            raise handler
        data = handler(self.params) if callable(handler) else handler
        return SimpleNamespace(data=data)


class FakeAuth:
    """Enough of the gotrue client for the service layer."""

    def __init__(self):
        self.accounts = {}   # email -> (password, user)
        self.tokens = {}     # access token -> user
        self.session = None
        self.listeners = []

    def add_account(self, email, password, user_id, token):
        user = SimpleNamespace(id=user_id, email=email)
        self.accounts[email] = (password, user)
        self.tokens[token] = user
        return user

    def _session_for(self, user):
        token = next((t for t, u in self.tokens.items() if u is user), f"token-{user.id}")
        return SimpleNamespace(
            access_token=token,
            refresh_token=f"refresh-{user.id}",
            expires_at=1900000000,
            user=user,
        )

    def _emit(self, event):
        for callback in list(self.listeners):
            callback(event, self.session)

    def sign_up(self, credentials):
        email = credentials["email"]
        if email in self.accounts:
            raise RuntimeError("User already registered")
        user = SimpleNamespace(id=str(uuid.uuid4()), email=email)
        self.accounts[email] = (credentials["password"], user)
        return SimpleNamespace(user=user, session=None)

    def sign_in_with_password(self, credentials):
        account = self.accounts.get(credentials["email"])
        if account is None or account[0] != credentials["password"]:
            raise RuntimeError("Invalid login credentials")
        self.session = self._session_for(account[1])
        self._emit("SIGNED_IN")
        return SimpleNamespace(user=account[1], session=self.session)

    def get_session(self):
        return self.session

    def get_user(self, jwt=None):
        user = self.tokens.get(jwt)
        if user is None:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=user)

    def set_session(self, access_token, refresh_token):
        user = self.tokens.get(access_token)
        if user is None:
            raise RuntimeError("invalid JWT")
        self.session = self._session_for(user)

    def sign_out(self):
        self.session = None
        self._emit("SIGNED_OUT")

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)

        def unsubscribe():
            self.listeners.remove(callback)

        return SimpleNamespace(unsubscribe=unsubscribe)


class FakePostgrest:
    def __init__(self):
        self.token = None

    def auth(self, token):
        self.token = token
        return self


class FakeSupabaseClient:
    """In-memory Supabase client: tables, procedures and auth."""

    def __init__(self):
        self.tables = {}
        self.procedures = {}
        self.failing_tables = set()
        self.calls = []
        self.rpc_calls = []
        self.auth = FakeAuth()
        self.postgrest = FakePostgrest()

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        return FakeRpc(self, name, params)

    def last_call(self, table):
        return [c for c in self.calls if c.table_name == table][-1]


def busy_rows_for(client):
    """get_busy_slots backed by the appointments table, like the real procedure."""
    def handler(params):
        day = params["day"]
        rows = []
        for apt in client.tables.get("appointments", []):
            if "t_id" in params and apt["therapist_id"] != params["t_id"]:
                continue
            if apt.get("status") == "cancelled":
                continue
            start = date_parser.isoparse(apt["start_at"])
            if start.astimezone(ZoneInfo(TZ)).date().isoformat() != day:
                continue
            rows.append({
                "start_at": apt["start_at"],
                "end_at": apt["end_at"],
                "status": apt.get("status", "scheduled"),
                "therapist_id": apt["therapist_id"],
            })
        return rows
    return handler


@pytest.fixture
def fake_client():
    client = FakeSupabaseClient()
    client.tables["profiles"] = [
        {"id": THERAPIST_ID, "full_name": "Ana Reiki", "role": "therapist", "is_active": True, "color": "#aa77ff", "phone": None},
        {"id": OTHER_THERAPIST_ID, "full_name": "Bruno Luz", "role": "therapist", "is_active": True, "color": None, "phone": None},
        {"id": ADMIN_ID, "full_name": "Carla Admin", "role": "admin", "is_active": True, "color": None, "phone": None},
    ]
    client.tables["patients"] = [
        {
            "id": PATIENT_ID,
            "therapist_id": THERAPIST_ID,
            "full_name": "Marta Gomez",
            "phone": "1155550000",
            "email": None,
            "birth_date": "1980-05-02",
            "consultation_reason": "Insomnio",
            "medical_history": {"allergies": "Penicilina", "other": None},
            "created_at": "2025-01-10T12:00:00+00:00",
        },
    ]
    client.tables["appointments"] = [
        {
            "id": "apt-1",
            "therapist_id": THERAPIST_ID,
            "patient_id": PATIENT_ID,
            "start_at": "2025-03-10T10:00:00-03:00",
            "end_at": "2025-03-10T10:30:00-03:00",
            "status": "scheduled",
            "service": "Reiki",
            "note": None,
            "visit_observations": None,
            "byosen_points": None,
        },
        {
            "id": "apt-2",
            "therapist_id": OTHER_THERAPIST_ID,
            "patient_id": None,
            "start_at": "2025-03-10T15:00:00-03:00",
            "end_at": "2025-03-10T16:00:00-03:00",
            "status": "blocked",
            "service": None,
            "note": "Vacaciones",
            "visit_observations": None,
            "byosen_points": None,
        },
    ]

    client.procedures["list_therapists"] = lambda params: [
        {"id": p["id"], "full_name": p["full_name"], "color": p["color"]}
        for p in client.tables["profiles"] if p["role"] == "therapist" and p["is_active"]
    ]
    client.procedures["get_busy_slots"] = busy_rows_for(client)
    client.procedures["get_all_busy_slots"] = busy_rows_for(client)

    def book(params):
        client.tables["appointments"].append({
            "id": str(uuid.uuid4()),
            "therapist_id": params["t_id"],
            "patient_id": None,
            "start_at": params["start_at"],
            "end_at": (date_parser.isoparse(params["start_at"]) + timedelta(minutes=30)).isoformat(),
            "status": "scheduled",
            "service": params["service"],
            "note": params["note"],
        })
        return client.tables["appointments"][-1]["id"]

    client.procedures["book_appointment"] = book
    client.procedures["book_appointment_with_phone_check"] = book
    client.procedures["is_admin"] = lambda params: params.get("uid") == ADMIN_ID
    client.procedures["admin_set_role"] = lambda params: None
    client.procedures["delete_patient"] = lambda params: None

    client.auth.add_account("ana@example.com", "secret", THERAPIST_ID, THERAPIST_TOKEN)
    client.auth.add_account("carla@example.com", "secret", ADMIN_ID, ADMIN_TOKEN)
    client.auth.add_account("nobody@example.com", "secret", "55555555-5555-5555-5555-555555555555", STRANGER_TOKEN)
    return client


@pytest.fixture
def make_service(fake_client):
    def factory(access_token=None):
        return SupabaseService("http://supabase.test", "anon-key", access_token=access_token, client=fake_client)
    return factory


@pytest.fixture
def slot_generator():
    return SlotGenerator(timezone=TZ)


@pytest.fixture
def settings():
    return Settings(
        supabase_url="http://supabase.test",
        supabase_anon_key="anon-key",
        timezone=TZ,
        _env_file=None,
    )
