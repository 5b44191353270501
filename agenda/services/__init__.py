"""Services package for the backend and availability logic."""

from .supabase_service import SupabaseService
from .slot_generator import SlotGenerator
from .session_tracker import SessionTracker

__all__ = [
    "SupabaseService",
    "SlotGenerator",
    "SessionTracker",
]
