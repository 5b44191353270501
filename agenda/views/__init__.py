"""View operations for the public, therapist and admin pages."""

from .results import ViewResult
from .public_booking import PublicBookingView
from .therapist_panel import TherapistPanelView
from .admin_panel import AdminPanelView

__all__ = [
    "ViewResult",
    "PublicBookingView",
    "TherapistPanelView",
    "AdminPanelView",
]
