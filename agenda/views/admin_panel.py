"""Admin panel view: manage therapist profiles and roles."""

import logging
from datetime import date
from typing import Optional

from ..models import AuthSession, Role
from ..services.supabase_service import SupabaseService
from .results import ViewResult, forbidden, invalid, unauthorized

logger = logging.getLogger(__name__)


class AdminPanelView:
    """Operations behind the admin panel. Only admins get past _authorize."""

    def __init__(self, supabase_service: SupabaseService):
        self.db = supabase_service
        self.user: Optional[AuthSession] = None

    async def _authorize(self) -> Optional[ViewResult]:
        if self.user is not None:
            return None

        user = await self.db.get_user()
        if not user or not user.is_authenticated:
            return unauthorized()

        if not await self.db.is_admin(user.user_id):
            logger.info(f"User {user.user_id} denied admin panel")
            return forbidden("Admins only.")

        self.user = user
        return None

    async def profiles(self, query: str = "") -> ViewResult:
        """Profiles ordered by name, filtered by name or ID."""
        denied = await self._authorize()
        if denied:
            return denied

        try:
            rows = await self.db.list_profiles()
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Could not load profiles.",
                status_code=502,
            )

        query = query.strip()
        filtered = [p for p in rows if p.matches(query)]
        return ViewResult(
            success=True,
            data={"profiles": [p.model_dump(mode="json") for p in filtered]},
            message=f"{len(filtered)} profiles" if filtered else "No matches.",
        )

    async def set_role(self, target_user: str, role: str) -> ViewResult:
        denied = await self._authorize()
        if denied:
            return denied

        try:
            new_role = Role(role)
        except ValueError:
            return invalid(f"Unknown role: {role}")

        try:
            await self.db.admin_set_role(target_user, new_role)
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Could not change the role.",
                status_code=502,
            )

        return ViewResult(
            success=True,
            data={"id": target_user, "role": new_role.value},
            message="Role updated",
        )

    async def set_active(self, target_user: str, is_active: bool) -> ViewResult:
        denied = await self._authorize()
        if denied:
            return denied

        try:
            await self.db.set_profile_active(target_user, is_active)
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Could not update the state.",
                status_code=502,
            )

        return ViewResult(
            success=True,
            data={"id": target_user, "is_active": is_active},
            message="Activated" if is_active else "Deactivated",
        )

    async def busy_overview(self, day: date) -> ViewResult:
        """Busy intervals of every therapist on a day, grouped by therapist."""
        denied = await self._authorize()
        if denied:
            return denied

        try:
            busy = await self.db.get_all_busy_slots(day)
        except Exception as e:
            return ViewResult(
                success=False,
                error=str(e),
                message="Could not load the practice agenda.",
                status_code=502,
            )

        grouped: dict[str, list] = {}
        for slot in sorted(busy, key=lambda s: s.start_at):
            grouped.setdefault(slot.therapist_id or "unknown", []).append({
                "start_at": slot.start_at.isoformat(),
                "end_at": slot.end_at.isoformat(),
                "status": slot.status,
            })

        return ViewResult(
            success=True,
            data={"day": day.isoformat(), "therapists": grouped},
            message=f"{len(busy)} busy intervals",
        )
