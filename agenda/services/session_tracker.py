"""Tracks the signed-in user of a long-lived Supabase client."""

import logging
from typing import Any, Optional

from ..models import AuthSession
from .supabase_service import SupabaseService

logger = logging.getLogger(__name__)


class SessionTracker:
    """
    Keeps the current user ID in sync with the auth client.

    Usage:
        tracker = SessionTracker(service)
        await tracker.start()
        ...
        tracker.close()
    """

    def __init__(self, supabase_service: SupabaseService):
        self.db = supabase_service
        self.loading = True
        self.session: AuthSession = AuthSession()
        self._subscription: Optional[Any] = None

    @property
    def user_id(self) -> Optional[str]:
        return self.session.user_id

    async def start(self) -> Optional[str]:
        """Read the stored session and follow later changes."""
        self._subscription = self.db.on_auth_state_change(self._on_change)
        self.session = await self.db.get_session()
        self.loading = False
        logger.info(f"Session tracking started, user={self.user_id}")
        return self.user_id

    def _on_change(self, event: str, session: AuthSession) -> None:
        logger.info(f"Auth state changed: {event}")
        self.session = session

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
