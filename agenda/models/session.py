"""Auth session data models."""

from typing import Any, Optional
from pydantic import BaseModel, Field


class AuthSession(BaseModel):
    """The parts of a Supabase auth session callers need."""
    user_id: Optional[str] = Field(default=None)
    email: Optional[str] = Field(default=None)
    access_token: Optional[str] = Field(default=None)
    refresh_token: Optional[str] = Field(default=None)
    expires_at: Optional[int] = Field(default=None)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @classmethod
    def from_auth(cls, session: Any = None, user: Any = None) -> "AuthSession":
        """Build from gotrue Session / User objects (either may be None)."""
        if user is None and session is not None:
            user = getattr(session, "user", None)
        return cls(
            user_id=getattr(user, "id", None),
            email=getattr(user, "email", None),
            access_token=getattr(session, "access_token", None),
            refresh_token=getattr(session, "refresh_token", None),
            expires_at=getattr(session, "expires_at", None),
        )

    def to_display_dict(self) -> dict:
        """Public view of the session, for API responses."""
        return {
            "authenticated": self.is_authenticated,
            "user_id": self.user_id,
            "email": self.email,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }
