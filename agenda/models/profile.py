"""Profile data models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class Role(str, Enum):
    """Roles a profile can hold."""
    ADMIN = "admin"
    THERAPIST = "therapist"


class Profile(BaseModel):
    """A practice member, mirrored from the profiles table."""
    id: str = Field(..., description="Auth user ID")
    full_name: Optional[str] = Field(default=None)
    role: Role = Field(default=Role.THERAPIST)
    is_active: bool = Field(default=True)
    color: Optional[str] = Field(default=None, description="Agenda color")
    phone: Optional[str] = Field(default=None)

    @property
    def display_name(self) -> str:
        return self.full_name or "(no name)"

    @property
    def can_use_panel(self) -> bool:
        return self.role in (Role.THERAPIST, Role.ADMIN)

    def matches(self, query: str) -> bool:
        """Case-insensitive name match, or a substring of the ID."""
        if not query:
            return True
        name = (self.full_name or "").lower()
        return query.lower() in name or query in self.id


class Therapist(BaseModel):
    """Public therapist listing."""
    id: str
    full_name: Optional[str] = Field(default=None)
    color: Optional[str] = Field(default=None)

    @property
    def display_name(self) -> str:
        return self.full_name or "Therapist"
