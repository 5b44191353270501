"""Patient data models."""

from datetime import datetime, date
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class MedicalHistory(BaseModel):
    """Conditions and personal context recorded on a patient file."""
    allergies: Optional[str] = None
    surgeries: Optional[str] = None
    diagnosed_illnesses: Optional[str] = None
    physical_problems: Optional[str] = None
    emotional_mental_problems: Optional[str] = None
    children: Optional[str] = None
    partner: Optional[str] = None
    other: Optional[str] = None

    def filled_items(self) -> list[tuple[str, str]]:
        """(label, value) pairs for the fields that have content."""
        return [
            (key.replace("_", " "), value)
            for key, value in self.model_dump().items()
            if value
        ]


class Patient(BaseModel):
    """Represents a patient file owned by a therapist."""
    id: Optional[str] = Field(default=None)
    therapist_id: Optional[str] = Field(default=None)
    full_name: str = Field(..., min_length=1)
    phone: Optional[str] = Field(default=None)
    email: Optional[str] = Field(default=None)
    birth_date: Optional[date] = Field(default=None)
    consultation_reason: Optional[str] = Field(default=None)
    medical_history: MedicalHistory = Field(default_factory=MedicalHistory)
    created_at: Optional[datetime] = Field(default=None)

    @field_validator("birth_date", mode="before")
    @classmethod
    def _empty_birth_date(cls, value):
        # Forms send "" for an unset date input
        return value or None

    @field_validator("medical_history", mode="before")
    @classmethod
    def _null_history(cls, value):
        return value or {}

    @field_validator("full_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Patient name is required")
        return value

    def to_row(self, therapist_id: str) -> dict:
        """Serialize for an insert or update under the given therapist."""
        row = self.model_dump(mode="json", exclude={"id", "created_at"})
        row["therapist_id"] = therapist_id
        return row
