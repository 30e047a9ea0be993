"""Substitution schemas for request/response validation."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.appointments import AppointmentResponse


class SubstitutionOutcome(str, Enum):
    """What happens to the original slot when a substitution is canceled."""

    RESTORE = "restore"
    VACATE = "vacate"


class SubstitutionCreate(BaseModel):
    """Schema for filling a no-show slot with a stand-in patient."""

    stand_in_patient_id: UUID
    reason: str | None = Field(None, max_length=500)


class SubstitutionUpdate(BaseModel):
    """Schema for changing the stand-in patient of a substitution."""

    stand_in_patient_id: UUID


class SubstitutionCancel(BaseModel):
    """Schema for canceling a substitution."""

    outcome: SubstitutionOutcome


class SubstitutionCancelResult(BaseModel):
    """Outcome of canceling a substitution."""

    outcome: SubstitutionOutcome
    deleted_substitution_id: UUID
    original: AppointmentResponse | None = None
