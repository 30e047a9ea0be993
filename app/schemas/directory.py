"""Read-only views of the patient and professional directories."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class PatientSummary(BaseModel):
    """Patient fields the scheduling engine needs."""

    id: UUID
    full_name: str
    consultation_rate: Decimal | None = None
    is_active: bool = True

    model_config = {"from_attributes": True}


class ProfessionalSummary(BaseModel):
    """Professional fields the scheduling engine needs."""

    id: UUID
    full_name: str
    specialty: str | None = None
    is_active: bool = True

    model_config = {"from_attributes": True}
