"""Read-only access to the patient and professional directories."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.models.patients import patients
from app.models.professionals import professionals
from app.schemas.directory import PatientSummary, ProfessionalSummary


class DirectoryRepository:
    """Looks up patients and professionals by ID."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def get_patient(self, patient_id: UUID) -> PatientSummary:
        """
        Get a patient summary.

        Raises:
            NotFoundException: If the patient does not exist
        """
        result = await self.db.execute(select(patients).where(patients.c.id == patient_id))
        row = result.fetchone()

        if not row:
            raise NotFoundException(f"Patient {patient_id} not found")

        return PatientSummary.model_validate(dict(row._mapping))

    async def get_professional(self, professional_id: UUID) -> ProfessionalSummary:
        """
        Get a professional summary.

        Raises:
            NotFoundException: If the professional does not exist
        """
        result = await self.db.execute(
            select(professionals).where(professionals.c.id == professional_id)
        )
        row = result.fetchone()

        if not row:
            raise NotFoundException(f"Professional {professional_id} not found")

        return ProfessionalSummary.model_validate(dict(row._mapping))
