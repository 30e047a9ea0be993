"""No-show substitution workflow."""

from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import clinic_now, format_stamp
from app.core.exceptions import (
    ConflictException,
    InvalidSubstitutionTarget,
    ValidationException,
)
from app.database import transaction
from app.repositories.appointment_repository import AppointmentRepository
from app.repositories.directory_repository import DirectoryRepository
from app.schemas.appointments import AppointmentResponse, AppointmentStatus
from app.schemas.directory import PatientSummary
from app.schemas.substitutions import SubstitutionCancelResult, SubstitutionOutcome
from app.services.audit_service import AppointmentEventType, AuditService
from app.services.status_service import StatusService

logger = structlog.get_logger()

DEFAULT_REASON = "Original patient did not attend"


class SubstitutionService:
    """
    Fills a no-show slot with a stand-in patient.

    The replacement points at the original through
    ``original_appointment_id``; the original only gets audit notes and
    keeps its ``no-show`` status. A unique constraint on that column keeps
    at most one active replacement per original.
    """

    def __init__(self, db: AsyncSession, actor: str | None = None):
        """Initialize service with database session and acting user."""
        self.db = db
        self.repository = AppointmentRepository(db)
        self.directory = DirectoryRepository(db)
        self.status = StatusService(db, actor)
        self.audit = AuditService(db, actor)

    async def get_substitution(self, original_id: UUID) -> AppointmentResponse | None:
        """
        Active replacement for an original appointment.

        Raises:
            NotFoundException: If the original appointment does not exist
        """
        await self.repository.get_or_raise(original_id)
        return await self.repository.get_substitution_for(original_id)

    async def substitute(
        self,
        original_id: UUID,
        stand_in_patient_id: UUID,
        reason: str | None = None,
    ) -> AppointmentResponse:
        """
        Create a replacement appointment for a no-show.

        When the original already has a replacement, its stand-in is
        changed instead of creating a second one.

        Args:
            original_id: Appointment the patient missed
            stand_in_patient_id: Patient taking the slot
            reason: Why the substitution happened

        Returns:
            The replacement appointment

        Raises:
            NotFoundException: If the appointment or patient does not exist
            InvalidSubstitutionTarget: If the appointment is not a no-show
        """
        try:
            async with transaction(self.db):
                original = await self.repository.get_or_raise(original_id)

                if original.is_substitution:
                    raise InvalidSubstitutionTarget(
                        f"Appointment {original_id} is itself a substitution; edit it instead"
                    )
                if original.status != AppointmentStatus.NO_SHOW:
                    raise InvalidSubstitutionTarget(
                        f"Appointment {original_id} has status '{original.status.value}'; "
                        "only no-show appointments can be substituted"
                    )

                existing = await self.repository.get_substitution_for(original_id)
                if existing is not None:
                    return await self._edit(existing, stand_in_patient_id)

                return await self._create(original, stand_in_patient_id, reason)
        except IntegrityError as e:
            # A concurrent request created the replacement first
            raise ConflictException(
                f"Appointment {original_id} was substituted by another user; reload and retry"
            ) from e

    async def edit_substitution(
        self,
        substitution_id: UUID,
        new_stand_in_patient_id: UUID,
    ) -> AppointmentResponse:
        """
        Change the stand-in patient of a replacement appointment.

        The original appointment is not touched.

        Raises:
            NotFoundException: If the appointment or patient does not exist
            InvalidSubstitutionTarget: If the appointment is not a replacement
        """
        async with transaction(self.db):
            replacement = await self._get_replacement(substitution_id)
            return await self._edit(replacement, new_stand_in_patient_id)

    async def cancel_substitution(
        self,
        substitution_id: UUID,
        outcome: SubstitutionOutcome,
    ) -> SubstitutionCancelResult:
        """
        Remove a replacement appointment.

        ``restore`` puts the original back to ``scheduled``; ``vacate``
        leaves it as ``no-show`` with the slot open. Both delete the
        replacement and note the outcome on the original.

        Raises:
            NotFoundException: If the replacement does not exist
            InvalidSubstitutionTarget: If the appointment is not a replacement
        """
        async with transaction(self.db):
            replacement = await self._get_replacement(substitution_id)
            original_id = replacement.original_appointment_id
            original = await self.repository.get(original_id) if original_id else None

            await self.repository.delete(replacement.id)

            stamp = format_stamp(clinic_now())
            if original is None:
                logger.warning(
                    "substitution_original_missing",
                    substitution_id=str(substitution_id),
                    original_id=str(original_id),
                )
            elif outcome == SubstitutionOutcome.RESTORE:
                note = f"[RESTORED] Substitution canceled on {stamp}. Appointment restored."
                original = await self.status.apply(
                    original.id, AppointmentStatus.SCHEDULED, notes=note
                )
                await self.audit.record(
                    original.id,
                    AppointmentEventType.SUBSTITUTION_RESTORED,
                    substitution_id=replacement.id,
                    stand_in_patient_name=replacement.patient_name,
                )
            else:
                note = f"[SUBSTITUTION CANCELED] Substitution canceled on {stamp}. Slot left open."
                original = await self.repository.append_remark(original.id, note)
                await self.audit.record(
                    original.id,
                    AppointmentEventType.SUBSTITUTION_VACATED,
                    substitution_id=replacement.id,
                    stand_in_patient_name=replacement.patient_name,
                )

            await self.audit.record(
                replacement.id,
                AppointmentEventType.DELETED,
                reason=f"substitution canceled ({outcome.value})",
            )

        logger.info(
            "substitution_canceled",
            substitution_id=str(substitution_id),
            original_id=str(original_id),
            outcome=outcome.value,
        )
        return SubstitutionCancelResult(
            outcome=outcome,
            deleted_substitution_id=replacement.id,
            original=original,
        )

    async def _get_replacement(self, substitution_id: UUID) -> AppointmentResponse:
        replacement = await self.repository.get_or_raise(substitution_id)
        if not replacement.is_substitution:
            raise InvalidSubstitutionTarget(
                f"Appointment {substitution_id} is not a substitution"
            )
        return replacement

    async def _stand_in(
        self,
        patient_id: UUID,
        replaced_patient_id: UUID | None,
    ) -> PatientSummary:
        if patient_id == replaced_patient_id:
            raise ValidationException("The stand-in must be a different patient")
        return await self.directory.get_patient(patient_id)

    async def _create(
        self,
        original: AppointmentResponse,
        stand_in_patient_id: UUID,
        reason: str | None,
    ) -> AppointmentResponse:
        stand_in = await self._stand_in(stand_in_patient_id, original.patient_id)
        stamp = format_stamp(clinic_now())

        await self.repository.append_remark(
            original.id,
            f"[SUBSTITUTION] Patient did not attend. Slot filled by {stand_in.full_name} "
            f"on {stamp}.",
        )

        replacement = await self.repository.create(
            {
                "patient_id": stand_in.id,
                "patient_name": stand_in.full_name,
                "professional_id": original.professional_id,
                "professional_name": original.professional_name,
                "date": original.date,
                "start_time": original.start_time,
                "duration_minutes": original.duration_minutes,
                "consultation_type": original.consultation_type.value,
                "status": AppointmentStatus.CONFIRMED.value,
                "amount": (
                    stand_in.consultation_rate
                    if stand_in.consultation_rate is not None
                    else original.amount
                ),
                "is_substitution": True,
                "original_appointment_id": original.id,
                "replaced_patient_id": original.patient_id,
                "replaced_patient_name": original.patient_name,
                "substitution_reason": reason or DEFAULT_REASON,
                "remarks": (
                    f"[SUBSTITUTION] This appointment took the slot of {original.patient_name}, "
                    "who did not attend."
                ),
            }
        )

        await self.audit.record(
            original.id,
            AppointmentEventType.SUBSTITUTION_CREATED,
            substitution_id=replacement.id,
            stand_in_patient_id=stand_in.id,
            stand_in_patient_name=stand_in.full_name,
        )
        await self.audit.record(
            replacement.id,
            AppointmentEventType.CREATED,
            original_appointment_id=original.id,
            replaced_patient_name=original.patient_name,
        )

        logger.info(
            "substitution_created",
            original_id=str(original.id),
            substitution_id=str(replacement.id),
        )
        return replacement

    async def _edit(
        self,
        replacement: AppointmentResponse,
        stand_in_patient_id: UUID,
    ) -> AppointmentResponse:
        stand_in = await self._stand_in(stand_in_patient_id, replacement.replaced_patient_id)
        stamp = format_stamp(clinic_now())

        updated = await self.repository.append_remark(
            replacement.id,
            f"[SUBSTITUTION EDITED] Slot of {replacement.replaced_patient_name} reassigned "
            f"from {replacement.patient_name} to {stand_in.full_name} on {stamp}.",
            {
                "patient_id": stand_in.id,
                "patient_name": stand_in.full_name,
                "amount": (
                    stand_in.consultation_rate
                    if stand_in.consultation_rate is not None
                    else replacement.amount
                ),
            },
        )

        await self.audit.record(
            replacement.id,
            AppointmentEventType.SUBSTITUTION_EDITED,
            previous_patient_id=replacement.patient_id,
            previous_patient_name=replacement.patient_name,
            stand_in_patient_id=stand_in.id,
            stand_in_patient_name=stand_in.full_name,
        )

        logger.info(
            "substitution_edited",
            substitution_id=str(replacement.id),
            stand_in_patient_id=str(stand_in.id),
        )
        return updated
