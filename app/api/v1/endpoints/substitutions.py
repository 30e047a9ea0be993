"""No-show substitution endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import CurrentActor, DatabaseSession
from app.schemas.appointments import AppointmentResponse
from app.schemas.substitutions import (
    SubstitutionCancel,
    SubstitutionCancelResult,
    SubstitutionCreate,
    SubstitutionUpdate,
)
from app.services.substitution_service import SubstitutionService

router = APIRouter()


@router.post(
    "/appointments/{appointment_id}/substitution",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Substitutions"],
    summary="Fill a no-show slot",
)
async def create_substitution(
    appointment_id: UUID,
    data: SubstitutionCreate,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Give a no-show appointment's slot to a stand-in patient.

    If the slot already has a stand-in, the stand-in is replaced.

    Args:
        appointment_id: The no-show appointment
        data: Stand-in patient and reason
        actor: Authenticated user
        db: Database session

    Returns:
        The replacement appointment

    Raises:
        InvalidSubstitutionTarget: If the appointment is not a no-show
    """
    service = SubstitutionService(db, actor)
    return await service.substitute(appointment_id, data.stand_in_patient_id, data.reason)


@router.get(
    "/appointments/{appointment_id}/substitution",
    response_model=AppointmentResponse | None,
    status_code=status.HTTP_200_OK,
    tags=["Substitutions"],
    summary="Get the substitution of an appointment",
)
async def get_substitution(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse | None:
    """Get the replacement filling an appointment's slot, or null."""
    service = SubstitutionService(db, actor)
    return await service.get_substitution(appointment_id)


@router.put(
    "/substitutions/{substitution_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Substitutions"],
    summary="Change the stand-in patient",
)
async def update_substitution(
    substitution_id: UUID,
    data: SubstitutionUpdate,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Assign a different stand-in to a replacement appointment."""
    service = SubstitutionService(db, actor)
    return await service.edit_substitution(substitution_id, data.stand_in_patient_id)


@router.post(
    "/substitutions/{substitution_id}/cancel",
    response_model=SubstitutionCancelResult,
    status_code=status.HTTP_200_OK,
    tags=["Substitutions"],
    summary="Cancel a substitution",
)
async def cancel_substitution(
    substitution_id: UUID,
    data: SubstitutionCancel,
    actor: CurrentActor,
    db: DatabaseSession,
) -> SubstitutionCancelResult:
    """
    Delete a replacement appointment.

    With ``restore`` the original goes back to scheduled; with ``vacate``
    it stays a no-show and the slot is left open.
    """
    service = SubstitutionService(db, actor)
    return await service.cancel_substitution(substitution_id, data.outcome)
