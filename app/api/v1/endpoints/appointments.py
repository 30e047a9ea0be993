"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, Response, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from app.core.exceptions import ValidationException
from app.dependencies import CurrentActor, DatabaseSession
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentEventResponse,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentSeriesCreate,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    ConflictCheckRequest,
    ConflictReport,
    CreateResult,
    EditScope,
    MoveRequest,
    MoveResult,
    UpdateResult,
)
from app.services.appointment_service import AppointmentService
from app.services.conflict_service import ConflictService
from app.services.move_service import MoveService
from app.services.status_service import StatusService

router = APIRouter()


@router.get(
    "",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    actor: CurrentActor,
    db: DatabaseSession,
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    professional_id: str | None = Query(None, description='Professional ID or "all"'),
    patient_id: UUID | None = Query(None),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    series_id: str | None = Query(None),
) -> AppointmentListResponse:
    """
    List appointments in a closed date range.

    Args:
        actor: Authenticated user
        db: Database session
        from_date: First day of the range
        to_date: Last day of the range
        professional_id: Filter by professional; "all" disables the filter
        patient_id: Filter by patient
        status_filter: Filter by status
        series_id: Filter by series

    Returns:
        Appointments ordered by date and time
    """
    try:
        filters = AppointmentFilters(
            from_date=from_date,
            to_date=to_date,
            professional_id=professional_id,
            patient_id=patient_id,
            status=status_filter,
            series_id=series_id,
        )
    except ValidationError as e:
        raise ValidationException(
            "Invalid appointment filters: " + "; ".join(error["msg"] for error in e.errors())
        ) from e

    service = AppointmentService(db, actor)
    return await service.list_appointments(filters)


@router.post(
    "",
    response_model=CreateResult,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    actor: CurrentActor,
    db: DatabaseSession,
    response: Response,
    force: bool = Query(False, description="Book even when the slot is taken"),
) -> CreateResult:
    """
    Book an appointment.

    Responds 201 when booked and 200 with ``applied=false`` when the slot
    overlaps existing appointments and ``force`` was not set.
    """
    service = AppointmentService(db, actor)
    result = await service.create_appointment(data, force)
    if result.applied:
        response.status_code = status.HTTP_201_CREATED
    return result


@router.post(
    "/series",
    response_model=CreateResult,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Create recurring appointments",
)
async def create_series(
    data: AppointmentSeriesCreate,
    actor: CurrentActor,
    db: DatabaseSession,
    response: Response,
    force: bool = Query(False, description="Book even when some slots are taken"),
) -> CreateResult:
    """
    Book a recurring series; every occurrence is stored as its own appointment.

    Responds 201 when booked and 200 with ``applied=false`` when held back.
    """
    service = AppointmentService(db, actor)
    result = await service.create_series(data, force)
    if result.applied:
        response.status_code = status.HTTP_201_CREATED
    return result


@router.post(
    "/conflicts",
    response_model=ConflictReport,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Check a placement for conflicts",
)
async def check_conflicts(
    data: ConflictCheckRequest,
    actor: CurrentActor,
    db: DatabaseSession,
) -> ConflictReport:
    """Report appointments overlapping a proposed placement without writing."""
    return await ConflictService(db).check(data)


@router.get(
    "/series/{series_id}",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List series members",
)
async def list_series(
    series_id: str,
    actor: CurrentActor,
    db: DatabaseSession,
) -> list[AppointmentResponse]:
    """
    Get every appointment of a series ordered by date.

    Raises:
        NotFoundException: If the series does not exist
    """
    service = AppointmentService(db, actor)
    return await service.list_series(series_id)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Args:
        appointment_id: Appointment ID
        actor: Authenticated user
        db: Database session

    Returns:
        Appointment details

    Raises:
        NotFoundException: If appointment not found
    """
    service = AppointmentService(db, actor)
    return await service.get_appointment(appointment_id)


@router.put(
    "/{appointment_id}",
    response_model=UpdateResult,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    actor: CurrentActor,
    db: DatabaseSession,
    scope: EditScope = Query(EditScope.THIS, description="this, following or series"),
    force: bool = Query(False, description="Apply even when the new times overlap"),
) -> UpdateResult:
    """
    Update an appointment or members of its series.

    Args:
        appointment_id: Appointment ID
        data: Update data
        actor: Authenticated user
        db: Database session
        scope: Which series members the edit applies to
        force: Apply even when conflicts are found

    Returns:
        Updated appointments, or the conflicts that held the edit back
    """
    service = AppointmentService(db, actor)
    return await service.update_appointment(appointment_id, data, scope, force)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Appointments"],
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> None:
    """
    Permanently delete an appointment (administrative).

    Regular workflows set the status to canceled instead.
    """
    service = AppointmentService(db, actor)
    await service.delete_appointment(appointment_id)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Change the status of an appointment.

    Any status may be set; transitions outside the usual flow are logged.
    """
    service = StatusService(db, actor)
    return await service.change_status(appointment_id, data.status, data.notes)


@router.post(
    "/{appointment_id}/move",
    response_model=MoveResult,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Move appointment or series",
)
async def move_appointment(
    appointment_id: UUID,
    data: MoveRequest,
    actor: CurrentActor,
    db: DatabaseSession,
) -> MoveResult:
    """
    Move an appointment, or its whole series when ``scope`` is ``series``.

    When conflicts are found and ``force`` is false nothing is written and
    the result carries ``applied=false`` with the conflicts.
    """
    service = MoveService(db, actor)
    return await service.move(appointment_id, data)


@router.post(
    "/{appointment_id}/move/preview",
    response_model=MoveResult,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Preview a move",
)
async def preview_move(
    appointment_id: UUID,
    data: MoveRequest,
    actor: CurrentActor,
    db: DatabaseSession,
) -> MoveResult:
    """Show the placements and conflicts a move would produce."""
    service = MoveService(db, actor)
    return await service.preview_move(appointment_id, data.new_date, data.new_time, data.scope)


@router.get(
    "/{appointment_id}/events",
    response_model=list[AppointmentEventResponse],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Appointment audit trail",
)
async def list_appointment_events(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> list[AppointmentEventResponse]:
    """Get the audit events of an appointment, oldest first."""
    service = AppointmentService(db, actor)
    return await service.list_events(appointment_id)


@router.get(
    "/{appointment_id}/history",
    response_class=PlainTextResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Appointment history as text",
)
async def get_appointment_history(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> str:
    """Render the audit trail of an appointment, one line per event."""
    service = AppointmentService(db, actor)
    return await service.render_history(appointment_id)
