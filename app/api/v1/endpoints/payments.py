"""Payment endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentActor, DatabaseSession
from app.schemas.billing import (
    PaymentCreate,
    PaymentEnsure,
    PaymentFilters,
    PaymentResponse,
    PaymentStatus,
    PaymentStatusUpdate,
)
from app.services.billing_service import BillingService

router = APIRouter()


@router.put(
    "/appointments/{appointment_id}/payment",
    response_model=PaymentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="Record the payment of an appointment",
)
async def ensure_appointment_payment(
    appointment_id: UUID,
    data: PaymentEnsure,
    actor: CurrentActor,
    db: DatabaseSession,
) -> PaymentResponse:
    """
    Create or update the single payment of an appointment.

    Repeating the request leaves one payment in the same state.
    """
    service = BillingService(db)
    return await service.ensure_payment(
        appointment_id, data.status, data.amount, data.payment_method
    )


@router.get(
    "/appointments/{appointment_id}/payment",
    response_model=PaymentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="Get the payment of an appointment",
)
async def get_appointment_payment(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> PaymentResponse:
    """
    Get the payment linked to an appointment.

    Raises:
        NotFoundException: If no payment was recorded
    """
    service = BillingService(db)
    return await service.get_payment_for_appointment(appointment_id)


@router.get(
    "/payments",
    response_model=list[PaymentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="List payments",
)
async def list_payments(
    actor: CurrentActor,
    db: DatabaseSession,
    patient_id: UUID | None = Query(None),
    status_filter: PaymentStatus | None = Query(None, alias="status"),
    month: str | None = Query(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
) -> list[PaymentResponse]:
    """
    List payments with filtering.

    Args:
        actor: Authenticated user
        db: Database session
        patient_id: Filter by patient
        status_filter: Filter by status
        month: Due month as YYYY-MM

    Returns:
        Payments ordered by due date
    """
    filters = PaymentFilters(patient_id=patient_id, status=status_filter, month=month)
    service = BillingService(db)
    return await service.list_payments(filters)


@router.post(
    "/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Payments"],
    summary="Create payment",
)
async def create_payment(
    data: PaymentCreate,
    actor: CurrentActor,
    db: DatabaseSession,
) -> PaymentResponse:
    """Record a payment that is not tied to an appointment, such as a monthly fee."""
    service = BillingService(db)
    return await service.create_payment(data)


@router.patch(
    "/payments/{payment_id}/status",
    response_model=PaymentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="Update payment status",
)
async def update_payment_status(
    payment_id: UUID,
    data: PaymentStatusUpdate,
    actor: CurrentActor,
    db: DatabaseSession,
) -> PaymentResponse:
    """Change the status of a payment; marking it paid settles the full amount."""
    service = BillingService(db)
    return await service.update_payment_status(payment_id, data.status, data.amount_paid)
