"""Invoice endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentActor, DatabaseSession
from app.schemas.billing import InvoiceResponse, InvoiceStatusUpdate
from app.services.billing_service import BillingService

router = APIRouter()


@router.post(
    "/appointments/{appointment_id}/invoice",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Invoices"],
    summary="Issue invoice for an appointment",
)
async def issue_invoice(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> InvoiceResponse:
    """
    Issue the invoice covering an appointment's patient and month.

    Raises:
        DuplicateInvoicePeriod: If the patient already has an invoice for
            that month
    """
    service = BillingService(db)
    return await service.ensure_invoice(appointment_id)


@router.get(
    "/invoices",
    response_model=list[InvoiceResponse],
    status_code=status.HTTP_200_OK,
    tags=["Invoices"],
    summary="List invoices",
)
async def list_invoices(
    actor: CurrentActor,
    db: DatabaseSession,
    patient_id: UUID | None = Query(None),
    reference_month: str | None = Query(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
) -> list[InvoiceResponse]:
    """List invoices by patient and reference month, newest period first."""
    service = BillingService(db)
    return await service.list_invoices(patient_id, reference_month)


@router.patch(
    "/invoices/{invoice_id}/status",
    response_model=InvoiceResponse,
    status_code=status.HTTP_200_OK,
    tags=["Invoices"],
    summary="Update invoice status",
)
async def update_invoice_status(
    invoice_id: UUID,
    data: InvoiceStatusUpdate,
    actor: CurrentActor,
    db: DatabaseSession,
) -> InvoiceResponse:
    """Change the status of an invoice."""
    service = BillingService(db)
    return await service.update_invoice_status(invoice_id, data.status)
