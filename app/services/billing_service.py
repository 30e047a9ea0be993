"""Payments and invoices derived from appointments."""

from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import clinic_today
from app.core.exceptions import ConflictException, DuplicateInvoicePeriod, NotFoundException
from app.database import transaction
from app.repositories.appointment_repository import AppointmentRepository
from app.repositories.billing_repository import InvoiceRepository, PaymentRepository
from app.repositories.directory_repository import DirectoryRepository
from app.schemas.billing import (
    InvoiceResponse,
    InvoiceStatus,
    PaymentCreate,
    PaymentFilters,
    PaymentMethod,
    PaymentResponse,
    PaymentStatus,
    PaymentType,
)

logger = structlog.get_logger()

CONSULTATION_TYPE_LABELS = {
    "first-visit": "First visit",
    "follow-up": "Follow-up",
    "exam": "Exam",
    "procedure": "Procedure",
}


def _status_values(
    status: PaymentStatus,
    amount: Decimal,
    amount_paid: Decimal | None = None,
) -> dict[str, Any]:
    """Columns that follow from a payment status."""
    values: dict[str, Any] = {"status": status.value}
    if status == PaymentStatus.PAID:
        values["amount_paid"] = amount
        values["paid_date"] = clinic_today()
    elif status == PaymentStatus.PARTIAL:
        if amount_paid is not None:
            values["amount_paid"] = amount_paid
    elif status in (PaymentStatus.PENDING, PaymentStatus.OVERDUE):
        values["amount_paid"] = amount_paid if amount_paid is not None else Decimal("0")
        values["paid_date"] = None
    return values


class BillingService:
    """
    Keeps payments and invoices in step with appointments.

    One payment exists per appointment and one invoice per patient and
    month; both keys are backed by unique constraints.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.appointments = AppointmentRepository(db)
        self.payments = PaymentRepository(db)
        self.invoices = InvoiceRepository(db)
        self.directory = DirectoryRepository(db)

    async def get_payment_for_appointment(self, appointment_id: UUID) -> PaymentResponse:
        """
        Payment linked to an appointment.

        Raises:
            NotFoundException: If the appointment has no payment
        """
        payment = await self.payments.get_by_appointment(appointment_id)
        if payment is None:
            raise NotFoundException(f"No payment recorded for appointment {appointment_id}")
        return payment

    async def ensure_payment(
        self,
        appointment_id: UUID,
        status: PaymentStatus,
        amount_override: Decimal | None = None,
        payment_method: PaymentMethod | None = None,
    ) -> PaymentResponse:
        """
        Create or update the payment of an appointment.

        Calling it again with the same arguments leaves a single payment in
        the same state.

        Args:
            appointment_id: Appointment being paid for
            status: Payment status to record
            amount_override: Amount to charge instead of the appointment's
            payment_method: How the patient paid

        Returns:
            The payment after the change

        Raises:
            NotFoundException: If the appointment does not exist
        """
        try:
            async with transaction(self.db):
                appointment = await self.appointments.get_or_raise(appointment_id)
                existing = await self.payments.get_by_appointment(appointment_id)

                if existing is None:
                    amount = amount_override if amount_override is not None else appointment.amount
                    values = {
                        "appointment_id": appointment.id,
                        "patient_id": appointment.patient_id,
                        "patient_name": appointment.patient_name,
                        "amount": amount,
                        "amount_paid": Decimal("0"),
                        "due_date": appointment.date,
                        "type": PaymentType.CONSULTATION.value,
                        "payment_method": (payment_method or PaymentMethod.CASH).value,
                        **_status_values(status, amount),
                    }
                    payment = await self.payments.create(values)
                    action = "created"
                else:
                    amount = amount_override if amount_override is not None else existing.amount
                    values = {"amount": amount, **_status_values(status, amount)}
                    if status == PaymentStatus.PAID and existing.paid_date:
                        values["paid_date"] = existing.paid_date
                    if payment_method:
                        values["payment_method"] = payment_method.value
                    payment = await self.payments.update(existing.id, values)
                    action = "updated"
        except IntegrityError as e:
            raise ConflictException(
                f"Payment for appointment {appointment_id} was recorded by another user; retry"
            ) from e

        logger.info(
            "appointment_payment_ensured",
            appointment_id=str(appointment_id),
            payment_id=str(payment.id),
            status=status.value,
            action=action,
        )
        return payment

    async def ensure_invoice(self, appointment_id: UUID) -> InvoiceResponse:
        """
        Issue the invoice for an appointment's patient and month.

        Raises:
            NotFoundException: If the appointment does not exist
            DuplicateInvoicePeriod: If the patient already has an invoice for
                the month
        """
        appointment = await self.appointments.get_or_raise(appointment_id)
        reference_month = appointment.date.strftime("%Y-%m")

        try:
            async with transaction(self.db):
                if await self.invoices.get_for_period(appointment.patient_id, reference_month):
                    raise DuplicateInvoicePeriod(appointment.patient_id, reference_month)

                label = CONSULTATION_TYPE_LABELS.get(
                    appointment.consultation_type.value, appointment.consultation_type.value
                )
                invoice = await self.invoices.create(
                    {
                        "patient_id": appointment.patient_id,
                        "patient_name": appointment.patient_name,
                        "reference_month": reference_month,
                        "amount": appointment.amount,
                        "issue_date": clinic_today(),
                        "status": InvoiceStatus.ISSUED.value,
                        "description": f"Consultation - {label}",
                        "sessions_count": 1,
                    }
                )
        except IntegrityError as e:
            raise DuplicateInvoicePeriod(appointment.patient_id, reference_month) from e

        logger.info(
            "invoice_issued",
            invoice_id=str(invoice.id),
            patient_id=str(appointment.patient_id),
            reference_month=reference_month,
        )
        return invoice

    async def create_payment(self, data: PaymentCreate) -> PaymentResponse:
        """
        Record a payment not tied to an appointment, such as a monthly fee.

        Raises:
            NotFoundException: If the patient does not exist
        """
        async with transaction(self.db):
            patient = await self.directory.get_patient(data.patient_id)
            payment = await self.payments.create(
                {
                    "patient_id": patient.id,
                    "patient_name": patient.full_name,
                    "amount": data.amount,
                    "amount_paid": Decimal("0"),
                    "due_date": data.due_date,
                    "payment_method": data.payment_method.value,
                    "type": data.type.value,
                    "notes": data.notes,
                    **_status_values(data.status, data.amount),
                }
            )

        logger.info("payment_created", payment_id=str(payment.id), patient_id=str(patient.id))
        return payment

    async def update_payment_status(
        self,
        payment_id: UUID,
        status: PaymentStatus,
        amount_paid: Decimal | None = None,
    ) -> PaymentResponse:
        """
        Change the status of a payment.

        Raises:
            NotFoundException: If the payment does not exist
        """
        async with transaction(self.db):
            payment = await self.payments.get(payment_id)
            if payment is None:
                raise NotFoundException(f"Payment {payment_id} not found")
            updated = await self.payments.update(
                payment_id, _status_values(status, payment.amount, amount_paid)
            )

        logger.info(
            "payment_status_changed",
            payment_id=str(payment_id),
            old_status=payment.status.value,
            new_status=status.value,
        )
        return updated

    async def list_payments(self, filters: PaymentFilters) -> list[PaymentResponse]:
        """List payments by patient, status and due month."""
        return await self.payments.list(filters)

    async def update_invoice_status(
        self,
        invoice_id: UUID,
        status: InvoiceStatus,
    ) -> InvoiceResponse:
        """
        Change the status of an invoice.

        Raises:
            NotFoundException: If the invoice does not exist
        """
        async with transaction(self.db):
            updated = await self.invoices.update(invoice_id, {"status": status.value})

        logger.info("invoice_status_changed", invoice_id=str(invoice_id), status=status.value)
        return updated

    async def list_invoices(
        self,
        patient_id: UUID | None = None,
        reference_month: str | None = None,
    ) -> list[InvoiceResponse]:
        """List invoices by patient and reference month."""
        return await self.invoices.list(patient_id, reference_month)
