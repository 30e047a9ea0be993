"""Payment and invoice persistence using SQLAlchemy Core."""

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.models.appointments import utc_now
from app.models.invoices import invoices
from app.models.payments import payments
from app.schemas.billing import InvoiceResponse, PaymentFilters, PaymentResponse


def _month_bounds(month: str) -> tuple[date, date]:
    year, month_number = (int(part) for part in month.split("-"))
    first = date(year, month_number, 1)
    following = date(year + month_number // 12, month_number % 12 + 1, 1)
    return first, following


class PaymentRepository:
    """Reads and writes payment records; never commits."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def list(self, filters: PaymentFilters) -> list[PaymentResponse]:
        """List payments matching the filters, ordered by due date."""
        conditions = []

        if filters.patient_id:
            conditions.append(payments.c.patient_id == filters.patient_id)

        if filters.status:
            conditions.append(payments.c.status == filters.status.value)

        if filters.month:
            first, following = _month_bounds(filters.month)
            conditions.append(payments.c.due_date >= first)
            conditions.append(payments.c.due_date < following)

        stmt = (
            select(payments)
            .where(*conditions)
            .order_by(payments.c.due_date, payments.c.created_at)
        )
        result = await self.db.execute(stmt)
        return [PaymentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def get(self, payment_id: UUID) -> PaymentResponse | None:
        """Get a payment by ID."""
        result = await self.db.execute(select(payments).where(payments.c.id == payment_id))
        row = result.fetchone()
        return PaymentResponse.model_validate(dict(row._mapping)) if row else None

    async def get_by_appointment(self, appointment_id: UUID) -> PaymentResponse | None:
        """Get the payment linked to an appointment, if any."""
        result = await self.db.execute(
            select(payments).where(payments.c.appointment_id == appointment_id)
        )
        row = result.fetchone()
        return PaymentResponse.model_validate(dict(row._mapping)) if row else None

    async def create(self, values: dict[str, Any]) -> PaymentResponse:
        """Insert a payment and return it."""
        result = await self.db.execute(insert(payments).values(**values).returning(payments))
        return PaymentResponse.model_validate(dict(result.fetchone()._mapping))

    async def update(self, payment_id: UUID, values: dict[str, Any]) -> PaymentResponse:
        """
        Update a payment in place.

        Raises:
            NotFoundException: If the payment no longer exists
        """
        stmt = (
            update(payments)
            .where(payments.c.id == payment_id)
            .values(**values, updated_at=utc_now())
            .returning(payments)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()

        if not row:
            raise NotFoundException(f"Payment {payment_id} not found")

        return PaymentResponse.model_validate(dict(row._mapping))


class InvoiceRepository:
    """Reads and writes invoice records; never commits."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def list(
        self,
        patient_id: UUID | None = None,
        reference_month: str | None = None,
    ) -> list[InvoiceResponse]:
        """List invoices, newest period first."""
        conditions = []

        if patient_id:
            conditions.append(invoices.c.patient_id == patient_id)

        if reference_month:
            conditions.append(invoices.c.reference_month == reference_month)

        stmt = (
            select(invoices)
            .where(*conditions)
            .order_by(invoices.c.reference_month.desc(), invoices.c.patient_name)
        )
        result = await self.db.execute(stmt)
        return [InvoiceResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def get_for_period(
        self,
        patient_id: UUID,
        reference_month: str,
    ) -> InvoiceResponse | None:
        """Get the invoice of a patient for a reference month, if any."""
        result = await self.db.execute(
            select(invoices).where(
                invoices.c.patient_id == patient_id,
                invoices.c.reference_month == reference_month,
            )
        )
        row = result.fetchone()
        return InvoiceResponse.model_validate(dict(row._mapping)) if row else None

    async def create(self, values: dict[str, Any]) -> InvoiceResponse:
        """Insert an invoice and return it."""
        result = await self.db.execute(insert(invoices).values(**values).returning(invoices))
        return InvoiceResponse.model_validate(dict(result.fetchone()._mapping))

    async def update(self, invoice_id: UUID, values: dict[str, Any]) -> InvoiceResponse:
        """
        Update an invoice in place.

        Raises:
            NotFoundException: If the invoice no longer exists
        """
        stmt = (
            update(invoices)
            .where(invoices.c.id == invoice_id)
            .values(**values, updated_at=utc_now())
            .returning(invoices)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()

        if not row:
            raise NotFoundException(f"Invoice {invoice_id} not found")

        return InvoiceResponse.model_validate(dict(row._mapping))
