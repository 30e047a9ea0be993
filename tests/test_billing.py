"""Tests for appointment payments and invoices."""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import clinic_today
from app.core.exceptions import DuplicateInvoicePeriod, NotFoundException
from app.schemas.billing import (
    InvoiceStatus,
    PaymentCreate,
    PaymentFilters,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
)
from app.services.billing_service import BillingService


@pytest.mark.asyncio
async def test_ensure_payment_creates_from_appointment(
    db_session: AsyncSession,
    make_appointment: Any,
) -> None:
    """A first call creates a pending consultation payment due on the visit."""
    appointment = await make_appointment(date=date(2024, 7, 8))

    payment = await BillingService(db_session).ensure_payment(
        appointment.id, PaymentStatus.PENDING
    )

    assert payment.appointment_id == appointment.id
    assert payment.patient_id == appointment.patient_id
    assert payment.amount == Decimal("150.00")
    assert payment.amount_paid == Decimal("0")
    assert payment.due_date == date(2024, 7, 8)
    assert payment.type == PaymentType.CONSULTATION
    assert payment.status == PaymentStatus.PENDING
    assert payment.paid_date is None


@pytest.mark.asyncio
async def test_ensure_payment_is_idempotent(
    db_session: AsyncSession,
    make_appointment: Any,
) -> None:
    """Repeating the call leaves one payment in the same state."""
    appointment = await make_appointment()
    service = BillingService(db_session)

    first = await service.ensure_payment(
        appointment.id, PaymentStatus.PAID, payment_method=PaymentMethod.PIX
    )
    second = await service.ensure_payment(
        appointment.id, PaymentStatus.PAID, payment_method=PaymentMethod.PIX
    )

    assert second.id == first.id
    assert second.status == PaymentStatus.PAID
    assert second.amount_paid == second.amount == Decimal("150.00")
    assert second.paid_date == first.paid_date == clinic_today()
    assert second.payment_method == PaymentMethod.PIX

    payments = await service.list_payments(PaymentFilters(patient_id=appointment.patient_id))
    assert len(payments) == 1


@pytest.mark.asyncio
async def test_ensure_payment_updates_in_place(
    db_session: AsyncSession,
    make_appointment: Any,
) -> None:
    """A later call changes status and amount of the existing payment."""
    appointment = await make_appointment()
    service = BillingService(db_session)
    pending = await service.ensure_payment(appointment.id, PaymentStatus.PENDING)

    paid = await service.ensure_payment(
        appointment.id, PaymentStatus.PAID, amount_override=Decimal("130.00")
    )

    assert paid.id == pending.id
    assert paid.amount == Decimal("130.00")
    assert paid.amount_paid == Decimal("130.00")
    assert await service.get_payment_for_appointment(appointment.id) == paid


@pytest.mark.asyncio
async def test_payment_lookup_without_payment(
    db_session: AsyncSession,
    make_appointment: Any,
) -> None:
    """Appointments without a payment raise NotFoundException."""
    appointment = await make_appointment()

    with pytest.raises(NotFoundException):
        await BillingService(db_session).get_payment_for_appointment(appointment.id)


@pytest.mark.asyncio
async def test_ensure_invoice_issues_once_per_month(
    db_session: AsyncSession,
    make_appointment: Any,
) -> None:
    """A second invoice for the same patient and month is refused."""
    first_visit = await make_appointment(date=date(2024, 7, 1), consultation_type="exam")
    second_visit = await make_appointment(date=date(2024, 7, 22))
    service = BillingService(db_session)

    invoice = await service.ensure_invoice(first_visit.id)

    assert invoice.reference_month == "2024-07"
    assert invoice.status == InvoiceStatus.ISSUED
    assert invoice.amount == Decimal("150.00")
    assert invoice.sessions_count == 1
    assert invoice.description == "Consultation - Exam"

    with pytest.raises(DuplicateInvoicePeriod) as exc_info:
        await service.ensure_invoice(second_visit.id)

    assert exc_info.value.reference_month == "2024-07"
    assert str(first_visit.patient_id) in exc_info.value.message

    august = await make_appointment(date=date(2024, 8, 5))
    assert (await service.ensure_invoice(august.id)).reference_month == "2024-08"


@pytest.mark.asyncio
async def test_invoice_status_and_listing(
    db_session: AsyncSession,
    make_appointment: Any,
) -> None:
    """Invoices can be filtered by period and moved through their states."""
    appointment = await make_appointment()
    service = BillingService(db_session)
    invoice = await service.ensure_invoice(appointment.id)

    sent = await service.update_invoice_status(invoice.id, InvoiceStatus.SENT)

    assert sent.status == InvoiceStatus.SENT
    assert [i.id for i in await service.list_invoices(reference_month="2024-07")] == [invoice.id]
    assert await service.list_invoices(reference_month="2024-06") == []


@pytest.mark.asyncio
async def test_create_monthly_fee_and_filter_by_month(
    db_session: AsyncSession,
    patient: dict[str, Any],
) -> None:
    """Payments without an appointment are filtered by due month."""
    service = BillingService(db_session)
    fee = await service.create_payment(
        PaymentCreate(
            patient_id=patient["id"], amount=Decimal("600.00"), due_date=date(2024, 12, 10)
        )
    )

    assert fee.appointment_id is None
    assert fee.type == PaymentType.MONTHLY_FEE
    assert fee.patient_name == patient["full_name"]

    assert [p.id for p in await service.list_payments(PaymentFilters(month="2024-12"))] == [fee.id]
    assert await service.list_payments(PaymentFilters(month="2025-01")) == []

    partial = await service.update_payment_status(
        fee.id, PaymentStatus.PARTIAL, amount_paid=Decimal("200.00")
    )
    assert partial.amount_paid == Decimal("200.00")
    assert partial.status == PaymentStatus.PARTIAL


@pytest.mark.asyncio
async def test_update_missing_payment(db_session: AsyncSession) -> None:
    """Unknown payments raise NotFoundException."""
    with pytest.raises(NotFoundException):
        await BillingService(db_session).update_payment_status(uuid4(), PaymentStatus.PAID)
