"""Payment and invoice schemas for request/response validation."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    CANCELED = "canceled"


class PaymentMethod(str, Enum):
    """Payment method enumeration."""

    CASH = "cash"
    PIX = "pix"
    CREDIT_CARD = "credit-card"
    DEBIT_CARD = "debit-card"
    BANK_TRANSFER = "bank-transfer"


class PaymentType(str, Enum):
    """What the payment is for."""

    CONSULTATION = "consultation"
    MONTHLY_FEE = "monthly-fee"
    PACKAGE = "package"
    OTHER = "other"


class InvoiceStatus(str, Enum):
    """Invoice status enumeration."""

    ISSUED = "issued"
    SENT = "sent"
    PAID = "paid"
    CANCELED = "canceled"


class PaymentEnsure(BaseModel):
    """Schema for recording the payment state of an appointment."""

    status: PaymentStatus
    amount: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    payment_method: PaymentMethod | None = None


class PaymentCreate(BaseModel):
    """Schema for a payment not tied to an appointment (e.g. a monthly fee)."""

    patient_id: UUID
    amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    due_date: date
    status: PaymentStatus = PaymentStatus.PENDING
    payment_method: PaymentMethod = PaymentMethod.CASH
    type: PaymentType = PaymentType.MONTHLY_FEE
    notes: str | None = Field(None, max_length=1000)


class PaymentStatusUpdate(BaseModel):
    """Schema for updating payment status."""

    status: PaymentStatus
    amount_paid: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    id: UUID
    appointment_id: UUID | None = None
    patient_id: UUID
    patient_name: str
    amount: Decimal
    amount_paid: Decimal
    due_date: date | None = None
    paid_date: date | None = None
    status: PaymentStatus
    payment_method: PaymentMethod
    type: PaymentType
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PaymentFilters(BaseModel):
    """Schema for payment filtering."""

    patient_id: UUID | None = None
    status: PaymentStatus | None = None
    month: str | None = Field(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$")


class InvoiceStatusUpdate(BaseModel):
    """Schema for updating invoice status."""

    status: InvoiceStatus


class InvoiceResponse(BaseModel):
    """Schema for invoice response."""

    id: UUID
    patient_id: UUID
    patient_name: str
    reference_month: str
    amount: Decimal
    issue_date: date
    status: InvoiceStatus
    description: str | None = None
    sessions_count: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("reference_month")
    @classmethod
    def validate_reference_month(cls, v: str) -> str:
        """Reference months are stored as YYYY-MM."""
        if len(v) != 7 or v[4] != "-":
            raise ValueError("Reference month must be in YYYY-MM format")
        return v
