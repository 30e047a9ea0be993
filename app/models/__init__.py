"""Database models."""

from app.models.appointment_events import appointment_events
from app.models.appointments import appointments, metadata
from app.models.invoices import invoices
from app.models.patients import patients
from app.models.payments import payments
from app.models.professionals import professionals

__all__ = [
    "appointment_events",
    "appointments",
    "invoices",
    "metadata",
    "patients",
    "payments",
    "professionals",
]
