"""Repositories: the only point of contact with persistence."""

from app.repositories.appointment_repository import AppointmentRepository
from app.repositories.billing_repository import InvoiceRepository, PaymentRepository
from app.repositories.directory_repository import DirectoryRepository
from app.repositories.event_repository import EventRepository

__all__ = [
    "AppointmentRepository",
    "DirectoryRepository",
    "EventRepository",
    "InvoiceRepository",
    "PaymentRepository",
]
