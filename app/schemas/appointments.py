"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from app.config import settings
from app.core.intervals import interval_for


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELED = "canceled"
    NO_SHOW = "no-show"


class ConsultationType(str, Enum):
    """Consultation type enumeration."""

    FIRST_VISIT = "first-visit"
    FOLLOW_UP = "follow-up"
    EXAM = "exam"
    PROCEDURE = "procedure"


class RecurrenceFrequency(str, Enum):
    """Spacing between occurrences generated for a recurring booking."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class EditScope(str, Enum):
    """Which members of a series an edit applies to."""

    THIS = "this"
    FOLLOWING = "following"
    SERIES = "series"


class MoveScope(str, Enum):
    """Move a single occurrence or the whole series."""

    SINGLE = "single"
    SERIES = "series"


class AppointmentBase(BaseModel):
    """Base appointment schema with common fields."""

    patient_id: UUID
    professional_id: UUID
    date: date
    start_time: time
    duration_minutes: int = Field(
        default_factory=lambda: settings.default_appointment_duration, ge=1, le=1440
    )
    consultation_type: ConsultationType = ConsultationType.FOLLOW_UP
    amount: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    remarks: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def validate_fits_in_day(self) -> "AppointmentBase":
        """Appointments never span midnight."""
        interval_for(self.date, self.start_time, self.duration_minutes)
        return self


class AppointmentCreate(AppointmentBase):
    """Schema for creating a new appointment."""

    status: AppointmentStatus = AppointmentStatus.SCHEDULED

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, v: AppointmentStatus) -> AppointmentStatus:
        """New bookings start as scheduled or confirmed."""
        if v not in (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED):
            raise ValueError("New appointments must be scheduled or confirmed")
        return v


class AppointmentSeriesCreate(AppointmentCreate):
    """Schema for creating a recurring booking."""

    frequency: RecurrenceFrequency = RecurrenceFrequency.WEEKLY
    occurrences: int = Field(default=4, ge=1, le=52)
    until: date | None = None

    @field_validator("until")
    @classmethod
    def validate_until(cls, v: date | None, info: Any) -> date | None:
        """The end date cannot precede the first occurrence."""
        if v and "date" in info.data and v < info.data["date"]:
            raise ValueError("Series end date must not be before the first occurrence")
        return v


class AppointmentUpdate(BaseModel):
    """Schema for editing an appointment (dates change only through moves)."""

    patient_id: UUID | None = None
    professional_id: UUID | None = None
    start_time: time | None = None
    duration_minutes: int | None = Field(None, ge=1, le=1440)
    consultation_type: ConsultationType | None = None
    amount: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    note: str | None = Field(None, max_length=1000, description="Appended to remarks")


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=1000)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    patient_name: str
    professional_id: UUID
    professional_name: str
    date: date
    start_time: time
    duration_minutes: int
    consultation_type: ConsultationType
    status: AppointmentStatus
    series_id: str | None = None
    is_substitution: bool = False
    original_appointment_id: UUID | None = None
    replaced_patient_id: UUID | None = None
    replaced_patient_name: str | None = None
    substitution_reason: str | None = None
    amount: Decimal
    remarks: str | None = None
    created_at: datetime
    updated_at: datetime
    canceled_at: datetime | None = None

    model_config = {"from_attributes": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def end_time(self) -> time:
        """Time of day the appointment ends."""
        return interval_for(self.date, self.start_time, self.duration_minutes).end.time()


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""

    total: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    from_date: date | None = None
    to_date: date | None = None
    professional_id: UUID | None = None
    patient_id: UUID | None = None
    status: AppointmentStatus | None = None
    series_id: str | None = None

    @field_validator("professional_id", mode="before")
    @classmethod
    def validate_professional(cls, v: Any) -> Any:
        """The calendar's "all professionals" option means no filter."""
        if isinstance(v, str) and v.strip().lower() in ("", "all"):
            return None
        return v


class Placement(BaseModel):
    """A proposed position on the calendar."""

    appointment_id: UUID | None = None
    professional_id: UUID
    date: date
    start_time: time
    duration_minutes: int = Field(default=60, ge=1, le=1440)
    original_appointment_id: UUID | None = None

    @model_validator(mode="after")
    def validate_fits_in_day(self) -> "Placement":
        """Appointments never span midnight."""
        interval_for(self.date, self.start_time, self.duration_minutes)
        return self


class ConflictCheckRequest(Placement):
    """Request to check a placement for conflicts without writing."""

    exclude_id: UUID | None = None


class ConflictEntry(BaseModel):
    """An existing appointment that overlaps a proposed placement."""

    appointment_id: UUID
    patient_name: str
    professional_id: UUID
    date: date
    start_time: time
    end_time: time
    status: AppointmentStatus
    conflicts_with: UUID | None = Field(
        None, description="Proposed appointment the entry overlaps, when known"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def message(self) -> str:
        """Human-readable description for the operator."""
        return (
            f"{self.patient_name} is booked {self.start_time:%H:%M}-{self.end_time:%H:%M} "
            f"on {self.date.isoformat()}"
        )


class ConflictReport(BaseModel):
    """Advisory result of a conflict check."""

    conflicts: list[ConflictEntry] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_conflicts(self) -> bool:
        """Whether any overlap was found."""
        return bool(self.conflicts)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def message(self) -> str | None:
        """Summary of the overlaps, if any."""
        if not self.conflicts:
            return None
        return f"{len(self.conflicts)} appointment(s) already booked in this slot: " + "; ".join(
            c.message for c in self.conflicts
        )


class CreateResult(ConflictReport):
    """Outcome of a create request, applied or held back by conflicts."""

    applied: bool
    proposed: list[Placement] = Field(default_factory=list)
    appointments: list[AppointmentResponse] = Field(default_factory=list)
    series_id: str | None = None


class UpdateResult(ConflictReport):
    """Outcome of an edit, applied or held back by conflicts."""

    applied: bool
    scope: EditScope
    proposed: list[Placement] = Field(default_factory=list)
    appointments: list[AppointmentResponse] = Field(default_factory=list)


class MoveRequest(BaseModel):
    """Schema for moving an appointment or its series."""

    new_date: date
    new_time: time | None = None
    scope: MoveScope = MoveScope.SINGLE
    force: bool = Field(False, description="Apply even when conflicts are found")


class MoveResult(ConflictReport):
    """Outcome of a move, applied or held back by conflicts."""

    applied: bool
    scope: MoveScope
    day_offset: int = 0
    series_size: int = 1
    proposed: list[Placement] = Field(default_factory=list)
    appointments: list[AppointmentResponse] = Field(default_factory=list)


class AppointmentEventResponse(BaseModel):
    """Schema for an audit trail entry."""

    id: UUID
    appointment_id: UUID
    occurred_at: datetime
    actor: str | None = None
    event_type: str
    detail: dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}
