"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class InvalidSubstitutionTarget(ConflictException):
    """Substitution requested for an appointment that cannot take one."""

    def __init__(self, message: str = "Appointment cannot be substituted"):
        """Initialize with 409 status code."""
        super().__init__(message)


class DuplicateInvoicePeriod(ConflictException):
    """An invoice already exists for the patient and reference month."""

    def __init__(self, patient_id: object, reference_month: str):
        """Initialize with the offending invoice key."""
        self.patient_id = patient_id
        self.reference_month = reference_month
        super().__init__(
            f"An invoice already exists for patient {patient_id} in {reference_month}"
        )
