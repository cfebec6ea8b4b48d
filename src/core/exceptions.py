class DomainError(Exception):
    """Base exception for business rule violations."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or ""


class ValidationError(DomainError):
    """Raised when a required field is missing or malformed."""

    status_code = 422


class NotFoundError(DomainError):
    """Raised when a referenced batch or record does not exist."""

    status_code = 404


class ConflictError(DomainError):
    """Raised when the record already exists or is in the wrong state."""

    status_code = 409


class BatchNotReadyError(ConflictError):
    """Batch is still processing. Complete the batch to enable download."""


class EmptyBatchError(DomainError):
    """This batch has no employees to generate payslips for."""

    status_code = 422


class ArchiveBuildInProgressError(ConflictError):
    """Payslips for this batch are already being prepared."""


class RenderError(DomainError):
    """Raised when the drawing backend cannot produce a payslip image."""

    status_code = 500


class CompressionUnavailable(DomainError):
    """Zipping not available; downloading images individually."""

    status_code = 500


class NetworkError(DomainError):
    """Raised when the payroll service cannot be reached."""

    status_code = 502
