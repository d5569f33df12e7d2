class TicketServiceError(RuntimeError):
    """Base error for ticket service issues."""


class TicketNotFoundError(TicketServiceError):
    """Raised when an operation targets a non-existent ticket."""


class AttachmentNotFoundError(TicketNotFoundError):
    """Raised when a referenced attachment does not exist for the ticket."""


class InvalidStatusError(TicketServiceError):
    """Raised when the requested status is not an allowed target."""


class EmptyInputError(TicketServiceError):
    """Raised when required free text is blank."""


class InvalidCriteriaError(TicketServiceError):
    """Raised when list criteria are malformed (unknown bucket, page < 1, ...)."""


class BackendUnavailableError(TicketServiceError):
    """Raised when the storage backend cannot be reached or fails mid-operation."""
