"""Error taxonomy for the restock engine."""

from uuid import UUID


class RestockError(Exception):
    """Base class for all engine errors."""

    error_code = "ERROR"


class ValidationError(RestockError, ValueError):
    """Raised when input is malformed. Nothing has been mutated."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ReceiptAlreadyProcessedError(RestockError):
    """Raised when reconciliation is attempted on a processed receipt."""

    error_code = "RECEIPT_ALREADY_PROCESSED"

    def __init__(self, receipt_id: UUID | str):
        self.receipt_id = receipt_id
        super().__init__(f"Receipt '{receipt_id}' has already been processed")


class NotFoundError(RestockError):
    """Raised when an id does not refer to a known record."""

    error_code = "NOT_FOUND"

    def __init__(self, kind: str, record_id: UUID | str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} with ID '{record_id}' not found")


class ConcurrencyConflictError(RestockError):
    """Raised when an optimistic revision check fails on write."""

    error_code = "CONCURRENCY_CONFLICT"

    def __init__(self, item_id: UUID | str, expected: int, actual: int | None):
        self.item_id = item_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Item '{item_id}' changed concurrently "
            f"(expected revision {expected}, found {actual})"
        )
