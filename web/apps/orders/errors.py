"""Error taxonomy for the orders pipeline.

Every error carries a stable upper-case ``code``; ``str(exc)`` returns that
code so views and tests can match on it the same way they match on
``ValueError("EMPTY_ORDER")``-style errors. Additional context (the failing
slot, the underlying cause) lives on attributes.
"""


class OrderError(Exception):
    """Base class for all errors raised by the orders pipeline."""

    code = "ORDER_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(self.code)
        self.message = message or self.code

    def __str__(self) -> str:
        return self.code


# ---- Validation (never retried) ----
class ValidationError(OrderError, ValueError):
    code = "VALIDATION_ERROR"


class MissingContact(ValidationError):
    code = "NAME_AND_EMAIL_REQUIRED"

    def __init__(self, message: str | None = None):
        super().__init__(message or "Name and email are required.")


class InvalidColor(ValidationError):
    code = "INVALID_COLOR"


class InvalidOrderId(ValidationError):
    code = "INVALID_ORDER_ID"


class UnknownOrderId(InvalidOrderId):
    """Well-formed identifier that no order store knows about."""

    code = "UNKNOWN_ORDER_ID"


class InvalidCoordinate(ValidationError):
    code = "INVALID_COORDINATE"


class MissingFile(ValidationError):
    code = "MISSING_FILE"


class OutOfRange(OrderError, IndexError):
    """Raised when a draft index does not address an existing element."""

    code = "OUT_OF_RANGE"


# ---- Storage ----
class PersistenceError(OrderError):
    """Storage-layer fault (disk, database, remote backend)."""

    code = "PERSISTENCE_ERROR"


# ---- Submission ----
class SubmissionError(OrderError):
    code = "SUBMISSION_ERROR"

    def __init__(self, cause: Exception | None = None, message: str | None = None):
        super().__init__(message or (str(cause) if cause else None))
        self.cause = cause


class OrderCreateFailed(SubmissionError):
    code = "ORDER_CREATE_FAILED"


class AttachmentFailed(SubmissionError):
    """An upload failed after the order record was created.

    The order record and any earlier uploads are kept; ``order_id`` lets the
    caller resubmit just the failing slot.
    """

    code = "ATTACHMENT_FAILED"

    def __init__(self, order_id: str, section_index: int, file_index: int, cause: Exception | None = None):
        super().__init__(cause)
        self.order_id = order_id
        self.section_index = section_index
        self.file_index = file_index


_BY_CODE = {
    cls.code: cls
    for cls in (MissingContact, InvalidColor, InvalidOrderId, UnknownOrderId, InvalidCoordinate, MissingFile, PersistenceError)
}


def error_for_code(code: str | None, message: str | None = None) -> OrderError:
    """Rebuild the error a remote endpoint reported as ``{"detail": code}``.

    Unknown codes map to a generic ``ValidationError``.
    """
    cls = _BY_CODE.get(code or "", ValidationError)
    return cls(message or code)
