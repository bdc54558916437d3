"""Exception hierarchy shared by the kyclead core."""

from __future__ import annotations


class KycLeadError(RuntimeError):
    """Base class for errors raised by kyclead."""


class ValidationError(KycLeadError):
    """Raised when a record violates an invariant at an API boundary."""


class NotFoundError(KycLeadError):
    """Raised when a lead id does not exist in the backing store."""

    def __init__(self, lead_id: str) -> None:
        super().__init__(f"Lead '{lead_id}' was not found")
        self.lead_id = lead_id


class PersistenceError(KycLeadError):
    """Backing-store failure annotated with the operation that triggered it."""

    user_message = "The lead could not be saved or loaded. Please try again."

    def __init__(self, operation: str, cause: BaseException | str) -> None:
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


class PartialWriteWarning(UserWarning):
    """Non-fatal failure inside a nested step of a partial update.

    Instances are logged and collected on the update report; they are never raised.
    """

    def __init__(self, step: str, cause: BaseException | str) -> None:
        super().__init__(f"{step} skipped: {cause}")
        self.step = step
        self.cause = cause


class NoFieldsVerifiedError(KycLeadError):
    """Raised when a verification is committed without any verified field."""

    user_message = "Please verify at least one field before saving."


__all__ = [
    "KycLeadError",
    "ValidationError",
    "NotFoundError",
    "PersistenceError",
    "PartialWriteWarning",
    "NoFieldsVerifiedError",
]
