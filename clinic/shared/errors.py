"""
Domain error kinds.

Raised by the domain services on the first failing precondition. Every error is
recoverable by the caller; the HTTP boundary in main.py maps each kind to a
status code.
"""

from typing import Optional


class DomainError(Exception):
    """Base class for all domain failures"""

    code = "domain_error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.code.replace("_", " ")
        super().__init__(self.message)


class NotFoundError(DomainError):
    code = "not_found"


class RoleMismatchError(DomainError):
    code = "role_mismatch"


class InvalidRangeError(DomainError):
    code = "invalid_range"


class OutsideAvailabilityError(DomainError):
    code = "outside_availability"


class SlotConflictError(DomainError):
    code = "slot_conflict"


class InvalidTransitionError(DomainError):
    code = "invalid_transition"


class ForbiddenError(DomainError):
    code = "forbidden"


class AppointmentNotEligibleError(DomainError):
    code = "appointment_not_eligible"


class OwnershipMismatchError(DomainError):
    code = "ownership_mismatch"


class ConflictError(DomainError):
    """Optimistic-concurrency loss: the caller's view of the row was stale"""

    code = "conflict"


class ValidationFailedError(DomainError):
    code = "validation_failed"


class EmailTakenError(ValidationFailedError):
    code = "email_taken"
