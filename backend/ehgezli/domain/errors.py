class DomainError(Exception):
    """Base class for booking domain failures.

    ``kind`` is the machine-readable name returned to clients and
    ``status_code`` the HTTP status the routers map it to.
    """

    kind = "DomainError"
    status_code = 400

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind


class BranchNotFoundError(DomainError):
    kind = "BranchNotFound"
    status_code = 404


class BookingNotFoundError(DomainError):
    kind = "BookingNotFound"
    status_code = 404


class OverrideNotFoundError(DomainError):
    kind = "OverrideNotFound"
    status_code = 404


class InvalidSlotError(DomainError):
    kind = "InvalidSlot"
    status_code = 400


class InvalidPartySizeError(DomainError):
    kind = "InvalidPartySize"
    status_code = 400


class CapacityExceededError(DomainError):
    kind = "CapacityExceeded"
    status_code = 409


class InvalidTransitionError(DomainError):
    kind = "InvalidTransition"
    status_code = 409


class VersionConflictError(DomainError):
    kind = "VersionConflict"
    status_code = 409


class ForbiddenError(DomainError):
    kind = "Forbidden"
    status_code = 403


class UnauthenticatedError(DomainError):
    kind = "Unauthenticated"
    status_code = 401
