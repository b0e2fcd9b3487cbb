# app/services/exceptions.py
"""
Domain error taxonomy for the access-control subsystem.

Every error carries an `outcome` the gate UI uses to pick the operator message:
  denied      : not found / invalid input / precondition violated
  conflict    : lost a race on a vehicle row; re-read state and retry
  unavailable : directory or database down; nothing was written
app.main maps these to HTTP responses with a single exception handler.
"""


class AccessControlError(Exception):
    status_code = 400
    outcome = "denied"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    @property
    def reason(self) -> str:
        return type(self).__name__


# ── Not found ────────────────────────────────────────────────────────────────
class NotFoundError(AccessControlError):
    status_code = 404


class CredentialNotFound(NotFoundError):
    pass


class EmployeeNotFound(NotFoundError):
    pass


class VisitorNotFound(NotFoundError):
    pass


class VehicleNotFound(NotFoundError):
    pass


class DriverNotFound(NotFoundError):
    pass


class ScanSessionNotFound(NotFoundError):
    pass


# ── Invalid input ────────────────────────────────────────────────────────────
class InvalidInputError(AccessControlError):
    status_code = 422


class InvalidCredential(InvalidInputError):
    pass


class InvalidCpf(InvalidInputError):
    pass


# ── Precondition violations ──────────────────────────────────────────────────
class PreconditionError(AccessControlError):
    status_code = 409


class ExitNotAuthorized(PreconditionError):
    pass


class NotInTransit(PreconditionError):
    pass


class ChecklistRejected(PreconditionError):
    pass


class DirectionRejected(PreconditionError):
    pass


class VisitorInactive(PreconditionError):
    pass


class ScanCancelled(PreconditionError):
    pass


# ── Conflict ─────────────────────────────────────────────────────────────────
class MovementConflict(AccessControlError):
    status_code = 409
    outcome = "conflict"


# ── Collaborator unavailable ─────────────────────────────────────────────────
class UnavailableError(AccessControlError):
    status_code = 503
    outcome = "unavailable"


class DirectoryUnavailable(UnavailableError):
    pass


class StorageUnavailable(UnavailableError):
    pass
