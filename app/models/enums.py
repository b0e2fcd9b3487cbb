# app/models/enums.py
"""
Closed vocabularies shared by models, schemas and services.
Stored as plain strings in the DB; str-Enums compare equal to their values.
"""

from enum import Enum


class PersonType(str, Enum):
    EMPLOYEE = "employee"
    VISITOR = "visitor"
    VEHICLE = "vehicle"


class Direction(str, Enum):
    ENTRY = "entry"
    EXIT = "exit"

    @property
    def opposite(self) -> "Direction":
        return Direction.EXIT if self is Direction.ENTRY else Direction.ENTRY


class AccessMethod(str, Enum):
    QR_CODE = "qr_code"
    MANUAL = "manual"
    FACIAL_RECOGNITION = "facial_recognition"


class ChecklistStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"


class MovementStatus(str, Enum):
    AVAILABLE = "available"
    IN_TRANSIT = "in_transit"


class DirectionPolicy(str, Enum):
    """What to do when a person repeats their latest direction (entry, entry)."""
    ALLOW = "allow"
    WARN = "warn"
    REJECT = "reject"
