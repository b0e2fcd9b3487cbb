# app/schemas/access_event.py
from pydantic import BaseModel, Field, AliasChoices
from datetime import datetime, date
from typing import Optional, Literal, Union

from app.models.enums import Direction, AccessMethod, PersonType


# ── Requests ─────────────────────────────────────────────────────────────────
class EmployeeAccessIn(BaseModel):
    employee_id: str = Field(validation_alias=AliasChoices("employee_id", "employeeId"))
    direction: Direction
    access_method: AccessMethod = AccessMethod.MANUAL
    location: Optional[str] = None
    verified_by: Optional[str] = None
    notes: Optional[str] = None


class VisitorAccessIn(BaseModel):
    visitor_id: int = Field(validation_alias=AliasChoices("visitor_id", "visitorId"))
    direction: Direction
    access_method: AccessMethod = AccessMethod.MANUAL
    location: Optional[str] = None
    verified_by: Optional[str] = None
    notes: Optional[str] = None


class CredentialIn(BaseModel):
    # The gate screens have sent the payload as qrData / qrCode over time
    token: str = Field(validation_alias=AliasChoices("token", "qrData", "qrCode"))


class QrScanIn(CredentialIn):
    direction: Optional[Direction] = None     # inferred from today's log when omitted
    location: Optional[str] = None
    notes: Optional[str] = None


class ScanSubmitIn(CredentialIn):
    direction: Optional[Direction] = None


class ScanSessionOpenIn(BaseModel):
    location: Optional[str] = None


# ── Responses ────────────────────────────────────────────────────────────────
class ResolvedCredentialOut(BaseModel):
    person_type: PersonType
    person_id: str
    person_name: str
    person_cpf: Optional[str] = None

    class Config:
        from_attributes = True


class _AccessEventBase(BaseModel):
    id: int
    person_id: str
    person_name: Optional[str]
    direction: Direction
    access_method: AccessMethod
    location: str
    timestamp: datetime
    verified_by: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class EmployeeAccessEventOut(_AccessEventBase):
    person_type: Literal["employee"] = "employee"
    person_cpf: Optional[str] = None


class VisitorAccessEventOut(_AccessEventBase):
    person_type: Literal["visitor"] = "visitor"
    person_cpf: Optional[str] = None


class VehicleAccessEventOut(_AccessEventBase):
    person_type: Literal["vehicle"] = "vehicle"
    driver_id: Optional[str] = None


AccessEventOut = Union[EmployeeAccessEventOut, VisitorAccessEventOut, VehicleAccessEventOut]

_VARIANTS = {
    PersonType.EMPLOYEE.value: EmployeeAccessEventOut,
    PersonType.VISITOR.value: VisitorAccessEventOut,
    PersonType.VEHICLE.value: VehicleAccessEventOut,
}


def to_event_out(event) -> AccessEventOut:
    """Pick the variant by person_type so each shape only carries its own fields."""
    return _VARIANTS[event.person_type].model_validate(event)


class ScanSessionOut(BaseModel):
    id: str
    state: str
    location: Optional[str]
    opened_at: datetime
    event_id: Optional[int] = None

    class Config:
        from_attributes = True


class PersonTypeCounts(BaseModel):
    entries: int
    exits: int


class AccessStatsOut(BaseModel):
    date: date
    total_events: int
    entries: int
    exits: int
    by_person_type: dict[str, PersonTypeCounts]
    by_access_method: dict[str, int]
    qr_code_percent: float
