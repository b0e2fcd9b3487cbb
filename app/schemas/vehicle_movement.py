# app/schemas/vehicle_movement.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from app.models.enums import ChecklistStatus, MovementStatus


class ChecklistSubmitIn(BaseModel):
    driver_id: str
    checklist_id: str


class ChecklistApproveIn(BaseModel):
    verified_by: Optional[str] = None


class ExitAuthorizeIn(BaseModel):
    driver_id: str
    destination: str
    verified_by: Optional[str] = None
    location: Optional[str] = None


class ReturnRegisterIn(BaseModel):
    driver_id: str
    origin_base: str
    verified_by: Optional[str] = None
    location: Optional[str] = None


class MovementOut(BaseModel):
    vehicle_id: str
    driver_id: Optional[str]
    checklist_id: Optional[str]
    checklist_status: ChecklistStatus
    checklist_date: Optional[datetime]
    checklist_verified_by: Optional[str] = None
    status: MovementStatus
    destination: Optional[str]
    origin_base: Optional[str]
    exit_time: Optional[datetime]
    return_time: Optional[datetime] = None
    version: int

    class Config:
        from_attributes = True
