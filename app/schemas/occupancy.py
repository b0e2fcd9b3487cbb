# app/schemas/occupancy.py
from pydantic import BaseModel
from datetime import datetime, date
from typing import Optional


class OccupantOut(BaseModel):
    person_type: str
    person_id: str
    person_name: Optional[str]
    since: datetime
    location: Optional[str] = None
    event_id: Optional[int] = None

    class Config:
        from_attributes = True


class OccupancySnapshotOut(BaseModel):
    date: date
    as_of: datetime
    employees_inside: int
    visitors_inside: int
    vehicles_in_transit: int
    vehicles_on_site: int
    employees: list[OccupantOut]
    visitors: list[OccupantOut]
    vehicles_away: list[OccupantOut]
    vehicles_present: list[OccupantOut]
    net_balance: dict[str, int]          # raw entries − exits, may be negative
    unmatched_exits: list[OccupantOut]
