"""Occupancy: who/what is on site, folded from the access log on demand."""

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.occupancy import OccupancySnapshotOut
from app.services.occupancy_service import get_occupancy_snapshot
from app.utils.site_time import site_today

router = APIRouter()


@router.get("/occupancy", response_model=OccupancySnapshotOut, summary="Occupancy snapshot for a day")
def occupancy(target_date: Optional[date] = Query(None, alias="date"), as_of: Optional[datetime] = None,
              db: Session = Depends(get_db)):
    """
    Employees and visitors inside, vehicles on site / in transit.
    `as_of` defaults to now (today) or end of day (past dates); naive values are UTC.

    Folded from the requested day only: a vehicle that left on an earlier day and
    has not returned is not in `vehicles_away`. Use GET /vehicle-movements/in-transit
    for the authoritative list of vehicles out.
    """
    day = target_date or site_today()
    p = get_occupancy_snapshot(db, day, as_of)
    return {
        "date": day,
        "as_of": p.as_of,
        "employees_inside": len(p.employees_inside),
        "visitors_inside": len(p.visitors_inside),
        "vehicles_in_transit": len(p.vehicles_in_transit),
        "vehicles_on_site": len(p.vehicles_on_site),
        "employees": p.employees_inside,
        "visitors": p.visitors_inside,
        "vehicles_away": p.vehicles_in_transit,
        "vehicles_present": p.vehicles_on_site,
        "net_balance": p.net_balance,
        "unmatched_exits": p.unmatched_exits,
    }
