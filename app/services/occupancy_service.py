# app/services/occupancy_service.py
"""
Occupancy Projection: who/what is currently on site, derived only from the
access event log. Every screen that needs "inside now" calls this; nothing
re-derives it inline and nothing is persisted.

Algorithm (last-write-wins fold):
  for each (person_type, person_id) in the window, keep the latest event
  (timestamp, then id) at or before `as_of`; inside iff that event is an entry.
  Vehicles: latest exit → in transit, latest entry → on site.

Counts from the fold can never be negative. The raw entries − exits balance
is reported next to them, unfloored, so an exit without a matching entry
shows up as a negative balance and in `unmatched_exits` instead of being masked.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.models.enums import PersonType, Direction
from app.services.access_log import events_between
from app.utils.site_time import day_window, site_today, to_naive_utc
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Occupant:
    person_type: str
    person_id: str
    person_name: Optional[str]
    since: datetime                  # timestamp of the deciding event
    location: Optional[str] = None
    event_id: Optional[int] = None


@dataclass
class OccupancyProjection:
    as_of: Optional[datetime]
    inside: dict = field(default_factory=lambda: {t.value: [] for t in PersonType})
    outside: dict = field(default_factory=lambda: {t.value: [] for t in PersonType})
    net_balance: dict = field(default_factory=lambda: {t.value: 0 for t in PersonType})
    unmatched_exits: list = field(default_factory=list)

    @property
    def employees_inside(self) -> list[Occupant]:
        return self.inside[PersonType.EMPLOYEE.value]

    @property
    def visitors_inside(self) -> list[Occupant]:
        return self.inside[PersonType.VISITOR.value]

    @property
    def vehicles_on_site(self) -> list[Occupant]:
        return self.inside[PersonType.VEHICLE.value]

    @property
    def vehicles_in_transit(self) -> list[Occupant]:
        return self.outside[PersonType.VEHICLE.value]

    def is_inside(self, person_type: PersonType, person_id: str) -> bool:
        return any(o.person_id == str(person_id) for o in self.inside[PersonType(person_type).value])


def _value(v) -> str:
    return v.value if hasattr(v, "value") else v


def project_occupancy(events: Iterable, as_of: Optional[datetime] = None) -> OccupancyProjection:
    """
    Pure fold over any iterable of event-like objects (ORM rows or test doubles)
    with person_type, person_id, person_name, direction, timestamp, id.
    Input order does not matter.
    """
    latest = {}
    first = {}
    projection = OccupancyProjection(as_of=as_of)

    for event in events:
        if as_of is not None and event.timestamp > as_of:
            continue
        person_type = _value(event.person_type)
        key = (person_type, str(event.person_id))
        order = (event.timestamp, event.id or 0)

        if _value(event.direction) == Direction.ENTRY.value:
            projection.net_balance[person_type] = projection.net_balance.get(person_type, 0) + 1
        else:
            projection.net_balance[person_type] = projection.net_balance.get(person_type, 0) - 1

        if key not in latest or order > latest[key][0]:
            latest[key] = (order, event)
        if key not in first or order < first[key][0]:
            first[key] = (order, event)

    for key, (_, event) in latest.items():
        person_type, person_id = key
        occupant = Occupant(
            person_type=person_type,
            person_id=person_id,
            person_name=event.person_name,
            since=event.timestamp,
            location=getattr(event, "location", None),
            event_id=event.id,
        )
        bucket = projection.inside if _value(event.direction) == Direction.ENTRY.value else projection.outside
        bucket.setdefault(person_type, []).append(occupant)

        first_event = first[key][1]
        # vehicles routinely start the day parked, so a leading exit is normal for them
        if person_type != PersonType.VEHICLE.value and _value(first_event.direction) == Direction.EXIT.value:
            projection.unmatched_exits.append(Occupant(
                person_type=person_type,
                person_id=person_id,
                person_name=first_event.person_name,
                since=first_event.timestamp,
                location=getattr(first_event, "location", None),
                event_id=first_event.id,
            ))

    for occupants in (*projection.inside.values(), *projection.outside.values()):
        occupants.sort(key=lambda o: o.since)
    return projection


def get_occupancy_snapshot(db: Session, day: Optional[date] = None,
                           as_of: Optional[datetime] = None) -> OccupancyProjection:
    """
    Occupancy for a site-local day. `as_of` defaults to now for today and to
    the end of the day for past days; timezone-aware values are converted to UTC.

    Only events inside the day are folded, so a vehicle that left on an earlier
    day and has not returned is absent from `vehicles_in_transit`. The
    authoritative in-transit set is vehicle_movement_service.list_in_transit.
    """
    day = day or site_today()
    start, end = day_window(day)
    if as_of is None:
        as_of = datetime.utcnow() if day == site_today() else end
    as_of = min(to_naive_utc(as_of), end)

    events = events_between(db, start, end)
    projection = project_occupancy(events, as_of=as_of)
    logger.info(
        f"[OCCUPANCY] {day} as of {as_of:%H:%M:%S} UTC — employees={len(projection.employees_inside)} "
        f"visitors={len(projection.visitors_inside)} vehicles_in_transit={len(projection.vehicles_in_transit)} "
        f"unmatched_exits={len(projection.unmatched_exits)}"
    )
    if projection.unmatched_exits:
        logger.warning(f"[OCCUPANCY] {len(projection.unmatched_exits)} exit(s) without a prior entry on {day}")
    return projection
