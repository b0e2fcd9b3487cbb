# app/services/access_log.py
"""
Access Event Log: append-only record of employee, visitor and vehicle
entries/exits at the gate.

How it works:
  - Every write goes through stage_event: timestamp from the EventClock,
    INSERT, flush. Nothing in this module updates or deletes an event.
  - Visitor entries stage the event AND bump the visitor counter in one
    transaction (unit_of_work), so the log and total_visits cannot diverge.
  - Repeated directions (entry, entry) are governed by settings.DIRECTION_POLICY,
    checked inside the same transaction as the INSERT.
  - query() is the single read path used by the log screen, export and stats.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import or_, func
from sqlalchemy.orm import Session

from app.config import settings
from app.database import unit_of_work
from app.models.access_event import AccessEvent
from app.models.enums import PersonType, Direction, AccessMethod, DirectionPolicy
from app.services import visitor_registrar
from app.services.credential_resolver import resolve_credential
from app.services.directory_client import IdentityDirectory
from app.services.event_clock import event_clock
from app.services.exceptions import DirectionRejected, EmployeeNotFound, VisitorInactive
from app.utils.site_time import day_window, site_today
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AccessEventDraft:
    person_type: PersonType
    person_id: str
    direction: Direction
    access_method: AccessMethod = AccessMethod.MANUAL
    person_name: Optional[str] = None
    person_cpf: Optional[str] = None
    location: Optional[str] = None
    verified_by: Optional[str] = None
    driver_id: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class AccessLogFilter:
    person_type: Optional[PersonType] = None
    person_id: Optional[str] = None
    direction: Optional[Direction] = None
    access_method: Optional[AccessMethod] = None
    date_from: Optional[datetime] = None     # inclusive
    date_to: Optional[datetime] = None       # exclusive
    text_search: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0


# ── Writes ────────────────────────────────────────────────────────────────────

def stage_event(db: Session, draft: AccessEventDraft) -> AccessEvent:
    """INSERT without committing; the caller's unit_of_work owns the transaction."""
    event = AccessEvent(
        person_type=PersonType(draft.person_type).value,
        person_id=str(draft.person_id),
        person_name=draft.person_name,
        person_cpf=draft.person_cpf,
        direction=Direction(draft.direction).value,
        access_method=AccessMethod(draft.access_method).value,
        location=draft.location or settings.SITE_LOCATION,
        timestamp=event_clock.next_timestamp(db),
        verified_by=draft.verified_by,
        driver_id=draft.driver_id,
        notes=draft.notes,
    )
    db.add(event)
    db.flush()
    return event


def append(db: Session, draft: AccessEventDraft, check_repeat: bool = False) -> AccessEvent:
    """
    Assign id + timestamp, persist, return the stored fact. With check_repeat
    the direction policy is applied in the same transaction as the INSERT.
    """
    with unit_of_work(db):
        if check_repeat:
            check_direction(db, draft.person_type, draft.person_id, draft.direction)
        event = stage_event(db, draft)
    log_event(event)
    return event


def log_event(event: AccessEvent):
    logger.info(
        f"[ACCESS] {event.direction.upper()} | {event.person_type}={event.person_id} "
        f"| {event.person_name or '-'} | {event.access_method} @ {event.location}"
    )


def latest_event(db: Session, person_type: PersonType, person_id: str,
                 since: Optional[datetime] = None, for_update: bool = False) -> Optional[AccessEvent]:
    q = db.query(AccessEvent).filter(
        AccessEvent.person_type == PersonType(person_type).value,
        AccessEvent.person_id == str(person_id),
    )
    if since is not None:
        q = q.filter(AccessEvent.timestamp >= since)
    q = q.order_by(AccessEvent.timestamp.desc(), AccessEvent.id.desc())
    if for_update:
        q = q.with_for_update()
    return q.first()


def check_direction(db: Session, person_type: PersonType, person_id: str, direction: Direction,
                    policy: Optional[str] = None):
    """
    Apply the repeated-direction policy against the person's latest event.
    Call inside the writing unit_of_work: the latest row is locked (FOR UPDATE
    where the database supports it) until the new event commits.
    """
    policy = DirectionPolicy(policy or settings.DIRECTION_POLICY)
    if policy is DirectionPolicy.ALLOW:
        return
    last = latest_event(db, person_type, person_id, for_update=True)
    if last is None or last.direction != Direction(direction).value:
        return
    msg = (f"{PersonType(person_type).value} {person_id} already has a {last.direction} "
           f"recorded at {last.timestamp:%Y-%m-%d %H:%M:%S}")
    if policy is DirectionPolicy.REJECT:
        logger.warning(f"[ACCESS] Rejected repeated {last.direction}: {msg}")
        raise DirectionRejected(msg)
    logger.warning(f"[ACCESS] Repeated {last.direction} accepted: {msg}")


def infer_direction(db: Session, person_type: PersonType, person_id: str) -> Direction:
    """Exit if the person's latest event today is an entry, otherwise entry."""
    start, _ = day_window(site_today())
    last = latest_event(db, person_type, person_id, since=start)
    if last is not None and last.direction == Direction.ENTRY.value:
        return Direction.EXIT
    return Direction.ENTRY


async def record_employee_access(db: Session, directory: IdentityDirectory, employee_id: str,
                                 direction: Direction,
                                 access_method: AccessMethod = AccessMethod.MANUAL,
                                 location: Optional[str] = None, verified_by: Optional[str] = None,
                                 notes: Optional[str] = None) -> AccessEvent:
    employee = await directory.lookup_employee(employee_id)
    if employee is None:
        logger.warning(f"[ACCESS] Denied — employee {employee_id!r} not in directory")
        raise EmployeeNotFound(f"Employee {employee_id} not found")

    return append(db, AccessEventDraft(
        person_type=PersonType.EMPLOYEE,
        person_id=employee.id,
        person_name=employee.name,
        person_cpf=employee.cpf,
        direction=direction,
        access_method=access_method,
        location=location,
        verified_by=verified_by,
        notes=notes,
    ), check_repeat=True)


def record_visitor_access(db: Session, visitor_id: int, direction: Direction,
                          access_method: AccessMethod = AccessMethod.MANUAL,
                          location: Optional[str] = None, verified_by: Optional[str] = None,
                          notes: Optional[str] = None) -> AccessEvent:
    direction = Direction(direction)
    with unit_of_work(db):
        visitor = visitor_registrar.get_visitor(db, visitor_id)
        if direction is Direction.ENTRY and not visitor.is_active:
            logger.warning(f"[ACCESS] Denied — visitor {visitor.id} is inactive")
            raise VisitorInactive(f"Visitor {visitor.name} is inactive and cannot enter")
        check_direction(db, PersonType.VISITOR, str(visitor.id), direction)
        event = stage_event(db, AccessEventDraft(
            person_type=PersonType.VISITOR,
            person_id=str(visitor.id),
            person_name=visitor.name,
            person_cpf=visitor.cpf,
            direction=direction,
            access_method=access_method,
            location=location,
            verified_by=verified_by,
            notes=notes,
        ))
        if direction is Direction.ENTRY:
            visitor_registrar.record_visit(db, visitor.id)
    log_event(event)
    return event


async def record_credential_access(db: Session, directory: IdentityDirectory, token: str,
                                   direction: Optional[Direction] = None,
                                   location: Optional[str] = None,
                                   notes: Optional[str] = None) -> AccessEvent:
    """Scanned QR → resolved employee → event. Nothing is written on a failed resolve."""
    credential = await resolve_credential(token, directory)
    return record_resolved_access(db, credential, direction, location=location, notes=notes)


def record_resolved_access(db: Session, credential, direction: Optional[Direction] = None,
                           location: Optional[str] = None, notes: Optional[str] = None) -> AccessEvent:
    with unit_of_work(db):
        if direction is None:
            direction = infer_direction(db, credential.person_type, credential.person_id)
        check_direction(db, credential.person_type, credential.person_id, direction)
        event = stage_event(db, AccessEventDraft(
            person_type=credential.person_type,
            person_id=credential.person_id,
            person_name=credential.person_name,
            person_cpf=credential.person_cpf,
            direction=direction,
            access_method=AccessMethod.QR_CODE,
            location=location,
            notes=notes,
        ))
    log_event(event)
    return event


# ── Reads ─────────────────────────────────────────────────────────────────────

def _filtered(db: Session, f: AccessLogFilter):
    q = db.query(AccessEvent)
    if f.person_type:
        q = q.filter(AccessEvent.person_type == PersonType(f.person_type).value)
    if f.person_id:
        q = q.filter(AccessEvent.person_id == str(f.person_id))
    if f.direction:
        q = q.filter(AccessEvent.direction == Direction(f.direction).value)
    if f.access_method:
        q = q.filter(AccessEvent.access_method == AccessMethod(f.access_method).value)
    if f.date_from:
        q = q.filter(AccessEvent.timestamp >= f.date_from)
    if f.date_to:
        q = q.filter(AccessEvent.timestamp < f.date_to)
    if f.text_search:
        term = f"%{f.text_search.strip()}%"
        q = q.filter(or_(
            AccessEvent.person_name.ilike(term),
            AccessEvent.person_cpf.ilike(term),
            AccessEvent.location.ilike(term),
            AccessEvent.notes.ilike(term),
        ))
    return q


def query(db: Session, f: AccessLogFilter) -> list[AccessEvent]:
    """Newest first. limit=None returns everything (callers should bound it)."""
    q = _filtered(db, f).order_by(AccessEvent.timestamp.desc(), AccessEvent.id.desc())
    if f.offset:
        q = q.offset(f.offset)
    if f.limit is not None:
        q = q.limit(f.limit)
    return q.all()


def events_between(db: Session, start: datetime, end: datetime) -> list[AccessEvent]:
    """Window [start, end) oldest first, the input of the occupancy fold."""
    return (
        db.query(AccessEvent)
        .filter(AccessEvent.timestamp >= start, AccessEvent.timestamp < end)
        .order_by(AccessEvent.timestamp, AccessEvent.id)
        .all()
    )


def daily_stats(db: Session, day: date) -> dict:
    start, end = day_window(day)
    rows = (
        db.query(AccessEvent.person_type, AccessEvent.direction, AccessEvent.access_method,
                 func.count(AccessEvent.id))
        .filter(AccessEvent.timestamp >= start, AccessEvent.timestamp < end)
        .group_by(AccessEvent.person_type, AccessEvent.direction, AccessEvent.access_method)
        .all()
    )
    by_type = {t.value: {"entries": 0, "exits": 0} for t in PersonType}
    by_method = {m.value: 0 for m in AccessMethod}
    total = 0
    for person_type, direction, method, count in rows:
        key = "entries" if direction == Direction.ENTRY.value else "exits"
        by_type.setdefault(person_type, {"entries": 0, "exits": 0})[key] += count
        by_method[method] = by_method.get(method, 0) + count
        total += count

    return {
        "date": str(day),
        "total_events": total,
        "entries": sum(v["entries"] for v in by_type.values()),
        "exits": sum(v["exits"] for v in by_type.values()),
        "by_person_type": by_type,
        "by_access_method": by_method,
        "qr_code_percent": round(by_method[AccessMethod.QR_CODE.value] / max(1, total) * 100, 1),
    }
