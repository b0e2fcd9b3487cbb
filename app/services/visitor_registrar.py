# app/services/visitor_registrar.py
"""
Visitor Registrar: find-or-create walk-in visitors by CPF and keep their
visit counters.

CPF is the natural key: stored digits-only under a UNIQUE constraint, so two
gate stations registering the same person at once still end with one row
(the loser of the INSERT race re-reads the winner's row).
record_visit is called by access_log for visitor entries only, inside the
same transaction as the entry event.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import unit_of_work
from app.models.visitor import Visitor
from app.services.exceptions import InvalidCpf, VisitorNotFound
from app.utils.cpf import normalize_cpf, is_valid_cpf, format_cpf
from app.utils.logger import get_logger

logger = get_logger(__name__)


def _require_cpf(cpf: str) -> str:
    digits = normalize_cpf(cpf)
    if not is_valid_cpf(digits):
        raise InvalidCpf(f"CPF must have 11 digits, got {cpf!r}")
    return digits


def find_by_cpf(db: Session, cpf: str) -> Visitor:
    digits = _require_cpf(cpf)
    visitor = db.query(Visitor).filter(Visitor.cpf == digits).first()
    if not visitor:
        raise VisitorNotFound(f"No visitor registered with CPF {format_cpf(digits)}")
    return visitor


def get_visitor(db: Session, visitor_id: int) -> Visitor:
    visitor = db.get(Visitor, visitor_id)
    if not visitor:
        raise VisitorNotFound(f"Visitor {visitor_id} not found")
    return visitor


def register_or_update(db: Session, name: str, cpf: str, photo: Optional[str] = None) -> Visitor:
    """
    Returns the existing visitor unchanged when the CPF is known (repeat
    visits never overwrite name/photo; use update_visitor for that).
    Otherwise creates a new active visitor with zero visits.
    """
    digits = _require_cpf(cpf)
    existing = db.query(Visitor).filter(Visitor.cpf == digits).first()
    if existing:
        logger.info(f"[VISITOR] CPF {format_cpf(digits)} already registered as visitor {existing.id}")
        return existing

    visitor = Visitor(
        name=name.strip(),
        cpf=digits,
        photo=photo,
        total_visits=0,
        is_active=True,
        created_at=datetime.utcnow(),
    )
    try:
        with unit_of_work(db):
            db.add(visitor)
    except IntegrityError:
        # Concurrent registration of the same CPF won the INSERT
        winner = db.query(Visitor).filter(Visitor.cpf == digits).first()
        if winner is None:
            raise
        logger.info(f"[VISITOR] CPF {format_cpf(digits)} registered concurrently — using visitor {winner.id}")
        return winner

    db.refresh(visitor)
    logger.info(f"[VISITOR] Registered visitor {visitor.id}: {visitor.name} ({format_cpf(digits)})")
    return visitor


def update_visitor(db: Session, visitor_id: int, name: Optional[str] = None,
                   photo: Optional[str] = None) -> Visitor:
    """Explicit edit from the visitor form. CPF and counters are not editable."""
    visitor = get_visitor(db, visitor_id)
    with unit_of_work(db):
        if name:
            visitor.name = name.strip()
        if photo is not None:
            visitor.photo = photo
    db.refresh(visitor)
    return visitor


def record_visit(db: Session, visitor_id: int) -> Visitor:
    """
    Bump total_visits and last_visit. Does NOT commit; the caller owns the
    transaction so the counter and the entry event land together.
    """
    visitor = get_visitor(db, visitor_id)
    visitor.total_visits = (visitor.total_visits or 0) + 1
    visitor.last_visit = datetime.utcnow()
    db.flush()
    logger.info(f"[VISITOR] Visit #{visitor.total_visits} for visitor {visitor.id}")
    return visitor


def list_visitors(db: Session, search: Optional[str] = None, active_only: bool = False,
                  limit: int = 50) -> list[Visitor]:
    q = db.query(Visitor)
    if active_only:
        q = q.filter(Visitor.is_active.is_(True))
    if search:
        digits = normalize_cpf(search)
        conditions = [Visitor.name.ilike(f"%{search.strip()}%")]
        if digits:
            conditions.append(Visitor.cpf.like(f"%{digits}%"))
        q = q.filter(or_(*conditions))
    return q.order_by(Visitor.last_visit.desc().nulls_last(), Visitor.name).limit(limit).all()
