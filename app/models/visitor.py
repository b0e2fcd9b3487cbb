# app/models/visitor.py
"""
Visitors table: walk-in visitors keyed by CPF (digits only, unique).
total_visits / last_visit are bumped once per entry by visitor_registrar.record_visit.
Rows are never deleted; is_active is a soft flag set by administration.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean
from app.database import Base


class Visitor(Base):
    __tablename__ = "visitors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    cpf = Column(String(11), unique=True, nullable=False, index=True)
    photo = Column(Text)
    total_visits = Column(Integer, default=0, nullable=False)
    last_visit = Column(DateTime)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<Visitor {self.id} cpf={self.cpf} visits={self.total_visits}>"
