# app/models/access_event.py
"""
Access event log table, one immutable entry/exit fact per row.
Employees, visitors and vehicles share the table, keyed by person_type.
Rows are only ever inserted (access_log.append); nothing updates or deletes them.
person_name / person_cpf are snapshots taken at event time.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Index
from app.database import Base


class AccessEvent(Base):
    __tablename__ = "access_events"
    __table_args__ = (
        Index("ix_access_events_person", "person_type", "person_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    person_type = Column(String(20), nullable=False, index=True)    # employee | visitor | vehicle
    person_id = Column(String(100), nullable=False)
    person_name = Column(String(200))
    person_cpf = Column(String(11))
    direction = Column(String(10), nullable=False, index=True)       # entry | exit
    access_method = Column(String(30), nullable=False)               # qr_code | manual | facial_recognition
    location = Column(String(200), nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)         # server-assigned by EventClock
    verified_by = Column(String(100))
    driver_id = Column(String(100))                                  # vehicle events only
    notes = Column(Text)

    def __repr__(self):
        return (f"<AccessEvent {self.id} {self.person_type}:{self.person_id} "
                f"{self.direction} @ {self.timestamp}>")
