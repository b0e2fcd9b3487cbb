# app/services/event_clock.py
"""Server-side timestamp source for access events."""

import threading
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.access_event import AccessEvent

TICK = timedelta(microseconds=1)


class EventClock:
    """
    Hands out strictly increasing naive-UTC timestamps.
    Never behind the newest stored event, so a clock step backwards (NTP) or a
    second worker process cannot reorder the log.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._last = None

    def next_timestamp(self, db: Session) -> datetime:
        with self._lock:
            stored = db.query(func.max(AccessEvent.timestamp)).scalar()
            ts = datetime.utcnow()
            for floor in (self._last, stored):
                if floor is not None and ts <= floor:
                    ts = floor + TICK
            self._last = ts
            return ts


event_clock = EventClock()
