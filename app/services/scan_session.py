# app/services/scan_session.py
"""
Camera scan sessions.

The gate screen opens a session when the camera starts, submits the decoded
QR payload into it, and deletes it if the operator cancels. The session owns
its lifecycle: cancelling cancels the in-flight directory lookup, and a
lookup that completes after cancellation is discarded without writing an event.

Sessions live in process memory and expire after SCAN_SESSION_TTL_SECONDS.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models.access_event import AccessEvent
from app.models.enums import Direction
from app.services import access_log
from app.services.credential_resolver import resolve_credential
from app.services.directory_client import IdentityDirectory
from app.services.exceptions import ScanCancelled, ScanSessionNotFound
from app.utils.logger import get_logger

logger = get_logger(__name__)

OPEN = "open"
RESOLVING = "resolving"
COMPLETED = "completed"
CANCELLED = "cancelled"


@dataclass
class ScanSession:
    id: str
    location: Optional[str] = None
    state: str = OPEN
    opened_at: datetime = field(default_factory=datetime.utcnow)
    event_id: Optional[int] = None
    _task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def is_cancelled(self) -> bool:
        return self.state == CANCELLED


class ScanSessionRegistry:

    def __init__(self, ttl_seconds: int = None):
        self.ttl = timedelta(seconds=ttl_seconds or settings.SCAN_SESSION_TTL_SECONDS)
        self._sessions: dict[str, ScanSession] = {}

    @property
    def open_count(self) -> int:
        return len(self._sessions)

    def _prune(self):
        cutoff = datetime.utcnow() - self.ttl
        for sid in [s.id for s in self._sessions.values() if s.opened_at < cutoff]:
            session = self._sessions.pop(sid)
            if session._task is not None and not session._task.done():
                session._task.cancel()
            logger.debug(f"[SCAN] Session {sid} expired")

    def open(self, location: Optional[str] = None) -> ScanSession:
        self._prune()
        session = ScanSession(id=uuid.uuid4().hex, location=location)
        self._sessions[session.id] = session
        logger.info(f"[SCAN] Session {session.id} opened at {location or settings.SITE_LOCATION}")
        return session

    def get(self, session_id: str) -> ScanSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise ScanSessionNotFound(f"Scan session {session_id} not found or expired")
        return session

    def cancel(self, session_id: str) -> ScanSession:
        session = self.get(session_id)
        if session.state == COMPLETED:
            return session
        session.state = CANCELLED
        if session._task is not None and not session._task.done():
            session._task.cancel()
        self._sessions.pop(session_id, None)
        logger.info(f"[SCAN] Session {session_id} cancelled by operator")
        return session

    async def submit(self, db: Session, directory: IdentityDirectory, session_id: str, token: str,
                     direction: Optional[Direction] = None) -> AccessEvent:
        session = self.get(session_id)
        if session.state != OPEN:
            raise ScanCancelled(f"Scan session {session_id} is {session.state}")

        session.state = RESOLVING
        session._task = asyncio.create_task(resolve_credential(token, directory))
        try:
            credential = await session._task
        except asyncio.CancelledError:
            if not session.is_cancelled:
                raise
            credential = None
        except Exception:
            if not session.is_cancelled:
                session.state = OPEN     # operator may rescan after a denial
            raise
        finally:
            session._task = None

        if session.is_cancelled or credential is None:
            logger.info(f"[SCAN] Session {session_id} cancelled during resolve — result discarded")
            raise ScanCancelled(f"Scan session {session_id} was cancelled")

        try:
            event = access_log.record_resolved_access(db, credential, direction, location=session.location)
        except Exception:
            session.state = OPEN
            raise
        session.state = COMPLETED
        session.event_id = event.id
        self._sessions.pop(session_id, None)
        return event


scan_sessions = ScanSessionRegistry()
