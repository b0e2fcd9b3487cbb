"""
Gate access endpoints: credential scans, manual employee/visitor access,
camera scan sessions, and the access log (list, CSV export, daily stats).
"""

import csv
import io
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.enums import PersonType, Direction, AccessMethod
from app.schemas.access_event import (
    AccessEventOut, AccessStatsOut, CredentialIn, EmployeeAccessIn, QrScanIn,
    ResolvedCredentialOut, ScanSessionOpenIn, ScanSessionOut, ScanSubmitIn,
    VisitorAccessIn, to_event_out,
)
from app.services import access_log
from app.services.access_log import AccessLogFilter
from app.services.credential_resolver import resolve_credential
from app.services.directory_client import IdentityDirectory, get_directory
from app.services.scan_session import scan_sessions
from app.utils.cpf import format_cpf
from app.utils.site_time import day_window, site_today, to_site_time

router = APIRouter()

EXPORT_COLUMNS = ["timestamp", "person_type", "person_id", "person_name", "person_cpf",
                  "direction", "access_method", "location", "verified_by", "notes"]


# ── Credentials ──────────────────────────────────────────────────────────────
@router.post("/access/credentials/resolve", response_model=ResolvedCredentialOut,
             summary="Resolve a scanned/typed credential")
async def resolve(body: CredentialIn, directory: IdentityDirectory = Depends(get_directory)):
    """Read-only lookup, writes nothing. 404 when the credential is unknown."""
    return await resolve_credential(body.token, directory)


@router.post("/access/qr-code", response_model=AccessEventOut, summary="Record access from a QR scan")
async def qr_code_access(body: QrScanIn, db: Session = Depends(get_db),
                         directory: IdentityDirectory = Depends(get_directory)):
    """Direction is inferred from today's log when omitted (inside → exit, else entry)."""
    event = await access_log.record_credential_access(
        db, directory, body.token, body.direction, location=body.location, notes=body.notes)
    return to_event_out(event)


# ── Manual access ────────────────────────────────────────────────────────────
@router.post("/access/employee", response_model=AccessEventOut, summary="Record employee entry/exit")
async def employee_access(body: EmployeeAccessIn, db: Session = Depends(get_db),
                          directory: IdentityDirectory = Depends(get_directory)):
    event = await access_log.record_employee_access(
        db, directory, body.employee_id, body.direction, access_method=body.access_method,
        location=body.location, verified_by=body.verified_by, notes=body.notes)
    return to_event_out(event)


@router.post("/access/visitor", response_model=AccessEventOut, summary="Record visitor entry/exit")
def visitor_access(body: VisitorAccessIn, db: Session = Depends(get_db)):
    """An entry also increments the visitor's total_visits (same transaction)."""
    event = access_log.record_visitor_access(
        db, body.visitor_id, body.direction, access_method=body.access_method,
        location=body.location, verified_by=body.verified_by, notes=body.notes)
    return to_event_out(event)


# ── Scan sessions ────────────────────────────────────────────────────────────
@router.post("/access/scan-sessions", response_model=ScanSessionOut, summary="Open a camera scan session")
def open_scan_session(body: Optional[ScanSessionOpenIn] = None):
    session = scan_sessions.open(location=body.location if body else None)
    return ScanSessionOut.model_validate(session)


@router.post("/access/scan-sessions/{session_id}/submit", response_model=AccessEventOut,
             summary="Submit a decoded QR payload to a scan session")
async def submit_scan(session_id: str, body: ScanSubmitIn, db: Session = Depends(get_db),
                      directory: IdentityDirectory = Depends(get_directory)):
    event = await scan_sessions.submit(db, directory, session_id, body.token, body.direction)
    return to_event_out(event)


@router.delete("/access/scan-sessions/{session_id}", response_model=ScanSessionOut,
               summary="Cancel a camera scan session")
def cancel_scan_session(session_id: str):
    """Any resolve still in flight is discarded; no event will be written."""
    return ScanSessionOut.model_validate(scan_sessions.cancel(session_id))


# ── Access log ───────────────────────────────────────────────────────────────
def _log_filter(person_type: Optional[PersonType] = None, direction: Optional[Direction] = None,
                access_method: Optional[AccessMethod] = None, person_id: Optional[str] = None,
                start_date: Optional[date] = None, end_date: Optional[date] = None,
                search: Optional[str] = None) -> AccessLogFilter:
    """Query params shared by list and export. Dates are site-local days, end inclusive."""
    return AccessLogFilter(
        person_type=person_type,
        person_id=person_id,
        direction=direction,
        access_method=access_method,
        date_from=day_window(start_date)[0] if start_date else None,
        date_to=day_window(end_date)[1] if end_date else None,
        text_search=search,
    )


@router.get("/access/logs", response_model=list[AccessEventOut], summary="Access log — filterable")
def list_access_logs(limit: int = settings.ACCESS_LOG_DEFAULT_LIMIT, offset: int = 0,
                     f: AccessLogFilter = Depends(_log_filter), db: Session = Depends(get_db)):
    """Newest first. Filter by person_type, direction, access_method, person_id, dates, text."""
    f.limit = min(max(limit, 1), 1000)
    f.offset = max(offset, 0)
    return [to_event_out(e) for e in access_log.query(db, f)]


@router.get("/access/logs/export", summary="Access log — CSV export")
def export_access_logs(f: AccessLogFilter = Depends(_log_filter), db: Session = Depends(get_db)):
    events = access_log.query(db, f)

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    for e in events:
        writer.writerow([
            to_site_time(e.timestamp).strftime("%Y-%m-%d %H:%M:%S"), e.person_type, e.person_id,
            e.person_name or "", format_cpf(e.person_cpf) or "", e.direction, e.access_method,
            e.location, e.verified_by or "", e.notes or "",
        ])
    buffer.seek(0)

    stamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    return StreamingResponse(
        iter([buffer.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="access_log_{stamp}.csv"'},
    )


@router.get("/access/stats", response_model=AccessStatsOut, summary="Daily access statistics")
def access_stats(target_date: Optional[date] = Query(None, alias="date"), db: Session = Depends(get_db)):
    """Entries/exits per person type and access-method share for one site-local day."""
    return access_log.daily_stats(db, target_date or site_today())
