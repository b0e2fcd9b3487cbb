"""
System health check endpoint.
Returns status of backend + DB + Identity Directory reachability.
"""

import requests
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from app.database import get_db
from app.config import settings
from app.services.scan_session import scan_sessions
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Identity Directory reachability (any non-5xx answer counts as up)
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "directory": "unknown",
        "direction_policy": settings.DIRECTION_POLICY,
        "open_scan_sessions": scan_sessions.open_count,
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    headers = {"X-API-Key": settings.DIRECTORY_API_KEY} if settings.DIRECTORY_API_KEY else {}
    try:
        resp = requests.get(settings.DIRECTORY_URL, headers=headers, timeout=3)
        if resp.status_code < 500:
            result["directory"] = "ok"
        else:
            result["directory"] = f"http_{resp.status_code}"
            result["status"] = "degraded"
    except requests.exceptions.ConnectionError:
        result["directory"] = "unreachable"
        result["status"] = "degraded"
    except requests.exceptions.RequestException as e:
        result["directory"] = f"error: {str(e)}"
        result["status"] = "degraded"

    return result
