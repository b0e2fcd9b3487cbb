# app/services/directory_client.py
"""
Identity Directory client: read-only lookups against the fleet console REST
backend (employees, vehicles, drivers). This subsystem owns none of those records.

Endpoints used (relative to settings.DIRECTORY_URL):
  GET /employees/{id}        GET /employees?cpf={digits}
  GET /vehicles/{id}         GET /vehicles?plate={plate}
  GET /drivers/{id}

transport error, timeout, 5xx, malformed body (bad JSON, record without id)
                  → DirectoryUnavailable (request fails, nothing written)
"""

import re
from dataclasses import dataclass
from typing import Optional, Any

import httpx

from app.config import settings
from app.services.exceptions import DirectoryUnavailable
from app.utils.cpf import normalize_cpf, looks_like_cpf
from app.utils.logger import get_logger

logger = get_logger(__name__)

# Old (ABC-1234) and Mercosul (ABC1D23) plate layouts
_PLATE_RE = re.compile(r"^[A-Z]{3}-?\d[A-Z0-9]\d{2}$")


@dataclass
class DirectoryEmployee:
    id: str
    name: str
    cpf: Optional[str] = None
    is_active: bool = True


@dataclass
class DirectoryVehicle:
    id: str
    plate: str
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.plate} - {self.name}" if self.name else self.plate


@dataclass
class DirectoryDriver:
    id: str
    name: str
    status: Optional[str] = None


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    """First present key; the console mixes camelCase and snake_case payloads."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


def _unwrap(payload: Any) -> Optional[dict]:
    """Accept a bare object, {"data": obj}, or a list (first match)."""
    if isinstance(payload, dict) and "data" in payload and "id" not in payload:
        payload = payload["data"]
    if isinstance(payload, list):
        return payload[0] if payload else None
    return payload if isinstance(payload, dict) else None


def is_plate(value: str) -> bool:
    return bool(_PLATE_RE.match(value.strip().upper()))


class IdentityDirectory:
    """
    Async HTTP client for the Identity Directory.
    `transport` is only for tests (httpx.MockTransport).
    """

    def __init__(self, base_url: str = None, api_key: Optional[str] = None,
                 timeout: float = None, transport: httpx.AsyncBaseTransport = None):
        self.base_url = (base_url or settings.DIRECTORY_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.DIRECTORY_API_KEY
        self.timeout = timeout or settings.DIRECTORY_TIMEOUT_SECONDS
        self._transport = transport

    async def _get(self, path: str, params: dict = None) -> Optional[dict]:
        headers = {"X-API-Key": self.api_key} if self.api_key else {}
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout,
                                         headers=headers, transport=self._transport) as client:
                response = await client.get(path, params=params)
        except httpx.TimeoutException as e:
            logger.error(f"[DIRECTORY] Timeout on GET {path}: {e}")
            raise DirectoryUnavailable(f"Identity directory timed out on {path}") from e
        except httpx.TransportError as e:
            logger.error(f"[DIRECTORY] Unreachable on GET {path}: {e}")
            raise DirectoryUnavailable(f"Identity directory unreachable: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 500:
            logger.error(f"[DIRECTORY] GET {path} returned HTTP {response.status_code}")
            raise DirectoryUnavailable(f"Identity directory returned HTTP {response.status_code}")
        if response.status_code != 200:
            logger.warning(f"[DIRECTORY] GET {path} returned HTTP {response.status_code} — treated as not found")
            return None
        try:
            data = _unwrap(response.json())
        except ValueError as e:
            raise DirectoryUnavailable(f"Identity directory sent invalid JSON for {path}") from e
        if data is not None and data.get("id") is None:
            logger.error(f"[DIRECTORY] GET {path} returned a record without an id")
            raise DirectoryUnavailable(f"Identity directory sent a record without an id for {path}")
        return data

    async def lookup_employee(self, id_or_cpf: str) -> Optional[DirectoryEmployee]:
        key = id_or_cpf.strip()
        if looks_like_cpf(key):
            data = await self._get("/employees", params={"cpf": normalize_cpf(key)})
        else:
            data = await self._get(f"/employees/{key}")
        if not data:
            return None
        status = _pick(data, "status", default="active")
        return DirectoryEmployee(
            id=str(data["id"]),
            name=_pick(data, "fullName", "full_name", "name", default=""),
            cpf=normalize_cpf(_pick(data, "cpf")) or None,
            is_active=bool(_pick(data, "isActive", "is_active", default=status != "inactive")),
        )

    async def lookup_vehicle(self, id_or_plate: str) -> Optional[DirectoryVehicle]:
        key = id_or_plate.strip()
        if is_plate(key):
            data = await self._get("/vehicles", params={"plate": key.upper()})
        else:
            data = await self._get(f"/vehicles/{key}")
        if not data:
            return None
        return DirectoryVehicle(
            id=str(data["id"]),
            plate=_pick(data, "plate", default=""),
            name=_pick(data, "name", "model"),
        )

    async def lookup_driver(self, driver_id: str) -> Optional[DirectoryDriver]:
        data = await self._get(f"/drivers/{driver_id.strip()}")
        if not data:
            return None
        return DirectoryDriver(
            id=str(data["id"]),
            name=_pick(data, "name", "fullName", default=""),
            status=_pick(data, "status"),
        )


_directory: Optional[IdentityDirectory] = None


def get_directory() -> IdentityDirectory:
    """FastAPI dependency: process-wide directory client (overridden in tests)."""
    global _directory
    if _directory is None:
        _directory = IdentityDirectory()
    return _directory
