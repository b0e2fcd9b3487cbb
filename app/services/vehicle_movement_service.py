# app/services/vehicle_movement_service.py
"""
Vehicle Movement State Machine: the gate that keeps unchecked vehicles on site.

  available ──submit_checklist──▶ checklist pending ──approve_checklist──▶ checklist approved
      ▲                                                                        │
      └──────────── register_return ◀──── in_transit ◀──── authorize_exit ─────┘

Each vehicle has one VehicleMovementStatus row, overwritten in place.
Exit and return also append a vehicle AccessEvent (exit / entry) in the SAME
transaction as the status change.

Concurrency: the row carries a version column (SQLAlchemy version_id_col).
The precondition is checked on the version we read; the UPDATE only matches
that version. If another gate station committed first, flush raises
StaleDataError → MovementConflict and nothing is written.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.database import unit_of_work
from app.models.enums import ChecklistStatus, MovementStatus, PersonType, Direction, AccessMethod
from app.models.vehicle_movement import VehicleMovementStatus
from app.services.access_log import AccessEventDraft, stage_event, log_event
from app.services.directory_client import IdentityDirectory, DirectoryVehicle, DirectoryDriver
from app.services.exceptions import (
    ChecklistRejected, DriverNotFound, ExitNotAuthorized, MovementConflict,
    NotInTransit, VehicleNotFound,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)


def _conflict(vehicle_id: str, action: str) -> MovementConflict:
    logger.warning(f"[MOVEMENT] {action} lost a race on vehicle {vehicle_id}")
    return MovementConflict(
        f"Vehicle {vehicle_id} was changed by another station during {action}; "
        f"re-read its status and retry"
    )


async def _resolve_vehicle_and_driver(directory: IdentityDirectory, vehicle_id: str,
                                      driver_id: str) -> tuple[DirectoryVehicle, DirectoryDriver]:
    vehicle = await directory.lookup_vehicle(vehicle_id)
    if vehicle is None:
        logger.warning(f"[MOVEMENT] Unknown vehicle {vehicle_id!r}")
        raise VehicleNotFound(f"Vehicle {vehicle_id} not found")
    driver = await directory.lookup_driver(driver_id)
    if driver is None:
        logger.warning(f"[MOVEMENT] Unknown driver {driver_id!r}")
        raise DriverNotFound(f"Driver {driver_id} not found")
    return vehicle, driver


def get_movement_status(db: Session, vehicle_id: str) -> VehicleMovementStatus:
    row = db.get(VehicleMovementStatus, vehicle_id)
    if row is None:
        raise VehicleNotFound(f"No movement status for vehicle {vehicle_id} (no checklist submitted)")
    return row


# ── Checklist ─────────────────────────────────────────────────────────────────

async def submit_checklist(db: Session, directory: IdentityDirectory, vehicle_id: str,
                           driver_id: str, checklist_id: str) -> VehicleMovementStatus:
    """Driver submitted a pre-exit checklist → checklist pending. Creates the row on first use."""
    vehicle, driver = await _resolve_vehicle_and_driver(directory, vehicle_id, driver_id)

    row = db.get(VehicleMovementStatus, vehicle.id)
    if row is not None and row.status == MovementStatus.IN_TRANSIT.value:
        raise ChecklistRejected(f"Vehicle {vehicle.plate} is in transit; register its return first")

    try:
        with unit_of_work(db):
            if row is None:
                row = VehicleMovementStatus(vehicle_id=vehicle.id, status=MovementStatus.AVAILABLE.value)
                db.add(row)
            row.driver_id = driver.id
            row.checklist_id = checklist_id
            row.checklist_status = ChecklistStatus.PENDING.value
            row.checklist_date = datetime.utcnow()
            row.checklist_verified_by = None
    except (StaleDataError, IntegrityError) as e:
        # IntegrityError: another station created the first row for this vehicle
        raise _conflict(vehicle.id, "checklist submission") from e

    logger.info(f"[MOVEMENT] Checklist {checklist_id} submitted for {vehicle.plate} by driver {driver.name}")
    return row


def approve_checklist(db: Session, vehicle_id: str, verified_by: Optional[str] = None) -> VehicleMovementStatus:
    row = get_movement_status(db, vehicle_id)
    if row.checklist_status != ChecklistStatus.PENDING.value:
        raise ChecklistRejected(
            f"Vehicle {vehicle_id} has checklist status '{row.checklist_status}'; only pending checklists can be approved"
        )
    try:
        with unit_of_work(db):
            row.checklist_status = ChecklistStatus.APPROVED.value
            row.checklist_verified_by = verified_by
    except StaleDataError as e:
        raise _conflict(vehicle_id, "checklist approval") from e

    logger.info(f"[MOVEMENT] Checklist {row.checklist_id} approved for vehicle {vehicle_id} by {verified_by or '-'}")
    return row


# ── Exit / return ─────────────────────────────────────────────────────────────

async def authorize_exit(db: Session, directory: IdentityDirectory, vehicle_id: str, driver_id: str,
                         destination: str, verified_by: Optional[str] = None,
                         location: Optional[str] = None) -> VehicleMovementStatus:
    """
    The single server-side gate. Requires an approved checklist and an
    available vehicle; otherwise ExitNotAuthorized with no event and no change.
    """
    vehicle, driver = await _resolve_vehicle_and_driver(directory, vehicle_id, driver_id)

    row = db.get(VehicleMovementStatus, vehicle.id)
    if row is None or row.checklist_status != ChecklistStatus.APPROVED.value:
        state = row.checklist_status if row is not None else ChecklistStatus.NONE.value
        logger.warning(f"[MOVEMENT] Exit DENIED for {vehicle.plate}: checklist {state}")
        raise ExitNotAuthorized(f"Vehicle {vehicle.plate} has no approved checklist (checklist: {state})")
    if row.status != MovementStatus.AVAILABLE.value:
        logger.warning(f"[MOVEMENT] Exit DENIED for {vehicle.plate}: already {row.status}")
        raise ExitNotAuthorized(f"Vehicle {vehicle.plate} is already {row.status}")

    now = datetime.utcnow()
    try:
        with unit_of_work(db):
            row.status = MovementStatus.IN_TRANSIT.value
            row.driver_id = driver.id
            row.destination = destination
            row.origin_base = None
            row.exit_time = now
            event = stage_event(db, AccessEventDraft(
                person_type=PersonType.VEHICLE,
                person_id=vehicle.id,
                person_name=vehicle.label,
                direction=Direction.EXIT,
                access_method=AccessMethod.MANUAL,
                location=location,
                verified_by=verified_by,
                driver_id=driver.id,
                notes=f"Destination: {destination} | Driver: {driver.name} | Checklist: {row.checklist_id}",
            ))
    except StaleDataError as e:
        raise _conflict(vehicle.id, "exit authorization") from e

    log_event(event)
    logger.info(f"[MOVEMENT] {vehicle.plate} IN TRANSIT → {destination} (driver {driver.name})")
    return row


async def register_return(db: Session, directory: IdentityDirectory, vehicle_id: str, driver_id: str,
                          origin_base: str, verified_by: Optional[str] = None,
                          location: Optional[str] = None) -> VehicleMovementStatus:
    """Close the open movement. A fresh checklist is required before the next exit."""
    vehicle, driver = await _resolve_vehicle_and_driver(directory, vehicle_id, driver_id)

    row = db.get(VehicleMovementStatus, vehicle.id)
    if row is None or row.status != MovementStatus.IN_TRANSIT.value:
        logger.warning(f"[MOVEMENT] Return DENIED for {vehicle.plate}: not in transit")
        raise NotInTransit(f"Vehicle {vehicle.plate} is not in transit")
    if row.driver_id != driver.id:
        logger.warning(f"[MOVEMENT] Return DENIED for {vehicle.plate}: left with driver {row.driver_id}, "
                       f"returned by {driver.id}")
        raise NotInTransit(f"Vehicle {vehicle.plate} is not in transit with driver {driver.name}")

    destination = row.destination
    try:
        with unit_of_work(db):
            row.status = MovementStatus.AVAILABLE.value
            row.destination = None
            row.origin_base = origin_base
            row.return_time = datetime.utcnow()
            row.checklist_status = ChecklistStatus.NONE.value
            row.checklist_id = None
            row.checklist_verified_by = None
            event = stage_event(db, AccessEventDraft(
                person_type=PersonType.VEHICLE,
                person_id=vehicle.id,
                person_name=vehicle.label,
                direction=Direction.ENTRY,
                access_method=AccessMethod.MANUAL,
                location=location,
                verified_by=verified_by,
                driver_id=driver.id,
                notes=f"Returned from: {origin_base} | Driver: {driver.name} | Trip destination: {destination}",
            ))
    except StaleDataError as e:
        raise _conflict(vehicle.id, "return registration") from e

    log_event(event)
    logger.info(f"[MOVEMENT] {vehicle.plate} RETURNED from {origin_base} — available, checklist reset")
    return row


# ── Lists ─────────────────────────────────────────────────────────────────────

def list_ready_for_exit(db: Session) -> list[VehicleMovementStatus]:
    return (
        db.query(VehicleMovementStatus)
        .filter(
            VehicleMovementStatus.checklist_status == ChecklistStatus.APPROVED.value,
            VehicleMovementStatus.status == MovementStatus.AVAILABLE.value,
        )
        .order_by(VehicleMovementStatus.checklist_date)
        .all()
    )


def list_in_transit(db: Session) -> list[VehicleMovementStatus]:
    return (
        db.query(VehicleMovementStatus)
        .filter(VehicleMovementStatus.status == MovementStatus.IN_TRANSIT.value)
        .order_by(VehicleMovementStatus.exit_time)
        .all()
    )
