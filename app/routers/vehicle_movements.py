"""Vehicle checklist → exit → return endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.vehicle_movement import (
    ChecklistApproveIn, ChecklistSubmitIn, ExitAuthorizeIn, MovementOut, ReturnRegisterIn,
)
from app.services import vehicle_movement_service as movements
from app.services.directory_client import IdentityDirectory, get_directory

router = APIRouter()


@router.get("/vehicle-movements/ready-for-exit", response_model=list[MovementOut],
            summary="Vehicles with an approved checklist, still on site")
def ready_for_exit(db: Session = Depends(get_db)):
    return movements.list_ready_for_exit(db)


@router.get("/vehicle-movements/in-transit", response_model=list[MovementOut],
            summary="Vehicles currently out")
def in_transit(db: Session = Depends(get_db)):
    return movements.list_in_transit(db)


@router.get("/vehicle-movements/{vehicle_id}", response_model=MovementOut, summary="Movement status of a vehicle")
def movement_status(vehicle_id: str, db: Session = Depends(get_db)):
    return movements.get_movement_status(db, vehicle_id)


@router.post("/vehicle-movements/{vehicle_id}/checklist", response_model=MovementOut,
             summary="Driver submits a pre-exit checklist")
async def submit_checklist(vehicle_id: str, body: ChecklistSubmitIn, db: Session = Depends(get_db),
                           directory: IdentityDirectory = Depends(get_directory)):
    return await movements.submit_checklist(db, directory, vehicle_id, body.driver_id, body.checklist_id)


@router.put("/vehicle-movements/{vehicle_id}/checklist/approve", response_model=MovementOut,
            summary="Gate staff approves the pending checklist")
def approve_checklist(vehicle_id: str, body: ChecklistApproveIn, db: Session = Depends(get_db)):
    return movements.approve_checklist(db, vehicle_id, verified_by=body.verified_by)


@router.post("/vehicle-movements/{vehicle_id}/exit", response_model=MovementOut,
             summary="Authorize exit (requires approved checklist)")
async def authorize_exit(vehicle_id: str, body: ExitAuthorizeIn, db: Session = Depends(get_db),
                         directory: IdentityDirectory = Depends(get_directory)):
    """409 ExitNotAuthorized without an approved checklist or while already in transit."""
    return await movements.authorize_exit(db, directory, vehicle_id, body.driver_id, body.destination,
                                          verified_by=body.verified_by, location=body.location)


@router.post("/vehicle-movements/{vehicle_id}/return", response_model=MovementOut,
             summary="Register return to base")
async def register_return(vehicle_id: str, body: ReturnRegisterIn, db: Session = Depends(get_db),
                          directory: IdentityDirectory = Depends(get_directory)):
    """409 NotInTransit unless the vehicle left with this driver. Resets the checklist."""
    return await movements.register_return(db, directory, vehicle_id, body.driver_id, body.origin_base,
                                           verified_by=body.verified_by, location=body.location)
