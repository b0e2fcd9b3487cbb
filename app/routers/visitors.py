"""Visitor registration + lookup endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.visitor import VisitorCreate, VisitorOut, VisitorSearchOut, VisitorUpdate
from app.services import visitor_registrar
from app.services.exceptions import VisitorNotFound

router = APIRouter()


@router.get("/visitors", response_model=list[VisitorOut], summary="List visitors")
def list_visitors(search: Optional[str] = None, active_only: bool = False, limit: int = 50,
                  db: Session = Depends(get_db)):
    """Most recent visitors first. `search` matches name or CPF digits."""
    return visitor_registrar.list_visitors(db, search=search, active_only=active_only, limit=limit)


@router.get("/visitors/search", response_model=VisitorSearchOut, summary="Find a visitor by CPF")
def search_visitor(cpf: str, db: Session = Depends(get_db)):
    """found=false lets the gate screen switch to the registration form."""
    try:
        return {"found": True, "visitor": visitor_registrar.find_by_cpf(db, cpf)}
    except VisitorNotFound:
        return {"found": False, "visitor": None}


@router.post("/visitors", response_model=VisitorOut, summary="Register a visitor (idempotent on CPF)")
def register_visitor(body: VisitorCreate, db: Session = Depends(get_db)):
    return visitor_registrar.register_or_update(db, body.name, body.cpf, body.photo)


@router.put("/visitors/{visitor_id}", response_model=VisitorOut, summary="Edit visitor name/photo")
def update_visitor(visitor_id: int, body: VisitorUpdate, db: Session = Depends(get_db)):
    return visitor_registrar.update_visitor(db, visitor_id, name=body.name, photo=body.photo)
