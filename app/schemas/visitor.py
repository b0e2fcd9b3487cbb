# app/schemas/visitor.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class VisitorCreate(BaseModel):
    name: str
    cpf: str                 # any punctuation; stored digits-only
    photo: Optional[str] = None


class VisitorUpdate(BaseModel):
    name: Optional[str] = None
    photo: Optional[str] = None


class VisitorOut(BaseModel):
    id: int
    name: str
    cpf: str
    photo: Optional[str]
    total_visits: int
    last_visit: Optional[datetime]
    is_active: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class VisitorSearchOut(BaseModel):
    found: bool
    visitor: Optional[VisitorOut] = None
