from __future__ import annotations
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from ..context import RequestContext
from ..db import get_db
from ..models import PatientSex
from ..services import patients
from .auth import require_admin, require_practitioner

router = APIRouter(prefix="/patients", tags=["patients"])


class PatientIn(BaseModel):
	first_name: str
	last_name: str
	birth_date: Optional[date] = None
	sex: Optional[PatientSex] = None
	dossier_number: str
	physician: Optional[str] = None
	school: Optional[str] = None


class PatientOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)
	id: str
	first_name: str
	last_name: str
	birth_date: date
	sex: PatientSex
	dossier_number: str
	physician: Optional[str] = None
	school: Optional[str] = None


class GuardianLink(BaseModel):
	guardian_id: str


@router.get("", response_model=List[PatientOut])
def list_patients(user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	return patients.list_patients(db)


@router.post("", status_code=201, response_model=PatientOut)
def create_patient(req: PatientIn, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	return patients.create_patient(db, user, **req.model_dump())


@router.get("/{patient_id}", response_model=PatientOut)
def get_patient(patient_id: str, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	return patients.get_patient(db, patient_id)


@router.post("/{patient_id}/guardians", status_code=204)
def link_guardian(patient_id: str, req: GuardianLink, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	patients.link_guardian(db, patient_id, req.guardian_id)
