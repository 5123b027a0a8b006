from __future__ import annotations
from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..context import RequestContext
from ..errors import NotFound, ValidationError
from ..models import AuthUser, Patient, PatientGuardian, PatientSex, UserRole


def create_patient(
	db: Session,
	ctx: RequestContext,
	*,
	first_name: str,
	last_name: str,
	birth_date: Optional[date],
	sex: Optional[PatientSex],
	dossier_number: str,
	physician: Optional[str] = None,
	school: Optional[str] = None,
) -> Patient:
	first_name = (first_name or "").strip()
	last_name = (last_name or "").strip()
	dossier_number = (dossier_number or "").strip()
	if not first_name or not last_name:
		raise ValidationError("first_name and last_name are required")
	if birth_date is None:
		raise ValidationError("birth_date is required")
	if sex is None:
		raise ValidationError("sex is required")
	if not dossier_number:
		raise ValidationError("dossier_number is required")
	patient = Patient(
		first_name=first_name,
		last_name=last_name,
		birth_date=birth_date,
		sex=sex,
		dossier_number=dossier_number,
		physician=(physician or "").strip() or None,
		school=(school or "").strip() or None,
		created_by_user_id=ctx.user_id,
	)
	db.add(patient)
	db.commit()
	db.refresh(patient)
	return patient


def get_patient(db: Session, patient_id: str) -> Patient:
	patient = db.get(Patient, patient_id)
	if patient is None:
		raise NotFound(f"patient {patient_id} not found")
	return patient


def list_patients(db: Session) -> List[Patient]:
	return list(db.scalars(select(Patient).order_by(Patient.last_name, Patient.first_name)))


def link_guardian(db: Session, patient_id: str, guardian_id: str) -> PatientGuardian:
	get_patient(db, patient_id)
	guardian = db.get(AuthUser, guardian_id)
	if guardian is None:
		raise NotFound(f"user {guardian_id} not found")
	if guardian.role != UserRole.PARENT:
		raise ValidationError("only parent accounts can be linked to a patient")
	link = db.get(PatientGuardian, (patient_id, guardian_id))
	if link is None:
		link = PatientGuardian(patient_id=patient_id, guardian_id=guardian_id)
		db.add(link)
		db.commit()
	return link
