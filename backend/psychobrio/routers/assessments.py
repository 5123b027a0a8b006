from __future__ import annotations
import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from ..context import RequestContext
from ..db import get_db
from ..models import AssessmentStatus
from ..services import assessments
from ..services.aggregator import Aggregation, aggregate
from .auth import require_practitioner

router = APIRouter(prefix="/assessments", tags=["assessments"])


class AssessmentIn(BaseModel):
	patient_id: str
	date: Optional[dt.date] = None
	template_id: Optional[str] = None


class AssessmentOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)
	id: str
	patient_id: str
	practitioner_id: str
	date: dt.date
	status: AssessmentStatus
	template_id: Optional[str] = None
	signed_at: Optional[dt.datetime] = None


class StatusUpdate(BaseModel):
	status: AssessmentStatus


class ResultIn(BaseModel):
	item_id: str
	raw_score: Optional[float] = None
	percentile: Optional[float] = None
	standard_score: Optional[float] = None
	notes: Optional[str] = None


class SaveResultsRequest(BaseModel):
	results: List[ResultIn]


class ResultOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)
	id: str
	assessment_id: str
	item_id: str
	raw_score: float
	percentile: Optional[float] = None
	standard_score: Optional[float] = None
	notes: Optional[str] = None


@router.get("", response_model=List[AssessmentOut])
def list_assessments(
	patient_id: Optional[str] = None,
	status: Optional[AssessmentStatus] = None,
	mine: bool = False,
	user: RequestContext = Depends(require_practitioner),
	db: Session = Depends(get_db),
):
	practitioner_id = user.user_id if mine else None
	return assessments.list_assessments(db, practitioner_id=practitioner_id, patient_id=patient_id, status=status)


@router.post("", status_code=201, response_model=AssessmentOut)
def create_assessment(req: AssessmentIn, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	return assessments.create_assessment(db, user, req.patient_id, assessment_date=req.date, template_id=req.template_id)


@router.get("/{assessment_id}", response_model=AssessmentOut)
def get_assessment(assessment_id: str, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	return assessments.get_assessment(db, assessment_id)


@router.post("/{assessment_id}/status", response_model=AssessmentOut)
def update_status(assessment_id: str, req: StatusUpdate, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	return assessments.update_status(db, assessment_id, req.status)


@router.get("/{assessment_id}/results", response_model=List[ResultOut])
def list_results(assessment_id: str, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	return assessments.list_results(db, assessment_id)


@router.put("/{assessment_id}/results", response_model=List[ResultOut])
def save_results(assessment_id: str, req: SaveResultsRequest, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	entries = [assessments.ResultEntry(**r.model_dump()) for r in req.results]
	return assessments.save_results(db, assessment_id, entries)


@router.get("/{assessment_id}/aggregation", response_model=Aggregation)
def get_aggregation(assessment_id: str, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	return aggregate(db, assessment_id)
