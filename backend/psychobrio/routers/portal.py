from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..context import RequestContext
from ..db import get_db
from ..services import portal
from ..services.report import ReportDocument
from .assessments import AssessmentOut
from .auth import require_parent

router = APIRouter(prefix="/portal", tags=["portal"])


@router.get("/reports", response_model=List[AssessmentOut])
def list_shared_reports(user: RequestContext = Depends(require_parent), db: Session = Depends(get_db)):
	return portal.list_shared_assessments(db, user)


@router.get("/reports/{assessment_id}", response_model=ReportDocument)
def get_shared_report(assessment_id: str, user: RequestContext = Depends(require_parent), db: Session = Depends(get_db)):
	return portal.get_shared_report(db, user, assessment_id)
