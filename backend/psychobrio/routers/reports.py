from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..context import RequestContext
from ..db import get_db
from ..services.report import ReportDocument, build_report
from .auth import require_practitioner

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/{assessment_id}", response_model=ReportDocument)
def get_report(assessment_id: str, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	return build_report(db, assessment_id)
