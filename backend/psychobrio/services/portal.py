from __future__ import annotations
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..context import RequestContext
from ..errors import NotFound
from ..models import Assessment, AssessmentStatus, PatientGuardian
from .report import ReportDocument, build_report


def list_shared_assessments(db: Session, ctx: RequestContext) -> List[Assessment]:
	patient_ids = select(PatientGuardian.patient_id).where(PatientGuardian.guardian_id == ctx.user_id)
	stmt = (
		select(Assessment)
		.where(Assessment.patient_id.in_(patient_ids), Assessment.status == AssessmentStatus.SHARED)
		.order_by(Assessment.date.desc())
	)
	return list(db.scalars(stmt))


def get_shared_report(db: Session, ctx: RequestContext, assessment_id: str) -> ReportDocument:
	# Unshared or unlinked assessments look exactly like missing ones
	visible = {a.id for a in list_shared_assessments(db, ctx)}
	if assessment_id not in visible:
		raise NotFound(f"assessment {assessment_id} not found")
	return build_report(db, assessment_id)
