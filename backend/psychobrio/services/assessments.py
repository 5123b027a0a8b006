from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..context import RequestContext
from ..errors import NotFound, ValidationError
from ..models import Assessment, AssessmentStatus, Item, ItemResult
from .patients import get_patient

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = (AssessmentStatus.READY_FOR_REVIEW, AssessmentStatus.SIGNED, AssessmentStatus.SHARED)


@dataclass
class ResultEntry:
	item_id: str
	raw_score: Optional[float]
	percentile: Optional[float] = None
	standard_score: Optional[float] = None
	notes: Optional[str] = None


def create_assessment(
	db: Session,
	ctx: RequestContext,
	patient_id: str,
	*,
	assessment_date: Optional[date] = None,
	template_id: Optional[str] = None,
) -> Assessment:
	get_patient(db, patient_id)
	assessment = Assessment(
		patient_id=patient_id,
		practitioner_id=ctx.user_id,
		date=assessment_date or date.today(),
		status=AssessmentStatus.DRAFT,
		template_id=template_id,
	)
	db.add(assessment)
	db.commit()
	db.refresh(assessment)
	return assessment


def get_assessment(db: Session, assessment_id: str) -> Assessment:
	assessment = db.get(Assessment, assessment_id)
	if assessment is None:
		raise NotFound(f"assessment {assessment_id} not found")
	return assessment


def list_assessments(
	db: Session,
	*,
	practitioner_id: Optional[str] = None,
	patient_id: Optional[str] = None,
	status: Optional[AssessmentStatus] = None,
) -> List[Assessment]:
	stmt = select(Assessment)
	if practitioner_id is not None:
		stmt = stmt.where(Assessment.practitioner_id == practitioner_id)
	if patient_id is not None:
		stmt = stmt.where(Assessment.patient_id == patient_id)
	if status is not None:
		stmt = stmt.where(Assessment.status == status)
	stmt = stmt.order_by(Assessment.date.desc(), Assessment.created_at.desc())
	return list(db.scalars(stmt))


def update_status(db: Session, assessment_id: str, status: AssessmentStatus) -> Assessment:
	assessment = get_assessment(db, assessment_id)
	# signed_at is stamped on the transition into SIGNED only
	if status == AssessmentStatus.SIGNED and assessment.status != AssessmentStatus.SIGNED:
		assessment.signed_at = datetime.utcnow()
	assessment.status = status
	db.commit()
	db.refresh(assessment)
	logger.info("Assessment %s moved to %s", assessment_id, status.value)
	return assessment


def require_reviewable(assessment: Assessment) -> None:
	if assessment.status not in REVIEWABLE_STATUSES:
		raise ValidationError("assessment must be ready for review before conclusions can be written")


def _validate_entries(db: Session, entries: List[ResultEntry]) -> None:
	seen = set()
	for entry in entries:
		if entry.raw_score is None:
			raise ValidationError(f"raw_score is required for item {entry.item_id}")
		if entry.item_id in seen:
			raise ValidationError(f"item {entry.item_id} appears more than once")
		seen.add(entry.item_id)
	if not seen:
		return
	known = set(db.scalars(select(Item.id).where(Item.id.in_(seen))))
	missing = sorted(seen - known)
	if missing:
		raise NotFound(f"item {missing[0]} not found")


def save_results(db: Session, assessment_id: str, entries: Iterable[ResultEntry]) -> List[ItemResult]:
	"""Update-if-exists-else-insert every entry, keyed on (assessment, item).

	The whole batch is validated before the first write.
	"""
	entries = list(entries)
	get_assessment(db, assessment_id)
	_validate_entries(db, entries)
	existing = {
		row.item_id: row
		for row in db.scalars(select(ItemResult).where(ItemResult.assessment_id == assessment_id))
	}
	saved: List[ItemResult] = []
	for entry in entries:
		row = existing.get(entry.item_id)
		if row is None:
			row = ItemResult(assessment_id=assessment_id, item_id=entry.item_id)
			db.add(row)
			existing[entry.item_id] = row
		row.raw_score = entry.raw_score
		row.percentile = entry.percentile
		row.standard_score = entry.standard_score
		row.notes = entry.notes
		saved.append(row)
	db.commit()
	for row in saved:
		db.refresh(row)
	return saved


def list_results(db: Session, assessment_id: str) -> List[ItemResult]:
	get_assessment(db, assessment_id)
	stmt = select(ItemResult).where(ItemResult.assessment_id == assessment_id).order_by(ItemResult.created_at, ItemResult.id)
	return list(db.scalars(stmt))
