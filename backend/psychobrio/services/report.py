"""Assembles the ordered report for one assessment.

Pure read over persisted data: no generation, no network call. Rendering the
document (print markup, PDF) belongs to the client.
"""
from __future__ import annotations
import datetime as dt
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import AssessmentConclusion, AssessmentStatus, PatientSex, ThemeConclusion
from ..settings import settings
from .aggregator import PatientAge, ResultLine, aggregate, compute_age
from .assessments import get_assessment
from .catalog import list_themes
from .patients import get_patient

OVERALL_TITLES = (
	("synthesis", "Synthèse Générale"),
	("objectives", "Objectifs Thérapeutiques"),
	("recommendations", "Recommandations"),
)


class PatientBlock(BaseModel):
	first_name: str
	last_name: str
	birth_date: dt.date
	sex: PatientSex
	dossier_number: str
	physician: Optional[str] = None
	school: Optional[str] = None


class AssessmentBlock(BaseModel):
	id: str
	date: dt.date
	status: AssessmentStatus
	signed_at: Optional[dt.datetime] = None


class OverallSection(BaseModel):
	field: str
	title: str
	text: str


class ThemeSection(BaseModel):
	theme_id: str
	name: str
	order_index: int
	has_conclusion: bool
	text: str
	confidence: Optional[float] = None
	results: List[ResultLine] = []


class ReportDocument(BaseModel):
	patient: PatientBlock
	assessment: AssessmentBlock
	age: PatientAge
	overall: List[OverallSection]
	themes: List[ThemeSection]
	excluded_results: int = 0
	llm_model: Optional[str] = None
	generated_at: dt.datetime


def build_report(db: Session, assessment_id: str) -> ReportDocument:
	assessment = get_assessment(db, assessment_id)
	patient = get_patient(db, assessment.patient_id)
	aggregation = aggregate(db, assessment_id)
	conclusion = db.get(AssessmentConclusion, assessment_id)
	theme_conclusions = {
		tc.theme_id: tc
		for tc in db.scalars(select(ThemeConclusion).where(ThemeConclusion.assessment_id == assessment_id))
	}

	overall: List[OverallSection] = []
	if conclusion is not None:
		for field, title in OVERALL_TITLES:
			text = (getattr(conclusion, field) or "").strip()
			if text:
				overall.append(OverallSection(field=field, title=title, text=text))

	sections: List[ThemeSection] = []
	for theme in list_themes(db):
		tc = theme_conclusions.get(theme.id)
		text = (tc.text or "").strip() if tc is not None else ""
		group = aggregation.groups.get(theme.id)
		sections.append(ThemeSection(
			theme_id=theme.id,
			name=theme.name,
			order_index=theme.order_index,
			has_conclusion=bool(text),
			text=text or settings.report_missing_conclusion,
			confidence=tc.confidence if tc is not None else None,
			results=group.results if group is not None else [],
		))

	return ReportDocument(
		patient=PatientBlock(
			first_name=patient.first_name,
			last_name=patient.last_name,
			birth_date=patient.birth_date,
			sex=patient.sex,
			dossier_number=patient.dossier_number,
			physician=patient.physician,
			school=patient.school,
		),
		assessment=AssessmentBlock(
			id=assessment.id,
			date=assessment.date,
			status=assessment.status,
			signed_at=assessment.signed_at,
		),
		age=compute_age(patient.birth_date, assessment.date),
		overall=overall,
		themes=sections,
		excluded_results=aggregation.excluded,
		llm_model=conclusion.llm_model if conclusion is not None else None,
		generated_at=dt.datetime.utcnow(),
	)
