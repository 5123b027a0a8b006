from __future__ import annotations
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..context import RequestContext
from ..db import get_db
from ..llm_client import LazyTextGenerator, TextGenerator
from ..models import AssessmentConclusion, ThemeConclusion
from ..services import narrative
from ..services.assessments import get_assessment
from .auth import require_practitioner

router = APIRouter(prefix="/assessments/{assessment_id}/conclusions", tags=["conclusions"])
notes_router = APIRouter(prefix="/notes", tags=["conclusions"])


async def get_text_generator():
	client = LazyTextGenerator()
	try:
		yield client
	finally:
		await client.aclose()


class ThemeConclusionOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)
	theme_id: str
	text: str
	confidence: Optional[float] = None


class AssessmentConclusionOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)
	synthesis: str = ""
	objectives: str = ""
	recommendations: str = ""
	llm_model: Optional[str] = None


class ConclusionsOut(BaseModel):
	themes: List[ThemeConclusionOut]
	assessment: Optional[AssessmentConclusionOut] = None


class GenerationOut(BaseModel):
	status: narrative.OutcomeStatus
	saved: bool
	text: str
	model: Optional[str] = None
	message: Optional[str] = None


class SaveAllRequest(BaseModel):
	themes: Dict[str, Optional[str]] = {}
	synthesis: Optional[str] = None
	objectives: Optional[str] = None
	recommendations: Optional[str] = None


class SaveAllOut(BaseModel):
	themes_saved: int
	assessment: Optional[AssessmentConclusionOut] = None


class ImproveNotesRequest(BaseModel):
	text: str
	item_name: str
	item_code: Optional[str] = None


def _outcome_response(outcome: narrative.GenerationOutcome) -> GenerationOut:
	if outcome.error is not None and outcome.text is None:
		# Nothing was generated: surface the failure as-is
		raise outcome.error
	return GenerationOut(
		status=outcome.status,
		saved=outcome.saved,
		text=outcome.text,
		model=outcome.model,
		message=outcome.error.message if outcome.error is not None else None,
	)


@router.get("", response_model=ConclusionsOut)
def get_conclusions(assessment_id: str, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	get_assessment(db, assessment_id)
	themes = db.scalars(select(ThemeConclusion).where(ThemeConclusion.assessment_id == assessment_id)).all()
	row = db.get(AssessmentConclusion, assessment_id)
	return ConclusionsOut(
		themes=[ThemeConclusionOut.model_validate(t) for t in themes],
		assessment=AssessmentConclusionOut.model_validate(row) if row is not None else None,
	)


@router.post("/themes/{theme_id}/generate", response_model=GenerationOut)
async def generate_theme(
	assessment_id: str,
	theme_id: str,
	user: RequestContext = Depends(require_practitioner),
	db: Session = Depends(get_db),
	client: TextGenerator = Depends(get_text_generator),
):
	outcome = await narrative.generate_theme_conclusion(db, client, assessment_id, theme_id)
	return _outcome_response(outcome)


@router.post("/{field}/generate", response_model=GenerationOut)
async def generate_field(
	assessment_id: str,
	field: Literal["synthesis", "objectives", "recommendations"],
	user: RequestContext = Depends(require_practitioner),
	db: Session = Depends(get_db),
	client: TextGenerator = Depends(get_text_generator),
):
	outcome = await narrative.generate_assessment_conclusion(db, client, assessment_id, field)
	return _outcome_response(outcome)


@router.put("", response_model=SaveAllOut)
def save_all(assessment_id: str, req: SaveAllRequest, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	fields = {f: getattr(req, f) for f in narrative.CONCLUSION_FIELDS if getattr(req, f) is not None}
	summary = narrative.save_all(db, assessment_id, req.themes, fields)
	conclusion = summary.conclusion
	return SaveAllOut(
		themes_saved=summary.themes_saved,
		assessment=AssessmentConclusionOut.model_validate(conclusion) if conclusion is not None else None,
	)


@notes_router.post("/improve")
async def improve_notes(
	req: ImproveNotesRequest,
	user: RequestContext = Depends(require_practitioner),
	client: TextGenerator = Depends(get_text_generator),
):
	text = await narrative.improve_notes(client, req.text, req.item_name, req.item_code)
	return {"improved_text": text}
