"""AI-assisted narrative conclusions.

Every generation builds a deterministic prompt from persisted data, sends it
to the text generator, and only then writes to the database. The outcome is
returned as an explicit variant so callers can tell a saved text from one
that was generated but could not be stored.
"""
from __future__ import annotations
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import GenerationUnavailable, NotFound, PersistencePartial, PsychobrioError, ValidationError
from ..llm_client import GenerationRequest, GenerationResult, TextGenerator
from ..models import AssessmentConclusion, Patient, Theme, ThemeConclusion
from ..settings import settings
from .aggregator import PatientAge, ThemeGroup, aggregate, compute_age
from .assessments import get_assessment, require_reviewable
from .patients import get_patient

logger = logging.getLogger(__name__)

CONCLUSION_FIELDS = ("synthesis", "objectives", "recommendations")

THEME_SYSTEM_INSTRUCTION = (
	"Tu es un psychomotricien expert spécialisé dans la rédaction de bilans psychomoteurs. "
	"Tes conclusions sont toujours professionnelles, structurées et basées sur les données cliniques."
)

SYNTHESIS_SYSTEM_INSTRUCTION = (
	"Tu es un psychomotricien expert spécialisé dans la rédaction de synthèses de bilans psychomoteurs. "
	"Tes synthèses sont toujours professionnelles, structurées et orientées vers l'action thérapeutique."
)

NOTES_SYSTEM_INSTRUCTION = (
	"Tu es un assistant spécialisé en psychomotricité qui aide à rédiger des observations cliniques professionnelles."
)

_FIELD_BRIEFS = {
	"synthesis": (
		"SYNTHÈSE GÉNÉRALE",
		"150-200 mots",
		"Une synthèse qui intègre tous les thèmes et donne une vision d'ensemble du profil psychomoteur de l'enfant.",
	),
	"objectives": (
		"OBJECTIFS",
		"100-150 mots",
		"Des objectifs thérapeutiques spécifiques et réalisables basés sur les résultats.",
	),
	"recommendations": (
		"RECOMMANDATIONS",
		"100-150 mots",
		"Des recommandations pratiques pour l'enfant, la famille et l'école.",
	),
}


class OutcomeStatus(str, enum.Enum):
	GENERATED = "generated"
	GENERATED_NOT_SAVED = "generated_not_saved"
	FAILED = "failed"


@dataclass
class GenerationOutcome:
	status: OutcomeStatus
	text: Optional[str] = None
	model: Optional[str] = None
	error: Optional[PsychobrioError] = None

	@property
	def saved(self) -> bool:
		return self.status == OutcomeStatus.GENERATED


@dataclass
class SaveSummary:
	themes_saved: int
	conclusion: Optional[AssessmentConclusion]


# ---- Prompt building ----

def _fmt_number(value: float) -> str:
	return f"{value:g}"


def patient_identity(patient: Patient, age: PatientAge) -> str:
	return (
		f"{patient.first_name} {patient.last_name}, {age.years} ans et {age.months} mois, "
		f"sexe {patient.sex.value}"
	)


def render_result_lines(group: ThemeGroup) -> str:
	blocks: List[str] = []
	for r in group.results:
		line = f"• {r.item_name} ({r.item_code}) [Sous-thème: {r.subtheme_name}]"
		line += f"\n  - Score brut: {_fmt_number(r.raw_score)}"
		if r.unit:
			line += f" {r.unit}"
		if r.percentile is not None:
			line += f"\n  - Percentile: {_fmt_number(r.percentile)}"
		if r.standard_score is not None:
			line += f"\n  - Score standard: {_fmt_number(r.standard_score)}"
		if r.notes and r.notes.strip():
			line += f"\n  - Observations: {r.notes.strip()}"
		blocks.append(line)
	return "\n\n".join(blocks)


def build_theme_prompt(patient: Patient, age: PatientAge, group: ThemeGroup) -> str:
	return (
		f"Génère une conclusion clinique pour le thème \"{group.theme_name}\".\n\n"
		f"PATIENT: {patient_identity(patient, age)}\n\n"
		f"THÈME ÉVALUÉ: {group.theme_name}\n"
		f"NOMBRE DE TESTS: {len(group.results)}\n\n"
		f"RÉSULTATS DÉTAILLÉS:\n{render_result_lines(group)}\n\n"
		"MISSION: Rédige une conclusion clinique professionnelle de 120-180 mots qui:\n"
		"- Synthétise l'ensemble des résultats de ce thème\n"
		"- Identifie les forces et difficultés observées\n"
		"- Propose une interprétation clinique appropriée\n"
		"- Utilise un langage professionnel adapté à un rapport psychomoteur\n\n"
		f"Conclusion pour {group.theme_name}:"
	)


def build_assessment_prompt(patient: Patient, age: PatientAge, field: str, theme_texts: List[tuple]) -> str:
	title, length, brief = _FIELD_BRIEFS[field]
	conclusions = "\n\n".join(f"{name}: {text}" for name, text in theme_texts)
	return (
		f"Rédige la section {title} d'un bilan psychomoteur.\n\n"
		f"Patient: {patient_identity(patient, age)}\n\n"
		f"Conclusions par thème:\n{conclusions}\n\n"
		f"{title} ({length}):\n{brief}\n\n"
		"Réponds uniquement avec le texte de cette section, sans titre ni introduction."
	)


def build_notes_prompt(text: str, item_name: str, item_code: Optional[str]) -> str:
	return (
		"Je vais te donner des notes d'observation pour un item d'évaluation psychomotrice.\n\n"
		f"Item évalué : {item_name} (Code: {item_code or 'N/A'})\n"
		f"Notes actuelles : \"{text}\"\n\n"
		"Améliore ces notes en :\n"
		"1. Rendant le texte plus professionnel et structuré\n"
		"2. Utilisant un vocabulaire technique approprié en psychomotricité\n"
		"3. Gardant toutes les informations importantes\n"
		"4. Ajoutant des observations cliniques pertinentes si nécessaire\n"
		"5. Respectant une structure claire et concise\n\n"
		"Réponds uniquement avec le texte amélioré, sans introduction ni explication."
	)


# ---- Persistence helpers (no commit) ----

def _upsert_theme_conclusion(db: Session, assessment_id: str, theme_id: str, text: str) -> ThemeConclusion:
	row = db.scalar(
		select(ThemeConclusion).where(
			ThemeConclusion.assessment_id == assessment_id,
			ThemeConclusion.theme_id == theme_id,
		)
	)
	if row is None:
		row = ThemeConclusion(assessment_id=assessment_id, theme_id=theme_id)
		db.add(row)
	row.text = text
	return row


def _merge_assessment_conclusion(
	db: Session,
	assessment_id: str,
	fields: Mapping[str, Optional[str]],
	llm_model: Optional[str] = None,
) -> AssessmentConclusion:
	row = db.get(AssessmentConclusion, assessment_id)
	if row is None:
		row = AssessmentConclusion(assessment_id=assessment_id, synthesis="", objectives="", recommendations="")
		db.add(row)
	for field in CONCLUSION_FIELDS:
		value = fields.get(field)
		# Blank input never replaces a stored value
		if value is not None and value.strip():
			setattr(row, field, value.strip())
	if llm_model:
		row.llm_model = llm_model
	return row


def _persist(db: Session, result: GenerationResult, what: str, apply: Callable[[], object]) -> GenerationOutcome:
	try:
		apply()
		db.commit()
	except SQLAlchemyError as err:
		db.rollback()
		logger.error("Generated %s could not be saved: %s", what, err)
		return GenerationOutcome(OutcomeStatus.GENERATED_NOT_SAVED, result.text, result.model, PersistencePartial(result.text))
	return GenerationOutcome(OutcomeStatus.GENERATED, result.text, result.model)


async def _generate(client: TextGenerator, request: GenerationRequest, what: str):
	try:
		result = await client.generate(request)
	except GenerationUnavailable as err:
		logger.warning("Generation of %s failed (%s): %s", what, err.code, err.detail)
		return None, err
	if not result.text.strip():
		logger.warning("Generation of %s returned empty text", what)
		return None, GenerationUnavailable("unavailable", "empty completion")
	return result, None


def _theme_conclusions_in_catalog_order(db: Session, assessment_id: str) -> List[tuple]:
	stmt = (
		select(Theme.name, ThemeConclusion.text)
		.join(Theme, Theme.id == ThemeConclusion.theme_id)
		.where(ThemeConclusion.assessment_id == assessment_id)
		.order_by(Theme.order_index, Theme.created_at, Theme.id)
	)
	return [(name, text.strip()) for name, text in db.execute(stmt) if text and text.strip()]


# ---- Public operations ----

async def generate_theme_conclusion(
	db: Session,
	client: TextGenerator,
	assessment_id: str,
	theme_id: str,
) -> GenerationOutcome:
	assessment = get_assessment(db, assessment_id)
	require_reviewable(assessment)
	patient = get_patient(db, assessment.patient_id)
	group = aggregate(db, assessment_id).groups.get(theme_id)
	if group is None or not group.results:
		raise NotFound("theme has no scored results")

	age = compute_age(patient.birth_date, assessment.date)
	request = GenerationRequest(
		system_instruction=THEME_SYSTEM_INSTRUCTION,
		user_prompt=build_theme_prompt(patient, age, group),
		temperature=settings.theme_temperature,
		max_output_tokens=settings.theme_max_output_tokens,
	)
	what = f"theme {theme_id} conclusion for assessment {assessment_id}"
	result, error = await _generate(client, request, what)
	if error is not None:
		return GenerationOutcome(status=OutcomeStatus.FAILED, error=error)

	return _persist(db, result, what, lambda: _upsert_theme_conclusion(db, assessment_id, theme_id, result.text))


async def generate_assessment_conclusion(
	db: Session,
	client: TextGenerator,
	assessment_id: str,
	field: str,
) -> GenerationOutcome:
	if field not in CONCLUSION_FIELDS:
		raise ValidationError(f"field must be one of {', '.join(CONCLUSION_FIELDS)}")
	assessment = get_assessment(db, assessment_id)
	require_reviewable(assessment)
	patient = get_patient(db, assessment.patient_id)
	theme_texts = _theme_conclusions_in_catalog_order(db, assessment_id)
	if not theme_texts:
		raise ValidationError("write or generate theme conclusions before the overall conclusion")

	age = compute_age(patient.birth_date, assessment.date)
	request = GenerationRequest(
		system_instruction=SYNTHESIS_SYSTEM_INSTRUCTION,
		user_prompt=build_assessment_prompt(patient, age, field, theme_texts),
		temperature=settings.synthesis_temperature,
		max_output_tokens=settings.synthesis_max_output_tokens,
	)
	what = f"{field} for assessment {assessment_id}"
	result, error = await _generate(client, request, what)
	if error is not None:
		return GenerationOutcome(status=OutcomeStatus.FAILED, error=error)

	# Read-modify-write: only `field` changes, the other stored fields survive
	return _persist(
		db,
		result,
		what,
		lambda: _merge_assessment_conclusion(db, assessment_id, {field: result.text}, llm_model=result.model),
	)


def save_all(
	db: Session,
	assessment_id: str,
	theme_texts: Mapping[str, Optional[str]],
	assessment_fields: Mapping[str, Optional[str]],
) -> SaveSummary:
	"""Persist pending edits for every theme and the overall conclusion.

	Blank theme texts are skipped and blank overall fields keep whatever is
	stored, so replaying the same input leaves the same rows behind.
	"""
	assessment = get_assessment(db, assessment_id)
	require_reviewable(assessment)
	unknown = [f for f in assessment_fields if f not in CONCLUSION_FIELDS]
	if unknown:
		raise ValidationError(f"unknown conclusion field {unknown[0]}")

	pending = {tid: text.strip() for tid, text in theme_texts.items() if text and text.strip()}
	themes: Dict[str, Theme] = {}
	if pending:
		themes = {t.id: t for t in db.scalars(select(Theme).where(Theme.id.in_(pending)))}
		missing = sorted(set(pending) - set(themes))
		if missing:
			raise NotFound(f"theme {missing[0]} not found")

	ordered = sorted(themes.values(), key=lambda t: (t.order_index, t.created_at, t.id))
	for theme in ordered:
		_upsert_theme_conclusion(db, assessment_id, theme.id, pending[theme.id])

	conclusion = None
	if any(v and v.strip() for v in assessment_fields.values()):
		conclusion = _merge_assessment_conclusion(db, assessment_id, assessment_fields)
	db.commit()
	if conclusion is not None:
		db.refresh(conclusion)
	return SaveSummary(themes_saved=len(ordered), conclusion=conclusion)


async def improve_notes(client: TextGenerator, text: str, item_name: str, item_code: Optional[str] = None) -> str:
	text = (text or "").strip()
	if not text:
		raise ValidationError("write some notes before asking for an improvement")
	if not (item_name or "").strip():
		raise ValidationError("item_name is required")
	request = GenerationRequest(
		system_instruction=NOTES_SYSTEM_INSTRUCTION,
		user_prompt=build_notes_prompt(text, item_name.strip(), item_code),
		temperature=settings.notes_temperature,
		max_output_tokens=settings.notes_max_output_tokens,
	)
	result, error = await _generate(client, request, f"notes for item {item_code or item_name}")
	if error is not None:
		raise error
	return result.text
