"""Joins an assessment's item results with the catalog and groups them by theme.

The item -> subtheme -> theme chain is resolved with one batched query per
level over the distinct ids observed, never one query per result row.
Results whose chain is broken are logged, left out of every group, and
counted in `Aggregation.excluded`, with the broken link of each one listed in
`Aggregation.excluded_results`.
"""
from __future__ import annotations
import logging
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import OrphanedReference
from ..models import Item, ItemResult, ScoreDirection, Subtheme, Theme
from .assessments import get_assessment

logger = logging.getLogger(__name__)


class PatientAge(BaseModel):
	total_months: int
	years: int
	months: int


class ResultLine(BaseModel):
	item_name: str
	item_code: str
	subtheme_name: str
	raw_score: float
	unit: Optional[str] = None
	percentile: Optional[float] = None
	standard_score: Optional[float] = None
	notes: Optional[str] = None
	direction: ScoreDirection


class ThemeGroup(BaseModel):
	theme_id: str
	theme_name: str
	order_index: int
	results: List[ResultLine]


class ExcludedResult(BaseModel):
	result_id: str
	missing: str
	missing_id: str


class Aggregation(BaseModel):
	assessment_id: str
	groups: Dict[str, ThemeGroup]
	excluded: int = 0
	excluded_results: List[ExcludedResult] = []


def compute_age(birth_date: date, assessment_date: date) -> PatientAge:
	"""Whole months between two dates, ignoring the day of month.

	An assessment dated before the birth date yields a negative total.
	"""
	total = (assessment_date.year - birth_date.year) * 12 + (assessment_date.month - birth_date.month)
	years, months = divmod(total, 12)
	return PatientAge(total_months=total, years=years, months=months)


def _by_id(db: Session, model, ids) -> dict:
	if not ids:
		return {}
	return {row.id: row for row in db.scalars(select(model).where(model.id.in_(ids)))}


def _broken_link(result: ItemResult, item: Optional[Item], subtheme: Optional[Subtheme]) -> OrphanedReference:
	if item is None:
		return OrphanedReference(result.id, "item", result.item_id)
	if subtheme is None:
		return OrphanedReference(result.id, "subtheme", item.subtheme_id)
	return OrphanedReference(result.id, "theme", subtheme.theme_id)


def _sort_key(node) -> tuple:
	return (node.order_index, node.created_at, node.id)


def aggregate(db: Session, assessment_id: str) -> Aggregation:
	get_assessment(db, assessment_id)
	results = list(db.scalars(
		select(ItemResult).where(ItemResult.assessment_id == assessment_id).order_by(ItemResult.created_at, ItemResult.id)
	))

	items = _by_id(db, Item, {r.item_id for r in results})
	subthemes = _by_id(db, Subtheme, {i.subtheme_id for i in items.values()})
	themes = _by_id(db, Theme, {s.theme_id for s in subthemes.values()})

	resolved = []
	orphans: List[ExcludedResult] = []
	for result in results:
		item = items.get(result.item_id)
		subtheme = subthemes.get(item.subtheme_id) if item is not None else None
		theme = themes.get(subtheme.theme_id) if subtheme is not None else None
		if theme is None:
			orphan = _broken_link(result, item, subtheme)
			logger.warning("Excluding result from aggregation: %s", orphan.message)
			orphans.append(ExcludedResult(result_id=orphan.result_id, missing=orphan.missing, missing_id=orphan.missing_id))
			continue
		resolved.append((theme, subtheme, item, result))

	resolved.sort(key=lambda row: (_sort_key(row[0]), _sort_key(row[1]), row[2].code))

	groups: Dict[str, ThemeGroup] = {}
	for theme, subtheme, item, result in resolved:
		group = groups.get(theme.id)
		if group is None:
			group = ThemeGroup(theme_id=theme.id, theme_name=theme.name, order_index=theme.order_index, results=[])
			groups[theme.id] = group
		group.results.append(ResultLine(
			item_name=item.name,
			item_code=item.code,
			subtheme_name=subtheme.name,
			raw_score=result.raw_score,
			unit=item.unit,
			percentile=result.percentile,
			standard_score=result.standard_score,
			notes=result.notes,
			direction=item.direction,
		))

	if orphans:
		logger.warning("Assessment %s: %d result(s) excluded from aggregation", assessment_id, len(orphans))
	return Aggregation(assessment_id=assessment_id, groups=groups, excluded=len(orphans), excluded_results=orphans)
