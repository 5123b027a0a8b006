"""Theme / subtheme / item catalog.

Themes and subthemes carry a practitioner-editable `order_index`. Listings
sort on it, then on creation time, then on id, so the order stays
deterministic even when the indexes contain duplicates or gaps.
"""
from __future__ import annotations
import logging
from typing import List, Literal, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..errors import NotFound, ValidationError
from ..models import Item, ScoreDirection, Subtheme, Theme

logger = logging.getLogger(__name__)

Direction = Literal["up", "down"]


def list_themes(db: Session) -> List[Theme]:
	stmt = select(Theme).order_by(Theme.order_index, Theme.created_at, Theme.id)
	return list(db.scalars(stmt))


def list_subthemes(db: Session, theme_id: Optional[str] = None) -> List[Subtheme]:
	stmt = select(Subtheme)
	if theme_id is not None:
		stmt = stmt.where(Subtheme.theme_id == theme_id)
	stmt = stmt.order_by(Subtheme.order_index, Subtheme.created_at, Subtheme.id)
	return list(db.scalars(stmt))


def list_items(db: Session, subtheme_id: Optional[str] = None) -> List[Item]:
	stmt = select(Item)
	if subtheme_id is not None:
		stmt = stmt.where(Item.subtheme_id == subtheme_id)
	stmt = stmt.order_by(Item.code)
	return list(db.scalars(stmt))


def get_theme(db: Session, theme_id: str) -> Theme:
	theme = db.get(Theme, theme_id)
	if theme is None:
		raise NotFound(f"theme {theme_id} not found")
	return theme


def get_subtheme(db: Session, subtheme_id: str) -> Subtheme:
	subtheme = db.get(Subtheme, subtheme_id)
	if subtheme is None:
		raise NotFound(f"subtheme {subtheme_id} not found")
	return subtheme


def get_item(db: Session, item_id: str) -> Item:
	item = db.get(Item, item_id)
	if item is None:
		raise NotFound(f"item {item_id} not found")
	return item


def _next_order_index(siblings: List[Union[Theme, Subtheme]]) -> int:
	return max((s.order_index for s in siblings), default=0) + 1


def _require_name(name: Optional[str]) -> str:
	value = (name or "").strip()
	if not value:
		raise ValidationError("name is required")
	return value


# ---- Themes ----

def create_theme(db: Session, name: str) -> Theme:
	theme = Theme(name=_require_name(name), order_index=_next_order_index(list_themes(db)))
	db.add(theme)
	db.commit()
	db.refresh(theme)
	return theme


def update_theme(db: Session, theme_id: str, *, name: Optional[str] = None, order_index: Optional[int] = None) -> Theme:
	theme = get_theme(db, theme_id)
	if name is not None:
		theme.name = _require_name(name)
	if order_index is not None:
		theme.order_index = order_index
	db.commit()
	db.refresh(theme)
	return theme


def delete_theme(db: Session, theme_id: str) -> None:
	theme = get_theme(db, theme_id)
	children = db.scalar(select(func.count()).select_from(Subtheme).where(Subtheme.theme_id == theme_id))
	if children:
		raise ValidationError("theme still has subthemes; delete or move them first")
	db.delete(theme)
	db.commit()


# ---- Subthemes ----

def create_subtheme(db: Session, theme_id: str, name: str) -> Subtheme:
	get_theme(db, theme_id)
	subtheme = Subtheme(
		name=_require_name(name),
		theme_id=theme_id,
		order_index=_next_order_index(list_subthemes(db, theme_id)),
	)
	db.add(subtheme)
	db.commit()
	db.refresh(subtheme)
	return subtheme


def update_subtheme(
	db: Session,
	subtheme_id: str,
	*,
	name: Optional[str] = None,
	theme_id: Optional[str] = None,
	order_index: Optional[int] = None,
) -> Subtheme:
	subtheme = get_subtheme(db, subtheme_id)
	if name is not None:
		subtheme.name = _require_name(name)
	if theme_id is not None and theme_id != subtheme.theme_id:
		get_theme(db, theme_id)
		# Moving to another theme appends to the end of its siblings
		subtheme.theme_id = theme_id
		if order_index is None:
			subtheme.order_index = _next_order_index(list_subthemes(db, theme_id))
	if order_index is not None:
		subtheme.order_index = order_index
	db.commit()
	db.refresh(subtheme)
	return subtheme


def delete_subtheme(db: Session, subtheme_id: str) -> None:
	subtheme = get_subtheme(db, subtheme_id)
	children = db.scalar(select(func.count()).select_from(Item).where(Item.subtheme_id == subtheme_id))
	if children:
		raise ValidationError("subtheme still has items; delete or move them first")
	db.delete(subtheme)
	db.commit()


# ---- Items ----

def _check_code_free(db: Session, code: str, item_id: Optional[str] = None) -> str:
	value = (code or "").strip()
	if not value:
		raise ValidationError("code is required")
	existing = db.scalar(select(Item).where(Item.code == value))
	if existing is not None and existing.id != item_id:
		raise ValidationError(f"item code {value} is already used")
	return value


def create_item(
	db: Session,
	subtheme_id: str,
	*,
	code: str,
	name: str,
	description: Optional[str] = None,
	unit: Optional[str] = None,
	direction: ScoreDirection = ScoreDirection.HIGHER_IS_BETTER,
) -> Item:
	get_subtheme(db, subtheme_id)
	item = Item(
		code=_check_code_free(db, code),
		name=_require_name(name),
		description=description,
		unit=unit,
		direction=direction,
		subtheme_id=subtheme_id,
	)
	db.add(item)
	db.commit()
	db.refresh(item)
	return item


def update_item(db: Session, item_id: str, **changes) -> Item:
	item = get_item(db, item_id)
	if changes.get("code") is not None:
		item.code = _check_code_free(db, changes["code"], item_id)
	if changes.get("name") is not None:
		item.name = _require_name(changes["name"])
	if changes.get("subtheme_id") is not None:
		get_subtheme(db, changes["subtheme_id"])
		item.subtheme_id = changes["subtheme_id"]
	for field in ("description", "unit", "direction"):
		if field in changes and changes[field] is not None:
			setattr(item, field, changes[field])
	db.commit()
	db.refresh(item)
	return item


def delete_item(db: Session, item_id: str) -> None:
	item = get_item(db, item_id)
	db.delete(item)
	db.commit()


# ---- Ordering ----

def _swap_with_neighbour(db: Session, node: Union[Theme, Subtheme], siblings: list, direction: Direction) -> None:
	if direction not in ("up", "down"):
		raise ValidationError("direction must be 'up' or 'down'")
	position = next(i for i, s in enumerate(siblings) if s.id == node.id)
	target = position - 1 if direction == "up" else position + 1
	if target < 0 or target >= len(siblings):
		# Already first or last
		return
	neighbour = siblings[target]
	# Dense 1..n in listed order, then swap positions
	for index, sibling in enumerate(siblings, start=1):
		sibling.order_index = index
	node.order_index, neighbour.order_index = target + 1, position + 1
	db.commit()
	logger.info("Swapped order of %s and %s", node.id, neighbour.id)


def reorder_theme(db: Session, theme_id: str, direction: Direction) -> List[Theme]:
	theme = get_theme(db, theme_id)
	_swap_with_neighbour(db, theme, list_themes(db), direction)
	return list_themes(db)


def reorder_subtheme(db: Session, subtheme_id: str, direction: Direction) -> List[Subtheme]:
	subtheme = get_subtheme(db, subtheme_id)
	_swap_with_neighbour(db, subtheme, list_subthemes(db, subtheme.theme_id), direction)
	return list_subthemes(db, subtheme.theme_id)
