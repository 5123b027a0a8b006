from __future__ import annotations
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from ..context import RequestContext
from ..db import get_db
from ..models import ScoreDirection
from ..services import catalog
from .auth import require_admin, require_practitioner

router = APIRouter(prefix="/catalog", tags=["catalog"])


class ThemeOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)
	id: str
	name: str
	order_index: int


class SubthemeOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)
	id: str
	name: str
	theme_id: str
	order_index: int


class ItemOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)
	id: str
	code: str
	name: str
	description: Optional[str] = None
	unit: Optional[str] = None
	direction: ScoreDirection
	subtheme_id: str


class ThemeIn(BaseModel):
	name: str


class ThemeUpdate(BaseModel):
	name: Optional[str] = None
	order_index: Optional[int] = None


class SubthemeIn(BaseModel):
	name: str
	theme_id: str


class SubthemeUpdate(BaseModel):
	name: Optional[str] = None
	theme_id: Optional[str] = None
	order_index: Optional[int] = None


class ItemIn(BaseModel):
	code: str
	name: str
	subtheme_id: str
	description: Optional[str] = None
	unit: Optional[str] = None
	direction: ScoreDirection = ScoreDirection.HIGHER_IS_BETTER


class ItemUpdate(BaseModel):
	code: Optional[str] = None
	name: Optional[str] = None
	subtheme_id: Optional[str] = None
	description: Optional[str] = None
	unit: Optional[str] = None
	direction: Optional[ScoreDirection] = None


class ReorderRequest(BaseModel):
	direction: Literal["up", "down"]


# ---- Reads (any practitioner) ----

@router.get("/themes", response_model=List[ThemeOut])
def list_themes(user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	return catalog.list_themes(db)


@router.get("/subthemes", response_model=List[SubthemeOut])
def list_subthemes(theme_id: Optional[str] = None, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	return catalog.list_subthemes(db, theme_id)


@router.get("/items", response_model=List[ItemOut])
def list_items(subtheme_id: Optional[str] = None, user: RequestContext = Depends(require_practitioner), db: Session = Depends(get_db)):
	return catalog.list_items(db, subtheme_id)


# ---- Writes (administrators) ----

@router.post("/themes", status_code=201, response_model=ThemeOut)
def create_theme(req: ThemeIn, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	return catalog.create_theme(db, req.name)


@router.patch("/themes/{theme_id}", response_model=ThemeOut)
def update_theme(theme_id: str, req: ThemeUpdate, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	return catalog.update_theme(db, theme_id, name=req.name, order_index=req.order_index)


@router.delete("/themes/{theme_id}", status_code=204)
def delete_theme(theme_id: str, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	catalog.delete_theme(db, theme_id)


@router.post("/themes/{theme_id}/reorder", response_model=List[ThemeOut])
def reorder_theme(theme_id: str, req: ReorderRequest, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	return catalog.reorder_theme(db, theme_id, req.direction)


@router.post("/subthemes", status_code=201, response_model=SubthemeOut)
def create_subtheme(req: SubthemeIn, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	return catalog.create_subtheme(db, req.theme_id, req.name)


@router.patch("/subthemes/{subtheme_id}", response_model=SubthemeOut)
def update_subtheme(subtheme_id: str, req: SubthemeUpdate, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	return catalog.update_subtheme(db, subtheme_id, name=req.name, theme_id=req.theme_id, order_index=req.order_index)


@router.delete("/subthemes/{subtheme_id}", status_code=204)
def delete_subtheme(subtheme_id: str, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	catalog.delete_subtheme(db, subtheme_id)


@router.post("/subthemes/{subtheme_id}/reorder", response_model=List[SubthemeOut])
def reorder_subtheme(subtheme_id: str, req: ReorderRequest, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	return catalog.reorder_subtheme(db, subtheme_id, req.direction)


@router.post("/items", status_code=201, response_model=ItemOut)
def create_item(req: ItemIn, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	return catalog.create_item(
		db,
		req.subtheme_id,
		code=req.code,
		name=req.name,
		description=req.description,
		unit=req.unit,
		direction=req.direction,
	)


@router.patch("/items/{item_id}", response_model=ItemOut)
def update_item(item_id: str, req: ItemUpdate, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	return catalog.update_item(db, item_id, **req.model_dump(exclude_unset=True))


@router.delete("/items/{item_id}", status_code=204)
def delete_item(item_id: str, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	catalog.delete_item(db, item_id)
