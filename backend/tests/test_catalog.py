"""
Tests for the theme / subtheme / item catalog.
"""

from datetime import datetime

import pytest

from psychobrio.errors import NotFound, ValidationError
from psychobrio.models import Subtheme, Theme
from psychobrio.services import catalog


def _orders(nodes):
	return {n.id: n.order_index for n in nodes}


def test_new_nodes_append_after_siblings(db):
	first = catalog.create_theme(db, "Tonus")
	second = catalog.create_theme(db, "Praxies")
	assert (first.order_index, second.order_index) == (1, 2)

	sub_a = catalog.create_subtheme(db, first.id, "A")
	sub_b = catalog.create_subtheme(db, first.id, "B")
	other = catalog.create_subtheme(db, second.id, "C")
	# Indexes are scoped per parent theme
	assert (sub_a.order_index, sub_b.order_index) == (1, 2)
	assert other.order_index == 1


def test_create_uses_max_plus_one_on_gapped_indexes(db):
	catalog.create_theme(db, "One")
	catalog.update_theme(db, catalog.list_themes(db)[0].id, order_index=7)
	later = catalog.create_theme(db, "Two")
	assert later.order_index == 8


def test_listing_sorts_by_order_then_creation(db):
	a = catalog.create_theme(db, "A")
	b = catalog.create_theme(db, "B")
	c = catalog.create_theme(db, "C")
	catalog.update_theme(db, c.id, order_index=0)
	assert [t.name for t in catalog.list_themes(db)] == ["C", "A", "B"]
	# Duplicate index: creation order breaks the tie
	a.created_at = datetime(2024, 1, 1)
	b.created_at = datetime(2023, 1, 1)
	db.commit()
	catalog.update_theme(db, b.id, order_index=a.order_index)
	assert [t.name for t in catalog.list_themes(db)] == ["C", "B", "A"]


def test_reorder_up_then_down_restores_every_sibling(db):
	themes = [catalog.create_theme(db, name) for name in ("A", "B", "C", "D")]
	before = _orders(catalog.list_themes(db))

	catalog.reorder_theme(db, themes[2].id, "up")
	assert [t.name for t in catalog.list_themes(db)] == ["A", "C", "B", "D"]
	catalog.reorder_theme(db, themes[2].id, "down")

	assert _orders(catalog.list_themes(db)) == before


def test_reorder_subtheme_stays_within_its_theme(db):
	t1 = catalog.create_theme(db, "T1")
	t2 = catalog.create_theme(db, "T2")
	s1 = catalog.create_subtheme(db, t1.id, "S1")
	s2 = catalog.create_subtheme(db, t1.id, "S2")
	foreign = catalog.create_subtheme(db, t2.id, "X")

	result = catalog.reorder_subtheme(db, s1.id, "down")

	assert [s.name for s in result] == ["S2", "S1"]
	assert db.get(Subtheme, foreign.id).order_index == 1
	catalog.reorder_subtheme(db, s1.id, "up")
	assert _orders(catalog.list_subthemes(db, t1.id)) == {s1.id: 1, s2.id: 2}


@pytest.mark.parametrize("position,direction", [(0, "up"), (-1, "down")])
def test_reorder_at_either_end_is_a_no_op(db, position, direction):
	themes = [catalog.create_theme(db, name) for name in ("A", "B", "C")]
	before = _orders(catalog.list_themes(db))

	result = catalog.reorder_theme(db, themes[position].id, direction)

	assert _orders(result) == before


def test_reorder_tolerates_duplicate_and_gapped_indexes(db):
	a = catalog.create_theme(db, "A")
	b = catalog.create_theme(db, "B")
	c = catalog.create_theme(db, "C")
	a.created_at = datetime(2023, 1, 1)
	b.created_at = datetime(2024, 1, 1)
	db.commit()
	catalog.update_theme(db, b.id, order_index=a.order_index)
	catalog.update_theme(db, c.id, order_index=40)
	assert [t.name for t in catalog.list_themes(db)] == ["A", "B", "C"]

	result = catalog.reorder_theme(db, c.id, "up")
	assert [t.name for t in result] == ["A", "C", "B"]
	assert [t.order_index for t in result] == [1, 2, 3]


def test_reorder_moves_past_a_tied_sibling(db):
	a = catalog.create_theme(db, "A")
	b = catalog.create_theme(db, "B")
	a.created_at = datetime(2023, 1, 1)
	b.created_at = datetime(2024, 1, 1)
	db.commit()
	catalog.update_theme(db, b.id, order_index=a.order_index)

	result = catalog.reorder_theme(db, b.id, "up")

	assert [t.name for t in result] == ["B", "A"]
	catalog.reorder_theme(db, b.id, "down")
	assert [t.name for t in catalog.list_themes(db)] == ["A", "B"]


def test_reorder_rejects_unknown_direction(db):
	theme = catalog.create_theme(db, "A")
	with pytest.raises(ValidationError):
		catalog.reorder_theme(db, theme.id, "sideways")


def test_unknown_nodes_raise_not_found(db):
	with pytest.raises(NotFound):
		catalog.reorder_theme(db, "missing", "up")
	with pytest.raises(NotFound):
		catalog.create_subtheme(db, "missing", "Orphan")
	with pytest.raises(NotFound):
		catalog.create_item(db, "missing", code="X", name="X")


def test_delete_is_blocked_while_children_exist(db, tree):
	motor = tree["themes"]["motor"]
	fine = tree["subthemes"]["fine"]
	with pytest.raises(ValidationError):
		catalog.delete_theme(db, motor.id)
	with pytest.raises(ValidationError):
		catalog.delete_subtheme(db, fine.id)

	catalog.delete_item(db, tree["items"]["beads"].id)
	catalog.delete_subtheme(db, fine.id)
	assert [s.name for s in catalog.list_subthemes(db, motor.id)] == ["Gross motor"]


def test_item_codes_are_unique(db, tree):
	gross = tree["subthemes"]["gross"]
	with pytest.raises(ValidationError):
		catalog.create_item(db, gross.id, code="GM-01", name="Duplicate")
	# Keeping its own code on update is fine
	item = catalog.update_item(db, tree["items"]["jump"].id, code="GM-01", name="Saut en longueur")
	assert item.name == "Saut en longueur"


def test_moving_subtheme_appends_to_new_theme(db, tree):
	balance = tree["themes"]["balance"]
	moved = catalog.update_subtheme(db, tree["subthemes"]["gross"].id, theme_id=balance.id)
	assert moved.theme_id == balance.id
	assert moved.order_index == 2


def test_blank_names_are_rejected(db):
	with pytest.raises(ValidationError):
		catalog.create_theme(db, "   ")
	assert db.query(Theme).count() == 0
