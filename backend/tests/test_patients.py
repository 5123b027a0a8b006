from datetime import date

import pytest

from psychobrio.errors import NotFound, ValidationError
from psychobrio.models import PatientGuardian, PatientSex
from psychobrio.services import patients


def _new(db, ctx, **overrides):
	fields = dict(
		first_name="Hugo",
		last_name="Bernard",
		birth_date=date(2016, 9, 2),
		sex=PatientSex.M,
		dossier_number="D-002",
	)
	fields.update(overrides)
	return patients.create_patient(db, ctx, **fields)


def test_create_records_the_author(db, practitioner):
	patient = _new(db, practitioner, school="  ")
	assert patient.created_by_user_id == practitioner.user_id
	assert patient.school is None


@pytest.mark.parametrize("field", ["first_name", "birth_date", "sex", "dossier_number"])
def test_required_fields(db, practitioner, field):
	with pytest.raises(ValidationError):
		_new(db, practitioner, **{field: None})
	assert patients.list_patients(db) == []


def test_list_is_sorted_by_name(db, practitioner):
	_new(db, practitioner, last_name="Petit", dossier_number="D-010")
	_new(db, practitioner, last_name="Arnaud", dossier_number="D-011")
	assert [p.last_name for p in patients.list_patients(db)] == ["Arnaud", "Petit"]


def test_link_guardian_is_idempotent(db, patient, parent):
	patients.link_guardian(db, patient.id, parent.user_id)
	patients.link_guardian(db, patient.id, parent.user_id)
	assert db.query(PatientGuardian).count() == 1


def test_only_parents_can_be_guardians(db, patient, practitioner):
	with pytest.raises(ValidationError):
		patients.link_guardian(db, patient.id, practitioner.user_id)
	with pytest.raises(NotFound):
		patients.link_guardian(db, patient.id, "nobody")
