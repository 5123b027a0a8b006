"""
Shared fixtures: an in-memory SQLite database per test, a small catalog,
a patient with an assessment, and a TestClient wired to all of them.
"""

import os

# Keep the module-level engine away from the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from psychobrio.context import RequestContext
from psychobrio.db import get_db, init_db
from psychobrio.main import app
from psychobrio.models import AssessmentStatus, AuthUser, Patient, PatientSex, ScoreDirection, UserRole
from psychobrio.routers.auth import get_current_user
from psychobrio.routers.conclusions import get_text_generator
from psychobrio.services import assessments, catalog
from tests.fakes import FakeGenerator


@pytest.fixture
def engine():
	engine = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
		future=True,
	)
	init_db(bind=engine)
	yield engine
	engine.dispose()


@pytest.fixture
def db(engine):
	session = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)()
	try:
		yield session
	finally:
		session.close()


def _make_user(db, username: str, role: UserRole) -> RequestContext:
	user = AuthUser(username=username, password_hash="x", name=username, role=role)
	db.add(user)
	db.commit()
	return RequestContext(user_id=user.id, username=user.username, role=user.role)


@pytest.fixture
def practitioner(db) -> RequestContext:
	return _make_user(db, "psy", UserRole.PSY)


@pytest.fixture
def admin(db) -> RequestContext:
	return _make_user(db, "admin", UserRole.ADMIN_PSY)


@pytest.fixture
def parent(db) -> RequestContext:
	return _make_user(db, "parent", UserRole.PARENT)


@pytest.fixture
def tree(db):
	"""Two themes: "Motor Coordination" with scored items, "Balance" with one unscored item."""
	motor = catalog.create_theme(db, "Motor Coordination")
	balance = catalog.create_theme(db, "Balance")
	fine = catalog.create_subtheme(db, motor.id, "Fine motor")
	gross = catalog.create_subtheme(db, motor.id, "Gross motor")
	static = catalog.create_subtheme(db, balance.id, "Static balance")
	items = {
		"beads": catalog.create_item(db, fine.id, code="FM-01", name="Threading beads", unit="s", direction=ScoreDirection.LOWER_IS_BETTER),
		"jump": catalog.create_item(db, gross.id, code="GM-01", name="Long jump", unit="cm"),
		"stork": catalog.create_item(db, static.id, code="SB-01", name="Stork stand", unit="s"),
	}
	return {
		"themes": {"motor": motor, "balance": balance},
		"subthemes": {"fine": fine, "gross": gross, "static": static},
		"items": items,
	}


@pytest.fixture
def patient(db, practitioner) -> Patient:
	row = Patient(
		first_name="Lina",
		last_name="Martin",
		birth_date=date(2015, 3, 10),
		sex=PatientSex.F,
		dossier_number="D-001",
		created_by_user_id=practitioner.user_id,
	)
	db.add(row)
	db.commit()
	return row


@pytest.fixture
def assessment(db, practitioner, patient):
	return assessments.create_assessment(db, practitioner, patient.id, assessment_date=date(2024, 1, 5))


@pytest.fixture
def scored_assessment(db, assessment, tree):
	"""Assessment in review with results on the two Motor Coordination items."""
	items = tree["items"]
	assessments.save_results(db, assessment.id, [
		assessments.ResultEntry(item_id=items["jump"].id, raw_score=112, percentile=40),
		assessments.ResultEntry(item_id=items["beads"].id, raw_score=35.5, notes="Pince fine hésitante"),
	])
	return assessments.update_status(db, assessment.id, AssessmentStatus.READY_FOR_REVIEW)


@pytest.fixture
def generator() -> FakeGenerator:
	return FakeGenerator()


@pytest.fixture
def identity(practitioner):
	"""Mutable holder for the caller the API client authenticates as."""
	return {"ctx": practitioner}


@pytest.fixture
def client(db, identity, generator):
	def _get_db():
		yield db

	async def _get_generator():
		yield generator

	app.dependency_overrides[get_db] = _get_db
	app.dependency_overrides[get_current_user] = lambda: identity["ctx"]
	app.dependency_overrides[get_text_generator] = _get_generator
	try:
		yield TestClient(app)
	finally:
		app.dependency_overrides.clear()
