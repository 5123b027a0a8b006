from __future__ import annotations
import enum
import uuid
from datetime import datetime, date
from sqlalchemy import Column, String, DateTime, Date, Integer, Float, Text, Enum, ForeignKey, UniqueConstraint
from .db import Base


def _uuid() -> str:
	return str(uuid.uuid4())


class UserRole(str, enum.Enum):
	ADMIN_PSY = "ADMIN_PSY"
	PSY = "PSY"
	PARENT = "PARENT"
	SUPERADMIN_TECH = "SUPERADMIN_TECH"


class PatientSex(str, enum.Enum):
	M = "M"
	F = "F"


class ScoreDirection(str, enum.Enum):
	HIGHER_IS_BETTER = "HIGHER_IS_BETTER"
	LOWER_IS_BETTER = "LOWER_IS_BETTER"


class AssessmentStatus(str, enum.Enum):
	DRAFT = "DRAFT"
	READY_FOR_REVIEW = "READY_FOR_REVIEW"
	SIGNED = "SIGNED"
	SHARED = "SHARED"


class AuthUser(Base):
	__tablename__ = "auth_users"
	id = Column(String(36), primary_key=True, default=_uuid)
	username = Column(String(128), unique=True, index=True, nullable=False)
	password_hash = Column(String(256), nullable=False)
	name = Column(String(256), nullable=False, default="")
	email = Column(String(256), nullable=True)
	role = Column(Enum(UserRole), nullable=False, default=UserRole.PSY)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), nullable=False, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Patient(Base):
	__tablename__ = "patients"
	id = Column(String(36), primary_key=True, default=_uuid)
	first_name = Column(String(128), nullable=False)
	last_name = Column(String(128), nullable=False)
	birth_date = Column(Date, nullable=False)
	sex = Column(Enum(PatientSex), nullable=False)
	dossier_number = Column(String(64), nullable=False)
	physician = Column(String(256), nullable=True)
	school = Column(String(256), nullable=True)
	created_by_user_id = Column(String(36), nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class PatientGuardian(Base):
	__tablename__ = "patient_guardians"
	patient_id = Column(String(36), ForeignKey("patients.id"), primary_key=True)
	guardian_id = Column(String(36), ForeignKey("auth_users.id"), primary_key=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Theme(Base):
	__tablename__ = "catalog_themes"
	id = Column(String(36), primary_key=True, default=_uuid)
	name = Column(String(256), nullable=False)
	order_index = Column(Integer, nullable=False, default=0)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Subtheme(Base):
	__tablename__ = "catalog_subthemes"
	id = Column(String(36), primary_key=True, default=_uuid)
	name = Column(String(256), nullable=False)
	theme_id = Column(String(36), ForeignKey("catalog_themes.id"), nullable=False, index=True)
	# Scoped per parent theme
	order_index = Column(Integer, nullable=False, default=0)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Item(Base):
	__tablename__ = "catalog_items"
	id = Column(String(36), primary_key=True, default=_uuid)
	code = Column(String(64), unique=True, nullable=False)
	name = Column(String(256), nullable=False)
	description = Column(Text, nullable=True)
	unit = Column(String(64), nullable=True)
	direction = Column(Enum(ScoreDirection), nullable=False, default=ScoreDirection.HIGHER_IS_BETTER)
	subtheme_id = Column(String(36), ForeignKey("catalog_subthemes.id"), nullable=False, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Assessment(Base):
	__tablename__ = "assessments"
	id = Column(String(36), primary_key=True, default=_uuid)
	patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
	practitioner_id = Column(String(36), nullable=False, index=True)
	date = Column(Date, nullable=False, default=date.today)
	status = Column(Enum(AssessmentStatus), nullable=False, default=AssessmentStatus.DRAFT)
	template_id = Column(String(36), nullable=True)
	signed_at = Column(DateTime, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ItemResult(Base):
	__tablename__ = "assessment_item_results"
	__table_args__ = (UniqueConstraint("assessment_id", "item_id", name="uq_item_result_assessment_item"),)
	id = Column(String(36), primary_key=True, default=_uuid)
	assessment_id = Column(String(36), ForeignKey("assessments.id"), nullable=False, index=True)
	# No FK: rows may outlive catalog items and are reported as orphans
	item_id = Column(String(36), nullable=False)
	raw_score = Column(Float, nullable=False)
	percentile = Column(Float, nullable=True)
	standard_score = Column(Float, nullable=True)
	notes = Column(Text, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ThemeConclusion(Base):
	__tablename__ = "theme_conclusions"
	__table_args__ = (UniqueConstraint("assessment_id", "theme_id", name="uq_theme_conclusion_assessment_theme"),)
	id = Column(String(36), primary_key=True, default=_uuid)
	assessment_id = Column(String(36), ForeignKey("assessments.id"), nullable=False, index=True)
	theme_id = Column(String(36), nullable=False)
	text = Column(Text, nullable=False, default="")
	confidence = Column(Float, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AssessmentConclusion(Base):
	__tablename__ = "assessment_conclusions"
	assessment_id = Column(String(36), ForeignKey("assessments.id"), primary_key=True)
	synthesis = Column(Text, nullable=False, default="")
	objectives = Column(Text, nullable=False, default="")
	recommendations = Column(Text, nullable=False, default="")
	llm_model = Column(String(128), nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
